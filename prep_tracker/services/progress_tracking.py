"""The study-action flow, end to end.

  1. remember the overall progress the user currently sees (the baseline)
  2. track the activity                → cache invalidated on success
  3. check for new badges              → badge toast
  4. refetch the overview              → fresh server-computed progress
  5. diff baseline vs fresh progress   → milestone toast (+ UI callback)
  6. match the activity                → achievement toast (+ UI callback)

Each step awaits the previous one.  A failed track stops the flow and is
re-raised after an error toast; a failed badge check or refetch is
logged and only skips the steps that need its result.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from prep_tracker.core.errors import TrackerError
from prep_tracker.core.request_context import activity_scope
from prep_tracker.models.activity import ActivityRecord, TrackResult, parse_activity
from prep_tracker.models.notification import Notification
from prep_tracker.models.progress import ProgressSnapshot
from prep_tracker.services import query_keys
from prep_tracker.services.activity_tracker import ActivityTracker
from prep_tracker.services.api_client import StudyApiClient
from prep_tracker.services.cache import QueryCache
from prep_tracker.services.milestones import MilestoneNotifier
from prep_tracker.services.notifications import NotificationSink
from prep_tracker.services.scheduler import JobFn

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackOutcome:
    tracked: bool
    result: TrackResult | None = None
    new_badges: tuple[str, ...] = ()
    previous_progress: float | None = None
    current_progress: float | None = None
    milestone: int | None = None
    achievement: str | None = None
    skipped_steps: tuple[str, ...] = field(default=())


class ProgressTracking:
    def __init__(
        self,
        api: StudyApiClient,
        cache: QueryCache,
        tracker: ActivityTracker,
        notifier: MilestoneNotifier,
        sink: NotificationSink,
        *,
        stale_seconds: int = 30,
    ) -> None:
        self._api = api
        self._cache = cache
        self._tracker = tracker
        self._notifier = notifier
        self._sink = sink
        self._stale_seconds = stale_seconds
        self._last_progress: float | None = None

    async def load_progress(self) -> ProgressSnapshot:
        """Read the overview through the cache and remember what was shown."""
        body = await self._cache.fetch(
            query_keys.ANALYTICS_OVERVIEW, self._api.get_overview, self._stale_seconds
        )
        snapshot = ProgressSnapshot.from_overview(body)
        self._last_progress = snapshot.overall_progress
        return snapshot

    async def _baseline(self) -> float | None:
        cached = await self._cache.get(query_keys.ANALYTICS_OVERVIEW)
        if cached is None:
            return self._last_progress
        try:
            return ProgressSnapshot.from_overview(cached).overall_progress
        except TrackerError as exc:
            logger.warning("Ignoring unreadable cached overview: %s", exc)
            return self._last_progress

    async def track_study_activity(
        self,
        record: ActivityRecord | Mapping[str, Any],
        on_milestone: JobFn | None = None,
    ) -> TrackOutcome:
        activity = parse_activity(record)
        if not activity.should_track:
            return TrackOutcome(tracked=False)

        with activity_scope():
            previous = await self._baseline()

            try:
                result = await self._tracker.track(activity)
            except TrackerError as exc:
                self._sink.notify(Notification.failure("Couldn't save your progress", exc))
                raise

            skipped: list[str] = []

            new_badges: list[str] = []
            try:
                new_badges = await self._tracker.check_badges()
            except TrackerError as exc:
                logger.warning("Badge check failed: %s", exc)
                skipped.append("badges")
            else:
                self._notifier.on_badges(new_badges)

            try:
                snapshot = await self.load_progress()
            except TrackerError as exc:
                logger.warning("Could not refresh progress after tracking: %s", exc)
                skipped.append("milestones")
                return TrackOutcome(
                    tracked=True,
                    result=result,
                    new_badges=tuple(new_badges),
                    previous_progress=previous,
                    skipped_steps=tuple(skipped),
                )

            current = snapshot.overall_progress
            milestone = self._notifier.on_progress(previous, current, on_milestone)
            # No baseline means nothing to compare the session against yet
            achievement = (
                self._notifier.on_activity(activity, on_milestone)
                if previous is not None
                else None
            )

            return TrackOutcome(
                tracked=True,
                result=result,
                new_badges=tuple(new_badges),
                previous_progress=previous,
                current_progress=current,
                milestone=milestone,
                achievement=achievement,
                skipped_steps=tuple(skipped),
            )
