"""Records completed study actions against the analytics API.

A tracking call is not safe to repeat: the server adds the counters
again on every submission.  So a failed call is logged and handed back to
the caller, never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from prep_tracker.core.errors import ResponseFormatError, TrackerError
from prep_tracker.core.metrics import ACTIVITIES_TRACKED
from prep_tracker.models.activity import (
    ActivityRecord,
    BadgeCheckResult,
    TrackResult,
    parse_activity,
)
from prep_tracker.services import query_keys
from prep_tracker.services.api_client import StudyApiClient
from prep_tracker.services.cache import QueryCache

logger = logging.getLogger(__name__)


class ActivityTracker:
    def __init__(self, api: StudyApiClient, cache: QueryCache) -> None:
        self._api = api
        self._cache = cache

    async def track(
        self, record: ActivityRecord | Mapping[str, Any]
    ) -> TrackResult | None:
        """Submit one study action.

        Returns None without calling the API when no questions were
        answered.  Raises ValidationError for malformed input, and
        NetworkError/HTTPError when the call fails.
        """
        activity = parse_activity(record)
        activity_type = activity.activity_type.value

        if not activity.should_track:
            ACTIVITIES_TRACKED.labels(activity_type=activity_type, result="skipped").inc()
            logger.debug("Skipping %s activity with no answered questions", activity_type)
            return None

        try:
            body = await self._api.track_activity(activity.to_payload())
        except ResponseFormatError as exc:
            # The server answered 2xx, so the activity is recorded
            logger.warning("Unreadable track-activity response: %s", exc)
            body = {}
        except TrackerError:
            ACTIVITIES_TRACKED.labels(activity_type=activity_type, result="error").inc()
            logger.exception(
                "Failed to track %s activity",
                activity_type,
                extra={"activity_type": activity_type},
            )
            raise

        ACTIVITIES_TRACKED.labels(activity_type=activity_type, result="success").inc()
        logger.info(
            "Tracked %s activity (%d questions)",
            activity_type,
            activity.questions_answered,
            extra={"activity_type": activity_type},
        )

        await self._cache.invalidate_all(query_keys.AFTER_TRACK_ACTIVITY)
        try:
            return TrackResult.from_response(
                body if isinstance(body, Mapping) else {}, path="/api/analytics/track-activity"
            )
        except ResponseFormatError as exc:
            # Already recorded server-side; only the envelope is unreadable
            logger.warning("Unreadable track-activity response: %s", exc)
            return TrackResult()

    async def check_badges(self) -> list[str]:
        """Ask the server for newly earned badges; returns their names."""
        body = await self._api.check_badges()
        await self._cache.invalidate_all(query_keys.AFTER_BADGE_CHECK)
        result = BadgeCheckResult.from_response(
            body if isinstance(body, Mapping) else {}, path="/api/analytics/check-badges"
        )
        if result.new_badges:
            logger.info("New badges earned: %s", ", ".join(result.new_badges))
        return result.new_badges
