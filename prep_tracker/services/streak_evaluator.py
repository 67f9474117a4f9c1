"""Keeps the server-side study streak validated on a client schedule.

The server only recomputes a streak (and resets a lapsed one) when asked,
so the client asks:

  mount()          → validate now, then arm the timers below
  hourly           → validate every hour (catches a machine that slept
                     through midnight)
  midnight         → one-shot at the next local midnight, which then
                     re-arms a recurring 24h validation
  unmount()        → cancel every timer this evaluator armed

Validation is idempotent on the server, so overlapping calls (the hourly
and midnight timers firing together) are not deduplicated.
"""

from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass

from prep_tracker.core.errors import TrackerError
from prep_tracker.core.metrics import STREAK_VALIDATIONS
from prep_tracker.models.notification import Notification
from prep_tracker.models.progress import StreakState, StreakValidation
from prep_tracker.services import query_keys
from prep_tracker.services.api_client import StudyApiClient
from prep_tracker.services.cache import QueryCache
from prep_tracker.services.daily_progress import DailyProgressService
from prep_tracker.services.notifications import NotificationSink
from prep_tracker.services.scheduler import (
    ONE_DAY,
    ONE_HOUR,
    ScheduledJob,
    Scheduler,
    next_midnight,
)

logger = logging.getLogger(__name__)

_FIRST_STREAK_MILESTONE = 7


def next_streak_milestone(streak: int) -> int:
    """7 for a young streak, then the next multiple of ten."""
    if streak < _FIRST_STREAK_MILESTONE:
        return _FIRST_STREAK_MILESTONE
    return math.ceil(streak / 10) * 10


@dataclass(frozen=True, slots=True)
class StreakSummary:
    current_streak: int
    next_milestone: int
    days_to_milestone: int
    requirements_met_today: bool


class StreakEvaluator:
    def __init__(
        self,
        api: StudyApiClient,
        cache: QueryCache,
        scheduler: Scheduler,
        daily: DailyProgressService,
        sink: NotificationSink | None = None,
        *,
        stale_seconds: int = 30,
        hourly_check: bool = True,
    ) -> None:
        self._api = api
        self._cache = cache
        self._scheduler = scheduler
        self._daily = daily
        self._sink = sink
        self._stale_seconds = stale_seconds
        self._hourly_check = hourly_check
        self._jobs: list[ScheduledJob] = []
        self._mounted = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def jobs(self) -> list[ScheduledJob]:
        return [job for job in self._jobs if not job.cancelled]

    async def mount(self) -> StreakValidation | None:
        """Validate immediately, then arm the hourly and midnight timers."""
        if self._mounted:
            return None
        self._mounted = True

        now = self._scheduler.clock.now()
        if self._hourly_check:
            self._jobs.append(self._scheduler.schedule_every(ONE_HOUR, self.validate))
        midnight = next_midnight(now)
        self._jobs.append(
            self._scheduler.schedule_at(midnight, lambda: self._on_midnight(midnight))
        )
        logger.debug(
            "Streak validation armed; midnight rollover in %.0fs",
            midnight.timestamp() - now.timestamp(),
        )
        return await self.validate()

    def unmount(self) -> None:
        for job in self._jobs:
            job.cancel()
        self._jobs.clear()
        self._mounted = False

    async def _on_midnight(self, boundary: datetime.datetime) -> None:
        # The one-shot has fired; only recurring jobs stay tracked
        self._jobs = [job for job in self._jobs if job.recurring]
        # Anchor the daily interval on the boundary, not on when this ran.
        self._jobs.append(
            self._scheduler.schedule_every(
                ONE_DAY, self.validate, start_at=boundary + ONE_DAY
            )
        )
        await self.validate()

    async def validate(self) -> StreakValidation | None:
        """One validation round-trip.  Never raises; failures are surfaced."""
        try:
            body = await self._api.validate_streak()
            validation = StreakValidation.from_response(
                body, path="/api/study-sessions/validate-streak"
            )
        except TrackerError as exc:
            STREAK_VALIDATIONS.labels(result="error").inc()
            logger.warning("Streak validation failed: %s", exc)
            if self._sink is not None:
                self._sink.notify(Notification.failure("Couldn't refresh your streak", exc))
            return None

        STREAK_VALIDATIONS.labels(result="success").inc()
        if validation.needs_reset:
            logger.info("Server reset the study streak")
        await self._cache.invalidate_all(query_keys.AFTER_STREAK_VALIDATION)
        return validation

    async def current_streak(self) -> StreakState:
        body = await self._cache.fetch(
            query_keys.STUDY_STREAK, self._api.get_streak, self._stale_seconds
        )
        return StreakState.from_response(body, path=query_keys.STUDY_STREAK)

    async def requirements_met_today(self) -> bool:
        return (await self._daily.today()).is_completed

    async def summary(self) -> StreakSummary:
        streak = (await self.current_streak()).current_streak
        milestone = next_streak_milestone(streak)
        return StreakSummary(
            current_streak=streak,
            next_milestone=milestone,
            days_to_milestone=milestone - streak,
            requirements_met_today=await self.requirements_met_today(),
        )
