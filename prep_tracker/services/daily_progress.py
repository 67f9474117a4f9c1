"""Today's study requirements: one quiz, three minutes of review, one
practice subtopic.  All three done means the day counts toward the streak.

The server owns the per-day record; the client reads it and reports each
requirement as it is met.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Any

from prep_tracker.core.errors import TrackerError
from prep_tracker.models.progress import DailyProgress, StreakState
from prep_tracker.services import query_keys
from prep_tracker.services.api_client import StudyApiClient
from prep_tracker.services.cache import QueryCache
from prep_tracker.services.scheduler import ScheduledJob, Scheduler

logger = logging.getLogger(__name__)

REVIEW_REQUIRED_TIME = datetime.timedelta(minutes=3)
REVIEW_CHECK_INTERVAL = datetime.timedelta(seconds=30)


@dataclass(frozen=True, slots=True)
class Requirement:
    completed: bool
    label: str
    description: str


class DailyProgressService:
    def __init__(
        self, api: StudyApiClient, cache: QueryCache, *, stale_seconds: int = 30
    ) -> None:
        self._api = api
        self._cache = cache
        self._stale_seconds = stale_seconds

    async def today(self) -> DailyProgress:
        body = await self._cache.fetch(
            query_keys.DAILY_PROGRESS_TODAY,
            self._api.get_daily_progress,
            self._stale_seconds,
        )
        return DailyProgress.from_response(body, path=query_keys.DAILY_PROGRESS_TODAY)

    async def streak(self) -> StreakState:
        body = await self._cache.fetch(
            query_keys.DAILY_STREAK, self._api.get_daily_streak, self._stale_seconds
        )
        return StreakState.from_response(body, path=query_keys.DAILY_STREAK)

    async def complete_quiz(self) -> DailyProgress | None:
        return await self._complete("quiz")

    async def complete_review(self) -> DailyProgress | None:
        return await self._complete("review")

    async def complete_practice(self) -> DailyProgress | None:
        return await self._complete("practice")

    async def requirements(self) -> dict[str, Requirement]:
        progress = await self.today()
        return {
            "quiz": Requirement(
                completed=progress.quiz_completed,
                label="Complete 1 quiz",
                description="Answer questions in any subtopic quiz mode",
            ),
            "review": Requirement(
                completed=progress.review_time_completed,
                label="Study for 3 minutes",
                description="Spend time reviewing materials in review mode",
            ),
            "practice": Requirement(
                completed=progress.practice_completed,
                label="Complete 1 practice subtopic",
                description="Answer all questions in any practice subtopic",
            ),
        }

    async def _complete(self, mode: str) -> DailyProgress | None:
        body: dict[str, Any] = await self._api.complete_daily_requirement(mode)
        logger.info("Daily %s requirement reported", mode)
        await self._cache.invalidate_all(query_keys.AFTER_DAILY_PROGRESS)
        progress = body.get("progress") if isinstance(body, dict) else None
        return (
            DailyProgress.from_response(progress, path=f"/api/daily-progress/{mode}")
            if progress
            else None
        )


class ReviewTimeTracker:
    """Reports the review requirement once enough review time has passed.

    Checks on a fixed interval rather than arming one long timer, so a
    stop() from the review screen always cancels cleanly.
    """

    def __init__(
        self,
        daily: DailyProgressService,
        scheduler: Scheduler,
        *,
        required: datetime.timedelta = REVIEW_REQUIRED_TIME,
        check_every: datetime.timedelta = REVIEW_CHECK_INTERVAL,
    ) -> None:
        self._daily = daily
        self._scheduler = scheduler
        self._required = required
        self._check_every = check_every
        self._started_at: datetime.datetime | None = None
        self._job: ScheduledJob | None = None
        self.reported = False

    @property
    def running(self) -> bool:
        return self._job is not None

    def start(self) -> None:
        if self._job is not None:
            return
        self._started_at = self._scheduler.clock.now()
        self._job = self._scheduler.schedule_every(self._check_every, self._check)

    def stop(self) -> None:
        if self._job is not None:
            self._job.cancel()
            self._job = None

    async def _check(self) -> None:
        if self._started_at is None:
            return
        elapsed = self._scheduler.clock.now() - self._started_at
        if elapsed < self._required:
            return

        self.stop()
        try:
            await self._daily.complete_review()
        except TrackerError as exc:
            logger.warning("Failed to report review time: %s", exc)
            return
        self.reported = True
