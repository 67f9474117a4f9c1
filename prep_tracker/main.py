"""Wiring: build every component from Settings and hand back one handle.

Components never reach for module-level singletons; everything they need
is passed in here, so tests can swap the transport, cache, scheduler and
notification sink independently.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

import httpx

from prep_tracker.core.config import SETTINGS, Settings
from prep_tracker.services.activity_tracker import ActivityTracker
from prep_tracker.services.api_client import StudyApiClient
from prep_tracker.services.cache import QueryCache, build_query_cache
from prep_tracker.services.daily_progress import DailyProgressService, ReviewTimeTracker
from prep_tracker.services.milestones import MilestoneNotifier
from prep_tracker.services.notifications import (
    LoggingNotificationSink,
    NotificationSink,
)
from prep_tracker.services.progress_tracking import ProgressTracking
from prep_tracker.services.scheduler import AsyncioScheduler, Scheduler
from prep_tracker.services.streak_evaluator import StreakEvaluator

logger = logging.getLogger(__name__)


@dataclass
class StudySession:
    settings: Settings
    api: StudyApiClient
    cache: QueryCache
    scheduler: Scheduler
    sink: NotificationSink
    tracker: ActivityTracker
    notifier: MilestoneNotifier
    daily: DailyProgressService
    streak: StreakEvaluator
    progress: ProgressTracking

    def review_timer(self) -> ReviewTimeTracker:
        return ReviewTimeTracker(
            self.daily,
            self.scheduler,
            required=datetime.timedelta(seconds=self.settings.review_required_seconds),
        )

    async def aclose(self) -> None:
        """Tear down: timers first, then the HTTP connection pool."""
        self.streak.unmount()
        self.notifier.cancel_pending()
        self.scheduler.cancel_all()
        await self.api.close()


def build_session(
    settings: Settings = SETTINGS,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    cache: QueryCache | None = None,
    redis_client=None,
    scheduler: Scheduler | None = None,
    sink: NotificationSink | None = None,
) -> StudySession:
    api = StudyApiClient.from_settings(settings, transport=transport)
    cache = cache or build_query_cache(redis_client)
    scheduler = scheduler or AsyncioScheduler()
    sink = sink or LoggingNotificationSink()
    stale = settings.query_stale_seconds

    tracker = ActivityTracker(api, cache)
    notifier = MilestoneNotifier(sink, scheduler)
    daily = DailyProgressService(api, cache, stale_seconds=stale)
    streak = StreakEvaluator(api, cache, scheduler, daily, sink, stale_seconds=stale)
    progress = ProgressTracking(api, cache, tracker, notifier, sink, stale_seconds=stale)

    logger.debug("Study session wired against %s", settings.api_base_url)
    return StudySession(
        settings=settings,
        api=api,
        cache=cache,
        scheduler=scheduler,
        sink=sink,
        tracker=tracker,
        notifier=notifier,
        daily=daily,
        streak=streak,
        progress=progress,
    )
