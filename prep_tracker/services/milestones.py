"""Milestone, achievement and badge notifications.

Three independent checks run after a study action has been tracked:

  milestones    - overall progress crossed one of MILESTONE_THRESHOLDS.
                  Only the lowest crossed threshold is announced, even when
                  one update jumps over several (5% → 60% announces 10).
  achievements  - the just-completed activity matched one of
                  SIGNIFICANT_ACHIEVEMENTS.  First match wins, in list order.
  badges        - the server reported newly earned badges; one toast
                  lists them all.

When the UI registered a callback (e.g. "open the progress dialog"), it
runs after a short presentation delay so the toast renders first.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from prep_tracker.models.activity import ActivityRecord, ActivityType
from prep_tracker.models.notification import Notification
from prep_tracker.models.progress import MILESTONE_THRESHOLDS
from prep_tracker.services.notifications import NotificationSink
from prep_tracker.services.scheduler import JobFn, ScheduledJob, Scheduler

logger = logging.getLogger(__name__)

MILESTONE_CALLBACK_DELAY = datetime.timedelta(seconds=2)
ACHIEVEMENT_CALLBACK_DELAY = datetime.timedelta(seconds=3)


def find_crossed_milestone(
    previous: float | None,
    current: float,
    thresholds: Sequence[int] = MILESTONE_THRESHOLDS,
) -> int | None:
    """Lowest threshold m with previous < m <= current.

    No baseline (previous is None) means nothing was crossed.
    """
    if previous is None:
        return None
    for threshold in thresholds:
        if previous < threshold <= current:
            return threshold
    return None


@dataclass(frozen=True, slots=True)
class Achievement:
    message: str
    applies: Callable[[ActivityRecord], bool]


def _perfect_quiz(record: ActivityRecord) -> bool:
    return (
        record.activity_type is ActivityType.QUIZ
        and bool(record.is_passed)
        and record.score is not None
        and record.score >= 90
    )


def _session_champion(record: ActivityRecord) -> bool:
    return (record.questions_answered or 0) >= 20


def _mock_exam_passed(record: ActivityRecord) -> bool:
    return record.activity_type is ActivityType.MOCK_EXAM and bool(record.is_passed)


SIGNIFICANT_ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("Perfect Quiz Score!", _perfect_quiz),
    Achievement("Study Session Champion!", _session_champion),
    Achievement("Mock Exam Passed!", _mock_exam_passed),
)


def first_achievement(
    record: ActivityRecord,
    achievements: Sequence[Achievement] = SIGNIFICANT_ACHIEVEMENTS,
) -> str | None:
    for achievement in achievements:
        if achievement.applies(record):
            return achievement.message
    return None


class MilestoneNotifier:
    def __init__(
        self,
        sink: NotificationSink,
        scheduler: Scheduler,
        *,
        milestone_delay: datetime.timedelta = MILESTONE_CALLBACK_DELAY,
        achievement_delay: datetime.timedelta = ACHIEVEMENT_CALLBACK_DELAY,
    ) -> None:
        self._sink = sink
        self._scheduler = scheduler
        self._milestone_delay = milestone_delay
        self._achievement_delay = achievement_delay
        self._pending: list[ScheduledJob] = []

    def on_progress(
        self,
        previous: float | None,
        current: float,
        callback: JobFn | None = None,
    ) -> int | None:
        """Announce a crossed milestone.  Needs a registered callback."""
        threshold = find_crossed_milestone(previous, current)
        if threshold is None or callback is None:
            return None

        logger.info("Progress milestone %d%% reached (%.1f → %.1f)", threshold, previous, current)
        self._sink.notify(Notification.milestone_reached(threshold))
        self._defer(self._milestone_delay, callback)
        return threshold

    def on_activity(
        self, record: ActivityRecord, callback: JobFn | None = None
    ) -> str | None:
        """Announce the first significant achievement the activity earned."""
        message = first_achievement(record)
        if message is None:
            return None

        logger.info("Achievement: %s", message)
        self._sink.notify(Notification.achievement(message))
        if callback is not None:
            self._defer(self._achievement_delay, callback)
        return message

    def on_badges(self, badges: Sequence[str]) -> bool:
        if not badges:
            return False
        self._sink.notify(Notification.badges_earned(tuple(badges)))
        return True

    def cancel_pending(self) -> None:
        """Drop callbacks that have not run yet (UI torn down)."""
        for job in self._pending:
            job.cancel()
        self._pending.clear()

    def _defer(self, delay: datetime.timedelta, callback: JobFn) -> None:
        self._pending = [job for job in self._pending if not job.cancelled]
        self._pending.append(self._scheduler.schedule_after(delay, callback))
