"""Streak validation timers: on mount, hourly, and at local midnight."""

from __future__ import annotations

import datetime

import pytest
from prometheus_client import REGISTRY

from prep_tracker.main import StudySession
from prep_tracker.models.notification import NotificationKind
from prep_tracker.services import query_keys
from prep_tracker.services.notifications import InMemoryNotificationSink
from prep_tracker.services.scheduler import ManualClock, ManualScheduler
from prep_tracker.services.streak_evaluator import StreakEvaluator, next_streak_milestone
from tests.conftest import SpyCache, run
from tests.fake_api import FakeStudyApi

_VALIDATE = ("POST", "/api/study-sessions/validate-streak")
_LATE_EVENING = datetime.datetime(2026, 10, 19, 23, 59, 30, tzinfo=datetime.timezone.utc)


def _validations(result: str) -> float:
    value = REGISTRY.get_sample_value("streak_validations_total", {"result": result})
    return value if value is not None else 0.0


def _midnight_only(session: StudySession) -> StreakEvaluator:
    return StreakEvaluator(
        session.api,
        session.cache,
        session.scheduler,
        session.daily,
        session.sink,
        hourly_check=False,
    )


@pytest.mark.parametrize(
    "streak, expected",
    [(0, 7), (3, 7), (6, 7), (7, 10), (10, 10), (11, 20), (25, 30), (100, 100)],
)
def test_next_streak_milestone(streak: int, expected: int) -> None:
    assert next_streak_milestone(streak) == expected


def test_mount_validates_immediately(session: StudySession, fake_api: FakeStudyApi) -> None:
    validation = run(session.streak.mount())

    assert fake_api.count(*_VALIDATE) == 1
    assert validation is not None
    assert validation.study_streak == 3
    assert session.streak.mounted is True


def test_mount_twice_arms_once(session: StudySession, fake_api: FakeStudyApi) -> None:
    run(session.streak.mount())
    jobs = len(session.streak.jobs)

    assert run(session.streak.mount()) is None
    assert len(session.streak.jobs) == jobs
    assert fake_api.count(*_VALIDATE) == 1


def test_midnight_timer_armed_for_remaining_seconds(
    session: StudySession, clock: ManualClock
) -> None:
    clock.set(_LATE_EVENING)
    evaluator = _midnight_only(session)

    run(evaluator.mount())

    (job,) = evaluator.jobs
    assert (job.due - clock.now()).total_seconds() == 30


def test_midnight_validation_then_every_24h(
    session: StudySession, fake_api: FakeStudyApi, clock: ManualClock, scheduler: ManualScheduler
) -> None:
    clock.set(_LATE_EVENING)
    evaluator = _midnight_only(session)
    run(evaluator.mount())

    run(scheduler.advance(datetime.timedelta(seconds=29)))
    assert fake_api.count(*_VALIDATE) == 1

    run(scheduler.advance(datetime.timedelta(seconds=1)))
    assert fake_api.count(*_VALIDATE) == 2

    (daily,) = evaluator.jobs
    assert daily.recurring
    assert daily.due == datetime.datetime(2026, 10, 21, tzinfo=datetime.timezone.utc)

    run(scheduler.advance(datetime.timedelta(days=2)))
    assert fake_api.count(*_VALIDATE) == 4


def test_hourly_validation(
    session: StudySession, fake_api: FakeStudyApi, scheduler: ManualScheduler
) -> None:
    run(session.streak.mount())

    run(scheduler.advance(datetime.timedelta(hours=3)))

    assert fake_api.count(*_VALIDATE) == 4


def test_unmount_cancels_every_timer(
    session: StudySession, fake_api: FakeStudyApi, clock: ManualClock, scheduler: ManualScheduler
) -> None:
    clock.set(_LATE_EVENING)
    run(session.streak.mount())
    run(scheduler.advance(datetime.timedelta(minutes=1)))
    calls = fake_api.count(*_VALIDATE)

    session.streak.unmount()

    assert session.streak.jobs == []
    assert scheduler.active_jobs == []
    run(scheduler.advance(datetime.timedelta(days=3)))
    assert fake_api.count(*_VALIDATE) == calls
    assert session.streak.mounted is False


def test_success_invalidates_streak_query(session: StudySession, cache: SpyCache) -> None:
    before = _validations("success")

    run(session.streak.validate())

    assert cache.invalidated == [query_keys.STUDY_STREAK]
    assert _validations("success") - before == 1


def test_server_reset_is_reported(session: StudySession, fake_api: FakeStudyApi) -> None:
    fake_api.needs_reset = True

    validation = run(session.streak.validate())

    assert validation is not None
    assert validation.needs_reset is True
    assert validation.study_streak == 0


def test_failure_notifies_and_does_not_raise(
    session: StudySession,
    fake_api: FakeStudyApi,
    cache: SpyCache,
    sink: InMemoryNotificationSink,
) -> None:
    fake_api.fail["/api/study-sessions/validate-streak"] = 500
    before = _validations("error")

    assert run(session.streak.validate()) is None

    (toast,) = sink.of_kind(NotificationKind.ERROR)
    assert toast.title == "Couldn't refresh your streak"
    assert "500" in toast.description
    assert cache.invalidated == []
    assert _validations("error") - before == 1


def test_failed_timer_run_keeps_schedule(
    session: StudySession, fake_api: FakeStudyApi, scheduler: ManualScheduler
) -> None:
    run(session.streak.mount())
    fake_api.fail["/api/study-sessions/validate-streak"] = 503

    run(scheduler.advance(datetime.timedelta(hours=1)))
    del fake_api.fail["/api/study-sessions/validate-streak"]
    run(scheduler.advance(datetime.timedelta(hours=1)))

    assert fake_api.count(*_VALIDATE) == 3
    assert len(session.streak.jobs) == 2


def test_current_streak_reads_through_cache(
    session: StudySession, fake_api: FakeStudyApi
) -> None:
    async def scenario():
        first = await session.streak.current_streak()
        await session.streak.current_streak()
        return first

    state = run(scenario())

    assert state.current_streak == 3
    assert state.last_active_date == datetime.date(2026, 10, 18)
    assert fake_api.count("GET", "/api/study-sessions/streak") == 1


def test_summary(session: StudySession, fake_api: FakeStudyApi) -> None:
    summary = run(session.streak.summary())

    assert summary.current_streak == 3
    assert summary.next_milestone == 7
    assert summary.days_to_milestone == 4
    assert summary.requirements_met_today is False


def test_requirements_met_today(session: StudySession, fake_api: FakeStudyApi) -> None:
    fake_api.daily = {"quiz": True, "review": True, "practice": True}
    assert run(session.streak.requirements_met_today()) is True


def test_non_json_success_notifies_and_does_not_raise(
    session: StudySession,
    fake_api: FakeStudyApi,
    cache: SpyCache,
    sink: InMemoryNotificationSink,
) -> None:
    fake_api.html.add("/api/study-sessions/validate-streak")
    before = _validations("error")

    assert run(session.streak.validate()) is None

    (toast,) = sink.of_kind(NotificationKind.ERROR)
    assert toast.title == "Couldn't refresh your streak"
    assert cache.invalidated == []
    assert _validations("error") - before == 1


@pytest.mark.parametrize("body", [{"studyStreak": -1}, {"studyStreak": "many"}, ["ok"]])
def test_unexpected_validation_shape_is_a_failure(
    session: StudySession,
    fake_api: FakeStudyApi,
    sink: InMemoryNotificationSink,
    body: object,
) -> None:
    fake_api.bodies["/api/study-sessions/validate-streak"] = body

    assert run(session.streak.validate()) is None
    assert len(sink.of_kind(NotificationKind.ERROR)) == 1


def test_unreadable_timer_run_keeps_schedule(
    session: StudySession, fake_api: FakeStudyApi, scheduler: ManualScheduler
) -> None:
    run(session.streak.mount())
    fake_api.html.add("/api/study-sessions/validate-streak")

    run(scheduler.advance(datetime.timedelta(hours=2)))

    assert fake_api.count(*_VALIDATE) == 3
    assert len(session.streak.jobs) == 2
