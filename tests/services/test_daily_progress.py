"""Daily requirements and the review-time tracker."""

from __future__ import annotations

import datetime
import logging

import pytest

from prep_tracker.main import StudySession
from prep_tracker.services import query_keys
from prep_tracker.services.scheduler import ManualScheduler
from tests.conftest import SpyCache, run
from tests.fake_api import FakeStudyApi

_TODAY = ("GET", "/api/daily-progress/today")


def test_today_reads_through_cache(session: StudySession, fake_api: FakeStudyApi) -> None:
    async def scenario():
        first = await session.daily.today()
        await session.daily.today()
        return first

    progress = run(scenario())

    assert progress.date == datetime.date(2026, 10, 19)
    assert progress.is_completed is False
    assert fake_api.count(*_TODAY) == 1


@pytest.mark.parametrize("mode", ["quiz", "review", "practice"])
def test_complete_requirement_reports_and_invalidates(
    session: StudySession, fake_api: FakeStudyApi, cache: SpyCache, mode: str
) -> None:
    complete = getattr(session.daily, f"complete_{mode}")

    progress = run(complete())

    assert fake_api.count("POST", f"/api/daily-progress/{mode}") == 1
    assert progress is not None
    assert cache.invalidated == list(query_keys.AFTER_DAILY_PROGRESS)


def test_completion_is_visible_on_next_read(
    session: StudySession, fake_api: FakeStudyApi
) -> None:
    async def scenario():
        await session.daily.today()
        await session.daily.complete_quiz()
        return await session.daily.today()

    progress = run(scenario())

    assert progress.quiz_completed is True
    assert fake_api.count(*_TODAY) == 2


def test_all_three_requirements_complete_the_day(
    session: StudySession, fake_api: FakeStudyApi
) -> None:
    async def scenario():
        await session.daily.complete_quiz()
        await session.daily.complete_review()
        return await session.daily.complete_practice()

    progress = run(scenario())

    assert progress.is_completed is True


def test_requirements_labels(session: StudySession, fake_api: FakeStudyApi) -> None:
    fake_api.daily["practice"] = True

    requirements = run(session.daily.requirements())

    assert list(requirements) == ["quiz", "review", "practice"]
    assert requirements["review"].label == "Study for 3 minutes"
    assert requirements["practice"].completed is True
    assert requirements["quiz"].completed is False


def test_daily_streak(session: StudySession) -> None:
    state = run(session.daily.streak())

    assert state.current_streak == 3
    assert state.longest_streak == 12


# ---- ReviewTimeTracker ----


def test_review_reported_once_required_time_elapses(
    session: StudySession, fake_api: FakeStudyApi, scheduler: ManualScheduler
) -> None:
    timer = session.review_timer()
    timer.start()

    run(scheduler.advance(datetime.timedelta(seconds=150)))
    assert fake_api.count("POST", "/api/daily-progress/review") == 0

    run(scheduler.advance(datetime.timedelta(seconds=30)))
    assert fake_api.count("POST", "/api/daily-progress/review") == 1
    assert timer.reported is True
    assert timer.running is False

    run(scheduler.advance(datetime.timedelta(minutes=10)))
    assert fake_api.count("POST", "/api/daily-progress/review") == 1


def test_review_timer_stop_before_threshold(
    session: StudySession, fake_api: FakeStudyApi, scheduler: ManualScheduler
) -> None:
    timer = session.review_timer()
    timer.start()
    run(scheduler.advance(datetime.timedelta(minutes=2)))

    timer.stop()
    run(scheduler.advance(datetime.timedelta(minutes=5)))

    assert fake_api.count("POST", "/api/daily-progress/review") == 0
    assert timer.reported is False
    assert scheduler.active_jobs == []


def test_review_timer_start_is_idempotent(
    session: StudySession, scheduler: ManualScheduler
) -> None:
    timer = session.review_timer()
    timer.start()
    timer.start()

    assert len(scheduler.active_jobs) == 1


def test_review_report_failure_is_logged(
    session: StudySession,
    fake_api: FakeStudyApi,
    scheduler: ManualScheduler,
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake_api.fail["/api/daily-progress/review"] = 500
    timer = session.review_timer()
    timer.start()

    with caplog.at_level(logging.WARNING, logger="prep_tracker.services.daily_progress"):
        run(scheduler.advance(datetime.timedelta(minutes=3)))

    assert timer.reported is False
    assert any("Failed to report review time" in r.getMessage() for r in caplog.records)
