"""Session wiring and teardown."""

from __future__ import annotations

import datetime
import logging

import httpx
import pytest

from prep_tracker.main import build_session
from prep_tracker.models.notification import Notification
from prep_tracker.services.cache import InMemoryQueryCache
from prep_tracker.services.notifications import LoggingNotificationSink
from prep_tracker.services.scheduler import AsyncioScheduler, ManualScheduler
from tests.conftest import SpyCache, make_settings, run
from tests.fake_api import FakeStudyApi


def test_build_session_defaults() -> None:
    study = build_session(make_settings())
    try:
        assert isinstance(study.scheduler, AsyncioScheduler)
        assert isinstance(study.sink, LoggingNotificationSink)
        assert isinstance(study.cache, InMemoryQueryCache)
        assert study.api.base_url == "http://testserver"
    finally:
        run(study.aclose())


def test_review_timer_uses_configured_duration(
    transport: httpx.ASGITransport,
    fake_api: FakeStudyApi,
    cache: SpyCache,
    scheduler: ManualScheduler,
) -> None:
    study = build_session(
        make_settings(review_required_seconds=60),
        transport=transport,
        cache=cache,
        scheduler=scheduler,
    )
    timer = study.review_timer()
    timer.start()

    run(scheduler.advance(datetime.timedelta(seconds=60)))

    assert timer.reported is True
    assert fake_api.count("POST", "/api/daily-progress/review") == 1
    run(study.aclose())


def test_aclose_cancels_every_timer(
    transport: httpx.ASGITransport,
    fake_api: FakeStudyApi,
    cache: SpyCache,
    scheduler: ManualScheduler,
) -> None:
    study = build_session(make_settings(), transport=transport, cache=cache, scheduler=scheduler)

    async def scenario() -> None:
        await study.streak.mount()
        study.notifier.on_progress(0, 10, lambda: None)
        study.review_timer().start()
        await study.aclose()

    run(scenario())

    assert scheduler.active_jobs == []
    run(scheduler.advance(datetime.timedelta(days=2)))
    assert fake_api.count("POST", "/api/study-sessions/validate-streak") == 1


def test_logging_sink_levels(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingNotificationSink()

    with caplog.at_level(logging.INFO, logger="prep_tracker.services.notifications"):
        sink.notify(Notification.milestone_reached(25))
        sink.notify(Notification.failure("Couldn't save your progress", RuntimeError("offline")))

    info, warning = caplog.records
    assert info.levelno == logging.INFO
    assert "25% overall progress" in info.getMessage()
    assert warning.levelno == logging.WARNING
    assert "offline" in warning.getMessage()
