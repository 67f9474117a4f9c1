from __future__ import annotations

import asyncio
import datetime
import sys
from pathlib import Path

import httpx
import pytest

# Ensure repo root is on sys.path so `import prep_tracker` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from prep_tracker.core.config import Settings  # noqa: E402
from prep_tracker.main import build_session  # noqa: E402
from prep_tracker.services.cache import InMemoryQueryCache  # noqa: E402
from prep_tracker.services.notifications import InMemoryNotificationSink  # noqa: E402
from prep_tracker.services.scheduler import ManualClock, ManualScheduler  # noqa: E402
from tests.fake_api import FakeStudyApi  # noqa: E402

BASE_URL = "http://testserver"
SESSION_COOKIE = "s%3Atest-session.signature"
START = datetime.datetime(2026, 10, 19, 10, 0, tzinfo=datetime.timezone.utc)


class SpyCache(InMemoryQueryCache):
    """In-memory cache that also records every invalidated prefix."""

    def __init__(self, clock: ManualClock) -> None:
        super().__init__(monotonic=lambda: clock.now().timestamp())
        self.invalidated: list[str] = []

    async def invalidate(self, prefix: str) -> None:
        self.invalidated.append(prefix)
        await super().invalidate(prefix)


def make_settings(**overrides) -> Settings:
    values = {
        "app_env": "test",
        "log_level": "info",
        "log_json": False,
        "api_base_url": BASE_URL,
        "session_cookie": SESSION_COOKIE,
        "redis_url": None,
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture
def fake_api() -> FakeStudyApi:
    return FakeStudyApi()


@pytest.fixture
def transport(fake_api: FakeStudyApi) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=fake_api.app)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def cache(clock: ManualClock) -> SpyCache:
    return SpyCache(clock)


@pytest.fixture
def session(
    settings: Settings,
    transport: httpx.ASGITransport,
    cache: SpyCache,
    scheduler: ManualScheduler,
    sink: InMemoryNotificationSink,
):
    """A fully wired StudySession against the fake API, on manual time."""
    study = build_session(
        settings, transport=transport, cache=cache, scheduler=scheduler, sink=sink
    )
    yield study
    asyncio.run(study.aclose())


def run(coro):
    """Run one test scenario to completion."""
    return asyncio.run(coro)


