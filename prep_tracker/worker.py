"""Companion worker: keeps the study streak validated in the background.

RUN:  python -m prep_tracker.worker      (or the ``prep-tracker-worker`` script)

Mounts the streak evaluator (validate now, hourly, and at every local
midnight) and stays up until SIGINT/SIGTERM.  Notifications go to the log.
"""

from __future__ import annotations

import asyncio
import logging
import signal

import httpx

from prep_tracker.core.config import SETTINGS, Settings
from prep_tracker.core.errors import TrackerError
from prep_tracker.core.logging import setup_logging
from prep_tracker.db.redis import lifespan_redis
from prep_tracker.main import StudySession, build_session

logger = logging.getLogger("worker")


async def _log_summary(session: StudySession) -> None:
    try:
        summary = await session.streak.summary()
    except TrackerError as exc:
        logger.warning("Could not load streak summary: %s", exc)
        return
    logger.info(
        "Streak %d day(s); %d to the %d-day milestone; today's requirements %s",
        summary.current_streak,
        summary.days_to_milestone,
        summary.next_milestone,
        "met" if summary.requirements_met_today else "pending",
    )


async def run_worker(
    settings: Settings = SETTINGS,
    stop: asyncio.Event | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Run until ``stop`` is set (or a termination signal arrives)."""
    stop = stop or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform/thread; Ctrl+C still raises
            pass

    async with lifespan_redis(settings.redis_url) as redis_client:
        session = build_session(settings, transport=transport, redis_client=redis_client)
        try:
            await session.streak.mount()
            await _log_summary(session)
            logger.info("Worker started against %s", settings.api_base_url)
            await stop.wait()
        finally:
            await session.aclose()
            logger.info("Worker stopped")


def main() -> None:
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
