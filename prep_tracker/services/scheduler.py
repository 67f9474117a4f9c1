"""Timers behind an explicit interface.

Components never call asyncio.sleep or loop.call_later themselves; they
ask a Scheduler for a one-shot or recurring job and keep the returned
handle so teardown can cancel it.  A stray timer that outlives its owner
is the main leak risk in client-side progress tracking, so every handle
is also tracked by the scheduler and ``cancel_all()`` clears whatever is
left.

  AsyncioScheduler - real timers on the running event loop.
  ManualScheduler  - no timers at all; tests move a ManualClock forward
                     and due jobs run in timestamp order.
"""

from __future__ import annotations

import asyncio
import datetime
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

JobFn = Callable[[], Awaitable[None] | None]

ONE_HOUR = datetime.timedelta(hours=1)
ONE_DAY = datetime.timedelta(days=1)


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime.datetime:
        """Current local time as a timezone-aware datetime."""
        ...


class _HostLocalTime(datetime.tzinfo):
    """The host's local zone with the UTC offset resolved per instant.

    ``datetime.now().astimezone()`` pins one fixed offset; on a DST change
    day the next local midnight is then off by an hour.
    """

    @staticmethod
    def _local(dt: datetime.datetime) -> datetime.datetime:
        return dt.replace(tzinfo=None).astimezone()

    def utcoffset(self, dt: datetime.datetime | None) -> datetime.timedelta | None:
        return self._local(dt).utcoffset() if dt is not None else None

    def dst(self, dt: datetime.datetime | None) -> datetime.timedelta | None:
        return None

    def tzname(self, dt: datetime.datetime | None) -> str | None:
        return self._local(dt).tzname() if dt is not None else None

    def fromutc(self, dt: datetime.datetime) -> datetime.datetime:
        local = dt.replace(tzinfo=datetime.timezone.utc).astimezone()
        wall = local.replace(tzinfo=None)
        # fold=1 marks the second pass through a repeated (fall-back) hour
        fold = 0 if wall.astimezone().utcoffset() == local.utcoffset() else 1
        return wall.replace(tzinfo=self, fold=fold)


LOCAL_TIME = _HostLocalTime()


class SystemClock:
    def now(self) -> datetime.datetime:
        return datetime.datetime.now(LOCAL_TIME)


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime.datetime) -> None:
        if start.tzinfo is None:
            start = start.replace(tzinfo=LOCAL_TIME)
        self._now = start

    def now(self) -> datetime.datetime:
        return self._now

    def set(self, when: datetime.datetime) -> None:
        self._now = when

    def advance(self, delta: datetime.timedelta) -> None:
        self._now += delta


def next_midnight(now: datetime.datetime) -> datetime.datetime:
    """Start of the next local calendar day."""
    tomorrow = now.date() + datetime.timedelta(days=1)
    return datetime.datetime.combine(tomorrow, datetime.time.min, tzinfo=now.tzinfo)


# ---------------------------------------------------------------------------
# Scheduler interface
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class ScheduledJob:
    """Handle to a scheduled callback.  ``cancel()`` is idempotent."""

    fn: JobFn
    due: datetime.datetime
    interval: datetime.timedelta | None = None
    cancelled: bool = False
    _on_cancel: Callable[[ScheduledJob], None] | None = field(default=None, repr=False)

    @property
    def recurring(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel(self)


@runtime_checkable
class Scheduler(Protocol):
    clock: Clock

    def schedule_at(self, when: datetime.datetime, fn: JobFn) -> ScheduledJob:
        """Run ``fn`` once at ``when`` (immediately if already past)."""
        ...

    def schedule_every(
        self,
        interval: datetime.timedelta,
        fn: JobFn,
        *,
        start_at: datetime.datetime | None = None,
    ) -> ScheduledJob:
        """Run ``fn`` every ``interval``; first run at ``start_at`` or now+interval."""
        ...

    def schedule_after(self, delay: datetime.timedelta, fn: JobFn) -> ScheduledJob:
        ...

    def cancel_all(self) -> None:
        ...


class _BaseScheduler:
    clock: Clock

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._jobs: set[ScheduledJob] = set()

    def schedule_after(self, delay: datetime.timedelta, fn: JobFn) -> ScheduledJob:
        return self.schedule_at(self.clock.now() + delay, fn)  # type: ignore[attr-defined]

    def cancel_all(self) -> None:
        for job in list(self._jobs):
            job.cancel()
        self._jobs.clear()

    @property
    def active_jobs(self) -> list[ScheduledJob]:
        return sorted(self._jobs, key=lambda job: job.due)

    def _forget(self, job: ScheduledJob) -> None:
        self._jobs.discard(job)


# ---------------------------------------------------------------------------
# asyncio implementation
# ---------------------------------------------------------------------------


class AsyncioScheduler(_BaseScheduler):
    """Timers on the running event loop.

    Coroutine callbacks run as tasks.  An exception escaping a callback is
    logged and does not stop a recurring job from re-arming.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock or SystemClock())
        self._timers: dict[ScheduledJob, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule_at(self, when: datetime.datetime, fn: JobFn) -> ScheduledJob:
        job = ScheduledJob(fn=fn, due=when, _on_cancel=self._cancel_timer)
        self._arm(job)
        return job

    def schedule_every(
        self,
        interval: datetime.timedelta,
        fn: JobFn,
        *,
        start_at: datetime.datetime | None = None,
    ) -> ScheduledJob:
        if interval <= datetime.timedelta(0):
            raise ValueError(f"interval must be positive (got {interval})")
        due = start_at or self.clock.now() + interval
        job = ScheduledJob(fn=fn, due=due, interval=interval, _on_cancel=self._cancel_timer)
        self._arm(job)
        return job

    async def drain(self) -> None:
        """Wait for callbacks that are already running."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _arm(self, job: ScheduledJob) -> None:
        loop = asyncio.get_running_loop()
        # Timestamps, not datetime subtraction: same-tzinfo math ignores DST
        delay = max(job.due.timestamp() - self.clock.now().timestamp(), 0.0)
        self._jobs.add(job)
        self._timers[job] = loop.call_later(delay, self._fire, job)

    def _fire(self, job: ScheduledJob) -> None:
        self._timers.pop(job, None)
        if job.cancelled:
            return
        if job.interval is not None:
            job.due = job.due + job.interval
            self._arm(job)
        else:
            self._forget(job)
        self._run(job)

    def _run(self, job: ScheduledJob) -> None:
        try:
            result = job.fn()
        except Exception:
            logger.exception("Scheduled job %r failed", job.fn)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled job failed", exc_info=exc)

    def _cancel_timer(self, job: ScheduledJob) -> None:
        timer = self._timers.pop(job, None)
        if timer is not None:
            timer.cancel()
        self._forget(job)


# ---------------------------------------------------------------------------
# Manual implementation (tests, simulations)
# ---------------------------------------------------------------------------


class ManualScheduler(_BaseScheduler):
    """Deterministic scheduler driven by ``advance()``.

    Nothing runs until the test moves time forward.  Callbacks are awaited
    inline, in due order, with the clock set to each job's due time.  A
    callback that raises is logged and recurring jobs stay armed, as on
    AsyncioScheduler.
    """

    clock: ManualClock

    def __init__(self, clock: ManualClock) -> None:
        super().__init__(clock)

    def schedule_at(self, when: datetime.datetime, fn: JobFn) -> ScheduledJob:
        job = ScheduledJob(fn=fn, due=when, _on_cancel=self._forget)
        self._jobs.add(job)
        return job

    def schedule_every(
        self,
        interval: datetime.timedelta,
        fn: JobFn,
        *,
        start_at: datetime.datetime | None = None,
    ) -> ScheduledJob:
        if interval <= datetime.timedelta(0):
            raise ValueError(f"interval must be positive (got {interval})")
        due = start_at or self.clock.now() + interval
        job = ScheduledJob(fn=fn, due=due, interval=interval, _on_cancel=self._forget)
        self._jobs.add(job)
        return job

    async def advance(self, delta: datetime.timedelta) -> int:
        """Move time forward by ``delta``; returns how many callbacks ran."""
        target = self.clock.now() + delta
        fired = 0
        while True:
            due = [job for job in self._jobs if job.due <= target]
            if not due:
                break
            job = min(due, key=lambda j: j.due)
            self.clock.set(max(job.due, self.clock.now()))
            if job.interval is not None:
                job.due = job.due + job.interval
            else:
                self._forget(job)
            fired += 1
            try:
                result = job.fn()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Scheduled job %r failed", job.fn)
        self.clock.set(target)
        return fired
