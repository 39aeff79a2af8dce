from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]
CompleteCallback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Where a Timer gets its clock and its repeating tick from."""

    def now_ms(self) -> float: ...

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class _RepeatingCall:
    def __init__(self, loop: asyncio.AbstractEventLoop, interval_s: float, callback: Callable[[], None]) -> None:
        self._loop = loop
        self._interval_s = interval_s
        self._callback = callback
        self._cancelled = False
        self._handle = loop.call_later(interval_s, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._handle = self._loop.call_later(self._interval_s, self._fire)
        self._callback()

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class AsyncioScheduler:
    """Production scheduler: ticks on the running event loop, wall-clock time."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now_ms(self) -> float:
        return time.time() * 1000

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return _RepeatingCall(loop, interval_ms / 1000, callback)


@dataclass(eq=False)
class _ManualJob:
    interval_ms: int
    callback: Callable[[], None]
    next_due: float
    seq: int
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler for tests.

    `advance(ms)` moves the clock forward firing every due tick in order.
    `suspend(ms)` moves the clock forward without firing anything, like a
    process that was backgrounded; pending ticks restart from the new time.
    `stall(ms)` moves the clock forward but leaves pending ticks overdue, like
    a blocked event loop: the next `advance` fires each overdue job once and
    reschedules it from the time it actually ran.
    """

    def __init__(self, start_ms: float = 0) -> None:
        self._now = start_ms
        self._jobs: list[_ManualJob] = []
        self._seq = 0

    def now_ms(self) -> float:
        return self._now

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._seq += 1
        job = _ManualJob(interval_ms=interval_ms, callback=callback, next_due=self._now + interval_ms, seq=self._seq)
        self._jobs.append(job)
        return job

    def advance(self, ms: float) -> None:
        target = self._now + ms
        while True:
            self._jobs = [j for j in self._jobs if not j.cancelled]
            due = [j for j in self._jobs if j.next_due <= target]
            if not due:
                break
            job = min(due, key=lambda j: (j.next_due, j.seq))
            self._now = max(self._now, job.next_due)
            job.next_due = self._now + job.interval_ms
            job.callback()
        self._now = target

    def suspend(self, ms: float) -> None:
        self._now += ms
        for job in self._jobs:
            job.next_due = self._now + job.interval_ms

    def stall(self, ms: float) -> None:
        self._now += ms


class Timer:
    """Start/stop/pause/resume clock, counting up or down.

    Elapsed time advances by `tick_interval_ms` per tick, so it is exact under
    a ManualScheduler. The timer also tracks when the last counted tick was
    due; real time past that point (a suspended process, or a blocked loop
    whose overdue tick fired late) is folded in by
    `handle_visibility_change(True)`.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        tick_interval_ms: int = 100,
        countdown: bool = False,
        initial_time_ms: int = 0,
        on_tick: TickCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> None:
        if tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be > 0")
        if initial_time_ms < 0:
            raise ValueError("initial_time_ms must be >= 0")
        self._scheduler = scheduler
        self.tick_interval_ms = tick_interval_ms
        self.countdown = countdown
        self.initial_time_ms = initial_time_ms
        self._on_tick = on_tick
        self._on_complete = on_complete

        self._elapsed_ms = 0
        self._is_running = False
        self._is_paused = False
        self._job: TimerHandle | None = None
        self._last_tick_ms: float | None = None

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def remaining_ms(self) -> int | None:
        if not self.countdown:
            return None
        return max(0, self.initial_time_ms - self._elapsed_ms)

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    def _schedule(self) -> None:
        self._job = self._scheduler.call_every(self.tick_interval_ms, self._tick)
        self._last_tick_ms = self._scheduler.now_ms()

    def _cancel(self) -> None:
        if self._job is not None:
            self._job.cancel()
            self._job = None
        self._last_tick_ms = None

    def start(self) -> None:
        if self._is_running:
            # Starting a paused timer picks up where it left off.
            self.resume()
            return
        self._is_running = True
        self._is_paused = False
        self._schedule()

    def stop(self) -> None:
        self._cancel()
        self._is_running = False
        self._is_paused = False
        self._elapsed_ms = 0

    def pause(self) -> None:
        if not self._is_running or self._is_paused:
            return
        self._cancel()
        self._is_paused = True

    def resume(self) -> None:
        if not self._is_running or not self._is_paused:
            return
        self._is_paused = False
        self._schedule()

    def reset(self) -> None:
        # Countdown remaining goes back to initial_time_ms since elapsed is 0.
        self.stop()

    def handle_visibility_change(self, visible: bool) -> None:
        if not visible or not self._is_running or self._is_paused or self._last_tick_ms is None:
            return
        now = self._scheduler.now_ms()
        drift = int(now - self._last_tick_ms)
        if drift <= 0:
            return
        self._elapsed_ms += drift
        self._last_tick_ms = now
        logger.debug("Timer caught up %sms after suspension", drift)
        self._check_complete()

    def _tick(self) -> None:
        if not self._is_running or self._is_paused:
            return
        self._elapsed_ms += self.tick_interval_ms
        # Advance by the interval, not to now, so a late tick keeps its lag.
        base = self._last_tick_ms if self._last_tick_ms is not None else self._scheduler.now_ms()
        self._last_tick_ms = base + self.tick_interval_ms
        if self._on_tick is not None:
            self._on_tick(self._elapsed_ms)
        self._check_complete()

    def _check_complete(self) -> None:
        if not self.countdown or self.remaining_ms:
            return
        self._cancel()
        self._is_running = False
        self._is_paused = False
        # Keep elapsed pinned at the full duration so remaining reads 0.
        self._elapsed_ms = self.initial_time_ms
        if self._on_complete is not None:
            self._on_complete()
