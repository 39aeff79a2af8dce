from __future__ import annotations

import asyncio
import time

import pytest

from hideseek.timer import AsyncioScheduler, ManualScheduler, Timer


def test_countdown_completes_once_and_pins_remaining_at_zero() -> None:
    sched = ManualScheduler()
    completions: list[int] = []
    timer = Timer(
        scheduler=sched,
        countdown=True,
        initial_time_ms=5000,
        on_complete=lambda: completions.append(timer.elapsed_ms),
    )

    timer.start()
    sched.advance(6000)

    assert timer.remaining_ms == 0
    assert timer.is_running is False
    assert timer.elapsed_ms == 5000
    assert completions == [5000]


def test_countup_ticks_every_interval_with_elapsed_value() -> None:
    sched = ManualScheduler()
    seen: list[int] = []
    timer = Timer(scheduler=sched, tick_interval_ms=100, on_tick=seen.append)

    timer.start()
    sched.advance(350)

    assert seen == [100, 200, 300]
    assert timer.elapsed_ms == 300
    assert timer.remaining_ms is None


def test_start_is_noop_while_running() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched)
    timer.start()
    sched.advance(200)
    timer.start()
    sched.advance(100)

    # A second start must not schedule a second tick job.
    assert timer.elapsed_ms == 300


def test_start_resumes_a_paused_timer() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched)
    timer.start()
    sched.advance(300)
    timer.pause()
    sched.advance(1000)

    timer.start()
    assert timer.is_running is True
    assert timer.is_paused is False

    sched.advance(200)
    assert timer.elapsed_ms == 500


def test_pause_freezes_elapsed_and_ticks() -> None:
    sched = ManualScheduler()
    ticks: list[int] = []
    timer = Timer(scheduler=sched, on_tick=ticks.append)
    timer.start()
    sched.advance(500)

    timer.pause()
    assert timer.is_paused is True
    sched.advance(10_000)
    assert timer.elapsed_ms == 500
    assert len(ticks) == 5

    timer.resume()
    sched.advance(200)
    assert timer.elapsed_ms == 700
    assert timer.is_paused is False


def test_pause_and_resume_in_wrong_state_are_noops() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched)

    timer.pause()
    assert timer.is_paused is False

    timer.start()
    timer.resume()
    assert timer.is_paused is False
    assert timer.is_running is True


def test_stop_resets_elapsed_and_reset_restores_remaining() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched, countdown=True, initial_time_ms=3000)
    timer.start()
    sched.advance(1000)
    assert timer.remaining_ms == 2000

    timer.stop()
    assert timer.is_running is False
    assert timer.elapsed_ms == 0

    timer.start()
    sched.advance(500)
    timer.reset()
    assert timer.remaining_ms == 3000
    assert timer.is_running is False

    # No ticks after reset.
    sched.advance(1000)
    assert timer.elapsed_ms == 0


def test_visibility_change_catches_up_suspended_time() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched)
    timer.start()
    sched.advance(1000)

    sched.suspend(60_000)
    assert timer.elapsed_ms == 1000

    timer.handle_visibility_change(True)
    assert timer.elapsed_ms == 61_000

    # Ticks continue from the corrected value.
    sched.advance(100)
    assert timer.elapsed_ms == 61_100


def test_visibility_change_keeps_lag_of_a_late_tick() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched)
    timer.start()
    sched.advance(1000)

    # The loop was blocked for a minute; its single overdue tick runs first.
    sched.stall(60_000)
    sched.advance(0)
    assert timer.elapsed_ms == 1100

    timer.handle_visibility_change(True)
    assert timer.elapsed_ms == 61_000

    sched.advance(100)
    assert timer.elapsed_ms == 61_100


def test_overdue_ticks_fire_once_after_a_stall() -> None:
    sched = ManualScheduler()
    ticks: list[int] = []
    timer = Timer(scheduler=sched, on_tick=ticks.append)
    timer.start()
    sched.stall(5000)
    sched.advance(50)

    assert ticks == [100]


def test_visibility_change_ignored_when_hidden_paused_or_stopped() -> None:
    sched = ManualScheduler()
    timer = Timer(scheduler=sched)

    sched.suspend(5000)
    timer.handle_visibility_change(True)
    assert timer.elapsed_ms == 0

    timer.start()
    sched.suspend(5000)
    timer.handle_visibility_change(False)
    assert timer.elapsed_ms == 0

    timer.pause()
    sched.suspend(5000)
    timer.handle_visibility_change(True)
    assert timer.elapsed_ms == 0


def test_visibility_catch_up_can_complete_a_countdown() -> None:
    sched = ManualScheduler()
    done: list[bool] = []
    timer = Timer(scheduler=sched, countdown=True, initial_time_ms=10_000, on_complete=lambda: done.append(True))
    timer.start()
    sched.advance(1000)
    sched.suspend(30_000)

    timer.handle_visibility_change(True)

    assert done == [True]
    assert timer.remaining_ms == 0
    assert timer.is_running is False


def test_rejects_bad_options() -> None:
    with pytest.raises(ValueError):
        Timer(scheduler=ManualScheduler(), tick_interval_ms=0)
    with pytest.raises(ValueError):
        Timer(scheduler=ManualScheduler(), countdown=True, initial_time_ms=-1)


def test_asyncio_scheduler_drives_ticks() -> None:
    ticks: list[int] = []

    async def run() -> None:
        timer = Timer(scheduler=AsyncioScheduler(), tick_interval_ms=10, on_tick=ticks.append)
        timer.start()
        await asyncio.sleep(0.1)
        timer.pause()

    asyncio.run(run())

    assert len(ticks) >= 3
    assert ticks[:3] == [10, 20, 30]


def test_asyncio_visibility_catch_up_after_blocked_loop() -> None:
    async def run() -> Timer:
        timer = Timer(scheduler=AsyncioScheduler(), tick_interval_ms=10)
        timer.start()
        await asyncio.sleep(0.05)
        # Block the loop; the overdue tick fires as soon as we yield.
        time.sleep(0.5)
        await asyncio.sleep(0.001)
        timer.handle_visibility_change(True)
        timer.pause()
        return timer

    timer = asyncio.run(run())

    assert timer.elapsed_ms >= 500
