from __future__ import annotations

from datetime import UTC, datetime

from hideseek.api.models import GameSize
from hideseek.cards import ActiveCurse, curse_card
from hideseek.categories import get_category
from hideseek.config import RuleConfig
from hideseek.formatting import format_time, format_time_short
from hideseek.round_timers import curse_timer, hiding_duration_timer, hiding_period_timer, question_response_timer
from hideseek.timer import ManualScheduler

# One-second ticks keep the long countdowns quick to simulate.
RULES = RuleConfig(tick_interval_ms=1000)


def test_hiding_period_warns_once_at_five_minutes_then_completes() -> None:
    sched = ManualScheduler()
    warnings: list[int] = []
    done: list[bool] = []
    timer = hiding_period_timer(
        scheduler=sched,
        rules=RULES,
        on_warning=warnings.append,
        on_complete=lambda: done.append(True),
    )
    assert timer.remaining_ms == 30 * 60_000

    timer.start()
    sched.advance(24 * 60_000 + 59_000)
    assert warnings == []

    sched.advance(1000)
    assert warnings == [5 * 60_000]

    sched.advance(60_000)
    assert warnings == [5 * 60_000]
    assert done == []

    sched.advance(5 * 60_000)
    assert done == [True]
    assert timer.remaining_ms == 0


def test_question_response_timer_uses_category_and_size() -> None:
    photo = get_category("photo")
    matching = get_category("matching")
    assert photo is not None and matching is not None

    sched = ManualScheduler()
    large_photo = question_response_timer(scheduler=sched, category=photo, game_size=GameSize.large, rules=RULES)
    small_photo = question_response_timer(scheduler=sched, category=photo, game_size=GameSize.small, rules=RULES)
    match = question_response_timer(scheduler=sched, category=matching, game_size=GameSize.large, rules=RULES)

    assert large_photo.remaining_ms == 20 * 60_000
    assert small_photo.remaining_ms == 10 * 60_000
    assert match.remaining_ms == 5 * 60_000


def test_question_response_low_time_alert_fires_under_a_minute() -> None:
    matching = get_category("matching")
    assert matching is not None
    sched = ManualScheduler()
    alerts: list[int] = []
    ticks: list[int] = []
    timer = question_response_timer(
        scheduler=sched,
        category=matching,
        game_size=GameSize.medium,
        rules=RULES,
        on_low_time=alerts.append,
        on_tick=ticks.append,
    )
    timer.start()

    sched.advance(4 * 60_000)
    assert alerts == []  # exactly 60s left is not "under a minute"

    sched.advance(1000)
    assert alerts == [59_000]
    assert ticks[-1] == 4 * 60_000 + 1000

    sched.advance(30_000)
    assert alerts == [59_000]


def test_alert_rearms_after_reset() -> None:
    sched = ManualScheduler()
    warnings: list[int] = []
    timer = hiding_period_timer(scheduler=sched, rules=RULES, on_warning=warnings.append)

    timer.start()
    sched.advance(26 * 60_000)
    timer.reset()
    timer.start()
    sched.advance(26 * 60_000)

    assert len(warnings) == 2


def test_hiding_duration_is_a_stopwatch() -> None:
    sched = ManualScheduler()
    timer = hiding_duration_timer(scheduler=sched, rules=RULES)
    timer.start()
    sched.advance(90 * 60_000)

    assert timer.elapsed_ms == 90 * 60_000
    assert timer.remaining_ms is None
    assert timer.is_running is True


def test_curse_timer_only_for_duration_curses() -> None:
    at = datetime(2024, 1, 1, tzinfo=UTC)
    right_turn = ActiveCurse(instance_id="c1", card=curse_card("curse-right-turn"), activated_at=at)
    urban = ActiveCurse(instance_id="c2", card=curse_card("curse-urban-explorer"), activated_at=at)
    sched = ManualScheduler()
    cleared: list[str] = []

    timer = curse_timer(
        scheduler=sched,
        curse=right_turn,
        game_size=GameSize.medium,
        rules=RULES,
        on_complete=lambda: cleared.append("c1"),
    )
    assert timer is not None
    assert timer.remaining_ms == 40 * 60_000
    timer.start()
    sched.advance(40 * 60_000)
    assert cleared == ["c1"]

    assert curse_timer(scheduler=sched, curse=urban, game_size=GameSize.medium, rules=RULES) is None


def test_timers_for_earlier_events_start_short() -> None:
    at = datetime(2024, 1, 1, tzinfo=UTC)
    right_turn = ActiveCurse(instance_id="c1", card=curse_card("curse-right-turn"), activated_at=at)
    sched = ManualScheduler()

    curse = curse_timer(
        scheduler=sched, curse=right_turn, game_size=GameSize.medium, rules=RULES, already_elapsed_ms=15 * 60_000
    )
    assert curse is not None
    assert curse.remaining_ms == 25 * 60_000

    matching = get_category("matching")
    assert matching is not None
    overdue = question_response_timer(
        scheduler=sched, category=matching, game_size=GameSize.small, rules=RULES, already_elapsed_ms=10 * 60_000
    )
    assert overdue.remaining_ms == 0


def test_format_time() -> None:
    assert format_time(0) == "00:00:00"
    assert format_time(3_723_000) == "01:02:03"
    assert format_time(59_999) == "00:00:59"
    assert format_time(-5) == "00:00:00"


def test_format_time_short() -> None:
    assert format_time_short(65_000) == "01:05"
    assert format_time_short(3_600_000) == "01:00:00"
    assert format_time_short(0) == "00:00"
