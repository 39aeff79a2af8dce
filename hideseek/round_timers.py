from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from functools import partial

from pydantic import BaseModel, Field

from hideseek.api.models import GamePhase, GameSize
from hideseek.card_store import CardStore
from hideseek.cards import ActiveCurse
from hideseek.categories import QuestionCategory, get_category
from hideseek.config import RuleConfig
from hideseek.formatting import format_time, format_time_short
from hideseek.game_store import GameStore
from hideseek.question_store import QuestionStore
from hideseek.timer import CompleteCallback, Scheduler, TickCallback, Timer

logger = logging.getLogger(__name__)

Alert = Callable[[int], None]


class _OneShotAlert:
    """Fires once when a countdown drops to (or under) a threshold.

    Re-arms if the countdown is reset above the threshold again.
    """

    def __init__(self, threshold_ms: int, alert: Alert | None, *, inclusive: bool) -> None:
        self.threshold_ms = threshold_ms
        self._alert = alert
        self._inclusive = inclusive
        self._fired = False
        self.timer: Timer | None = None

    def __call__(self, elapsed_ms: int, on_tick: TickCallback | None) -> None:
        if on_tick is not None:
            on_tick(elapsed_ms)
        if self.timer is None:
            return
        remaining = self.timer.remaining_ms or 0
        crossed = remaining <= self.threshold_ms if self._inclusive else remaining < self.threshold_ms
        if not crossed:
            self._fired = False
            return
        if not self._fired and remaining > 0:
            self._fired = True
            if self._alert is not None:
                self._alert(remaining)


def _countdown_with_alert(
    *,
    scheduler: Scheduler,
    total_ms: int,
    threshold_ms: int,
    inclusive: bool,
    tick_interval_ms: int,
    on_alert: Alert | None,
    on_tick: TickCallback | None,
    on_complete: CompleteCallback | None,
) -> Timer:
    alert = _OneShotAlert(threshold_ms, on_alert, inclusive=inclusive)
    timer = Timer(
        scheduler=scheduler,
        tick_interval_ms=tick_interval_ms,
        countdown=True,
        initial_time_ms=total_ms,
        on_tick=lambda elapsed: alert(elapsed, on_tick),
        on_complete=on_complete,
    )
    alert.timer = timer
    return timer


def hiding_period_timer(
    *,
    scheduler: Scheduler,
    rules: RuleConfig | None = None,
    on_warning: Alert | None = None,
    on_tick: TickCallback | None = None,
    on_complete: CompleteCallback | None = None,
) -> Timer:
    """Countdown for the hider's head start, warning once near the end."""

    rules = rules or RuleConfig()
    return _countdown_with_alert(
        scheduler=scheduler,
        total_ms=rules.hiding_period_minutes * 60_000,
        threshold_ms=rules.hiding_period_warning_minutes * 60_000,
        inclusive=True,
        tick_interval_ms=rules.tick_interval_ms,
        on_alert=on_warning,
        on_tick=on_tick,
        on_complete=on_complete,
    )


def question_response_timer(
    *,
    scheduler: Scheduler,
    category: QuestionCategory,
    game_size: GameSize,
    rules: RuleConfig | None = None,
    already_elapsed_ms: int = 0,
    on_low_time: Alert | None = None,
    on_tick: TickCallback | None = None,
    on_complete: CompleteCallback | None = None,
) -> Timer:
    """Countdown for the hider to answer the pending question.

    `already_elapsed_ms` shortens the countdown for a question asked before
    the timer was created (a restarted session).
    """

    rules = rules or RuleConfig()
    return _countdown_with_alert(
        scheduler=scheduler,
        total_ms=max(0, category.response_minutes(game_size) * 60_000 - already_elapsed_ms),
        threshold_ms=rules.response_low_time_seconds * 1000,
        inclusive=False,
        tick_interval_ms=rules.tick_interval_ms,
        on_alert=on_low_time,
        on_tick=on_tick,
        on_complete=on_complete,
    )


def hiding_duration_timer(
    *,
    scheduler: Scheduler,
    rules: RuleConfig | None = None,
    on_tick: TickCallback | None = None,
) -> Timer:
    """Stopwatch for how long the hider has stayed hidden this round."""

    rules = rules or RuleConfig()
    return Timer(scheduler=scheduler, tick_interval_ms=rules.tick_interval_ms, on_tick=on_tick)


def curse_timer(
    *,
    scheduler: Scheduler,
    curse: ActiveCurse,
    game_size: GameSize,
    rules: RuleConfig | None = None,
    already_elapsed_ms: int = 0,
    on_complete: CompleteCallback | None = None,
) -> Timer | None:
    """Countdown for a duration curse; None for curses that do not expire on time."""

    minutes = curse.duration_minutes(game_size)
    if minutes is None:
        return None
    rules = rules or RuleConfig()
    logger.debug("Curse %s runs for %s minutes", curse.card.name, minutes)
    return Timer(
        scheduler=scheduler,
        tick_interval_ms=rules.tick_interval_ms,
        countdown=True,
        initial_time_ms=max(0, minutes * 60_000 - already_elapsed_ms),
        on_complete=on_complete,
    )


def _ms_between(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() * 1000))


def _hold(timer: Timer, held: bool) -> None:
    if held:
        timer.pause()
    else:
        timer.resume()


class TimerReading(BaseModel):
    ms: int
    display: str

    @classmethod
    def countdown(cls, ms: int) -> TimerReading:
        return cls(ms=ms, display=format_time_short(ms))

    @classmethod
    def stopwatch(cls, ms: int) -> TimerReading:
        return cls(ms=ms, display=format_time(ms))


class TimersSnapshot(BaseModel):
    hiding_period_remaining: TimerReading | None = None
    hiding_elapsed: TimerReading | None = None
    response_remaining: TimerReading | None = None
    curse_remaining: dict[str, TimerReading] = Field(default_factory=dict)


class RoundTimers:
    """The round's clocks, kept in step with the stores.

    `sync()` runs after every store change. It starts whatever timer the
    current phase, pending question or duration curses call for, drops the
    ones that no longer apply, and mirrors the whole-session pause. The
    hiding stopwatch stays frozen once the hider is found so the round can be
    scored from it.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        game: GameStore,
        questions: QuestionStore,
        cards: CardStore,
        rules: RuleConfig | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._game = game
        self._questions = questions
        self._cards = cards
        self._rules = rules or RuleConfig()

        self.hiding_period: Timer | None = None
        self.hiding_duration: Timer | None = None
        self.response: Timer | None = None
        self._response_asked_at: datetime | None = None
        self.curses: dict[str, Timer] = {}

    @property
    def hiding_elapsed_ms(self) -> int:
        return self.hiding_duration.elapsed_ms if self.hiding_duration is not None else 0

    def all(self) -> list[Timer]:
        timers = [t for t in (self.hiding_period, self.hiding_duration, self.response) if t is not None]
        return timers + list(self.curses.values())

    def sync(self) -> None:
        phase = self._game.current_phase
        paused = self._game.is_game_paused
        self._sync_hiding_period(phase, paused)
        self._sync_hiding_duration(phase, paused)
        self._sync_response(paused)
        self._sync_curses(paused)

    def handle_visibility_change(self, visible: bool) -> None:
        # all() is a fresh list; a curse expiring here drops out of `curses`.
        for timer in self.all():
            timer.handle_visibility_change(visible)

    def snapshot(self) -> TimersSnapshot:
        out = TimersSnapshot(
            curse_remaining={
                iid: TimerReading.countdown(timer.remaining_ms or 0) for iid, timer in self.curses.items()
            }
        )
        if self.hiding_period is not None:
            out.hiding_period_remaining = TimerReading.countdown(self.hiding_period.remaining_ms or 0)
        if self.hiding_duration is not None:
            out.hiding_elapsed = TimerReading.stopwatch(self.hiding_duration.elapsed_ms)
        if self.response is not None:
            out.response_remaining = TimerReading.countdown(self.response.remaining_ms or 0)
        return out

    # Per-clock bookkeeping

    def _sync_hiding_period(self, phase: GamePhase, paused: bool) -> None:
        if phase != GamePhase.hiding_period:
            if self.hiding_period is not None:
                self.hiding_period.stop()
                self.hiding_period = None
            return
        if self.hiding_period is None:
            self.hiding_period = hiding_period_timer(
                scheduler=self._scheduler,
                rules=self._rules,
                on_warning=self._hiding_period_warning,
                on_complete=self._hiding_period_over,
            )
            self.hiding_period.start()
        _hold(self.hiding_period, paused)

    def _sync_hiding_duration(self, phase: GamePhase, paused: bool) -> None:
        if phase in (GamePhase.setup, GamePhase.hiding_period):
            if self.hiding_duration is not None:
                self.hiding_duration.stop()
                self.hiding_duration = None
            return
        if self.hiding_duration is None:
            self.hiding_duration = hiding_duration_timer(scheduler=self._scheduler, rules=self._rules)
            self.hiding_duration.start()
        _hold(self.hiding_duration, paused or phase == GamePhase.round_complete)

    def _sync_response(self, paused: bool) -> None:
        pending = self._questions.pending_question
        if self.response is not None and (pending is None or pending.asked_at != self._response_asked_at):
            self.response.stop()
            self.response = None
            self._response_asked_at = None
        if pending is None:
            return
        if self.response is None:
            category = get_category(pending.category_id)
            if category is None:
                return
            self.response = question_response_timer(
                scheduler=self._scheduler,
                category=category,
                game_size=self._game.game_size,
                rules=self._rules,
                already_elapsed_ms=_ms_between(pending.asked_at, self._questions.now()),
                on_low_time=partial(self._response_low_time, pending.question_id),
                on_complete=partial(self._response_expired, pending.question_id),
            )
            self._response_asked_at = pending.asked_at
            self.response.start()
        _hold(self.response, paused)

    def _sync_curses(self, paused: bool) -> None:
        active = {c.instance_id: c for c in self._cards.active_curses}
        for iid in [iid for iid in self.curses if iid not in active]:
            self.curses.pop(iid).stop()

        for iid, curse in active.items():
            if iid in self.curses:
                continue
            timer = curse_timer(
                scheduler=self._scheduler,
                curse=curse,
                game_size=self._game.game_size,
                rules=self._rules,
                already_elapsed_ms=_ms_between(curse.activated_at, self._cards.now()),
                on_complete=partial(self._curse_expired, iid),
            )
            if timer is None:
                continue
            self.curses[iid] = timer
            timer.start()

        for timer in self.curses.values():
            _hold(timer, paused)

    # Timer callbacks

    def _hiding_period_warning(self, remaining_ms: int) -> None:
        logger.info("Hiding period ends in %s", format_time_short(remaining_ms))

    def _hiding_period_over(self) -> None:
        logger.info("Hiding period over; seeking begins")
        result = self._game.start_seeking()
        if not result.success:
            logger.warning("Could not start seeking when the hiding period ended: %s", result.error)

    def _response_low_time(self, question_id: str, remaining_ms: int) -> None:
        logger.info("Question %s: %s left to answer", question_id, format_time_short(remaining_ms))

    def _response_expired(self, question_id: str) -> None:
        logger.info("Response time expired for question %s", question_id)

    def _curse_expired(self, instance_id: str) -> None:
        logger.info("Curse %s ran out", instance_id)
        result = self._cards.clear_curse(instance_id)
        if not result.success:
            logger.warning("Could not clear expired curse %s: %s", instance_id, result.error)
