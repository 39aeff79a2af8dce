from __future__ import annotations

import logging
from collections.abc import Callable

import redis
from pydantic import BaseModel

from hideseek.actions import ActionResult
from hideseek.api.models import AskedQuestion, SessionState
from hideseek.assets.registry import QuestionCatalog
from hideseek.card_store import CardStore
from hideseek.cards import ActiveCurse, ActiveTimeTrap, CardInstance
from hideseek.config import Settings
from hideseek.core.events import EventBus, Listener
from hideseek.deck import RandomSource
from hideseek.errors import RuleViolation
from hideseek.game_store import GameStore
from hideseek.persistence import PersistenceGateway, RedisPersistence
from hideseek.question_store import QuestionStore
from hideseek.round_timers import RoundTimers, TimersSnapshot
from hideseek.store import Clock, IdFactory
from hideseek.timer import AsyncioScheduler, Scheduler
from hideseek.validators import ValidationContext, pipeline_for_action

logger = logging.getLogger(__name__)


class SessionSnapshot(BaseModel):
    game: SessionState
    pending_question: AskedQuestion | None
    asked_questions: list[AskedQuestion]
    hand: list[CardInstance]
    hand_limit: int
    deck_size: int
    discard_count: int
    active_curses: list[ActiveCurse]
    active_time_traps: list[ActiveTimeTrap]
    timers: TimersSnapshot


class GameSession:
    """The three stores of one play session, sharing a gateway and an event bus.

    The session also owns the round timers. They follow every committed store
    change through the bus, so a route calling a store directly still starts
    and stops the right clocks.
    """

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        settings: Settings | None = None,
        catalog: QuestionCatalog | None = None,
        rng: RandomSource | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.persistence = persistence
        self._bus = EventBus()
        rules = self.settings.rules

        self.game = GameStore(
            persistence=persistence,
            rules=rules,
            default_game_size=self.settings.default_game_size,
            id_factory=id_factory,
            clock=clock,
            bus=self._bus,
        )
        self.questions = QuestionStore(persistence=persistence, catalog=catalog, rng=rng, clock=clock, bus=self._bus)
        self.cards = CardStore(
            persistence=persistence,
            rules=rules,
            rng=rng,
            id_factory=id_factory,
            clock=clock,
            bus=self._bus,
        )
        self.timers = RoundTimers(
            scheduler=scheduler or AsyncioScheduler(),
            game=self.game,
            questions=self.questions,
            cards=self.cards,
            rules=rules,
        )
        self._bus.subscribe(lambda _event: self.timers.sync())

    @classmethod
    def from_redis(cls, r: redis.Redis, *, settings: Settings, **kwargs) -> GameSession:
        return cls(persistence=RedisPersistence(r, prefix=settings.storage_prefix), settings=settings, **kwargs)

    def rehydrate(self) -> None:
        self.game.rehydrate()
        self.questions.rehydrate()
        self.cards.rehydrate()
        self.timers.sync()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._bus.subscribe(listener)

    def new_game(self) -> None:
        self.game.reset_game()
        self.questions.reset()
        self.cards.reset()
        for store in (self.game, self.questions, self.cards):
            self.persistence.remove(store.store_name)
        logger.info("Started a new game")

    def final_hiding_time_ms(self, elapsed_ms: int) -> int:
        """Stopwatch time plus bonus minutes from cards in hand and sprung traps."""

        bonus_minutes = self.cards.total_time_bonus(self.game.game_size) + self.cards.total_time_trap_bonus
        return elapsed_ms + bonus_minutes * 60_000

    def finish_round(self, elapsed_ms: int | None = None) -> ActionResult:
        """Score the round and reset the per-round stores.

        Without an explicit `elapsed_ms` the hider is credited with the
        session's own hiding stopwatch.
        """

        if elapsed_ms is None:
            elapsed_ms = self.timers.hiding_elapsed_ms
        total = self.final_hiding_time_ms(elapsed_ms)
        result = self.game.end_round(total)
        if not result.success:
            return result
        # Each hider starts a round with a fresh deck and question sheet.
        self.questions.reset()
        self.cards.reset()
        logger.info("Round %s finished; hider credited %sms", self.game.round_number, total)
        return result

    def handle_visibility_change(self, visible: bool) -> None:
        self.timers.handle_visibility_change(visible)

    def play_move(self, powerup_instance_id: str) -> ActionResult:
        """Play a Move powerup and put the hider into the relocating sub-state."""

        try:
            pipeline_for_action("start_move").validate(
                ctx=ValidationContext(action="start_move"),
                state=self.game.state,
            )
        except RuleViolation as e:
            return ActionResult.fail(str(e))

        played = self.cards.play_move_powerup(powerup_instance_id)
        if not played.success:
            return played
        moved = self.game.start_move()
        if not moved.success:
            return moved
        return played

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            game=self.game.state,
            pending_question=self.questions.pending_question,
            asked_questions=self.questions.asked_questions,
            hand=self.cards.hand,
            hand_limit=self.cards.hand_limit,
            deck_size=self.cards.deck_size,
            discard_count=len(self.cards.discard_pile),
            active_curses=self.cards.active_curses,
            active_time_traps=self.cards.active_time_traps,
            timers=self.timers.snapshot(),
        )
