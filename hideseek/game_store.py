from __future__ import annotations

from datetime import datetime

from statemachine.exceptions import TransitionNotAllowed

from hideseek.actions import ActionResult
from hideseek.api.models import GamePhase, GameSize, Player, SessionState
from hideseek.config import RuleConfig
from hideseek.core.events import EventBus
from hideseek.errors import RuleViolation
from hideseek.fsm import GamePhaseFSM
from hideseek.persistence import PersistenceGateway
from hideseek.serialization import StateCodec
from hideseek.store import Clock, IdFactory, PersistentStore, new_id
from hideseek.validators import ValidationContext, pipeline_for_action

GAME_CODEC: StateCodec[SessionState] = StateCodec(SessionState, schema_version=1)


def _require_player(state: SessionState, player_id: str | None) -> Player:
    player = next((p for p in state.players if p.id == player_id), None)
    if player is None:
        raise RuleViolation("Player not found")
    return player


def _transition(state: SessionState, event: str, error: str) -> None:
    fsm = GamePhaseFSM(state)
    try:
        fsm.send(event)
    except TransitionNotAllowed:
        raise RuleViolation(error) from None
    fsm.sync_phase_to_model()


def _validate(action: str, state: SessionState) -> None:
    pipeline_for_action(action).validate(ctx=ValidationContext(action=action), state=state)


def _clear_round_substates(state: SessionState) -> None:
    state.is_game_paused = False
    state.paused_at = None
    state.is_hider_moving = False
    state.move_started_at = None


def _elapsed_ms(start: datetime | None, now: datetime) -> int:
    if start is None:
        return 0
    return max(0, int((now - start).total_seconds() * 1000))


class GameStore(PersistentStore[SessionState]):
    """Player roster, round phases, scoring, and the pause/move sub-states."""

    store_name = "game"
    codec = GAME_CODEC

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        rules: RuleConfig | None = None,
        default_game_size: GameSize = GameSize.medium,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.rules = rules or RuleConfig()
        self._default_game_size = default_game_size
        self._new_id = id_factory or new_id
        super().__init__(persistence=persistence, clock=clock, bus=bus)

    def _initial_state(self) -> SessionState:
        return SessionState(game_size=self._default_game_size)

    # Getters

    @property
    def current_phase(self) -> GamePhase:
        return self._state.current_phase

    @property
    def current_hider_id(self) -> str | None:
        return self._state.current_hider_id

    @property
    def round_number(self) -> int:
        return self._state.round_number

    @property
    def game_size(self) -> GameSize:
        return self._state.game_size

    @property
    def is_game_paused(self) -> bool:
        return self._state.is_game_paused

    @property
    def is_hider_moving(self) -> bool:
        return self._state.is_hider_moving

    @property
    def players(self) -> list[Player]:
        return [p.model_copy() for p in self._state.players]

    def get_player(self, player_id: str) -> Player | None:
        player = next((p for p in self._state.players if p.id == player_id), None)
        return player.model_copy() if player is not None else None

    @property
    def current_hider(self) -> Player | None:
        if self._state.current_hider_id is None:
            return None
        return self.get_player(self._state.current_hider_id)

    @property
    def seekers(self) -> list[Player]:
        return [p for p in self.players if p.id != self._state.current_hider_id]

    @property
    def all_players_have_been_hider(self) -> bool:
        players = self._state.players
        return bool(players) and all(p.has_been_hider for p in players)

    @property
    def players_ranked_by_time(self) -> list[Player]:
        # sorted() is stable, so ties keep roster order.
        return sorted(self.players, key=lambda p: p.total_hiding_time_ms, reverse=True)

    @property
    def players_who_havent_been_hider(self) -> list[Player]:
        return [p for p in self.players if not p.has_been_hider]

    def paused_duration_ms(self, now: datetime | None = None) -> int:
        if not self._state.is_game_paused:
            return 0
        return _elapsed_ms(self._state.paused_at, now or self.now())

    def move_duration_ms(self, now: datetime | None = None) -> int:
        if not self._state.is_hider_moving:
            return 0
        return _elapsed_ms(self._state.move_started_at, now or self.now())

    def move_time_limit_ms(self) -> int:
        return self.rules.move_minutes_by_size[self._state.game_size] * 60_000

    # Roster

    def add_player(self, name: str) -> ActionResult:
        def mutate(state: SessionState) -> ActionResult:
            clean = name.strip()
            if not clean:
                raise RuleViolation("Player name is required")
            player = Player(id=self._new_id(), name=clean)
            state.players.append(player)
            return ActionResult.ok(player=player.model_copy())

        return self._apply("add_player", mutate)

    def remove_player(self, player_id: str) -> ActionResult:
        def mutate(state: SessionState) -> ActionResult:
            _validate("remove_player", state)
            player = _require_player(state, player_id)
            state.players.remove(player)
            return ActionResult.ok(player=player)

        return self._apply("remove_player", mutate)

    def set_game_size(self, game_size: GameSize) -> ActionResult:
        def mutate(state: SessionState) -> ActionResult:
            _validate("set_game_size", state)
            state.game_size = GameSize(game_size)
            return ActionResult.ok()

        return self._apply("set_game_size", mutate)

    # Phase transitions

    def start_round(self, hider_id: str) -> ActionResult:
        def mutate(state: SessionState) -> ActionResult:
            if state.current_phase != GamePhase.setup:
                raise RuleViolation("Cannot start round from current phase")
            if len(state.players) < self.rules.min_players:
                raise RuleViolation(f"At least {self.rules.min_players} players required")
            hider = next((p for p in state.players if p.id == hider_id), None)
            if hider is None:
                raise RuleViolation("Invalid player ID")

            _transition(state, "start_round", "Cannot start round from current phase")
            hider.has_been_hider = True
            state.current_hider_id = hider.id
            state.round_number += 1
            return ActionResult.ok(player=hider.model_copy())

        return self._apply("start_round", mutate)

    def start_seeking(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _transition(state, "start_seeking", "Cannot start seeking from current phase")

        return self._apply("start_seeking", mutate)

    def enter_hiding_zone(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _transition(state, "enter_hiding_zone", "Cannot enter hiding zone from current phase")

        return self._apply("enter_hiding_zone", mutate)

    def hider_found(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _transition(state, "hider_found", "Cannot mark hider found from current phase")
            # A round cannot complete while paused or mid-move.
            _clear_round_substates(state)

        return self._apply("hider_found", mutate)

    def end_round(self, hiding_time_ms: int) -> ActionResult:
        def mutate(state: SessionState) -> ActionResult:
            if hiding_time_ms < 0:
                raise RuleViolation("Hiding time cannot be negative")
            _transition(state, "end_round", "Cannot end round from current phase")

            hider = next((p for p in state.players if p.id == state.current_hider_id), None)
            if hider is not None:
                hider.total_hiding_time_ms += hiding_time_ms
            state.current_hider_id = None
            return ActionResult.ok(player=hider.model_copy() if hider is not None else None)

        return self._apply("end_round", mutate)

    # Pause and move

    def pause_game(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _validate("pause_game", state)
            state.is_game_paused = True
            state.paused_at = self.now()

        return self._apply("pause_game", mutate)

    def resume_game(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _validate("resume_game", state)
            state.is_game_paused = False
            state.paused_at = None

        return self._apply("resume_game", mutate)

    def start_move(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _validate("start_move", state)
            state.is_hider_moving = True
            state.move_started_at = self.now()

        return self._apply("start_move", mutate)

    def confirm_new_zone(self) -> ActionResult:
        def mutate(state: SessionState) -> None:
            _validate("confirm_new_zone", state)
            state.is_hider_moving = False
            state.move_started_at = None

        return self._apply("confirm_new_zone", mutate)

    def reset_game(self) -> None:
        self._reset_state("reset_game")
