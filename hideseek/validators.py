from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from hideseek.api.models import GamePhase, SessionState
from hideseek.errors import RuleViolation


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators."""

    action: str


class SessionValidator(ABC):
    """A small, composable check run before a session action is applied."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class PhaseValidator(SessionValidator):
    """Validates the current game phase for a given action."""

    allowed_phases: frozenset[GamePhase]
    message: str

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        if state.current_phase not in self.allowed_phases:
            raise RuleViolation(self.message)


@dataclass(frozen=True, slots=True)
class PausedValidator(SessionValidator):
    """Require the session to be paused (or not paused)."""

    paused: bool
    message: str

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        if state.is_game_paused != self.paused:
            raise RuleViolation(self.message)


@dataclass(frozen=True, slots=True)
class MovingValidator(SessionValidator):
    """Require the hider to be relocating (or not)."""

    moving: bool
    message: str

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        if state.is_hider_moving != self.moving:
            raise RuleViolation(self.message)


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[SessionValidator, ...]

    def validate(self, *, ctx: ValidationContext, state: SessionState) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, state=state)


_ACTIVE_ROUND = frozenset({GamePhase.hiding_period, GamePhase.seeking, GamePhase.end_game})
_HIDER_CAN_MOVE = frozenset({GamePhase.hiding_period, GamePhase.seeking})

DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "pause_game": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=_ACTIVE_ROUND, message="Cannot pause game in current phase"),
            PausedValidator(paused=False, message="Game is already paused"),
        )
    ),
    "resume_game": ValidatorPipeline(
        validators=(PausedValidator(paused=True, message="Game is not paused"),),
    ),
    "start_move": ValidatorPipeline(
        validators=(
            PhaseValidator(allowed_phases=_HIDER_CAN_MOVE, message="Cannot start move in current phase"),
            MovingValidator(moving=False, message="Hider is already moving"),
        )
    ),
    "confirm_new_zone": ValidatorPipeline(
        validators=(MovingValidator(moving=True, message="Hider is not moving"),),
    ),
    "remove_player": ValidatorPipeline(
        validators=(
            PhaseValidator(
                allowed_phases=frozenset({GamePhase.setup}),
                message="Players can only be removed during setup",
            ),
        )
    ),
    "set_game_size": ValidatorPipeline(
        validators=(
            PhaseValidator(
                allowed_phases=frozenset({GamePhase.setup}),
                message="Game size can only be changed during setup",
            ),
        )
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe
