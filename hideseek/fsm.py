from __future__ import annotations

from statemachine import State, StateMachine

from hideseek.api.models import GamePhase, SessionState


class GamePhaseFSM(StateMachine):
    """FSM wrapper around SessionState.

    The round is a linear cycle:
    setup -> hiding period -> seeking -> end game -> round complete -> setup.
    The store applies the side effects; the machine only guards transitions.
    """

    setting_up = State(GamePhase.setup.value, value=GamePhase.setup.value, initial=True)
    hiding_period = State(GamePhase.hiding_period.value, value=GamePhase.hiding_period.value)
    seeking = State(GamePhase.seeking.value, value=GamePhase.seeking.value)
    end_game = State(GamePhase.end_game.value, value=GamePhase.end_game.value)
    round_complete = State(GamePhase.round_complete.value, value=GamePhase.round_complete.value)

    start_round = setting_up.to(hiding_period)
    start_seeking = hiding_period.to(seeking)
    enter_hiding_zone = seeking.to(end_game)
    hider_found = end_game.to(round_complete)
    end_round = round_complete.to(setting_up)

    def __init__(self, session: SessionState):
        self.session = session
        super().__init__(start_value=session.current_phase.value)

    def sync_phase_to_model(self) -> None:
        self.session.current_phase = GamePhase(str(self.current_state.value))
