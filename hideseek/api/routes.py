from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from hideseek.actions import ActionResult
from hideseek.api.deps import get_session
from hideseek.api.models import (
    AddCardRequest,
    AddPlayerRequest,
    AnswerRequest,
    CategoryStats,
    DiscardAndDrawRequest,
    DiscardDrawPowerupRequest,
    DrawRequest,
    DuplicateRequest,
    EndRoundRequest,
    ExpandRequest,
    FinishRoundRequest,
    GameSize,
    GameSizeRequest,
    Player,
    Question,
    QuestionCategoryId,
    StartRoundRequest,
    TimeTrapRequest,
    VisibilityRequest,
)
from hideseek.cards import CardInstance
from hideseek.session import GameSession, SessionSnapshot

router = APIRouter()


def _checked(result: ActionResult) -> ActionResult:
    if not result.success:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=result.error)
    return result


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


# Session


@router.get("/session", response_model=SessionSnapshot)
async def get_session_route(session: GameSession = Depends(get_session)) -> SessionSnapshot:
    return session.snapshot()


@router.post("/session/new", response_model=SessionSnapshot)
async def new_game_route(session: GameSession = Depends(get_session)) -> SessionSnapshot:
    session.new_game()
    return session.snapshot()


@router.post("/session/visibility", response_model=SessionSnapshot)
async def visibility_route(payload: VisibilityRequest, session: GameSession = Depends(get_session)) -> SessionSnapshot:
    session.handle_visibility_change(payload.visible)
    return session.snapshot()


# Players


@router.post("/players", response_model=Player, status_code=status.HTTP_201_CREATED)
async def add_player_route(payload: AddPlayerRequest, session: GameSession = Depends(get_session)) -> Player:
    result = _checked(session.game.add_player(payload.name))
    if result.player is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Player was not created")
    return result.player


@router.delete("/players/{player_id}", response_model=ActionResult)
async def remove_player_route(player_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.remove_player(player_id))


@router.get("/players/ranking", response_model=list[Player])
async def ranking_route(session: GameSession = Depends(get_session)) -> list[Player]:
    return session.game.players_ranked_by_time


# Phases


@router.put("/game/size", response_model=ActionResult)
async def game_size_route(payload: GameSizeRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.set_game_size(payload.game_size))


@router.post("/game/round/start", response_model=ActionResult)
async def start_round_route(payload: StartRoundRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.start_round(payload.hider_id))


@router.post("/game/seeking", response_model=ActionResult)
async def start_seeking_route(session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.start_seeking())


@router.post("/game/hiding-zone", response_model=ActionResult)
async def enter_hiding_zone_route(session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.enter_hiding_zone())


@router.post("/game/found", response_model=ActionResult)
async def hider_found_route(session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.hider_found())


@router.post("/game/round/end", response_model=ActionResult)
async def end_round_route(payload: EndRoundRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.end_round(payload.hiding_time_ms))


@router.post("/game/round/finish", response_model=ActionResult)
async def finish_round_route(payload: FinishRoundRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.finish_round(payload.elapsed_ms))


@router.post("/game/pause", response_model=ActionResult)
async def pause_route(session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.pause_game())


@router.post("/game/resume", response_model=ActionResult)
async def resume_route(session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.resume_game())


@router.post("/game/move/confirm", response_model=ActionResult)
async def confirm_zone_route(session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.game.confirm_new_zone())


# Questions


@router.get("/questions", response_model=list[Question])
async def list_questions_route(
    category: QuestionCategoryId | None = None,
    game_size: GameSize | None = None,
    session: GameSession = Depends(get_session),
) -> list[Question]:
    if game_size is not None:
        return session.questions.get_available_questions_for_game_size(game_size, category)
    return session.questions.get_available_questions(category)


@router.get("/questions/stats", response_model=list[CategoryStats])
async def question_stats_route(session: GameSession = Depends(get_session)) -> list[CategoryStats]:
    return session.questions.get_category_stats()


@router.post("/questions/{question_id}/ask", response_model=ActionResult)
async def ask_route(question_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.questions.ask_question(question_id))


@router.post("/questions/{question_id}/answer", response_model=ActionResult)
async def answer_route(
    question_id: str,
    payload: AnswerRequest,
    session: GameSession = Depends(get_session),
) -> ActionResult:
    return _checked(session.questions.answer_question(question_id, payload.answer))


@router.post("/questions/{question_id}/veto", response_model=ActionResult)
async def veto_route(question_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.questions.veto_question(question_id))


@router.post("/questions/{question_id}/randomize", response_model=ActionResult)
async def randomize_route(question_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.questions.randomize_question(question_id, game_size=session.game.game_size))


# Cards


@router.get("/cards/hand", response_model=list[CardInstance])
async def hand_route(session: GameSession = Depends(get_session)) -> list[CardInstance]:
    return session.cards.hand


@router.get("/cards/discard", response_model=list[CardInstance])
async def discard_pile_route(session: GameSession = Depends(get_session)) -> list[CardInstance]:
    return session.cards.discard_pile


@router.post("/cards/draw", response_model=ActionResult)
async def draw_route(payload: DrawRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.draw_cards(payload.count))


@router.post("/cards/expand", response_model=ActionResult)
async def expand_route(payload: ExpandRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.expand_hand_limit(payload.amount))


@router.post("/cards/discard-draw", response_model=ActionResult)
async def discard_and_draw_route(
    payload: DiscardAndDrawRequest,
    session: GameSession = Depends(get_session),
) -> ActionResult:
    return _checked(session.cards.discard_and_draw(payload.instance_ids, payload.draw_count))


@router.post("/cards/add", response_model=ActionResult)
async def add_card_route(payload: AddCardRequest, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(
        session.cards.add_card_to_hand(
            payload.card_type,
            tier=payload.tier,
            powerup_type=payload.powerup_type,
            curse_id=payload.curse_id,
        )
    )


@router.post("/cards/{instance_id}/play", response_model=ActionResult)
async def play_card_route(instance_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.play_card(instance_id))


@router.post("/cards/{instance_id}/discard", response_model=ActionResult)
async def discard_card_route(instance_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.discard_card(instance_id))


@router.post("/cards/{instance_id}/powerup/draw-expand", response_model=ActionResult)
async def draw_expand_route(instance_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.play_draw_expand_powerup(instance_id))


@router.post("/cards/{instance_id}/powerup/discard-draw", response_model=ActionResult)
async def discard_draw_powerup_route(
    instance_id: str,
    payload: DiscardDrawPowerupRequest,
    session: GameSession = Depends(get_session),
) -> ActionResult:
    return _checked(session.cards.play_discard_draw_powerup(instance_id, payload.discard_instance_ids))


@router.post("/cards/{instance_id}/powerup/duplicate", response_model=ActionResult)
async def duplicate_route(
    instance_id: str,
    payload: DuplicateRequest,
    session: GameSession = Depends(get_session),
) -> ActionResult:
    return _checked(session.cards.play_duplicate_powerup(instance_id, payload.target_instance_id))


@router.post("/cards/{instance_id}/powerup/move", response_model=ActionResult)
async def move_route(instance_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.play_move(instance_id))


@router.post("/cards/{instance_id}/curse", response_model=ActionResult)
async def play_curse_route(instance_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.play_curse_card(instance_id))


@router.delete("/curses/{instance_id}", response_model=ActionResult)
async def clear_curse_route(instance_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.clear_curse(instance_id))


@router.post("/cards/{instance_id}/time-trap", response_model=ActionResult)
async def play_time_trap_route(
    instance_id: str,
    payload: TimeTrapRequest,
    session: GameSession = Depends(get_session),
) -> ActionResult:
    return _checked(session.cards.play_time_trap_card(instance_id, payload.station_name))


@router.post("/time-traps/{trap_id}/trigger", response_model=ActionResult)
async def trigger_time_trap_route(trap_id: str, session: GameSession = Depends(get_session)) -> ActionResult:
    return _checked(session.cards.trigger_time_trap(trap_id))
