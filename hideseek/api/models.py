from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class GameSize(StrEnum):
    small = "small"
    medium = "medium"
    large = "large"


ALL_SIZES: tuple[GameSize, ...] = (GameSize.small, GameSize.medium, GameSize.large)


class GamePhase(StrEnum):
    setup = "setup"
    hiding_period = "hiding-period"
    seeking = "seeking"
    end_game = "end-game"
    round_complete = "round-complete"


class Player(BaseModel):
    id: str
    name: str
    has_been_hider: bool = False
    total_hiding_time_ms: int = 0


class SessionState(BaseModel):
    current_phase: GamePhase = GamePhase.setup
    current_hider_id: str | None = None
    round_number: int = 0
    players: list[Player] = Field(default_factory=list)

    game_size: GameSize = GameSize.medium

    # Whole-session pause, orthogonal to the phase.
    is_game_paused: bool = False
    paused_at: datetime | None = None

    # Hider relocating after a Move powerup.
    is_hider_moving: bool = False
    move_started_at: datetime | None = None


class QuestionCategoryId(StrEnum):
    matching = "matching"
    measuring = "measuring"
    radar = "radar"
    thermometer = "thermometer"
    photo = "photo"
    tentacle = "tentacle"


class Question(BaseModel):
    model_config = {"frozen": True}

    id: str
    category_id: QuestionCategoryId
    text: str
    subcategory: str | None = None
    available_in: tuple[GameSize, ...] = ALL_SIZES


class AskedQuestion(BaseModel):
    question_id: str
    category_id: QuestionCategoryId
    answer: str = ""
    asked_at: datetime
    answered_at: datetime | None = None
    vetoed: bool = False


class CategoryStats(BaseModel):
    category_id: QuestionCategoryId
    name: str
    total: int
    available: int
    asked: int
    cards_draw: int
    cards_keep: int


# Request bodies for the HTTP facade.


class AddPlayerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)


class GameSizeRequest(BaseModel):
    game_size: GameSize


class StartRoundRequest(BaseModel):
    hider_id: str


class EndRoundRequest(BaseModel):
    hiding_time_ms: int = Field(..., ge=0)


class FinishRoundRequest(BaseModel):
    # Omitted: credit the session's own hiding stopwatch.
    elapsed_ms: int | None = Field(None, ge=0)


class VisibilityRequest(BaseModel):
    visible: bool


class AnswerRequest(BaseModel):
    answer: str = Field("", max_length=4000)


class DrawRequest(BaseModel):
    count: int = Field(..., ge=0, le=100)


class ExpandRequest(BaseModel):
    amount: int = Field(1, ge=1, le=10)


class DiscardAndDrawRequest(BaseModel):
    instance_ids: list[str]
    draw_count: int = Field(..., ge=0, le=100)


class DiscardDrawPowerupRequest(BaseModel):
    discard_instance_ids: list[str]


class DuplicateRequest(BaseModel):
    target_instance_id: str


class TimeTrapRequest(BaseModel):
    station_name: str = Field("", max_length=200)


class AddCardRequest(BaseModel):
    card_type: str
    tier: int | None = None
    powerup_type: str | None = None
    curse_id: str | None = None
