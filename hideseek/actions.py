from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from hideseek.api.models import Player
from hideseek.cards import ActiveTimeTrap, CardInstance


class ActionResult(BaseModel):
    """Uniform outcome of a store operation.

    Only the fields relevant to the operation are populated on success.
    """

    success: bool
    error: str | None = None

    cards_draw: int | None = None
    cards_keep: int | None = None
    new_question_id: str | None = None

    drawn_cards: list[CardInstance] | None = None
    played_card: CardInstance | None = None
    duplicated_card: CardInstance | None = None
    discarded_cards: list[CardInstance] | None = None

    bonus_minutes: int | None = None
    trap: ActiveTimeTrap | None = None
    player: Player | None = None

    @classmethod
    def ok(cls, **fields: Any) -> ActionResult:
        return cls(success=True, **fields)

    @classmethod
    def fail(cls, error: str) -> ActionResult:
        return cls(success=False, error=error)
