from __future__ import annotations

from dataclasses import dataclass, field

from hideseek.api.models import ALL_SIZES, GameSize, QuestionCategoryId


@dataclass(frozen=True, slots=True)
class QuestionCategory:
    id: QuestionCategoryId
    name: str
    description: str
    cards_draw: int
    cards_keep: int
    response_time_minutes: dict[GameSize, int]
    available_in: tuple[GameSize, ...] = field(default=ALL_SIZES)

    def response_minutes(self, game_size: GameSize) -> int:
        return self.response_time_minutes[game_size]

    def is_available_in(self, game_size: GameSize) -> bool:
        return game_size in self.available_in


def _flat(minutes: int) -> dict[GameSize, int]:
    return {size: minutes for size in ALL_SIZES}


QUESTION_CATEGORIES: tuple[QuestionCategory, ...] = (
    QuestionCategory(
        id=QuestionCategoryId.matching,
        name="Matching",
        description="Compares whether the hider and seekers share the same nearest location of a type",
        cards_draw=3,
        cards_keep=1,
        response_time_minutes=_flat(5),
    ),
    QuestionCategory(
        id=QuestionCategoryId.measuring,
        name="Measuring",
        description="Determines relative distance between hider and seekers to a landmark",
        cards_draw=3,
        cards_keep=1,
        response_time_minutes=_flat(5),
    ),
    QuestionCategory(
        id=QuestionCategoryId.radar,
        name="Radar",
        description="Checks if the hider is within a specific distance of the seekers",
        cards_draw=2,
        cards_keep=1,
        response_time_minutes=_flat(5),
    ),
    QuestionCategory(
        id=QuestionCategoryId.thermometer,
        name="Thermometer",
        description="Seekers travel a distance and learn if they got closer or further from hider",
        cards_draw=2,
        cards_keep=1,
        response_time_minutes=_flat(5),
    ),
    QuestionCategory(
        id=QuestionCategoryId.photo,
        name="Photo",
        description="Requires the hider to send a photo that may reveal location information",
        cards_draw=1,
        cards_keep=1,
        response_time_minutes={GameSize.small: 10, GameSize.medium: 10, GameSize.large: 20},
    ),
    QuestionCategory(
        id=QuestionCategoryId.tentacle,
        name="Tentacle",
        description="Identifies which specific location the hider is nearest to, within a set distance of the seekers",
        cards_draw=4,
        cards_keep=2,
        response_time_minutes=_flat(5),
        available_in=(GameSize.medium, GameSize.large),
    ),
)

_BY_ID = {c.id: c for c in QUESTION_CATEGORIES}


def get_category(category_id: QuestionCategoryId | str) -> QuestionCategory | None:
    try:
        return _BY_ID.get(QuestionCategoryId(category_id))
    except ValueError:
        return None


def categories_for_game_size(game_size: GameSize) -> list[QuestionCategory]:
    return [c for c in QUESTION_CATEGORIES if c.is_available_in(game_size)]
