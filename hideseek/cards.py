from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from hideseek.api.models import GameSize


class CardType(StrEnum):
    time_bonus = "time-bonus"
    powerup = "powerup"
    curse = "curse"
    time_trap = "time-trap"


class PowerupType(StrEnum):
    veto = "veto"
    randomize = "randomize"
    discard_1_draw_2 = "discard-1-draw-2"
    discard_2_draw_3 = "discard-2-draw-3"
    draw_1_expand = "draw-1-expand"
    duplicate = "duplicate"
    move = "move"


class CurseType(StrEnum):
    action_to_clear = "action-to-clear"
    duration_based = "duration-based"
    until_found = "until-found"
    dice_based = "dice-based"


SizeMinutes = dict[GameSize, int]


class TimeBonusCard(BaseModel):
    model_config = {"frozen": True}

    type: Literal["time-bonus"] = "time-bonus"
    id: str
    name: str
    description: str = ""
    tier: int
    bonus_minutes: SizeMinutes
    is_duplicate: bool = False


class PowerupCard(BaseModel):
    model_config = {"frozen": True}

    type: Literal["powerup"] = "powerup"
    id: str
    name: str
    description: str = ""
    powerup_type: PowerupType
    effect: str = ""


class CurseCard(BaseModel):
    model_config = {"frozen": True}

    type: Literal["curse"] = "curse"
    id: str
    name: str
    description: str = ""
    effect: str = ""
    casting_cost: str = ""
    curse_type: CurseType = CurseType.action_to_clear
    blocks_questions: bool = False
    blocks_transit: bool = False
    duration_minutes: SizeMinutes | None = None
    penalty_minutes: SizeMinutes | None = None
    until_found: bool = False


class TimeTrapCard(BaseModel):
    model_config = {"frozen": True}

    type: Literal["time-trap"] = "time-trap"
    id: str
    name: str
    description: str = ""
    bonus_minutes_when_triggered: int


Card = Annotated[
    Union[TimeBonusCard, PowerupCard, CurseCard, TimeTrapCard],
    Field(discriminator="type"),
]


class CardInstance(BaseModel):
    """A card in play. Identical definitions are told apart by `instance_id`."""

    model_config = {"frozen": True}

    instance_id: str
    card: Card

    @property
    def type(self) -> CardType:
        return CardType(self.card.type)

    @property
    def name(self) -> str:
        return self.card.name


class ActiveCurse(BaseModel):
    instance_id: str
    card: CurseCard
    activated_at: datetime

    def duration_minutes(self, game_size: GameSize) -> int | None:
        if self.card.until_found or self.card.duration_minutes is None:
            return None
        return self.card.duration_minutes.get(game_size)

    def expires_at(self, game_size: GameSize) -> datetime | None:
        minutes = self.duration_minutes(game_size)
        if minutes is None:
            return None
        return self.activated_at + timedelta(minutes=minutes)

    def is_expired(self, *, now: datetime, game_size: GameSize) -> bool:
        expires = self.expires_at(game_size)
        return expires is not None and now >= expires


class ActiveTimeTrap(BaseModel):
    instance_id: str
    station_name: str
    bonus_minutes: int
    is_triggered: bool = False
    created_at: datetime
    triggered_at: datetime | None = None


def _sizes(small: int, medium: int, large: int) -> SizeMinutes:
    return {GameSize.small: small, GameSize.medium: medium, GameSize.large: large}


# (tier, S/M/L minutes, copies in the deck). Smaller bonuses are more common.
TIME_BONUS_TIERS: tuple[tuple[int, SizeMinutes, int], ...] = (
    (1, _sizes(2, 3, 5), 25),
    (2, _sizes(4, 6, 10), 15),
    (3, _sizes(6, 9, 15), 10),
    (4, _sizes(8, 12, 20), 3),
    (5, _sizes(12, 18, 30), 2),
)


def time_bonus_card(tier: int) -> TimeBonusCard:
    for t, minutes, _ in TIME_BONUS_TIERS:
        if t == tier:
            return TimeBonusCard(
                id=f"time-bonus-tier-{t}",
                name=f"Time Bonus (Tier {t})",
                description=(
                    f"Adds {minutes[GameSize.small]}/{minutes[GameSize.medium]}/{minutes[GameSize.large]} "
                    "minutes (S/M/L) to hiding duration"
                ),
                tier=t,
                bonus_minutes=minutes,
            )
    raise KeyError(f"Unknown time bonus tier: {tier}")


def doubled(card: TimeBonusCard) -> TimeBonusCard:
    return card.model_copy(
        update={
            "name": f"{card.name} (Doubled)",
            "bonus_minutes": {size: minutes * 2 for size, minutes in card.bonus_minutes.items()},
            "is_duplicate": True,
        }
    )


POWERUP_CARDS: dict[PowerupType, PowerupCard] = {
    p.powerup_type: p
    for p in (
        PowerupCard(
            id="powerup-veto",
            name="Veto",
            description="Decline a question without answering",
            powerup_type=PowerupType.veto,
            effect="Decline to answer the current question. You still receive cards for it and it can be asked again.",
        ),
        PowerupCard(
            id="powerup-randomize",
            name="Randomize",
            description="Replace question with a random one",
            powerup_type=PowerupType.randomize,
            effect="Replace the current question with a random unasked question from the same category.",
        ),
        PowerupCard(
            id="powerup-discard-1-draw-2",
            name="Discard 1, Draw 2",
            description="Exchange one card for two",
            powerup_type=PowerupType.discard_1_draw_2,
            effect="Discard one card from your hand, then draw two.",
        ),
        PowerupCard(
            id="powerup-discard-2-draw-3",
            name="Discard 2, Draw 3",
            description="Exchange two cards for three",
            powerup_type=PowerupType.discard_2_draw_3,
            effect="Discard two cards from your hand, then draw three.",
        ),
        PowerupCard(
            id="powerup-draw-1-expand",
            name="Draw 1, Expand",
            description="Draw a card and expand hand size",
            powerup_type=PowerupType.draw_1_expand,
            effect="Draw one card and permanently increase your hand size by 1.",
        ),
        PowerupCard(
            id="powerup-duplicate",
            name="Duplicate",
            description="Copy another card in hand",
            powerup_type=PowerupType.duplicate,
            effect="Copy another card in your hand. A copied time bonus card is worth double.",
        ),
        PowerupCard(
            id="powerup-move",
            name="Move",
            description="Establish a new hiding zone",
            powerup_type=PowerupType.move,
            effect="Discard your hand and establish a new hiding zone. Seekers stay put until you confirm it.",
        ),
    )
}

POWERUP_QUANTITIES: dict[PowerupType, int] = {
    PowerupType.veto: 4,
    PowerupType.randomize: 4,
    PowerupType.discard_1_draw_2: 4,
    PowerupType.discard_2_draw_3: 4,
    PowerupType.draw_1_expand: 2,
    PowerupType.duplicate: 2,
    PowerupType.move: 1,
}

# Discard/draw powerups: (cards to discard, cards to draw)
DISCARD_DRAW_COUNTS: dict[PowerupType, tuple[int, int]] = {
    PowerupType.discard_1_draw_2: (1, 2),
    PowerupType.discard_2_draw_3: (2, 3),
}


def _curse(
    slug: str,
    name: str,
    effect: str,
    *,
    casting_cost: str = "",
    curse_type: CurseType = CurseType.action_to_clear,
    blocks_questions: bool = False,
    blocks_transit: bool = False,
    duration: SizeMinutes | None = None,
    penalty: SizeMinutes | None = None,
) -> CurseCard:
    return CurseCard(
        id=f"curse-{slug}",
        name=name,
        description=f"Curse of the {name}",
        effect=effect,
        casting_cost=casting_cost,
        curse_type=curse_type,
        blocks_questions=blocks_questions,
        blocks_transit=blocks_transit,
        duration_minutes=duration,
        penalty_minutes=penalty,
        until_found=curse_type == CurseType.until_found,
    )


CURSE_CARDS: tuple[CurseCard, ...] = (
    _curse(
        "zoologist",
        "Zoologist",
        "Seekers must photograph an animal of the same kind as the hider's photo before asking another question.",
        casting_cost="Photograph a wild animal",
        blocks_questions=True,
    ),
    _curse(
        "unguided-tourist",
        "Unguided Tourist",
        "Seekers must find the street-view spot the hider sends and photograph it before asking or riding transit.",
        casting_cost="Send an unmarked street-view image",
        blocks_questions=True,
        blocks_transit=True,
    ),
    _curse(
        "endless-tumble",
        "Endless Tumble",
        "Seekers must roll a die off a ledge until it lands on a 6 before asking another question.",
        casting_cost="Roll a die; it must land on a 5 or 6",
        curse_type=CurseType.dice_based,
        blocks_questions=True,
        penalty=_sizes(10, 20, 30),
    ),
    _curse(
        "hidden-hangman",
        "Hidden Hangman",
        "Seekers must beat the hider at hangman before asking another question or boarding transit.",
        casting_cost="Discard 2 cards",
        blocks_questions=True,
        blocks_transit=True,
    ),
    _curse(
        "overflowing-chalice",
        "Overflowing Chalice",
        "For the next three questions the hider draws one extra card.",
        casting_cost="Discard a card",
    ),
    _curse(
        "mediocre-travel-agent",
        "Mediocre Travel Agent",
        "Seekers must travel to a destination chosen by the hider and spend time there.",
        casting_cost="Choose a place within reach of the seekers",
        penalty=_sizes(10, 20, 30),
    ),
    _curse(
        "luxury-car",
        "Luxury Car",
        "Seekers must photograph a car more expensive than the one in the hider's photo before asking again.",
        casting_cost="Photograph a car",
        blocks_questions=True,
    ),
    _curse(
        "u-turn",
        "U-Turn",
        "Seekers must leave their vehicle at the next stop and travel back the way they came.",
        casting_cost="Seekers must be heading the wrong way",
    ),
    _curse(
        "bridge-troll",
        "Bridge Troll",
        "For the rest of the run seekers must ask questions from under a bridge.",
        casting_cost="Seekers must be far from the hider",
        curse_type=CurseType.until_found,
    ),
    _curse(
        "water-weight",
        "Water Weight",
        "Seekers must acquire and carry two litres of liquid each before asking another question.",
        casting_cost="Seekers must be near a body of water",
        blocks_questions=True,
        penalty=_sizes(30, 30, 30),
    ),
    _curse(
        "jammed-door",
        "Jammed Door",
        "Before passing through any doorway seekers must roll two dice and get 7 or higher.",
        casting_cost="Discard 2 cards",
        curse_type=CurseType.duration_based,
        duration=_sizes(30, 60, 180),
    ),
    _curse(
        "cairn",
        "Cairn",
        "Seekers must build a rock tower as tall as the hider's before asking another question.",
        casting_cost="Build a rock tower",
        blocks_questions=True,
    ),
    _curse(
        "urban-explorer",
        "Urban Explorer",
        "For the rest of the run seekers cannot ask questions while on transit or in transit stations.",
        casting_cost="Discard 2 cards",
        curse_type=CurseType.until_found,
    ),
    _curse(
        "impressionable-consumer",
        "Impressionable Consumer",
        "Seekers must buy something advertised nearby before boarding transit again.",
        casting_cost="Seekers' next question is free",
        blocks_transit=True,
    ),
    _curse(
        "egg-partner",
        "Egg Partner",
        "Seekers must acquire an egg and keep it intact until the hider is found.",
        casting_cost="Discard 2 cards",
        blocks_questions=True,
        penalty=_sizes(30, 45, 60),
    ),
    _curse(
        "distant-cuisine",
        "Distant Cuisine",
        "Seekers must visit a restaurant serving food from a far-away country before asking again.",
        casting_cost="Visit a restaurant serving foreign cuisine",
        blocks_questions=True,
    ),
    _curse(
        "right-turn",
        "Right Turn",
        "Seekers can only turn right at every intersection.",
        casting_cost="Discard a card",
        curse_type=CurseType.duration_based,
        duration=_sizes(20, 40, 60),
    ),
    _curse(
        "labyrinth",
        "Labyrinth",
        "Seekers must solve a maze drawn by the hider before asking another question.",
        casting_cost="Draw a solvable maze",
        blocks_questions=True,
    ),
    _curse(
        "bird-guide",
        "Bird Guide",
        "Seekers must film a bird for as long as the hider did before asking another question.",
        casting_cost="Film a bird",
        blocks_questions=True,
    ),
    _curse(
        "spotty-memory",
        "Spotty Memory",
        "For the rest of the run one random question category is disabled, rerolled after each question.",
        casting_cost="Discard a time bonus card",
        curse_type=CurseType.until_found,
    ),
    _curse(
        "lemon-phylactery",
        "Lemon Phylactery",
        "Seekers must each affix a lemon to themselves before asking another question.",
        casting_cost="Discard a powerup",
        blocks_questions=True,
        penalty=_sizes(30, 45, 60),
    ),
    _curse(
        "drained-brain",
        "Drained Brain",
        "The hider picks three questions in different categories that seekers can no longer ask.",
        casting_cost="Discard your hand",
        curse_type=CurseType.until_found,
    ),
    _curse(
        "ransom-note",
        "Ransom Note",
        "Seekers must spell their next question with letters cut from printed material.",
        casting_cost="Spell 'ransom note' from cut-out letters",
        blocks_questions=True,
    ),
    _curse(
        "gamblers-feet",
        "Gambler's Feet",
        "Seekers must roll a die before every set of steps and take that many.",
        casting_cost="Roll an even number",
        curse_type=CurseType.duration_based,
        duration=_sizes(20, 40, 60),
    ),
)

CURSES_BY_ID: dict[str, CurseCard] = {c.id: c for c in CURSE_CARDS}


def curse_card(curse_id: str) -> CurseCard:
    try:
        return CURSES_BY_ID[curse_id]
    except KeyError:
        raise KeyError(f"Unknown curse: {curse_id}") from None


def time_trap_card(bonus_minutes: int) -> TimeTrapCard:
    # Expansion card; not part of the 100-card deck.
    return TimeTrapCard(
        id="time-trap",
        name="Time Trap",
        description="Designate a transit station as a trap. If seekers visit it, you gain bonus time.",
        bonus_minutes_when_triggered=bonus_minutes,
    )
