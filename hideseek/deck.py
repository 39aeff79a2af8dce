from __future__ import annotations

import random
from collections.abc import Iterable
from typing import Protocol

from pydantic import BaseModel, Field

from hideseek.cards import (
    CURSE_CARDS,
    POWERUP_CARDS,
    POWERUP_QUANTITIES,
    TIME_BONUS_TIERS,
    Card,
    PowerupType,
    curse_card,
    time_bonus_card,
)


class RandomSource(Protocol):
    def next(self) -> float:
        """Return a float in [0, 1)."""
        ...


class PythonRandom:
    def __init__(self, seed: int | str | None = None) -> None:
        self._rng = random.Random(seed)

    def next(self) -> float:
        return self._rng.random()


class SequenceRandom:
    """Replays a fixed list of values, wrapping around at the end.

    Handy for asserting exact draw sequences.
    """

    def __init__(self, values: Iterable[float]) -> None:
        self._values = list(values)
        if not self._values:
            raise ValueError("SequenceRandom needs at least one value")
        for v in self._values:
            if not 0.0 <= v < 1.0:
                raise ValueError(f"value out of range [0, 1): {v}")
        self._i = 0

    def next(self) -> float:
        v = self._values[self._i % len(self._values)]
        self._i += 1
        return v


def _initial_time_bonus() -> dict[int, int]:
    return {tier: qty for tier, _, qty in TIME_BONUS_TIERS}


def _initial_powerups() -> dict[PowerupType, int]:
    return {p: POWERUP_QUANTITIES[p] for p in POWERUP_CARDS}


def _initial_curses() -> dict[str, int]:
    return {c.id: 1 for c in CURSE_CARDS}


class DeckComposition(BaseModel):
    """Remaining copies per card variant.

    Iteration order (tiers, then powerups, then curses) is fixed so a given
    random roll always maps to the same card.
    """

    time_bonus_by_tier: dict[int, int] = Field(default_factory=_initial_time_bonus)
    powerup_by_type: dict[PowerupType, int] = Field(default_factory=_initial_powerups)
    curse_by_id: dict[str, int] = Field(default_factory=_initial_curses)

    def total(self) -> int:
        return (
            sum(self.time_bonus_by_tier.values())
            + sum(self.powerup_by_type.values())
            + sum(self.curse_by_id.values())
        )

    def take(self, roll: int) -> Card:
        """Remove and return the card at position `roll` among remaining cards."""

        for tier, count in self.time_bonus_by_tier.items():
            if count <= 0:
                continue
            if roll < count:
                self.time_bonus_by_tier[tier] = count - 1
                return time_bonus_card(tier)
            roll -= count

        for ptype, count in self.powerup_by_type.items():
            if count <= 0:
                continue
            if roll < count:
                self.powerup_by_type[ptype] = count - 1
                return POWERUP_CARDS[ptype]
            roll -= count

        for curse_id, count in self.curse_by_id.items():
            if count <= 0:
                continue
            if roll < count:
                self.curse_by_id[curse_id] = count - 1
                return curse_card(curse_id)
            roll -= count

        raise IndexError("roll past end of deck")


def draw_one(composition: DeckComposition, rng: RandomSource) -> Card | None:
    """Uniform draw over remaining individual cards, so common variants come up more often."""

    total = composition.total()
    if total == 0:
        return None
    roll = min(int(rng.next() * total), total - 1)
    return composition.take(roll)


