from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, Field

from hideseek.actions import ActionResult
from hideseek.api.models import GameSize
from hideseek.cards import (
    DISCARD_DRAW_COUNTS,
    POWERUP_CARDS,
    ActiveCurse,
    ActiveTimeTrap,
    Card,
    CardInstance,
    CardType,
    CurseCard,
    PowerupCard,
    PowerupType,
    TimeBonusCard,
    TimeTrapCard,
    curse_card,
    doubled,
    time_bonus_card,
    time_trap_card,
)
from hideseek.config import RuleConfig
from hideseek.core.events import EventBus
from hideseek.deck import DeckComposition, PythonRandom, RandomSource, draw_one
from hideseek.errors import RuleViolation
from hideseek.persistence import PersistenceGateway
from hideseek.serialization import StateCodec
from hideseek.store import Clock, IdFactory, PersistentStore, new_id


class CardState(BaseModel):
    hand: list[CardInstance] = Field(default_factory=list)
    hand_limit: int = 6
    discard_pile: list[CardInstance] = Field(default_factory=list)
    deck: DeckComposition = Field(default_factory=DeckComposition)
    active_curses: list[ActiveCurse] = Field(default_factory=list)
    active_time_traps: list[ActiveTimeTrap] = Field(default_factory=list)


CARD_CODEC: StateCodec[CardState] = StateCodec(CardState, schema_version=1)


def _take_from_hand(state: CardState, instance_id: str) -> CardInstance:
    for idx, inst in enumerate(state.hand):
        if inst.instance_id == instance_id:
            return state.hand.pop(idx)
    raise RuleViolation("Card not found in hand")


def _find_in_hand(state: CardState, instance_id: str) -> CardInstance:
    inst = next((c for c in state.hand if c.instance_id == instance_id), None)
    if inst is None:
        raise RuleViolation("Card not found in hand")
    return inst


def _require_powerup(inst: CardInstance, allowed: Iterable[PowerupType], label: str) -> PowerupCard:
    card = inst.card
    if not isinstance(card, PowerupCard) or card.powerup_type not in set(allowed):
        raise RuleViolation(f"Card is not a {label} powerup")
    return card


class CardStore(PersistentStore[CardState]):
    """The hider's deck, hand, discard pile, active curses and time traps.

    Deck-sourced cards are conserved: deck + hand + discard + active curses
    always adds up to the full deck. Cards entered by hand (`add_card_to_hand`)
    and Duplicate clones come from outside the deck.
    """

    store_name = "cards"
    codec = CARD_CODEC

    def __init__(
        self,
        *,
        persistence: PersistenceGateway,
        rules: RuleConfig | None = None,
        rng: RandomSource | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.rules = rules or RuleConfig()
        self._rng = rng or PythonRandom()
        self._new_id = id_factory or new_id
        super().__init__(persistence=persistence, clock=clock, bus=bus)

    def _initial_state(self) -> CardState:
        deck = DeckComposition()
        if deck.total() != self.rules.deck_size:
            raise ValueError(f"Deck tables hold {deck.total()} cards, expected {self.rules.deck_size}")
        return CardState(hand_limit=self.rules.hand_limit, deck=deck)

    # Getters

    @property
    def hand(self) -> list[CardInstance]:
        return list(self._state.hand)

    @property
    def discard_pile(self) -> list[CardInstance]:
        return list(self._state.discard_pile)

    @property
    def hand_limit(self) -> int:
        return self._state.hand_limit

    @property
    def hand_count(self) -> int:
        return len(self._state.hand)

    @property
    def is_hand_full(self) -> bool:
        return self.hand_count >= self._state.hand_limit

    @property
    def available_slots(self) -> int:
        return max(0, self._state.hand_limit - self.hand_count)

    @property
    def deck_size(self) -> int:
        return self._state.deck.total()

    @property
    def deck_composition(self) -> DeckComposition:
        return self._state.deck.model_copy(deep=True)

    def _of_type(self, card_type: CardType) -> list[CardInstance]:
        return [c for c in self._state.hand if c.type == card_type]

    @property
    def time_bonus_cards(self) -> list[CardInstance]:
        return self._of_type(CardType.time_bonus)

    @property
    def powerup_cards(self) -> list[CardInstance]:
        return self._of_type(CardType.powerup)

    @property
    def curse_cards(self) -> list[CardInstance]:
        return self._of_type(CardType.curse)

    @property
    def time_trap_cards(self) -> list[CardInstance]:
        return self._of_type(CardType.time_trap)

    @property
    def active_curses(self) -> list[ActiveCurse]:
        return [c.model_copy() for c in self._state.active_curses]

    @property
    def active_time_traps(self) -> list[ActiveTimeTrap]:
        return [t.model_copy() for t in self._state.active_time_traps]

    @property
    def untriggered_time_traps(self) -> list[ActiveTimeTrap]:
        return [t.model_copy() for t in self._state.active_time_traps if not t.is_triggered]

    @property
    def blocks_questions(self) -> bool:
        return any(c.card.blocks_questions for c in self._state.active_curses)

    @property
    def blocks_transit(self) -> bool:
        return any(c.card.blocks_transit for c in self._state.active_curses)

    def total_time_bonus(self, game_size: GameSize) -> int:
        """Bonus minutes from time bonus cards currently in hand."""

        total = 0
        for inst in self._state.hand:
            if isinstance(inst.card, TimeBonusCard):
                total += inst.card.bonus_minutes[game_size]
        return total

    @property
    def total_time_trap_bonus(self) -> int:
        return sum(t.bonus_minutes for t in self._state.active_time_traps if t.is_triggered)

    # Internals

    def _instance(self, card: Card) -> CardInstance:
        return CardInstance(instance_id=self._new_id(), card=card)

    def _draw_into_hand(self, state: CardState, count: int) -> list[CardInstance]:
        n = min(count, state.hand_limit - len(state.hand), state.deck.total())
        drawn: list[CardInstance] = []
        for _ in range(max(0, n)):
            card = draw_one(state.deck, self._rng)
            if card is None:
                break
            inst = self._instance(card)
            state.hand.append(inst)
            drawn.append(inst)
        return drawn

    # Basic hand operations

    def draw_cards(self, count: int) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            if state.deck.total() == 0:
                raise RuleViolation("Deck is empty")
            return ActionResult.ok(drawn_cards=self._draw_into_hand(state, count))

        return self._apply("draw_cards", mutate)

    def play_card(self, instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            inst = _take_from_hand(state, instance_id)
            state.discard_pile.append(inst)
            return ActionResult.ok(played_card=inst)

        return self._apply("play_card", mutate)

    def discard_card(self, instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            inst = _take_from_hand(state, instance_id)
            state.discard_pile.append(inst)
            return ActionResult.ok(played_card=inst)

        return self._apply("discard_card", mutate)

    def expand_hand_limit(self, amount: int = 1) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            if amount < 1:
                raise RuleViolation("Hand limit can only increase")
            state.hand_limit += amount
            return ActionResult.ok()

        return self._apply("expand_hand_limit", mutate)

    def clear_hand(self) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            discarded = list(state.hand)
            state.discard_pile.extend(discarded)
            state.hand.clear()
            return ActionResult.ok(discarded_cards=discarded)

        return self._apply("clear_hand", mutate)

    def discard_and_draw(self, instance_ids: list[str], draw_count: int) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            return self._discard_and_draw(state, instance_ids, draw_count)

        return self._apply("discard_and_draw", mutate)

    def _discard_and_draw(self, state: CardState, instance_ids: list[str], draw_count: int) -> ActionResult:
        if len(set(instance_ids)) != len(instance_ids):
            raise RuleViolation("Duplicate card ids in discard selection")
        for iid in instance_ids:
            _find_in_hand(state, iid)
        if state.deck.total() < draw_count:
            raise RuleViolation("Not enough cards in deck")

        discarded = [_take_from_hand(state, iid) for iid in instance_ids]
        state.discard_pile.extend(discarded)
        drawn = self._draw_into_hand(state, draw_count)
        return ActionResult.ok(discarded_cards=discarded, drawn_cards=drawn)

    def add_card_to_hand(
        self,
        card_type: CardType | str,
        *,
        tier: int | None = None,
        powerup_type: PowerupType | str | None = None,
        curse_id: str | None = None,
    ) -> ActionResult:
        """Record a physical card the hider holds. The simulated deck is untouched."""

        def mutate(state: CardState) -> ActionResult:
            if len(state.hand) >= state.hand_limit:
                raise RuleViolation("Hand is full")
            inst = self._instance(self._card_for(card_type, tier=tier, powerup_type=powerup_type, curse_id=curse_id))
            state.hand.append(inst)
            return ActionResult.ok(drawn_cards=[inst])

        return self._apply("add_card_to_hand", mutate)

    def _card_for(
        self,
        card_type: CardType | str,
        *,
        tier: int | None,
        powerup_type: PowerupType | str | None,
        curse_id: str | None,
    ) -> Card:
        try:
            kind = CardType(card_type)
        except ValueError:
            raise RuleViolation(f"Unknown card type: {card_type}") from None

        if kind == CardType.time_bonus:
            try:
                return time_bonus_card(tier if tier is not None else -1)
            except KeyError:
                raise RuleViolation(f"Unknown time bonus tier: {tier}") from None
        if kind == CardType.powerup:
            try:
                return POWERUP_CARDS[PowerupType(powerup_type)]
            except (KeyError, ValueError):
                raise RuleViolation(f"Unknown powerup type: {powerup_type}") from None
        if kind == CardType.curse:
            try:
                return curse_card(curse_id or "")
            except KeyError:
                raise RuleViolation(f"Unknown curse: {curse_id}") from None
        return time_trap_card(self.rules.time_trap_bonus_minutes)

    # Powerups

    def play_draw_expand_powerup(self, instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            _require_powerup(_find_in_hand(state, instance_id), {PowerupType.draw_1_expand}, "Draw/Expand")
            played = _take_from_hand(state, instance_id)
            state.discard_pile.append(played)
            state.hand_limit += 1
            # An empty deck still grants the expansion.
            drawn = self._draw_into_hand(state, 1)
            return ActionResult.ok(played_card=played, drawn_cards=drawn)

        return self._apply("play_draw_expand_powerup", mutate)

    def play_discard_draw_powerup(self, instance_id: str, discard_instance_ids: list[str]) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            powerup = _require_powerup(_find_in_hand(state, instance_id), DISCARD_DRAW_COUNTS, "Discard/Draw")
            if instance_id in discard_instance_ids:
                raise RuleViolation("Cannot discard the powerup being played")
            discard_n, draw_n = DISCARD_DRAW_COUNTS[powerup.powerup_type]
            if len(discard_instance_ids) != discard_n:
                raise RuleViolation(f"Must discard exactly {discard_n} card(s)")

            played = _take_from_hand(state, instance_id)
            state.discard_pile.append(played)
            result = self._discard_and_draw(state, discard_instance_ids, draw_n)
            return result.model_copy(update={"played_card": played})

        return self._apply("play_discard_draw_powerup", mutate)

    def play_duplicate_powerup(self, instance_id: str, target_instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            _require_powerup(_find_in_hand(state, instance_id), {PowerupType.duplicate}, "Duplicate")
            if target_instance_id == instance_id:
                raise RuleViolation("Cannot duplicate itself")
            target = _find_in_hand(state, target_instance_id)

            played = _take_from_hand(state, instance_id)
            state.discard_pile.append(played)
            source = target.card
            clone = self._instance(doubled(source) if isinstance(source, TimeBonusCard) else source)
            state.hand.append(clone)
            return ActionResult.ok(played_card=played, duplicated_card=clone)

        return self._apply("play_duplicate_powerup", mutate)

    def play_move_powerup(self, instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            played = _find_in_hand(state, instance_id)
            _require_powerup(played, {PowerupType.move}, "Move")
            discarded = list(state.hand)
            state.discard_pile.extend(discarded)
            state.hand.clear()
            return ActionResult.ok(played_card=played, discarded_cards=discarded)

        return self._apply("play_move_powerup", mutate)

    # Curses

    def play_curse_card(self, instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            inst = _find_in_hand(state, instance_id)
            card = inst.card
            if not isinstance(card, CurseCard):
                raise RuleViolation("Card is not a curse")
            # Only one curse may hold up questions (or transit) at a time.
            if card.blocks_questions and any(c.card.blocks_questions for c in state.active_curses):
                raise RuleViolation("A curse is already blocking questions")
            if card.blocks_transit and any(c.card.blocks_transit for c in state.active_curses):
                raise RuleViolation("A curse is already blocking transit")

            _take_from_hand(state, instance_id)
            state.active_curses.append(ActiveCurse(instance_id=inst.instance_id, card=card, activated_at=self.now()))
            return ActionResult.ok(played_card=inst)

        return self._apply("play_curse_card", mutate)

    def clear_curse(self, instance_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            for idx, curse in enumerate(state.active_curses):
                if curse.instance_id == instance_id:
                    state.active_curses.pop(idx)
                    state.discard_pile.append(CardInstance(instance_id=curse.instance_id, card=curse.card))
                    return ActionResult.ok()
            raise RuleViolation("Curse not found")

        return self._apply("clear_curse", mutate)

    def clear_expired_curses(self, game_size: GameSize, *, now: datetime | None = None) -> list[ActiveCurse]:
        """Clear duration curses whose time is up. Until-found curses are never cleared here."""

        at = now or self.now()
        expired = [c for c in self._state.active_curses if c.is_expired(now=at, game_size=game_size)]
        for curse in expired:
            self.clear_curse(curse.instance_id)
        return expired

    # Time traps

    def play_time_trap_card(self, instance_id: str, station_name: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            station = station_name.strip()
            if not station:
                raise RuleViolation("Station name is required")
            inst = _find_in_hand(state, instance_id)
            card = inst.card
            if not isinstance(card, TimeTrapCard):
                raise RuleViolation("Card is not a Time Trap")

            state.discard_pile.append(_take_from_hand(state, instance_id))
            trap = ActiveTimeTrap(
                instance_id=inst.instance_id,
                station_name=station,
                bonus_minutes=card.bonus_minutes_when_triggered,
                created_at=self.now(),
            )
            state.active_time_traps.append(trap)
            return ActionResult.ok(played_card=inst, trap=trap)

        return self._apply("play_time_trap_card", mutate)

    def trigger_time_trap(self, trap_id: str) -> ActionResult:
        def mutate(state: CardState) -> ActionResult:
            trap = next((t for t in state.active_time_traps if t.instance_id == trap_id), None)
            if trap is None:
                raise RuleViolation("Time trap not found")
            if trap.is_triggered:
                raise RuleViolation("Time trap already triggered")
            trap.is_triggered = True
            trap.triggered_at = self.now()
            return ActionResult.ok(bonus_minutes=trap.bonus_minutes, trap=trap.model_copy())

        return self._apply("trigger_time_trap", mutate)

    def reset(self) -> None:
        self._reset_state()
