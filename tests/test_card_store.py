from __future__ import annotations

from datetime import timedelta

import pytest

from hideseek.api.models import GameSize
from hideseek.card_store import CardStore
from hideseek.cards import CURSE_CARDS, CardType, PowerupType, TimeBonusCard
from hideseek.config import RuleConfig
from hideseek.deck import DeckComposition, PythonRandom, SequenceRandom
from hideseek.persistence import RedisPersistence

DECK_SIZE = 100


@pytest.fixture()
def store(persistence: RedisPersistence, ids, clock) -> CardStore:
    return CardStore(persistence=persistence, rng=PythonRandom(42), id_factory=ids, clock=clock)


def _conserved(s: CardStore) -> int:
    return s.deck_size + s.hand_count + len(s.discard_pile) + len(s.active_curses)


def _add(s: CardStore, card_type: str, **kw) -> str:
    res = s.add_card_to_hand(card_type, **kw)
    assert res.success, res.error
    assert res.drawn_cards is not None
    return res.drawn_cards[0].instance_id


def test_fresh_deck_has_official_breakdown() -> None:
    deck = DeckComposition()
    assert deck.total() == DECK_SIZE
    assert sum(deck.time_bonus_by_tier.values()) == 55
    assert sum(deck.powerup_by_type.values()) == 21
    assert len(CURSE_CARDS) == 24
    assert sum(deck.curse_by_id.values()) == 24


def test_draw_is_truncated_by_hand_limit(store: CardStore) -> None:
    res = store.draw_cards(10)

    assert res.success is True
    assert res.drawn_cards is not None and len(res.drawn_cards) == 6
    assert store.hand_count == 6
    assert store.deck_size == 94
    assert store.is_hand_full is True
    assert store.available_slots == 0


def test_draw_fails_only_on_empty_deck(persistence: RedisPersistence) -> None:
    s = CardStore(persistence=persistence, rules=RuleConfig(hand_limit=200), rng=PythonRandom(1))
    assert s.draw_cards(150).success is True
    assert s.deck_size == 0
    assert s.hand_count == DECK_SIZE

    res = s.draw_cards(1)
    assert res.success is False
    assert res.error == "Deck is empty"


def test_weighted_draw_follows_roll_order(persistence: RedisPersistence) -> None:
    # Remaining cards are laid out tiers 1..5, then powerups, then curses.
    rolls = [0.0, 54.5 / 100, 55.5 / 98, 0.999]
    s = CardStore(persistence=persistence, rng=SequenceRandom(rolls))
    res = s.draw_cards(4)
    assert res.drawn_cards is not None
    cards = [c.card for c in res.drawn_cards]

    assert isinstance(cards[0], TimeBonusCard) and cards[0].tier == 1
    assert isinstance(cards[1], TimeBonusCard) and cards[1].tier == 5
    assert cards[2].type == "powerup" and cards[2].powerup_type == PowerupType.veto
    assert cards[3].type == "curse" and cards[3].id == CURSE_CARDS[-1].id

    deck = s.deck_composition
    assert deck.time_bonus_by_tier[1] == 24
    assert deck.time_bonus_by_tier[5] == 1
    assert deck.powerup_by_type[PowerupType.veto] == 3
    assert deck.curse_by_id[CURSE_CARDS[-1].id] == 0


def test_conservation_across_mixed_operations(store: CardStore) -> None:
    store.draw_cards(6)
    assert _conserved(store) == DECK_SIZE

    hand = store.hand
    assert store.play_card(hand[0].instance_id).success
    assert store.discard_card(hand[1].instance_id).success
    assert _conserved(store) == DECK_SIZE

    store.expand_hand_limit(2)
    store.draw_cards(10)
    assert store.hand_count == store.hand_limit == 8
    assert _conserved(store) == DECK_SIZE

    two = [c.instance_id for c in store.hand[:2]]
    assert store.discard_and_draw(two, 3).success
    assert store.hand_count <= store.hand_limit
    assert _conserved(store) == DECK_SIZE

    curse = next((c for c in store.hand if c.type == CardType.curse), None)
    if curse is not None:
        store.play_curse_card(curse.instance_id)
    assert _conserved(store) == DECK_SIZE

    store.clear_hand()
    assert store.hand_count == 0
    assert _conserved(store) == DECK_SIZE


def test_play_and_discard_unknown_card(store: CardStore) -> None:
    assert store.play_card("nope").error == "Card not found in hand"
    assert store.discard_card("nope").error == "Card not found in hand"


def test_expand_hand_limit_never_decreases(store: CardStore) -> None:
    assert store.expand_hand_limit().success
    assert store.hand_limit == 7
    res = store.expand_hand_limit(0)
    assert res.success is False
    assert store.hand_limit == 7


def test_discard_and_draw_is_atomic(store: CardStore) -> None:
    store.draw_cards(3)
    before_hand = [c.instance_id for c in store.hand]
    before_deck = store.deck_size

    res = store.discard_and_draw([before_hand[0], "missing"], 2)
    assert res.success is False
    assert res.error == "Card not found in hand"
    assert [c.instance_id for c in store.hand] == before_hand
    assert store.deck_size == before_deck
    assert store.discard_pile == []

    res = store.discard_and_draw([before_hand[0]], 1000)
    assert res.success is False
    assert [c.instance_id for c in store.hand] == before_hand


def test_discard_and_draw_moves_then_draws(store: CardStore) -> None:
    store.draw_cards(2)
    first = store.hand[0].instance_id

    res = store.discard_and_draw([first], 2)

    assert res.success
    assert [c.instance_id for c in res.discarded_cards or []] == [first]
    assert len(res.drawn_cards or []) == 2
    assert store.hand_count == 3
    assert store.deck_size == 96


def test_add_card_to_hand_does_not_touch_deck(store: CardStore) -> None:
    _add(store, "time-bonus", tier=3)
    _add(store, "powerup", powerup_type="veto")
    _add(store, "curse", curse_id="curse-cairn")
    _add(store, "time-trap")

    assert store.deck_size == DECK_SIZE
    assert [c.type for c in store.hand] == [
        CardType.time_bonus,
        CardType.powerup,
        CardType.curse,
        CardType.time_trap,
    ]
    assert len(store.time_trap_cards) == 1
    assert store.time_trap_cards[0].card.bonus_minutes_when_triggered == 15


def test_add_card_to_hand_rejects_unknown_and_full_hand(store: CardStore) -> None:
    assert store.add_card_to_hand("time-bonus", tier=9).error == "Unknown time bonus tier: 9"
    assert store.add_card_to_hand("powerup", powerup_type="lock").error == "Unknown powerup type: lock"
    assert store.add_card_to_hand("curse", curse_id="nope").error == "Unknown curse: nope"
    assert store.add_card_to_hand("joker").error == "Unknown card type: joker"

    for _ in range(6):
        _add(store, "time-bonus", tier=1)
    assert store.add_card_to_hand("time-bonus", tier=1).error == "Hand is full"


def test_total_time_bonus_counts_only_hand(store: CardStore) -> None:
    a = _add(store, "time-bonus", tier=1)
    _add(store, "time-bonus", tier=3)
    assert store.total_time_bonus(GameSize.small) == 2 + 6
    assert store.total_time_bonus(GameSize.large) == 5 + 15

    store.discard_card(a)
    assert store.total_time_bonus(GameSize.small) == 6


def test_duplicate_doubles_time_bonus(store: CardStore) -> None:
    dup = _add(store, "powerup", powerup_type="duplicate")
    tb = _add(store, "time-bonus", tier=2)

    res = store.play_duplicate_powerup(dup, tb)

    assert res.success
    clone = res.duplicated_card
    assert clone is not None
    assert clone.instance_id not in (dup, tb)
    assert isinstance(clone.card, TimeBonusCard)
    assert clone.card.is_duplicate is True
    assert clone.card.name == "Time Bonus (Tier 2) (Doubled)"
    assert clone.card.bonus_minutes[GameSize.medium] == 12
    assert tb in [c.instance_id for c in store.hand]
    assert dup not in [c.instance_id for c in store.hand]
    assert store.total_time_bonus(GameSize.medium) == 6 + 12


def test_duplicate_non_time_bonus_is_exact_copy(store: CardStore) -> None:
    dup = _add(store, "powerup", powerup_type="duplicate")
    veto = _add(store, "powerup", powerup_type="veto")
    res = store.play_duplicate_powerup(dup, veto)
    assert res.duplicated_card is not None
    original = next(c for c in store.hand if c.instance_id == veto)
    assert res.duplicated_card.card == original.card


def test_duplicate_guards(store: CardStore) -> None:
    dup = _add(store, "powerup", powerup_type="duplicate")
    veto = _add(store, "powerup", powerup_type="veto")

    assert store.play_duplicate_powerup(dup, dup).error == "Cannot duplicate itself"
    assert store.play_duplicate_powerup(veto, dup).error == "Card is not a Duplicate powerup"
    assert store.play_duplicate_powerup(dup, "missing").error == "Card not found in hand"
    assert store.hand_count == 2


def test_move_powerup_clears_whole_hand(store: CardStore) -> None:
    move = _add(store, "powerup", powerup_type="move")
    _add(store, "time-bonus", tier=1)
    _add(store, "curse", curse_id="curse-cairn")

    res = store.play_move_powerup(move)

    assert res.success
    assert store.hand_count == 0
    assert len(store.discard_pile) == 3
    assert res.played_card is not None and res.played_card.instance_id == move


def test_draw_expand_powerup(store: CardStore) -> None:
    pid = _add(store, "powerup", powerup_type="draw-1-expand")

    res = store.play_draw_expand_powerup(pid)

    assert res.success
    assert store.hand_limit == 7
    assert len(res.drawn_cards or []) == 1
    assert store.hand_count == 1
    assert store.deck_size == 99

    other = _add(store, "powerup", powerup_type="veto")
    assert store.play_draw_expand_powerup(other).error == "Card is not a Draw/Expand powerup"


def test_discard_draw_powerup_requires_exact_discards(store: CardStore) -> None:
    pid = _add(store, "powerup", powerup_type="discard-2-draw-3")
    a = _add(store, "time-bonus", tier=1)
    b = _add(store, "time-bonus", tier=1)

    assert store.play_discard_draw_powerup(pid, [a]).error == "Must discard exactly 2 card(s)"
    assert store.play_discard_draw_powerup(pid, [pid, a]).error == "Cannot discard the powerup being played"
    assert store.hand_count == 3

    res = store.play_discard_draw_powerup(pid, [a, b])
    assert res.success
    assert res.played_card is not None and res.played_card.instance_id == pid
    assert len(res.drawn_cards or []) == 3
    assert store.hand_count == 3
    assert len(store.discard_pile) == 3


def test_curse_lifecycle_and_blocking_rule(store: CardStore, clock) -> None:
    cairn = _add(store, "curse", curse_id="curse-cairn")
    zoologist = _add(store, "curse", curse_id="curse-zoologist")
    right_turn = _add(store, "curse", curse_id="curse-right-turn")
    veto = _add(store, "powerup", powerup_type="veto")

    assert store.play_curse_card(veto).error == "Card is not a curse"

    assert store.play_curse_card(cairn).success
    assert store.blocks_questions is True
    assert store.blocks_transit is False
    assert store.active_curses[0].activated_at == clock.now

    # A second question-blocking curse has to wait.
    assert store.play_curse_card(zoologist).error == "A curse is already blocking questions"
    assert store.play_curse_card(right_turn).success

    assert store.clear_curse(cairn).success
    assert store.blocks_questions is False
    assert store.clear_curse(cairn).error == "Curse not found"
    assert store.play_curse_card(zoologist).success


def test_clear_expired_curses_skips_until_found(store: CardStore, clock) -> None:
    right_turn = _add(store, "curse", curse_id="curse-right-turn")
    urban = _add(store, "curse", curse_id="curse-urban-explorer")
    store.play_curse_card(right_turn)
    store.play_curse_card(urban)

    curse = store.active_curses[0]
    assert curse.expires_at(GameSize.small) == clock.now + timedelta(minutes=20)

    cleared = store.clear_expired_curses(GameSize.small, now=clock.now + timedelta(minutes=19))
    assert cleared == []

    cleared = store.clear_expired_curses(GameSize.small, now=clock.now + timedelta(hours=5))
    assert [c.instance_id for c in cleared] == [right_turn]
    assert [c.instance_id for c in store.active_curses] == [urban]


def test_time_trap_lifecycle(store: CardStore, clock) -> None:
    t1 = _add(store, "time-trap")
    t2 = _add(store, "time-trap")
    tb = _add(store, "time-bonus", tier=1)

    assert store.play_time_trap_card(t1, "   ").error == "Station name is required"
    assert store.play_time_trap_card(tb, "Central").error == "Card is not a Time Trap"

    res = store.play_time_trap_card(t1, " Central ")
    assert res.success
    assert res.trap is not None
    assert res.trap.station_name == "Central"
    assert res.trap.is_triggered is False
    assert store.play_time_trap_card(t2, "Harbour").success
    assert len(store.untriggered_time_traps) == 2
    assert store.total_time_trap_bonus == 0

    clock.advance(minutes=10)
    trig = store.trigger_time_trap(t1)
    assert trig.success
    assert trig.bonus_minutes == 15
    assert trig.trap is not None and trig.trap.triggered_at == clock.now
    assert store.total_time_trap_bonus == 15
    assert len(store.untriggered_time_traps) == 1

    assert store.trigger_time_trap(t1).error == "Time trap already triggered"
    assert store.trigger_time_trap("nope").error == "Time trap not found"


def test_time_trap_bonus_is_configurable(persistence: RedisPersistence) -> None:
    s = CardStore(persistence=persistence, rules=RuleConfig(time_trap_bonus_minutes=25))
    s.add_card_to_hand("time-trap")
    assert s.time_trap_cards[0].card.bonus_minutes_when_triggered == 25


def test_reset_restores_everything(store: CardStore) -> None:
    store.draw_cards(6)
    store.expand_hand_limit(3)
    tid = _add(store, "time-trap")
    store.play_time_trap_card(tid, "Central")

    store.reset()

    assert store.hand == []
    assert store.discard_pile == []
    assert store.hand_limit == 6
    assert store.deck_size == DECK_SIZE
    assert store.active_curses == []
    assert store.active_time_traps == []


def test_getters_by_type(store: CardStore) -> None:
    _add(store, "time-bonus", tier=1)
    _add(store, "powerup", powerup_type="veto")
    _add(store, "curse", curse_id="curse-cairn")
    assert len(store.time_bonus_cards) == 1
    assert len(store.powerup_cards) == 1
    assert len(store.curse_cards) == 1
    assert store.time_trap_cards == []


def test_deck_size_must_match_card_tables(persistence: RedisPersistence) -> None:
    with pytest.raises(ValueError):
        CardStore(persistence=persistence, rules=RuleConfig(deck_size=99))
