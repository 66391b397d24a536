from typing import TYPE_CHECKING, List, Optional, Sequence

from .conditions import ConditionNode, cards_that_satisfy
from .models import Card, CostType, GameState, PostConditionType, Restriction
from .utils import find_card, format_card_list

if TYPE_CHECKING:
    from .simulation import SimulationBranch


class PostConditionFailure(Exception):
    pass


def satisfactory_card_priority(condition: ConditionNode, cards: Sequence[Card]) -> List[Card]:
    """Cards ordered from most to least useful: the number of leaf conditions each one matches."""
    satisfied = cards_that_satisfy(condition, cards)

    def score(card: Card) -> int:
        return sum(1 for matched in satisfied.values() if find_card(matched, card))

    return sorted(cards, key=lambda c: -score(c))


def _pick_named(names: Sequence[str], pool: Sequence[Card]) -> List[Card]:
    picked: List[Card] = []
    for name in names:
        match = next((c for c in pool if c.matches(name) and not find_card(picked, c)), None)
        if match is None:
            return []
        picked.append(match)
    return picked


def _can_pay_deck(state: GameState, card: Card) -> bool:
    cost = card.free.cost
    if cost.is_named:
        return False
    return len(state.deck) >= cost.value


def _cost_pool(state: GameState, card: Card) -> List[Card]:
    """Hand cards a numeric hand cost may spend: never the activating card or another free card."""
    return [c for c in state.hand if c is not card and not c.is_free]


def _can_pay_hand(state: GameState, card: Card) -> bool:
    cost = card.free.cost
    if cost.is_named:
        others = [c for c in state.hand if c is not card]
        return len(_pick_named(cost.value, others)) == len(cost.value)
    return len(_cost_pool(state, card)) >= cost.value


def _can_pay_life(state: GameState, card: Card) -> bool:
    return True


COST_CHECKS = {
    CostType.BANISH_FROM_DECK: _can_pay_deck,
    CostType.BANISH_FROM_HAND: _can_pay_hand,
    CostType.DISCARD: _can_pay_hand,
    CostType.PAY_LIFE: _can_pay_life,
}


def can_pay_cost(state: GameState, card: Card) -> bool:
    cost = card.free.cost if card.free else None
    if cost is None:
        return True
    return COST_CHECKS[cost.type](state, card)


def check_restrictions(state: GameState, card: Card) -> bool:
    if Restriction.NO_PREVIOUS_DRAWS in card.free.restrictions and state.free_cards_played:
        return False
    return True


def is_usable(state: GameState, card: Card) -> bool:
    if not card.is_free:
        return False
    free = card.free

    if free.once_per_turn and any(c.name == card.name for c in state.cards_played):
        return False

    if len(state.deck) < free.activation_count:
        return False

    if any(Restriction.NO_MORE_DRAWS in c.free.restrictions for c in state.free_cards_played):
        return False

    if not check_restrictions(state, card):
        return False

    return can_pay_cost(state, card)


def _pay_deck_cost(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    banished = state.deck.draw_many(card.free.cost.value)
    state.banish_from_deck(banished)
    log.append(f"[FREE] {card.name} cost: banished from deck {format_card_list(banished)}")


def _pay_hand_cost(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    cost = card.free.cost
    if cost.is_named:
        chosen = _pick_named(cost.value, list(reversed(satisfactory_card_priority(condition, state.hand))))
    else:
        pool = _cost_pool(state, card)
        chosen = list(reversed(satisfactory_card_priority(condition, pool)))[: cost.value]

    if cost.type == CostType.BANISH_FROM_HAND:
        state.banish_from_hand(chosen)
        log.append(f"[FREE] {card.name} cost: banished from hand {format_card_list(chosen)}")
    else:
        state.discard_from_hand(chosen)
        log.append(f"[FREE] {card.name} cost: discarded {format_card_list(chosen)}")


def _pay_life_cost(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    log.append(f"[FREE] {card.name} cost: pay life {card.free.cost.value} (ignored)")


COST_HANDLERS = {
    CostType.BANISH_FROM_DECK: _pay_deck_cost,
    CostType.BANISH_FROM_HAND: _pay_hand_cost,
    CostType.DISCARD: _pay_hand_cost,
    CostType.PAY_LIFE: _pay_life_cost,
}


def pay_cost(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    cost = card.free.cost
    if cost is None:
        return
    COST_HANDLERS[cost.type](state, card, condition, log)


def excavate(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    rule = card.free.excavate
    if rule is None:
        return
    count = rule.count
    if len(state.deck) < count:
        log.append(f"[FREE] WARN {card.name} excavate {count} with only {len(state.deck)} cards in deck")
        count = len(state.deck)

    revealed = state.deck.draw_many(count)
    ranked = satisfactory_card_priority(condition, revealed)
    kept, returned = ranked[: rule.pick], ranked[rule.pick :]
    state.hand.extend(kept)
    state.deck.add_to_bottom(returned)
    log.append(
        f"[FREE] {card.name} excavated {format_card_list(revealed)} -> kept {format_card_list(kept)}"
    )


def _post_banish_from_deck(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    value = card.free.condition.value
    if not isinstance(value, int) or len(state.deck) < value:
        raise PostConditionFailure(f"cannot banish {value} from a deck of {len(state.deck)}")
    banished = state.deck.draw_many(value)
    state.banish_from_deck(banished)
    log.append(f"[FREE] {card.name} condition: banished from deck {format_card_list(banished)}")


def _post_from_hand(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    rule = card.free.condition
    ascending = list(reversed(satisfactory_card_priority(condition, state.hand)))
    if isinstance(rule.value, int):
        chosen = ascending[: rule.value]
        if len(chosen) < rule.value:
            raise PostConditionFailure(f"need {rule.value} cards in hand, have {len(chosen)}")
    else:
        chosen = _pick_named([rule.value], ascending)
        if not chosen:
            raise PostConditionFailure(f"no {rule.value} in hand")

    if rule.type == PostConditionType.BANISH_FROM_HAND:
        state.banish_from_hand(chosen)
        log.append(f"[FREE] {card.name} condition: banished from hand {format_card_list(chosen)}")
    else:
        state.discard_from_hand(chosen)
        log.append(f"[FREE] {card.name} condition: discarded {format_card_list(chosen)}")


POST_CONDITION_HANDLERS = {
    PostConditionType.BANISH_FROM_DECK: _post_banish_from_deck,
    PostConditionType.DISCARD: _post_from_hand,
    PostConditionType.BANISH_FROM_HAND: _post_from_hand,
}


def pay_post_condition(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> None:
    rule = card.free.condition
    if rule is None:
        return
    POST_CONDITION_HANDLERS[rule.type](state, card, condition, log)


def handle_free_card(state: GameState, card: Card, condition: ConditionNode, log: List[str]) -> bool:
    """
    Plays a free card already in hand: cost, draws, excavation, then post condition.
    Returns False if the card was not playable. A failed post condition discards the whole hand.
    """
    if not find_card(state.hand, card):
        log.append(f"[FREE] WARN {card.name} is not in hand")
        return False
    if not is_usable(state, card):
        return False

    state.play_card(card)
    log.append(f"[FREE] play {card.name}")

    pay_cost(state, card, condition, log)

    if card.free.count > 0:
        drawn = state.deck.draw_many(card.free.count)
        state.hand.extend(drawn)
        log.append(f"[FREE] {card.name} drew {format_card_list(drawn)}")

    excavate(state, card, condition, log)

    try:
        pay_post_condition(state, card, condition, log)
    except PostConditionFailure as e:
        log.append(f"[FREE] WARN {card.name} post condition failed ({e}); hand discarded")
        state.discard_from_hand(list(state.hand))

    return True


def process_free_card(branch: "SimulationBranch", card_name: str) -> Optional[Card]:
    """Resolves the first usable free card named card_name in the branch's own hand."""
    state = branch.game_state
    card = next((c for c in state.free_cards_in_hand if c.name == card_name), None)
    if card is None:
        branch.log.append(f"[FREE] WARN {card_name} is not in hand")
        return None
    if not handle_free_card(state, card, branch.condition, branch.log):
        return None
    return card
