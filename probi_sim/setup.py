import random
from typing import Dict, List, Optional, Tuple

from .constants import DEFAULT_DECK_SIZE, DEFAULT_HAND_SIZE, FILLER_CARD_NAME, FILLER_CARD_TAGS
from .models import Card, CardSpec, Deck, GameState, SimulationConfig
from .utils import format_card_list


def build_cards(deck_list: Dict[str, CardSpec]) -> List[Card]:
    cards: List[Card] = []
    for name, spec in deck_list.items():
        for _ in range(spec.qty):
            cards.append(Card(name=name, tags=spec.tags, free=spec.free))
    return cards


def build_deck(
    deck_list: Dict[str, CardSpec],
    deck_size: int = DEFAULT_DECK_SIZE,
    filler: Tuple[str, Tuple[str, ...]] = (FILLER_CARD_NAME, FILLER_CARD_TAGS),
) -> Deck:
    """Expands the deck list and pads it with blank filler cards up to deck_size."""
    cards = build_cards(deck_list)
    filler_name, filler_tags = filler
    missing = deck_size - len(cards)
    for _ in range(max(0, missing)):
        cards.append(Card(name=filler_name, tags=filler_tags))
    return Deck(cards)


def new_game_state(deck: Deck, rng: random.Random, hand_size: int = DEFAULT_HAND_SIZE) -> GameState:
    state = GameState(deck=deck).deep_copy()
    state.deck.shuffle(rng)
    state.draw_hand(min(hand_size, len(state.deck)))
    return state


def build_trial_template(deck_list: Dict[str, CardSpec], config: Optional[SimulationConfig] = None) -> Deck:
    config = config or SimulationConfig()
    return build_deck(deck_list, config.deck_size, (config.filler_name, tuple(config.filler_tags)))


def log_game_state(state: GameState, log: List[str]) -> None:
    log.append(f"Hand ({len(state.hand)}): {format_card_list(state.hand)}")
    log.append(f"Deck: {len(state.deck)} cards")
    if state.cards_played:
        log.append(f"Played ({len(state.cards_played)}): {format_card_list(state.cards_played)}")
    if state.banish_pile:
        log.append(f"Banished ({len(state.banish_pile)}): {format_card_list(state.banish_pile)}")
    if state.graveyard:
        log.append(f"Graveyard ({len(state.graveyard)}): {format_card_list(state.graveyard)}")
    log.append("-" * 40)
