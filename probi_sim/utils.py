from typing import Iterable, List, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Card


def format_card_list(cards: Sequence["Card"]) -> str:
    if not cards:
        return "—"
    return ", ".join(card.name for card in cards)


def unique_by_name(cards: Iterable["Card"]) -> List["Card"]:
    seen = set()
    out: List["Card"] = []
    for card in cards:
        if card.name in seen:
            continue
        seen.add(card.name)
        out.append(card)
    return out


def find_card(cards: Sequence["Card"], card: "Card") -> bool:
    return any(c is card for c in cards)
