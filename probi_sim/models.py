from __future__ import annotations

import copy
import json
import os
import random
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .constants import (
    DEFAULT_DECK_SIZE,
    DEFAULT_HAND_SIZE,
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_BRANCHES,
    FILLER_CARD_NAME,
    FILLER_CARD_TAGS,
)


class EmptyDeckError(IndexError):
    pass


class CostType(str, Enum):
    BANISH_FROM_DECK = "BanishFromDeck"
    BANISH_FROM_HAND = "BanishFromHand"
    DISCARD = "Discard"
    PAY_LIFE = "PayLife"


class PostConditionType(str, Enum):
    DISCARD = "Discard"
    BANISH_FROM_HAND = "BanishFromHand"
    BANISH_FROM_DECK = "BanishFromDeck"


class Restriction(str, Enum):
    NO_SPECIAL_SUMMON = "NoSpecialSummon"
    NO_MORE_DRAWS = "NoMoreDraws"
    NO_PREVIOUS_DRAWS = "NoPreviousDraws"


@dataclass(frozen=True)
class Cost:
    type: CostType
    value: Union[int, Tuple[str, ...]]

    @property
    def is_named(self) -> bool:
        return not isinstance(self.value, int)


@dataclass(frozen=True)
class PostCondition:
    type: PostConditionType
    value: Union[int, str]


@dataclass(frozen=True)
class Excavate:
    count: int
    pick: int


@dataclass(frozen=True)
class FreeAttributes:
    count: int = 0
    once_per_turn: bool = False
    cost: Optional[Cost] = None
    restrictions: Tuple[Restriction, ...] = ()
    excavate: Optional[Excavate] = None
    condition: Optional[PostCondition] = None

    @property
    def activation_count(self) -> int:
        n = self.count
        if self.cost is not None and self.cost.type == CostType.BANISH_FROM_DECK:
            n += self.cost.value if isinstance(self.cost.value, int) else 1
        return n

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FreeAttributes":
        cost = None
        raw_cost = raw.get("cost")
        if raw_cost:
            value = raw_cost.get("value", 1)
            cost = Cost(
                type=CostType(raw_cost["type"]),
                value=int(value) if isinstance(value, (int, float)) else tuple(value if isinstance(value, list) else [value]),
            )
        excavate = None
        if raw.get("excavate"):
            excavate = Excavate(count=int(raw["excavate"]["count"]), pick=int(raw["excavate"]["pick"]))
        condition = None
        raw_cond = raw.get("condition")
        if raw_cond:
            value = raw_cond.get("value", 1)
            condition = PostCondition(
                type=PostConditionType(raw_cond["type"]),
                value=int(value) if isinstance(value, (int, float)) else str(value),
            )
        return cls(
            count=int(raw.get("count", 0) or 0),
            once_per_turn=bool(raw.get("oncePerTurn", False)),
            cost=cost,
            restrictions=tuple(Restriction(r) for r in raw.get("restriction", []) or []),
            excavate=excavate,
            condition=condition,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"oncePerTurn": self.once_per_turn}
        if self.count:
            out["count"] = self.count
        if self.cost is not None:
            value = self.cost.value if isinstance(self.cost.value, int) else list(self.cost.value)
            out["cost"] = {"type": self.cost.type.value, "value": value}
        if self.restrictions:
            out["restriction"] = [r.value for r in self.restrictions]
        if self.excavate is not None:
            out["excavate"] = {"count": self.excavate.count, "pick": self.excavate.pick}
        if self.condition is not None:
            out["condition"] = {"type": self.condition.type.value, "value": self.condition.value}
        return out


@dataclass(frozen=True, eq=False)
class Card:
    """A single physical card. Equality is identity: two copies of the same card are distinct."""

    name: str
    tags: Tuple[str, ...] = ()
    free: Optional[FreeAttributes] = None

    @property
    def is_free(self) -> bool:
        return self.free is not None

    def matches(self, key: str) -> bool:
        return key == self.name or key in self.tags

    def __deepcopy__(self, memo: Dict[int, Any]) -> "Card":
        new = Card(self.name, self.tags, self.free)
        memo[id(self)] = new
        return new

    def __repr__(self) -> str:
        return f"Card({self.name!r})"


@dataclass(frozen=True)
class CardSpec:
    """Deck list entry: how many copies of a card and what they look like."""

    qty: int = 1
    tags: Tuple[str, ...] = ()
    free: Optional[FreeAttributes] = None

    @classmethod
    def from_dict(cls, name: str, raw: Any) -> "CardSpec":
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid card details for {name}")
        qty = raw.get("qty", 1)
        if not isinstance(qty, int) or isinstance(qty, bool) or qty < 0:
            raise ValueError(f"Invalid card structure for {name}: qty={qty!r}")
        free = raw.get("free")
        return cls(
            qty=qty,
            tags=tuple(str(t) for t in raw.get("tags") or []),
            free=FreeAttributes.from_dict(free) if free else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"qty": self.qty}
        if self.tags:
            out["tags"] = list(self.tags)
        if self.free is not None:
            out["free"] = self.free.to_dict()
        return out


@dataclass
class Deck:
    cards: List[Card] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.cards)

    def draw(self) -> Card:
        if not self.cards:
            raise EmptyDeckError("Cannot draw from an empty deck")
        return self.cards.pop()

    def draw_many(self, n: int) -> List[Card]:
        return [self.draw() for _ in range(n)]

    def add_to_bottom(self, cards: List[Card]) -> None:
        self.cards[0:0] = list(cards)

    def shuffle(self, rng: random.Random) -> None:
        rng.shuffle(self.cards)

    @property
    def deck_list(self) -> List[Card]:
        return list(self.cards)


@dataclass
class GameState:
    deck: Deck
    hand: List[Card] = field(default_factory=list)
    banish_pile: List[Card] = field(default_factory=list)
    graveyard: List[Card] = field(default_factory=list)
    cards_played: List[Card] = field(default_factory=list)

    def deep_copy(self) -> "GameState":
        return copy.deepcopy(self)

    def draw_hand(self, hand_size: int = DEFAULT_HAND_SIZE) -> None:
        self.hand = self.deck.draw_many(hand_size)

    def _remove_from_hand(self, cards: List[Card]) -> None:
        ids = {id(c) for c in cards}
        self.hand = [c for c in self.hand if id(c) not in ids]

    def play_card(self, card: Card) -> bool:
        if not any(c is card for c in self.hand):
            return False
        self.cards_played.append(card)
        self._remove_from_hand([card])
        return True

    def discard_from_hand(self, cards: List[Card]) -> None:
        cards = list(cards)
        self.graveyard.extend(cards)
        self._remove_from_hand(cards)

    def banish_from_hand(self, cards: List[Card]) -> None:
        cards = list(cards)
        self.banish_pile.extend(cards)
        self._remove_from_hand(cards)

    def banish_from_deck(self, cards: List[Card]) -> None:
        self.banish_pile.extend(cards)

    @property
    def free_cards_in_hand(self) -> List[Card]:
        return [c for c in self.hand if c.is_free]

    @property
    def free_cards_played(self) -> List[Card]:
        return [c for c in self.cards_played if c.is_free]

    def total_cards(self) -> int:
        return len(self.deck) + len(self.hand) + len(self.banish_pile) + len(self.graveyard) + len(self.cards_played)


@dataclass
class SimulationConfig:
    hand_size: int = DEFAULT_HAND_SIZE
    deck_size: int = DEFAULT_DECK_SIZE
    iterations: int = DEFAULT_ITERATIONS
    seed: Optional[int] = None
    max_branches: int = DEFAULT_MAX_BRANCHES
    max_depth: Optional[int] = None
    workers: int = 1
    filler_name: str = FILLER_CARD_NAME
    filler_tags: Tuple[str, ...] = FILLER_CARD_TAGS
    data_format: str = "json"
    config_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.config_path:
            self.load_overrides(self.config_path)

    def load_overrides(self, path: str) -> None:
        if not os.path.exists(path):
            return
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            return
        known = {f.name for f in fields(self)} - {"config_path"}
        for key, value in payload.items():
            if key not in known:
                continue
            if key == "filler_tags":
                value = tuple(value)
            setattr(self, key, value)

    def save(self, path: str) -> None:
        payload = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "config_path"}
        payload["filler_tags"] = list(self.filler_tags)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)
