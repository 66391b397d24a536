from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Literal, Sequence, Tuple, Union

from .models import Card


class MalformedConditionError(ValueError):
    pass


class Operator(str, Enum):
    AT_LEAST = "AT_LEAST"
    EXACTLY = "EXACTLY"
    NO_MORE = "NO_MORE"


class Location(str, Enum):
    HAND = "HAND"
    DECK = "DECK"


class LogicType(str, Enum):
    AND = "AND"
    OR = "OR"


OPERATOR_SIGNS = {Operator.AT_LEAST: "+", Operator.EXACTLY: "", Operator.NO_MORE: "-"}


@dataclass(frozen=True)
class CardCondition:
    card_name: str
    card_count: int = 1
    operator: Operator = Operator.AT_LEAST
    location: Location = Location.HAND
    kind: Literal["card"] = field(default="card", init=False)


@dataclass(frozen=True)
class LogicCondition:
    type: LogicType
    left: "ConditionNode"
    right: "ConditionNode"
    parenthesized: bool = field(default=False, compare=False)
    kind: Literal["logic"] = field(default="logic", init=False)


ConditionNode = Union[CardCondition, LogicCondition]


@dataclass(frozen=True)
class EvaluationResult:
    success: bool
    satisfied: Tuple[ConditionNode, ...] = ()


@dataclass
class _Attempt:
    success: bool
    used: List[Card]


def match_cards(names: Iterable[str], cards: Sequence[Card]) -> List[Card]:
    names = list(names)
    return [card for card in cards if any(card.matches(n) for n in names)]


def _evaluate_card(node: CardCondition, hand: Sequence[Card], deck: Sequence[Card]) -> _Attempt:
    if node.location == Location.HAND:
        pool = hand
    elif node.location == Location.DECK:
        pool = deck
    else:
        raise MalformedConditionError(f"Unknown location: {node.location}")

    matches = match_cards([node.card_name], pool)
    count = len(matches)
    if node.operator == Operator.AT_LEAST:
        return _Attempt(count >= node.card_count, matches[: node.card_count])
    if node.operator == Operator.EXACTLY:
        return _Attempt(count == node.card_count, matches[: node.card_count])
    if node.operator == Operator.NO_MORE:
        return _Attempt(count <= node.card_count, [])
    raise MalformedConditionError(f"Unknown operator: {node.operator}")


def _check(
    node: ConditionNode,
    hand: Sequence[Card],
    deck: Sequence[Card],
    satisfied: List[ConditionNode],
) -> _Attempt:
    kind = getattr(node, "kind", None)
    if kind == "card":
        result = _evaluate_card(node, hand, deck)
    elif kind == "logic" and node.type == LogicType.AND:
        left = _check(node.left, hand, deck, satisfied)
        used = list(left.used) if left.success else []
        used_ids = {id(c) for c in used}
        right = _check(node.right, [c for c in hand if id(c) not in used_ids], deck, satisfied)
        if right.success:
            used.extend(right.used)
        result = _Attempt(left.success and right.success, used)
    elif kind == "logic" and node.type == LogicType.OR:
        left = _check(node.left, hand, deck, satisfied)
        right = _check(node.right, hand, deck, satisfied)
        result = _Attempt(left.success or right.success, [])
    else:
        raise MalformedConditionError(f"Unknown condition node: {node!r}")

    if result.success:
        satisfied.append(node)
    return result


def condition_has_and(node: ConditionNode) -> bool:
    kind = getattr(node, "kind", None)
    if kind == "card":
        return False
    if kind == "logic":
        if node.type == LogicType.AND:
            return True
        return condition_has_and(node.left) or condition_has_and(node.right)
    raise MalformedConditionError(f"Unknown condition node: {node!r}")


def leaf_conditions(node: ConditionNode) -> List[CardCondition]:
    kind = getattr(node, "kind", None)
    if kind == "card":
        return [node]
    if kind == "logic":
        return leaf_conditions(node.left) + leaf_conditions(node.right)
    raise MalformedConditionError(f"Unknown condition node: {node!r}")


def hand_orderings(node: ConditionNode, hand: Sequence[Card]) -> Iterator[List[Card]]:
    """
    Lazily yields hand orderings for the AND assignment search.
    Only cards matching some leaf are permuted; the rest never change what a leaf consumes.
    """
    names = [leaf.card_name for leaf in leaf_conditions(node)]
    relevant = [c for c in hand if any(c.matches(n) for n in names)]
    relevant_ids = {id(c) for c in relevant}
    rest = [c for c in hand if id(c) not in relevant_ids]
    for ordering in itertools.permutations(relevant):
        yield list(ordering) + rest


def evaluate(node: ConditionNode, hand: Sequence[Card], deck: Sequence[Card]) -> EvaluationResult:
    if not condition_has_and(node):
        satisfied: List[ConditionNode] = []
        attempt = _check(node, hand, deck, satisfied)
        return EvaluationResult(attempt.success, tuple(satisfied))

    best: List[ConditionNode] = []
    for ordering in hand_orderings(node, hand):
        satisfied = []
        attempt = _check(node, ordering, deck, satisfied)
        if attempt.success:
            return EvaluationResult(True, tuple(satisfied))
        if len(satisfied) > len(best):
            best = satisfied
    return EvaluationResult(False, tuple(best))


def cards_that_satisfy(node: ConditionNode, cards: Sequence[Card]) -> Dict[CardCondition, List[Card]]:
    return {leaf: match_cards([leaf.card_name], cards) for leaf in leaf_conditions(node)}


def condition_to_string(node: ConditionNode) -> str:
    kind = getattr(node, "kind", None)
    if kind == "card":
        return f"{node.card_count}{OPERATOR_SIGNS[node.operator]} {node.card_name} IN {node.location.value}"
    if kind == "logic":
        text = f"{condition_to_string(node.left)} {node.type.value} {condition_to_string(node.right)}"
        return f"({text})" if node.parenthesized else text
    raise MalformedConditionError(f"Unknown condition node: {node!r}")


def condition_to_dict(node: ConditionNode) -> Dict[str, Any]:
    kind = getattr(node, "kind", None)
    if kind == "card":
        return {
            "kind": "card",
            "cardName": node.card_name,
            "cardCount": node.card_count,
            "operator": node.operator.value,
            "location": node.location.value,
        }
    if kind == "logic":
        out = {
            "kind": "logic",
            "type": node.type.value,
            "conditionA": condition_to_dict(node.left),
            "conditionB": condition_to_dict(node.right),
        }
        if node.parenthesized:
            out["render"] = {"hasParentheses": True}
        return out
    raise MalformedConditionError(f"Unknown condition node: {node!r}")


def condition_from_dict(raw: Dict[str, Any]) -> ConditionNode:
    if not isinstance(raw, dict):
        raise MalformedConditionError(f"Condition must be a mapping, got {type(raw).__name__}")
    kind = raw.get("kind")
    try:
        if kind == "card":
            return CardCondition(
                card_name=str(raw["cardName"]),
                card_count=int(raw.get("cardCount", 1)),
                operator=Operator(raw.get("operator", Operator.AT_LEAST.value)),
                location=Location(raw.get("location", Location.HAND.value)),
            )
        if kind == "logic":
            return LogicCondition(
                type=LogicType(raw["type"]),
                left=condition_from_dict(raw["conditionA"]),
                right=condition_from_dict(raw["conditionB"]),
                parenthesized=bool((raw.get("render") or {}).get("hasParentheses", False)),
            )
    except (KeyError, ValueError) as e:
        raise MalformedConditionError(f"Malformed {kind} condition: {e}") from e
    raise MalformedConditionError(f"Unknown condition kind: {kind!r}")
