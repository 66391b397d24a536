import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from probi_sim.conditions import CardCondition, Location, LogicCondition, LogicType, Operator, condition_to_string
from probi_sim.parser import ParseError, parse_condition, tokenize


def test_count_sign_selects_operator():
    assert parse_condition("2+ Blue-Eyes White Dragon") == CardCondition(
        "Blue-Eyes White Dragon", 2, Operator.AT_LEAST, Location.HAND
    )
    assert parse_condition("2 Ash Blossom").operator == Operator.EXACTLY
    assert parse_condition("1- Nibiru").operator == Operator.NO_MORE
    assert parse_condition("12+ Filler").card_count == 12


def test_bare_name_defaults_to_one_or_more_in_hand():
    node = parse_condition("Pot of Greed")
    assert node == CardCondition("Pot of Greed", 1, Operator.AT_LEAST, Location.HAND)


def test_location_suffix():
    node = parse_condition("1+ Target IN DECK")
    assert node.location == Location.DECK
    assert parse_condition("1+ Target IN deck").location == Location.DECK
    assert parse_condition("1+ Target IN HAND").location == Location.HAND


def test_operators_apply_left_to_right_without_precedence():
    node = parse_condition("1+ A OR 1+ B AND 1+ C")
    assert isinstance(node, LogicCondition)
    assert node.type == LogicType.AND
    assert node.left.type == LogicType.OR
    assert node.right.card_name == "C"

    node = parse_condition("1+ A AND 1+ B OR 1+ C")
    assert node.type == LogicType.OR
    assert node.left.type == LogicType.AND


def test_parentheses_group_and_render():
    node = parse_condition("1+ A AND (1+ B OR 1+ C)")
    assert node.type == LogicType.AND
    assert node.right.type == LogicType.OR
    assert node.right.parenthesized
    assert condition_to_string(node) == "1+ A IN HAND AND (1+ B IN HAND OR 1+ C IN HAND)"


def test_rendered_text_parses_back_to_same_tree():
    text = "2+ A IN HAND AND (1 B IN HAND OR 1- C IN DECK)"
    node = parse_condition(text)
    assert condition_to_string(node) == text
    assert parse_condition(condition_to_string(node)) == node


def test_names_containing_operator_letters_stay_whole():
    assert parse_condition("1+ ORacle of Sand").card_name == "ORacle of Sand"
    assert parse_condition("1+ Grandmaster").card_name == "Grandmaster"
    assert parse_condition("1+ Inferno Reckless").card_name == "Inferno Reckless"


def test_names_allow_punctuation_and_collapse_spaces():
    assert parse_condition("1+ Ash Blossom & Joyous Spring").card_name == "Ash Blossom & Joyous Spring"
    assert parse_condition("1+ Nibiru,   the Primal Being").card_name == "Nibiru, the Primal Being"
    assert parse_condition("1+ \"Infinite\" Impermanence!").card_name == "\"Infinite\" Impermanence!"


def test_tokenize_types():
    types = [t.type for t in tokenize("(2+ A IN DECK) OR B")]
    assert types == ["paren", "number", "name", "location", "paren", "operator", "name"]


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "(1+ A",
        "1+ A)",
        "()",
        "1+ A AND",
        "AND 1+ A",
        "1+ A @ B",
        "1+ A IN HAND IN DECK",
        "2+ ",
        "2+ (A)",
        "3 AND B",
    ],
)
def test_malformed_conditions_raise(text):
    with pytest.raises(ParseError):
        parse_condition(text)


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_condition("1+ A AND")


@pytest.mark.parametrize("name", ["OR-Dragon", "AND, Then", "OR.", "AND!"])
def test_operator_prefix_followed_by_punctuation_is_a_name(name):
    assert parse_condition(f"1+ {name}").card_name == name
    node = parse_condition(f"1+ {name} AND 1+ B")
    assert node.left.card_name == name


def test_operator_next_to_parentheses():
    node = parse_condition("(1+ A)AND(1+ B OR 1+ C)")
    assert node.type == LogicType.AND
    assert node.right.type == LogicType.OR
