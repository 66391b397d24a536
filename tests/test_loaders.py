import json
import sys
from pathlib import Path

import pytest
import yaml

sys.path.append(str(Path(__file__).resolve().parents[1]))

from probi_sim.conditions import condition_to_dict
from probi_sim.constants import FILLER_CARD_NAME
from probi_sim.loaders import (
    CsvFormat,
    JsonFormat,
    SimulationInput,
    YamlFormat,
    get_data_format,
    load_simulation_input,
    parse_conditions,
)
from probi_sim.models import CardSpec, FreeAttributes
from probi_sim.parser import parse_condition


DECK_JSON = json.dumps(
    {
        "deckName": "Test Deck",
        "deck": {
            "Starter": {"qty": 3, "tags": ["Engine"]},
            "Pot": {"free": {"count": 2, "oncePerTurn": True}},
            "Blank": {},
        },
        "conditions": ["1+ Starter", "1+ Engine AND 1+ Pot"],
    }
)


def test_json_import():
    sim_input = JsonFormat().import_from_string(DECK_JSON)
    assert sim_input.deck_name == "Test Deck"
    assert sim_input.deck["Starter"].qty == 3
    assert sim_input.deck["Starter"].tags == ("Engine",)
    assert sim_input.deck["Pot"].qty == 1
    assert sim_input.deck["Pot"].free.once_per_turn
    assert sim_input.deck["Blank"] == CardSpec()
    assert len(parse_conditions(sim_input.conditions)) == 2


def test_json_import_errors():
    with pytest.raises(ValueError, match="Failed to parse JSON"):
        JsonFormat().import_from_string("{not json")
    with pytest.raises(ValueError, match="Failed to parse JSON"):
        JsonFormat().import_from_string("[]")
    with pytest.raises(ValueError, match="Invalid card"):
        JsonFormat().import_from_string(json.dumps({"deck": {"A": {"qty": "many"}}}))


def test_json_export_drops_filler_and_keeps_name():
    deck = {"A": CardSpec(qty=2), FILLER_CARD_NAME: CardSpec(qty=30)}
    exported = json.loads(JsonFormat().export_simulation(SimulationInput(deck, ["1+ A"], "Mine")))
    assert exported == {"deck": {"A": {"qty": 2}}, "conditions": ["1+ A"], "deckName": "Mine"}
    assert FILLER_CARD_NAME not in json.loads(JsonFormat().export_deck(deck))


def test_json_conditions_export_as_trees():
    exported = json.loads(JsonFormat().export_conditions(["1+ A AND 1+ B"]))
    assert exported[0]["kind"] == "logic"
    assert parse_conditions(exported) == [parse_condition("1+ A AND 1+ B")]


def test_csv_import():
    data = (
        "name,qty,tags,free,condition\n"
        "Starter,3,Engine;Normal,,\n"
        'Pot,,,"{""count"": 2}",\n'
        ",,,,1+ Starter AND 1+ Pot\n"
    )
    sim_input = CsvFormat().import_from_string(data)
    assert sim_input.deck["Starter"].qty == 3
    assert sim_input.deck["Starter"].tags == ("Engine", "Normal")
    assert sim_input.deck["Pot"].qty == 1
    assert sim_input.deck["Pot"].free == FreeAttributes(count=2)
    assert sim_input.conditions == ["1+ Starter AND 1+ Pot"]


def test_csv_bad_free_cell():
    with pytest.raises(ValueError, match="Invalid free details for Pot"):
        CsvFormat().import_from_string('name,free\nPot,"{oops"\n')


def test_csv_export_reimports():
    deck = {
        "Starter": CardSpec(qty=3, tags=("Engine",)),
        "Pot": CardSpec(free=FreeAttributes(count=2)),
        FILLER_CARD_NAME: CardSpec(qty=10),
    }
    fmt = CsvFormat()
    text = fmt.export_simulation(SimulationInput(deck, ["2+ Starter"]))
    back = fmt.import_from_string(text)
    assert set(back.deck) == {"Starter", "Pot"}
    assert back.deck["Starter"] == deck["Starter"]
    assert back.deck["Pot"] == deck["Pot"]
    assert back.conditions == ["2+ Starter IN HAND"]


def test_get_data_format():
    assert isinstance(get_data_format("JSON"), JsonFormat)
    assert isinstance(get_data_format("csv"), CsvFormat)
    assert isinstance(get_data_format("yml"), YamlFormat)
    with pytest.raises(ValueError, match="Unknown data format"):
        get_data_format("toml")


def test_load_simulation_input_uses_suffix(tmp_path):
    path = tmp_path / "deck.json"
    path.write_text(DECK_JSON, encoding="utf-8")
    assert load_simulation_input(str(path)).deck_name == "Test Deck"

    other = tmp_path / "deck.txt"
    other.write_text(DECK_JSON, encoding="utf-8")
    assert load_simulation_input(str(other), "json").deck["Starter"].qty == 3


DECK_YAML = """
deckName: Yaml Deck
deck:
  Starter:
    qty: 3
    tags: [Engine]
  Pot:
    free:
      count: 2
      cost:
        type: Discard
        value: 1
  Blank:
conditions:
  - 1+ Starter AND 1+ Pot
"""


def test_yaml_import():
    sim_input = YamlFormat().import_from_string(DECK_YAML)
    assert sim_input.deck_name == "Yaml Deck"
    assert sim_input.deck["Starter"] == CardSpec(qty=3, tags=("Engine",))
    assert sim_input.deck["Pot"].qty == 1
    assert sim_input.deck["Pot"].free.count == 2
    assert sim_input.deck["Blank"].qty == 1
    assert sim_input.conditions == ["1+ Starter AND 1+ Pot"]


@pytest.mark.parametrize(
    "data, message",
    [
        ("deck: [unclosed", "Failed to parse YAML"),
        ("- just\n- a list\n", "Failed to parse YAML"),
        ("deck:\n  Starter: three\n", "Invalid card details for Starter"),
        ("deck:\n  Starter:\n    qty: many\n", "Invalid card structure for Starter"),
    ],
)
def test_yaml_import_errors(data, message):
    with pytest.raises(ValueError, match=message):
        YamlFormat().import_from_string(data)


def test_yaml_export_drops_filler_and_writes_condition_strings():
    deck = {"A": CardSpec(qty=2, tags=("Engine",)), FILLER_CARD_NAME: CardSpec(qty=30)}
    conditions = ["1+ A", condition_to_dict(parse_condition("1+ A AND 1+ Engine"))]
    text = YamlFormat().export_simulation(SimulationInput(deck, conditions, "Mine"))
    payload = yaml.safe_load(text)
    assert payload == {
        "deckName": "Mine",
        "deck": {"A": {"qty": 2, "tags": ["Engine"]}},
        "conditions": ["1+ A", "1+ A IN HAND AND 1+ Engine IN HAND"],
    }
    assert FILLER_CARD_NAME not in text

    exported = yaml.safe_load(YamlFormat().export_conditions(["2+ A"]))
    assert exported == {"conditions": ["2+ A IN HAND"]}
    assert yaml.safe_load(YamlFormat().export_deck(deck)) == {"deck": {"A": {"qty": 2, "tags": ["Engine"]}}}


def test_yaml_file_round_trip(tmp_path):
    path = tmp_path / "deck.yml"
    path.write_text(YamlFormat().export_simulation(YamlFormat().import_from_string(DECK_YAML)), encoding="utf-8")
    back = load_simulation_input(str(path))
    assert back.deck_name == "Yaml Deck"
    assert back.deck["Pot"].free.cost.value == 1
    assert back.conditions == ["1+ Starter AND 1+ Pot"]
