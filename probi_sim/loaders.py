import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
import yaml

from .conditions import ConditionNode, condition_from_dict, condition_to_dict, condition_to_string
from .constants import FILLER_CARD_NAME
from .models import CardSpec, FreeAttributes
from .parser import parse_condition

RawCondition = Union[str, Dict[str, Any]]


@dataclass
class SimulationInput:
    deck: Dict[str, CardSpec] = field(default_factory=dict)
    conditions: List[RawCondition] = field(default_factory=list)
    deck_name: Optional[str] = None


def parse_conditions(raw: Sequence[Union[RawCondition, ConditionNode]]) -> List[ConditionNode]:
    out: List[ConditionNode] = []
    for item in raw:
        if isinstance(item, str):
            out.append(parse_condition(item))
        elif isinstance(item, dict):
            out.append(condition_from_dict(item))
        else:
            out.append(item)
    return out


def _deck_from_mapping(raw: Any) -> Dict[str, CardSpec]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("deck must be a mapping of card name to details")
    return {str(name): CardSpec.from_dict(str(name), details) for name, details in raw.items()}


def _exportable(deck: Dict[str, CardSpec]) -> Dict[str, CardSpec]:
    return {name: spec for name, spec in deck.items() if name != FILLER_CARD_NAME}


def _condition_text(cond: Union[RawCondition, ConditionNode]) -> RawCondition:
    if isinstance(cond, (str, dict)):
        return cond
    return condition_to_string(cond)


def _condition_string(cond: Union[RawCondition, ConditionNode]) -> str:
    if isinstance(cond, str):
        return cond
    (node,) = parse_conditions([cond])
    return condition_to_string(node)


class DataFormat:
    """Stateless import/export for one file format."""

    name = ""

    def import_from_string(self, data: str) -> SimulationInput:
        raise NotImplementedError

    def export_deck(self, deck: Dict[str, CardSpec]) -> str:
        raise NotImplementedError

    def export_conditions(self, conditions: Sequence[Union[RawCondition, ConditionNode]]) -> str:
        raise NotImplementedError

    def export_simulation(self, sim_input: SimulationInput) -> str:
        raise NotImplementedError


class JsonFormat(DataFormat):
    name = "json"

    def import_from_string(self, data: str) -> SimulationInput:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ValueError("Failed to parse JSON: top level must be an object")
        return SimulationInput(
            deck=_deck_from_mapping(payload.get("deck")),
            conditions=list(payload.get("conditions") or []),
            deck_name=payload.get("deckName"),
        )

    def export_deck(self, deck: Dict[str, CardSpec]) -> str:
        return json.dumps({name: spec.to_dict() for name, spec in _exportable(deck).items()})

    def export_conditions(self, conditions: Sequence[Union[RawCondition, ConditionNode]]) -> str:
        return json.dumps([condition_to_dict(c) for c in parse_conditions(conditions)])

    def export_simulation(self, sim_input: SimulationInput) -> str:
        payload: Dict[str, Any] = {
            "deck": {name: spec.to_dict() for name, spec in _exportable(sim_input.deck).items()},
            "conditions": [_condition_text(c) for c in sim_input.conditions],
        }
        if sim_input.deck_name:
            payload["deckName"] = sim_input.deck_name
        return json.dumps(payload)


class YamlFormat(DataFormat):
    """Same document shape as JSON. Conditions are always written as DSL strings."""

    name = "yaml"

    def import_from_string(self, data: str) -> SimulationInput:
        try:
            payload = yaml.safe_load(data)
            if not isinstance(payload, dict):
                raise ValueError("top level must be a mapping")
            return SimulationInput(
                deck=_deck_from_mapping(payload.get("deck")),
                conditions=list(payload.get("conditions") or []),
                deck_name=payload.get("deckName"),
            )
        except (yaml.YAMLError, ValueError) as e:
            raise ValueError(f"Failed to parse YAML: {e}") from e

    def _dump(self, payload: Dict[str, Any]) -> str:
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)

    def export_deck(self, deck: Dict[str, CardSpec]) -> str:
        return self._dump({"deck": {name: spec.to_dict() for name, spec in _exportable(deck).items()}})

    def export_conditions(self, conditions: Sequence[Union[RawCondition, ConditionNode]]) -> str:
        return self._dump({"conditions": [condition_to_string(c) for c in parse_conditions(conditions)]})

    def export_simulation(self, sim_input: SimulationInput) -> str:
        payload: Dict[str, Any] = {}
        if sim_input.deck_name:
            payload["deckName"] = sim_input.deck_name
        payload["deck"] = {name: spec.to_dict() for name, spec in _exportable(sim_input.deck).items()}
        payload["conditions"] = [_condition_string(c) for c in sim_input.conditions]
        return self._dump(payload)


CSV_COLUMNS = ["name", "qty", "tags", "free", "condition"]


def _cell(value: Any) -> str:
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


class CsvFormat(DataFormat):
    """
    One row per card: name, qty, tags (';' separated), free (JSON object).
    Rows with a 'condition' cell add a condition string; such rows may leave the card columns blank.
    """

    name = "csv"

    def import_from_string(self, data: str) -> SimulationInput:
        df = pd.read_csv(io.StringIO(data))
        df = df.loc[:, ~df.columns.str.contains(r"^Unnamed")]
        if "name" not in df.columns and "condition" not in df.columns:
            raise ValueError("CSV needs a 'name' or 'condition' column")

        deck: Dict[str, CardSpec] = {}
        conditions: List[RawCondition] = []
        for _, r in df.iterrows():
            name = _cell(r.get("name"))
            if name:
                qty_cell = _cell(r.get("qty"))
                try:
                    qty = int(float(qty_cell)) if qty_cell else 1
                except ValueError as e:
                    raise ValueError(f"Invalid card structure for {name}: qty={qty_cell!r}") from e
                tags = tuple(t.strip() for t in _cell(r.get("tags")).split(";") if t.strip())
                free_cell = _cell(r.get("free"))
                try:
                    free = FreeAttributes.from_dict(json.loads(free_cell)) if free_cell else None
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    raise ValueError(f"Invalid free details for {name}: {e}") from e
                deck[name] = CardSpec(qty=qty, tags=tags, free=free)
            cond = _cell(r.get("condition"))
            if cond:
                conditions.append(cond)
        return SimulationInput(deck=deck, conditions=conditions)

    def _deck_rows(self, deck: Dict[str, CardSpec]) -> List[Dict[str, Any]]:
        rows = []
        for name, spec in _exportable(deck).items():
            rows.append(
                {
                    "name": name,
                    "qty": spec.qty,
                    "tags": ";".join(spec.tags),
                    "free": json.dumps(spec.free.to_dict()) if spec.free else "",
                    "condition": "",
                }
            )
        return rows

    def _condition_rows(self, conditions: Sequence[Union[RawCondition, ConditionNode]]) -> List[Dict[str, Any]]:
        return [
            {"name": "", "qty": "", "tags": "", "free": "", "condition": condition_to_string(c)}
            for c in parse_conditions(conditions)
        ]

    def export_deck(self, deck: Dict[str, CardSpec]) -> str:
        return pd.DataFrame(self._deck_rows(deck), columns=CSV_COLUMNS).to_csv(index=False)

    def export_conditions(self, conditions: Sequence[Union[RawCondition, ConditionNode]]) -> str:
        return pd.DataFrame(self._condition_rows(conditions), columns=CSV_COLUMNS).to_csv(index=False)

    def export_simulation(self, sim_input: SimulationInput) -> str:
        rows = self._deck_rows(sim_input.deck) + self._condition_rows(sim_input.conditions)
        return pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(index=False)


DATA_FORMATS = {
    "json": JsonFormat,
    "yaml": YamlFormat,
    "yml": YamlFormat,
    "csv": CsvFormat,
}


def get_data_format(name: str) -> DataFormat:
    key = (name or "").strip().lower()
    fmt = DATA_FORMATS.get(key)
    if fmt is None:
        raise ValueError(f"Unknown data format: {name!r} (expected one of {', '.join(sorted(DATA_FORMATS))})")
    return fmt()


def load_simulation_input(path: str, fmt: Optional[str] = None) -> SimulationInput:
    p = Path(path)
    with open(p, encoding="utf-8") as f:
        data = f.read()
    return get_data_format(fmt or p.suffix.lstrip(".")).import_from_string(data)
