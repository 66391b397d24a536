import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import audit
import simulate
from probi_sim.loaders import SimulationInput
from probi_sim.models import CardSpec


def _write_input(tmp_path, conditions):
    path = tmp_path / "deck.json"
    payload = {"deck": {"Starter": {"qty": 3, "tags": ["Engine"]}}, "conditions": conditions}
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_audit_flags_parse_errors_and_unknown_names():
    sim_input = SimulationInput(
        deck={"Starter": CardSpec(qty=3, tags=("Engine",))},
        conditions=["1+ Starter AND 1+ Engine", "1+ Missing", "1+ Starter AND"],
    )
    bad, unknown = audit.audit_conditions(sim_input)
    assert [i for i, _, _ in bad] == [2]
    assert unknown == [(1, "Missing")]


def test_audit_exit_codes(tmp_path, capsys):
    assert audit.main([_write_input(tmp_path, ["1+ Engine"])]) == 0
    assert "STATUS: clean" in capsys.readouterr().out
    assert audit.main([_write_input(tmp_path, ["1+ Nope"])]) == 2


def test_simulate_prints_report(tmp_path, capsys):
    path = _write_input(tmp_path, ["1+ Starter"])
    assert simulate.main([path, "--iterations", "5", "--seed", "1", "--deck-size", "3"]) == 0
    out = capsys.readouterr().out
    assert "Iterations: 5" in out
    assert "100.00%" in out


def test_simulate_reports_bad_input(tmp_path, capsys):
    path = tmp_path / "deck.json"
    path.write_text("{broken", encoding="utf-8")
    assert simulate.main([str(path)]) == 1
    assert "Failed to parse JSON" in capsys.readouterr().err
