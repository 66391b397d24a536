import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from probi_sim.models import Card, Deck, FreeAttributes, GameState, SimulationConfig
from probi_sim.parser import parse_condition
from probi_sim.simulation import SimulationBranch, run_simulation


def _pot(name="Pot", count=1):
    return Card(name, free=FreeAttributes(count=count))


def _state(hand, deck=()):
    return GameState(deck=Deck([Card(n) if isinstance(n, str) else n for n in deck]), hand=list(hand))


TARGET = parse_condition("1+ Target")


def test_branch_copies_state_and_evaluates_once():
    state = _state([Card("Target")])
    branch = SimulationBranch(state, TARGET)
    assert branch.game_state is not state
    assert not branch.evaluated
    assert branch.run()
    assert branch.evaluated and branch.result
    branch.game_state.hand.clear()
    assert branch.run()
    assert len(state.hand) == 1


def test_passing_hand_short_circuits():
    sim = run_simulation(_state([Card("Target"), _pot()], ["D1"]), [TARGET])
    assert sim.result
    assert len(sim.branches_for(0)) == 1


def test_free_card_opens_a_winning_branch():
    sim = run_simulation(_state([_pot()], ["Target"]), [TARGET])
    assert sim.result
    branches = sim.branches_for(0)
    assert [b.result for b in branches] == [False, True]
    _, winner = sim.successful_branches[0]
    assert [c.name for c in winner.game_state.hand] == ["Target"]
    assert [c.name for c in winner.game_state.cards_played] == ["Pot"]


def test_search_chains_free_cards():
    sim = run_simulation(_state([_pot("Pot A"), _pot("Pot B")], ["Target", "Filler"]), [TARGET])
    assert sim.result
    assert len(sim.branches_for(0)) == 3
    _, winner = sim.successful_branches[0]
    assert winner.depth == 2


def test_without_free_cards_only_the_opening_branch_runs():
    sim = run_simulation(_state([Card("Junk")], ["Target"]), [TARGET])
    assert not sim.result
    assert len(sim.branches_for(0)) == 1
    assert sim.failed_branches[0][1] == sim.branches_for(0)


def test_same_name_copies_branch_once():
    sim = run_simulation(_state([_pot(), _pot()], ["Target", "Filler"]), [TARGET])
    # Opening hand, then one Pot, then the second Pot on that path.
    assert len(sim.branches_for(0)) == 3
    assert sim.result


def test_conditions_are_tracked_separately():
    conditions = [TARGET, parse_condition("1+ Junk")]
    sim = run_simulation(_state([Card("Junk")], ["D1"]), conditions)
    assert sim.result
    assert not sim.condition_result(0)
    assert sim.condition_result(1)
    assert [cond for cond, _ in sim.branches] == conditions


def test_branch_cap_stops_search():
    config = SimulationConfig(max_branches=1)
    sim = run_simulation(_state([_pot()], ["Target"]), [TARGET], config)
    assert not sim.result
    assert len(sim.branches_for(0)) == 1
    assert any("branch cap" in line for line in sim.log)


def test_depth_cap_stops_chains():
    config = SimulationConfig(max_depth=1)
    sim = run_simulation(_state([_pot("Pot A"), _pot("Pot B")], ["Target", "Filler"]), [TARGET], config)
    assert not sim.result
    assert any("depth cap" in line for line in sim.log)


def test_simulation_leaves_input_state_alone():
    state = _state([_pot()], ["Target"])
    run_simulation(state, [TARGET])
    assert [c.name for c in state.hand] == ["Pot"]
    assert len(state.deck) == 1
    assert state.cards_played == []


def test_condition_successes_counts_rendered_nodes():
    node = parse_condition("1+ Target OR 1+ Junk")
    sim = run_simulation(_state([Card("Junk")]), [node])
    counts = sim.condition_successes(0)
    assert counts["1+ Junk IN HAND"] == 1
    assert counts["1+ Target IN HAND OR 1+ Junk IN HAND"] == 1
    assert "1+ Target IN HAND" not in counts
