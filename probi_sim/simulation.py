from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from .conditions import ConditionNode, EvaluationResult, condition_to_string, evaluate
from .free_cards import is_usable, process_free_card
from .models import Card, GameState, SimulationConfig
from .utils import find_card, format_card_list, unique_by_name


class SimulationBranch:
    """One explored (game state, condition) pairing. The state is copied on creation."""

    def __init__(self, game_state: GameState, condition: ConditionNode, depth: int = 0):
        self._game_state = game_state.deep_copy()
        self._condition = condition
        self._result: Optional[EvaluationResult] = None
        self.depth = depth
        self.log: List[str] = []

    def run(self) -> bool:
        if self._result is None:
            self._result = evaluate(self._condition, self._game_state.hand, self._game_state.deck.deck_list)
            self.log.append(
                f"[BRANCH d={self.depth}] hand: {format_card_list(self._game_state.hand)} -> "
                f"{'PASS' if self._result.success else 'FAIL'}"
            )
        return self._result.success

    @property
    def evaluated(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> bool:
        return self._result is not None and self._result.success

    @property
    def satisfied(self) -> Tuple[ConditionNode, ...]:
        return self._result.satisfied if self._result is not None else ()

    @property
    def condition(self) -> ConditionNode:
        return self._condition

    @property
    def game_state(self) -> GameState:
        return self._game_state


class Simulation:
    """All branches explored for a set of conditions against one opening hand."""

    def __init__(
        self,
        game_state: GameState,
        conditions: Sequence[ConditionNode],
        config: Optional[SimulationConfig] = None,
    ):
        self._game_state = game_state.deep_copy()
        self._conditions = list(conditions)
        self.config = config or SimulationConfig()
        self._branches: Dict[int, List[SimulationBranch]] = defaultdict(list)
        self.log: List[str] = []

    def _run_branch(self, index: int, branch: SimulationBranch) -> bool:
        ok = branch.run()
        self._branches[index].append(branch)
        self.log.extend(branch.log)
        return ok

    def _budget_left(self, index: int) -> bool:
        return len(self._branches[index]) < self.config.max_branches

    def iterate(self) -> None:
        for index, condition in enumerate(self._conditions):
            self.log.append(f"[SIM] condition {index}: {condition_to_string(condition)}")
            if self._run_branch(index, SimulationBranch(self._game_state, condition)):
                continue
            self._explore(index, condition, self._game_state, [], depth=1)

    def _explore(
        self,
        index: int,
        condition: ConditionNode,
        state: GameState,
        used: List[Card],
        depth: int,
    ) -> bool:
        max_depth = self.config.max_depth
        if max_depth is not None and depth > max_depth:
            self.log.append(f"[SIM] WARN depth cap {max_depth} reached")
            return False

        candidates = unique_by_name(
            c for c in state.free_cards_in_hand if not find_card(used, c) and is_usable(state, c)
        )
        for card in candidates:
            if not self._budget_left(index):
                self.log.append(f"[SIM] WARN branch cap {self.config.max_branches} reached")
                return False

            branch = SimulationBranch(state, condition, depth=depth)
            played = process_free_card(branch, card.name)
            if played is None:
                self.log.extend(branch.log)
                continue
            if self._run_branch(index, branch):
                return True
            if self._explore(index, condition, branch.game_state, used + [played], depth + 1):
                return True
        return False

    @property
    def conditions(self) -> List[ConditionNode]:
        return list(self._conditions)

    @property
    def game_state(self) -> GameState:
        return self._game_state

    @property
    def branches(self) -> List[Tuple[ConditionNode, List[SimulationBranch]]]:
        return [(cond, list(self._branches.get(i, []))) for i, cond in enumerate(self._conditions)]

    def branches_for(self, index: int) -> List[SimulationBranch]:
        return list(self._branches.get(index, []))

    @property
    def successful_branches(self) -> List[Tuple[ConditionNode, Optional[SimulationBranch]]]:
        return [
            (cond, next((b for b in branches if b.result), None))
            for cond, branches in self.branches
        ]

    @property
    def failed_branches(self) -> List[Tuple[ConditionNode, List[SimulationBranch]]]:
        return [(cond, [b for b in branches if not b.result]) for cond, branches in self.branches]

    @property
    def result(self) -> bool:
        return any(branch is not None for _, branch in self.successful_branches)

    def condition_result(self, index: int) -> bool:
        return any(b.result for b in self._branches.get(index, []))

    def condition_successes(self, index: int) -> Dict[str, int]:
        """How many explored branches satisfied each (sub)condition, keyed by rendered text."""
        counts: Dict[str, int] = defaultdict(int)
        for branch in self._branches.get(index, []):
            for node in branch.satisfied:
                counts[condition_to_string(node)] += 1
        return dict(counts)


def run_simulation(
    game_state: GameState,
    conditions: Sequence[ConditionNode],
    config: Optional[SimulationConfig] = None,
) -> Simulation:
    simulation = Simulation(game_state, conditions, config)
    simulation.iterate()
    return simulation
