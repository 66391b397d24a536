from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from .conditions import ConditionNode, condition_to_string
from .models import Card
from .simulation import Simulation, SimulationBranch


def _stat() -> Dict[str, object]:
    return {"seen": defaultdict(int), "drawn": 0}


def _free_stat() -> Dict[str, Dict[str, int]]:
    return {
        "conditions": {"used_to_win": 0, "unused": 0},
        "overall": {"used_to_win": 0, "unused": 0},
    }


@dataclass
class Report:
    iterations: int = 0
    successful_simulations: int = 0
    card_name_stats: Dict[str, Dict[str, object]] = field(default_factory=lambda: defaultdict(_stat))
    card_tag_stats: Dict[str, Dict[str, object]] = field(default_factory=lambda: defaultdict(_stat))
    banished_name_stats: Dict[str, Dict[int, int]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))
    banished_tag_stats: Dict[str, Dict[int, int]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))
    discarded_name_stats: Dict[str, Dict[int, int]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))
    discarded_tag_stats: Dict[str, Dict[int, int]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))
    free_card_stats: Dict[str, Dict[str, Dict[str, int]]] = field(default_factory=lambda: defaultdict(_free_stat))
    condition_stats: Dict[str, Dict[str, object]] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if not self.iterations:
            return 0.0
        return self.successful_simulations / self.iterations

    def card_frame(self) -> pd.DataFrame:
        rows = []
        for kind, stats in (("name", self.card_name_stats), ("tag", self.card_tag_stats)):
            for key, stat in stats.items():
                seen = stat["seen"]
                rows.append(
                    {
                        "kind": kind,
                        "key": key,
                        "hands_seen": sum(seen.values()),
                        "avg_copies_seen": (
                            sum(k * v for k, v in seen.items()) / sum(seen.values()) if seen else 0.0
                        ),
                        "drawn": stat["drawn"],
                        "banished": sum(self._pile(kind, "banished").get(key, {}).values()),
                        "discarded": sum(self._pile(kind, "discarded").get(key, {}).values()),
                    }
                )
        df = pd.DataFrame(
            rows,
            columns=["kind", "key", "hands_seen", "avg_copies_seen", "drawn", "banished", "discarded"],
        )
        df["seen_rate"] = df["hands_seen"] / max(self.iterations, 1)
        return df.sort_values(["kind", "hands_seen"], ascending=[True, False]).reset_index(drop=True)

    def condition_frame(self) -> pd.DataFrame:
        rows = []

        def walk(text: str, stat: Dict[str, object], depth: int) -> None:
            rows.append({"condition": text, "depth": depth, "successes": stat["success_count"]})
            for sub_text, sub in stat.get("sub_conditions", {}).items():
                walk(sub_text, sub, depth + 1)

        for text, stat in self.condition_stats.items():
            walk(text, stat, 0)
        df = pd.DataFrame(rows, columns=["condition", "depth", "successes"])
        df["rate"] = df["successes"] / max(self.iterations, 1)
        return df

    def _pile(self, kind: str, pile: str) -> Dict[str, Dict[int, int]]:
        return getattr(self, f"{pile}_{kind}_stats")


def _names(cards: Iterable[Card]) -> List[str]:
    return [c.name for c in cards]


def _tags(cards: Iterable[Card]) -> List[str]:
    return [t for c in cards for t in c.tags]


def _count_seen(store: Dict[str, Dict[str, object]], keys: List[str]) -> None:
    for key, count in Counter(keys).items():
        store[key]["seen"][count] += 1


def _count_pile(store: Dict[str, Dict[int, int]], keys: List[str]) -> None:
    for key, count in Counter(keys).items():
        store[key][count] += 1


def _process_initial_hand(report: Report, simulation: Simulation) -> None:
    hand = simulation.game_state.hand
    _count_seen(report.card_name_stats, _names(hand))
    _count_seen(report.card_tag_stats, _tags(hand))


def _process_drawn_cards(report: Report, branches: Sequence[SimulationBranch]) -> None:
    """Cards appearing in a branch's hand that were not in the previous branch's hand."""
    if not branches:
        return
    last = branches[0].game_state.hand
    for branch in branches[1:]:
        hand = branch.game_state.hand
        remaining = Counter(_names(last))
        for card in hand:
            if remaining[card.name] > 0:
                remaining[card.name] -= 1
                continue
            report.card_name_stats[card.name]["drawn"] += 1
            for tag in card.tags:
                report.card_tag_stats[tag]["drawn"] += 1
        last = hand


def _process_condition_free_cards(report: Report, branches: Sequence[SimulationBranch]) -> None:
    winner = next((b for b in branches if b.result), None)
    if winner is None:
        return
    for card in winner.game_state.free_cards_played:
        report.free_card_stats[card.name]["conditions"]["used_to_win"] += 1
    for card in winner.game_state.free_cards_in_hand:
        report.free_card_stats[card.name]["conditions"]["unused"] += 1


def _process_overall_free_cards(report: Report, simulation: Simulation) -> None:
    winners = [b for _, b in simulation.successful_branches if b is not None]
    unused = {c.name for b in winners for c in b.game_state.free_cards_in_hand}
    if unused:
        for name in unused:
            report.free_card_stats[name]["overall"]["unused"] += 1
        return
    used = {c.name for b in winners for c in b.game_state.free_cards_played}
    for name in used:
        report.free_card_stats[name]["overall"]["used_to_win"] += 1


def _process_piles(report: Report, simulation: Simulation) -> None:
    for _, branch in simulation.successful_branches:
        if branch is None:
            continue
        state = branch.game_state
        _count_pile(report.banished_name_stats, _names(state.banish_pile))
        _count_pile(report.banished_tag_stats, _tags(state.banish_pile))
        _count_pile(report.discarded_name_stats, _names(state.graveyard))
        _count_pile(report.discarded_tag_stats, _tags(state.graveyard))


def _condition_skeleton(node: ConditionNode) -> Dict[str, object]:
    stat: Dict[str, object] = {"success_count": 0}
    if node.kind == "logic":
        stat["sub_conditions"] = {
            condition_to_string(child): _condition_skeleton(child) for child in (node.left, node.right)
        }
    return stat


def _credit(stat: Dict[str, object], node: ConditionNode, satisfied_texts: set) -> None:
    if condition_to_string(node) in satisfied_texts:
        stat["success_count"] += 1
    if node.kind == "logic":
        for child in (node.left, node.right):
            _credit(stat["sub_conditions"][condition_to_string(child)], child, satisfied_texts)


def _process_conditions(report: Report, simulation: Simulation) -> None:
    for index, (condition, branches) in enumerate(simulation.branches):
        text = condition_to_string(condition)
        if text not in report.condition_stats:
            report.condition_stats[text] = _condition_skeleton(condition)
        satisfied = {condition_to_string(n) for b in branches for n in b.satisfied}
        if not simulation.condition_result(index):
            satisfied.discard(text)
        _credit(report.condition_stats[text], condition, satisfied)


def generate_report(simulations: Sequence[Simulation]) -> Report:
    report = Report(
        iterations=len(simulations),
        successful_simulations=sum(1 for s in simulations if s.result),
    )
    for simulation in simulations:
        _process_initial_hand(report, simulation)
        for _, branches in simulation.branches:
            _process_drawn_cards(report, branches)
            _process_condition_free_cards(report, branches)
        _process_overall_free_cards(report, simulation)
        _process_piles(report, simulation)
        _process_conditions(report, simulation)
    return report


def format_report(report: Report) -> List[str]:
    lines = [
        f"Iterations: {report.iterations}",
        f"Successful: {report.successful_simulations} ({report.success_rate:.2%})",
        "",
        "Conditions:",
    ]
    for _, r in report.condition_frame().iterrows():
        indent = "  " * (int(r["depth"]) + 1)
        lines.append(f"{indent}{r['condition']}: {int(r['successes'])} ({r['rate']:.2%})")
    if report.free_card_stats:
        lines.append("")
        lines.append("Free cards (used to win / unused):")
        for name, stat in sorted(report.free_card_stats.items()):
            overall = stat["overall"]
            lines.append(f"  {name}: {overall['used_to_win']} / {overall['unused']}")
    return lines
