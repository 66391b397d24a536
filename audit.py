#!/usr/bin/env python3
import sys
from typing import List, Optional, Set, Tuple

from probi_sim.conditions import leaf_conditions
from probi_sim.loaders import SimulationInput, load_simulation_input, parse_conditions
from probi_sim.parser import ParseError


def known_keys(sim_input: SimulationInput) -> Set[str]:
    keys: Set[str] = set()
    for name, spec in sim_input.deck.items():
        keys.add(name)
        keys.update(spec.tags)
    return keys


def audit_conditions(sim_input: SimulationInput) -> Tuple[List[Tuple[int, str, str]], List[Tuple[int, str]]]:
    """
    Returns (bad_conditions, unknown_names).
    bad_conditions: (index, raw condition, error) for conditions that do not parse.
    unknown_names: (index, name) for leaf names matching no card name or tag in the deck.
    """
    bad: List[Tuple[int, str, str]] = []
    unknown: List[Tuple[int, str]] = []
    keys = known_keys(sim_input)

    for i, raw in enumerate(sim_input.conditions):
        try:
            (node,) = parse_conditions([raw])
        except (ParseError, ValueError) as e:
            bad.append((i, str(raw), str(e)))
            continue
        for leaf in leaf_conditions(node):
            if leaf.card_name not in keys:
                unknown.append((i, leaf.card_name))
    return bad, unknown


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("usage: audit.py <input file> [format]", file=sys.stderr)
        return 1
    sim_input = load_simulation_input(argv[0], argv[1] if len(argv) > 1 else None)
    bad, unknown = audit_conditions(sim_input)

    print("=== Condition Audit ===\n")

    print(f"[1] Deck: {len(sim_input.deck)} distinct cards, {sum(s.qty for s in sim_input.deck.values())} total")
    print()

    print(f"[2] Conditions that fail to parse (total {len(bad)}):")
    if not bad:
        print("  (none)")
    else:
        for i, raw, err in bad:
            print(f"  - #{i} {raw}: {err}")
    print()

    print(f"[3] Names matching no card or tag (total {len(unknown)}):")
    if not unknown:
        print("  (none)")
    else:
        for i, name in unknown:
            print(f"  - #{i} {name}")
    print()

    if bad or unknown:
        print("STATUS: issues found")
        return 2
    print("STATUS: clean")
    return 0


if __name__ == "__main__":
    sys.exit(main())
