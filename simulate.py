#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from probi_sim.constants import DEFAULT_HAND_SIZE, DEFAULT_ITERATIONS
from probi_sim.game import run_trials
from probi_sim.loaders import DATA_FORMATS, load_simulation_input
from probi_sim.models import SimulationConfig
from probi_sim.report import format_report, generate_report


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Estimate how often an opening hand meets a set of conditions.")
    ap.add_argument("input", help="Deck and conditions file (.json or .csv)")
    ap.add_argument("--iterations", type=int, default=None, help=f"Opening hands to simulate (default {DEFAULT_ITERATIONS})")
    ap.add_argument("--hand-size", type=int, default=None, help=f"Cards in the opening hand (default {DEFAULT_HAND_SIZE})")
    ap.add_argument("--deck-size", type=int, default=None, help="Pad the deck with blank cards up to this size")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--workers", type=int, default=None, help="Worker threads; 1 runs trials sequentially")
    ap.add_argument("--config", default=None, help="JSON file of SimulationConfig overrides")
    ap.add_argument("--format", choices=sorted(DATA_FORMATS), default=None, help="Input format (default: file suffix)")
    ap.add_argument("--cards", action="store_true", help="Also print per-card statistics")
    ap.add_argument("--verbose", action="store_true", help="Print every trial's log")
    return ap.parse_args(argv)


def build_config(args: argparse.Namespace) -> SimulationConfig:
    config = SimulationConfig(config_path=args.config)
    # Command line wins over the config file.
    for attr, value in (
        ("iterations", args.iterations),
        ("hand_size", args.hand_size),
        ("deck_size", args.deck_size),
        ("seed", args.seed),
        ("workers", args.workers),
    ):
        if value is not None:
            setattr(config, attr, value)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = build_config(args)

    fmt = args.format
    if fmt is None and Path(args.input).suffix.lstrip(".").lower() not in DATA_FORMATS:
        fmt = config.data_format

    try:
        sim_input = load_simulation_input(args.input, fmt)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        simulations = run_trials(sim_input, config)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        for simulation in simulations:
            for line in simulation.log:
                print(line)
        print()

    report = generate_report(simulations)
    if sim_input.deck_name:
        print(f"=== {sim_input.deck_name} ===")
    for line in format_report(report):
        print(line)

    if args.cards:
        print()
        print(report.card_frame().to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
