import random
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .conditions import ConditionNode
from .loaders import SimulationInput, parse_conditions
from .models import Deck, SimulationConfig
from .setup import build_trial_template, log_game_state, new_game_state
from .simulation import Simulation, run_simulation


def trial_seeds(config: SimulationConfig) -> List[int]:
    rng = random.Random(config.seed)
    return [rng.getrandbits(63) for _ in range(config.iterations)]


def run_trial(
    template: Deck,
    conditions: Sequence[ConditionNode],
    seed: int,
    config: Optional[SimulationConfig] = None,
) -> Simulation:
    """One opening hand plus its full free card search. Owns its own deck copy and rng."""
    config = config or SimulationConfig()
    rng = random.Random(seed)
    state = new_game_state(template, rng, config.hand_size)
    simulation = run_simulation(state, conditions, config)
    header: List[str] = [f"--- TRIAL seed={seed} ---"]
    log_game_state(state, header)
    simulation.log[0:0] = header
    return simulation


def run_trials(sim_input: SimulationInput, config: Optional[SimulationConfig] = None) -> List[Simulation]:
    config = config or SimulationConfig()
    conditions = parse_conditions(sim_input.conditions)
    template = build_trial_template(sim_input.deck, config)
    seeds = trial_seeds(config)

    if config.workers <= 1:
        return [run_trial(template, conditions, seed, config) for seed in seeds]

    with ThreadPoolExecutor(max_workers=config.workers) as pool:
        return list(pool.map(lambda s: run_trial(template, conditions, s, config), seeds))
