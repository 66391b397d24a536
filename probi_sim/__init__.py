from .models import SimulationConfig


def run_trials(*args, **kwargs):
    from .game import run_trials as _run_trials

    return _run_trials(*args, **kwargs)


def generate_report(*args, **kwargs):
    from .report import generate_report as _generate_report

    return _generate_report(*args, **kwargs)


__all__ = ["run_trials", "generate_report", "SimulationConfig"]
