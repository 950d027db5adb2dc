"""Projection engine — pure Python, Decimal throughout, no I/O during a run."""


def run_projection(*args, **kwargs):
    from engine.orchestrator import run_projection as _run_projection
    return _run_projection(*args, **kwargs)


def load_scenario(*args, **kwargs):
    from engine.inputs import load_scenario as _load_scenario
    return _load_scenario(*args, **kwargs)


__all__ = ["load_scenario", "run_projection"]
