"""Audit runner -- projects a scenario and runs every check on the output."""

from __future__ import annotations

from collections import Counter
from pathlib import Path

from engine.config import EngineConfig
from engine.inputs import load_scenario
from engine.orchestrator import run_projection
from engine.types import ProjectionResult, ScenarioInput
from audit.checks import (
    check_balance_sheet,
    check_cash_flow,
    check_continuity,
    check_pnl,
    check_solver,
    classify_check,
)

DEFAULT_SCENARIO = Path(__file__).resolve().parent.parent / "config" / "scenario.json"

_PREFIX = {"arithmetic": "arithmetic", "model_design": "design"}


def summarize(results: list[tuple]) -> dict:
    """Pass/fail counts per category."""
    counts = Counter(
        f"{_PREFIX[classify_check(r[0], r[1])]}_{'pass' if r[5] else 'fail'}"
        for r in results
    )
    summary = {"total": len(results)}
    for prefix in _PREFIX.values():
        summary[f"{prefix}_pass"] = counts[f"{prefix}_pass"]
        summary[f"{prefix}_fail"] = counts[f"{prefix}_fail"]
    return summary


def run_all_checks(
    result: ProjectionResult | None = None,
    scenario: ScenarioInput | None = None,
    cfg: EngineConfig | None = None,
) -> dict:
    """Run all audit checks. If result is None, runs the projection first.

    Returns dict with:
        results: list of (section, name, expected, actual, delta, passed)
        summary: dict with counts
        projection: the ProjectionResult used
    """
    if cfg is None:
        cfg = EngineConfig.load()
    if scenario is None:
        scenario = load_scenario(DEFAULT_SCENARIO)
    if result is None:
        result = run_projection(scenario, cfg)

    a = scenario.assumptions
    results = [
        *check_pnl(result.years, a.zakat_rate),
        *check_cash_flow(result.years),
        *check_balance_sheet(result.years, a.equity_at_open),
        *check_continuity(result),
        *check_solver(result.years, a, cfg.solver.tolerance),
    ]
    return {"results": results, "summary": summarize(results), "projection": result}
