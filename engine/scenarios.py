"""Scenario comparison + sensitivity sweep engine.

Comparison: run several independent scenarios concurrently (one worker
each). Projections share nothing, so no coordination is needed beyond a
shared cancellation event for the optional wall-clock timeout.

Sensitivity sweep: re-run one scenario N times with a single global
assumption varied → rows of summary metrics → DataFrame.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from decimal import Decimal

from engine.config import EngineConfig
from engine.currency import engine_context, to_decimal
from engine.orchestrator import run_projection
from engine.types import ProjectionResult, ScenarioInput

logger = logging.getLogger(__name__)


# ── Comparison ──────────────────────────────────────────────────


def run_comparison(
    scenarios: dict[str, ScenarioInput],
    cfg: EngineConfig | None = None,
    max_workers: int | None = None,
    timeout: float | None = None,
) -> dict[str, ProjectionResult]:
    """Run scenarios concurrently; results keyed like the input.

    The first failing scenario's error is re-raised and the rest are
    cancelled. On timeout the remaining projections are cancelled at
    their next year boundary and TimeoutError is raised.
    """
    if cfg is None:
        cfg = EngineConfig.load()
    cancel = threading.Event()

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            key: pool.submit(run_projection, scenario, cfg, cancel)
            for key, scenario in scenarios.items()
        }
        done, pending = wait(futures.values(), timeout=timeout,
                             return_when=FIRST_EXCEPTION)
        failed = [f for f in done if f.exception() is not None]
        if failed or pending:
            cancel.set()
            for f in pending:
                f.cancel()
        if failed:
            raise failed[0].exception()
        if pending:
            logger.warning("Comparison timed out with %d of %d scenarios pending",
                           len(pending), len(futures))
            raise TimeoutError(
                f"{len(pending)} scenario(s) unfinished after {timeout}s")

    return {key: f.result() for key, f in futures.items()}


# ── Sensitivity sweep ───────────────────────────────────────────


@dataclass
class SweepVariable:
    """A global assumption to sweep in sensitivity analysis.

    attr: GlobalAssumptions attribute name (e.g. "discount_rate")
    base: Base case value
    low: Low end of sweep range
    high: High end of sweep range
    steps: Number of steps (e.g. 5 → low, 25%, 50%, 75%, high)
    label: Human-readable label for charts
    """
    attr: str
    base: Decimal
    low: Decimal
    high: Decimal
    steps: int = 5
    label: str = ""

    @property
    def values(self) -> list[Decimal]:
        """Sweep values from low to high."""
        base, low, high = (to_decimal(v, self.attr)
                           for v in (self.base, self.low, self.high))
        if self.steps <= 1:
            return [base]
        with engine_context():
            step_size = (high - low) / (self.steps - 1)
            return [low + i * step_size for i in range(self.steps)]


@dataclass
class SweepResult:
    """One row per scenario run: {swept value, is_base, summary metrics}."""
    variable: SweepVariable
    scenario_name: str
    rows: list[dict] = field(default_factory=list)

    @property
    def dataframe(self):
        """Convert to pandas DataFrame. Lazy import."""
        import pandas as pd
        df = pd.DataFrame(self.rows)
        return df.apply(lambda col: col.map(
            lambda v: float(v) if isinstance(v, Decimal) else v))


def run_sweep(
    variable: SweepVariable,
    base_scenario: ScenarioInput,
    cfg: EngineConfig | None = None,
) -> SweepResult:
    """Run a single-variable sensitivity sweep.

    For each value in variable.values:
        1. Copy the scenario with the assumption replaced
        2. Run the full projection
        3. Collect the summary as a row
    """
    if cfg is None:
        cfg = EngineConfig.load()

    result = SweepResult(variable=variable, scenario_name=base_scenario.name)
    base = to_decimal(variable.base, variable.attr)

    for val in variable.values:
        assumptions = base_scenario.assumptions.with_overrides(**{variable.attr: val})
        scenario = dataclasses.replace(base_scenario, assumptions=assumptions)
        projection = run_projection(scenario, cfg)

        row = {variable.attr: val, "is_base": val == base}
        row.update(projection.summary.to_dict())
        result.rows.append(row)

    return result


def run_multi_sweep(
    variables: list[SweepVariable],
    base_scenario: ScenarioInput,
    cfg: EngineConfig | None = None,
) -> list[SweepResult]:
    """Run sweeps for multiple variables (one at a time, not grid).

    Used for tornado charts: each variable swept independently.
    """
    if cfg is None:
        cfg = EngineConfig.load()
    return [run_sweep(v, base_scenario, cfg) for v in variables]


# ── Common Sweep Presets ────────────────────────────────────────


SWEEP_PRESETS: list[SweepVariable] = [
    SweepVariable(
        attr="discount_rate",
        base=Decimal("0.08"), low=Decimal("0.04"), high=Decimal("0.12"),
        label="Discount Rate",
    ),
    SweepVariable(
        attr="cpi_rate",
        base=Decimal("0.03"), low=Decimal("0.01"), high=Decimal("0.05"),
        label="CPI",
    ),
    SweepVariable(
        attr="debt_interest_rate",
        base=Decimal("0.05"), low=Decimal("0.03"), high=Decimal("0.09"),
        label="Debt Interest Rate",
    ),
]
