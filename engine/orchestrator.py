"""Projection orchestrator — scenario in, ProjectionResult out.

Architecture:
    PASS 1: Validate global assumptions (ConfigurationError).
    PASS 2: Build per-scenario sub-models once: capex schedule, rent
            evaluator, revenue projector, staff/opex projector. Each
            validates its own inputs (ValidationError).
    PASS 3: Year loop, ascending, carrying closing balances forward
            (engine.loop). Circular solver runs inside each year.
    PASS 4: Summary metrics on the completed years (engine.analytics).

Any error aborts the whole run; no partial projection is returned. The
engine holds no state between calls, so concurrent runs are independent.
"""

from __future__ import annotations

import logging

from engine.analytics import build_summary
from engine.capex import capex_by_year, schedule_capex
from engine.config import EngineConfig
from engine.loop import CancelSignal, LoopInputs, run_year_loop
from engine.opex import OpexProjector, StaffCostProjector
from engine.rent import RentEvaluator
from engine.revenue import CurriculumProjector, staff_cost_base_from_curricula
from engine.types import CapexItem, ProjectionResult, ScenarioInput

logger = logging.getLogger(__name__)


# ── Sub-model construction ──────────────────────────────────────


def build_loop_inputs(
    scenario: ScenarioInput,
    cfg: EngineConfig,
) -> tuple[LoopInputs, list[CapexItem]]:
    """Validate the scenario and build every per-scenario sub-model."""
    horizon = cfg.horizon
    a = scenario.assumptions
    a.validate(horizon)

    items = schedule_capex(scenario.capex_rules, a, horizon, scenario.manual_capex)
    rent = RentEvaluator(scenario.rent_plan, horizon)
    revenue = CurriculumProjector(
        scenario.curricula, a.cpi_rate, horizon.start_year,
        other_revenue=dict(scenario.other_revenue),
    )

    staff_plan = scenario.staff_plan
    base_year = (staff_plan.base_year if staff_plan.base_year is not None
                 else horizon.start_year)
    base_cost = staff_plan.base_cost
    if base_cost is None:
        base_cost = staff_cost_base_from_curricula(scenario.curricula, base_year)
        logger.info("Staff cost base derived from staffing ratios: %s", base_cost)
    staff = StaffCostProjector(staff_plan, base_cost, a.cpi_rate, horizon.start_year)
    opex = OpexProjector(staff, scenario.opex_accounts, a.cpi_rate, horizon.start_year)

    inputs = LoopInputs(
        revenue=revenue,
        rent=rent,
        opex=opex,
        capex_by_year=capex_by_year(items),
        assumptions=a,
    )
    return inputs, items


# ── Public API ──────────────────────────────────────────────────


def run_projection(
    scenario: ScenarioInput,
    cfg: EngineConfig | None = None,
    cancel_event: CancelSignal | None = None,
) -> ProjectionResult:
    """Run the full multi-year projection for one scenario.

    cancel_event is any object with is_set() (e.g. threading.Event); it is
    checked at every year boundary and raises ProjectionCancelled.
    """
    if cfg is None:
        cfg = EngineConfig.load()
    horizon = cfg.horizon
    logger.info("Projection %r: %d-%d (%s rent)", scenario.name,
                horizon.start_year, horizon.end_year,
                scenario.rent_plan.kind.value)

    inputs, items = build_loop_inputs(scenario, cfg)
    years = run_year_loop(inputs, horizon, cfg.solver, cancel_event)
    summary = build_summary(years, scenario.assumptions, horizon)

    logger.info("Projection %r done: NPV rent %s, NPV cash flow %s",
                scenario.name, summary.npv_rent, summary.npv_cash_flow)
    return ProjectionResult(
        scenario_name=scenario.name,
        horizon=horizon,
        years=tuple(years),
        summary=summary,
        capex_items=tuple(items),
    )
