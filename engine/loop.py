"""Year loop — sequential, one pass per year, state carried forward.

Execution order per year:
    1. Cancellation check (year boundary)
    2. Revenue (enrollment × tuition + other revenue)
    3. Rent (needs revenue for revenue share)
    4. Staff cost + opex (variable opex needs revenue)
    5. EBITDA, depreciation on opening fixed assets
    6. Working capital balances and change
    7. Circular solver (interest, zakat, net income, cash, debt)
    8. Assemble YearResult; carry closing balances to next year's opening

No year is skipped and no error is caught: a failure in any year aborts
the loop because every later year depends on its closing state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from engine.config import GlobalAssumptions, SolverSettings
from engine.convergence import CircularSolver, YearInputs
from engine.currency import ZERO
from engine.errors import ProjectionCancelled
from engine.formulas import calc_depreciation, calc_ebitda
from engine.opex import OpexProjector
from engine.periods import Horizon
from engine.pnl import (
    assemble_year_result, compute_working_capital, next_state,
    working_capital_change,
)
from engine.rent import RentEvaluator
from engine.revenue import CurriculumProjector
from engine.types import WorkingCapital, YearResult, YearState

logger = logging.getLogger(__name__)


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class LoopInputs:
    """Sub-models built once per scenario, stepped once per year."""
    revenue: CurriculumProjector
    rent: RentEvaluator
    opex: OpexProjector
    capex_by_year: dict[int, Decimal]
    assumptions: GlobalAssumptions


def opening_state(assumptions: GlobalAssumptions) -> YearState:
    return YearState(
        cash=assumptions.starting_cash,
        debt=ZERO,
        retained_earnings=ZERO,
        gross_fixed_assets=assumptions.opening_fixed_assets,
        accumulated_depreciation=ZERO,
        working_capital=WorkingCapital(),
    )


def run_year_loop(
    inputs: LoopInputs,
    horizon: Horizon,
    solver_settings: SolverSettings,
    cancel_event: CancelSignal | None = None,
) -> list[YearResult]:
    """Run every horizon year in order and return their results."""
    a = inputs.assumptions
    solver = CircularSolver(solver_settings)
    state = opening_state(a)
    opening_equity = a.equity_at_open
    results: list[YearResult] = []

    for year in horizon.years:
        # ── 1. Cancellation ──
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Projection cancelled at year boundary %d", year)
            raise ProjectionCancelled(year)

        # ── 2-4. Operating sub-models ──
        revenue = inputs.revenue.project_year(year)
        if revenue.total == ZERO:
            logger.warning("Year %d has zero revenue; margins reported as 0", year)
        rent = inputs.rent.rent_for_year(year, revenue.total)
        opex = inputs.opex.project_year(year, revenue.total)

        # ── 5. EBITDA and depreciation ──
        ebitda = calc_ebitda(revenue.total, opex.staff_cost, rent, opex.total_opex)
        depreciation = calc_depreciation(state.net_fixed_assets, a.depreciation_rate)
        capex = inputs.capex_by_year.get(year, ZERO)

        # ── 6. Working capital ──
        wc = compute_working_capital(revenue.total, opex.staff_cost, a.working_capital)
        wc_change = working_capital_change(state.working_capital, wc)

        # ── 7. Circular solver ──
        seed = state.interest_expense if solver_settings.warm_start else ZERO
        solution = solver.solve(YearInputs(
            year=year,
            ebitda=ebitda,
            depreciation=depreciation,
            capex=capex,
            working_capital_change=wc_change,
            opening_cash=state.cash,
            opening_debt=state.debt,
            minimum_cash=a.minimum_cash_balance,
            zakat_rate=a.zakat_rate,
            debt_rate=a.debt_interest_rate,
            deposit_rate=a.deposit_interest_rate,
        ), seed=seed)

        # ── 8. Assemble and carry forward ──
        result = assemble_year_result(
            revenue=revenue, opex=opex, rent=rent, ebitda=ebitda,
            depreciation=depreciation, capex=capex, working_capital=wc,
            wc_change=wc_change, solution=solution, opening=state,
            opening_equity=opening_equity,
        )
        results.append(result)
        state = next_state(state, result, wc)
        logger.debug("Year %d: revenue %s, net income %s, cash %s, debt %s (%d iter)",
                     year, result.revenue, result.net_income, result.closing_cash,
                     result.debt, result.solver_iterations)

    return results
