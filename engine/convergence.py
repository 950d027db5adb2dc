"""Circular solver — resolves interest ↔ debt ↔ cash within one year.

Interest expense depends on closing debt, closing debt depends on the cash
shortfall, and the shortfall depends on net income, which includes
interest expense. Fixed-point iteration on interest expense:

    SEEDED     ie = seed (0, or last year's ie on warm start)
    ITERATING  evaluate the year at ie → closing debt → ie' = rate × debt
    CONVERGED  |ie' − ie| <= tolerance
    DIVERGED   iteration cap hit → DivergenceError

Interest income is earned on opening cash above the minimum balance, so
it is fixed for the year and does not feed the loop. This is chosen over
earning it on the ending balance, so a debt-free year converges on
iteration 1 with income exactly rate × (opening cash − minimum).

Debt balancing, given theoretical cash T (before any financing):
    T >= min + opening debt   repay all debt, keep the rest as cash
    T >= min                  hold debt unchanged
    T <  min                  borrow (min − T) on top of opening debt
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from engine.config import SolverSettings
from engine.currency import ZERO, engine_context
from engine.errors import DivergenceError
from engine.formulas import calc_interest_expense, calc_interest_income, calc_zakat

logger = logging.getLogger(__name__)


class SolverState(str, Enum):
    SEEDED = "SEEDED"
    ITERATING = "ITERATING"
    CONVERGED = "CONVERGED"
    DIVERGED = "DIVERGED"


@dataclass(frozen=True)
class YearInputs:
    """Everything the solver needs for one year, all fixed before solving."""
    year: int
    ebitda: Decimal
    depreciation: Decimal
    capex: Decimal
    working_capital_change: Decimal   # increase in net working capital
    opening_cash: Decimal
    opening_debt: Decimal
    minimum_cash: Decimal
    zakat_rate: Decimal
    debt_rate: Decimal
    deposit_rate: Decimal


@dataclass(frozen=True)
class YearSolution:
    year: int
    interest_income: Decimal
    interest_expense: Decimal
    profit_before_zakat: Decimal
    zakat: Decimal
    net_income: Decimal
    operating_cash_flow: Decimal
    investing_cash_flow: Decimal
    financing_cash_flow: Decimal
    theoretical_cash: Decimal
    closing_cash: Decimal
    closing_debt: Decimal
    implied_interest_expense: Decimal   # rate × closing debt at the final pass
    iterations: int
    deltas: tuple[Decimal, ...]
    state: SolverState = SolverState.CONVERGED

    @property
    def net_cash_flow(self) -> Decimal:
        return (self.operating_cash_flow + self.investing_cash_flow
                + self.financing_cash_flow)

    @property
    def final_delta(self) -> Decimal:
        return self.deltas[-1] if self.deltas else ZERO


def evaluate_year(inputs: YearInputs, interest_expense: Decimal) -> dict:
    """One pass of the year's statements at a given interest expense."""
    with engine_context():
        interest_income = calc_interest_income(
            inputs.opening_cash, inputs.minimum_cash, inputs.deposit_rate)
        profit = (inputs.ebitda - inputs.depreciation
                  - interest_expense + interest_income)
        zakat = calc_zakat(profit, inputs.zakat_rate)
        net_income = profit - zakat

        operating = net_income + inputs.depreciation - inputs.working_capital_change
        investing = -inputs.capex
        theoretical = inputs.opening_cash + operating + investing

        minimum, opening_debt = inputs.minimum_cash, inputs.opening_debt
        if theoretical >= minimum + opening_debt:
            closing_debt = ZERO
        elif theoretical >= minimum:
            closing_debt = opening_debt
        else:
            closing_debt = opening_debt + (minimum - theoretical)
        financing = closing_debt - opening_debt
        closing_cash = theoretical + financing

        return {
            "interest_income": interest_income,
            "interest_expense": interest_expense,
            "profit_before_zakat": profit,
            "zakat": zakat,
            "net_income": net_income,
            "operating_cash_flow": operating,
            "investing_cash_flow": investing,
            "financing_cash_flow": financing,
            "theoretical_cash": theoretical,
            "closing_cash": closing_cash,
            "closing_debt": closing_debt,
            "implied_interest_expense": calc_interest_expense(
                closing_debt, inputs.debt_rate),
        }


class CircularSolver:
    """Per-year fixed-point solver bounded by SolverSettings.max_iterations."""

    def __init__(self, settings: SolverSettings | None = None):
        self.settings = settings or SolverSettings()

    def solve(self, inputs: YearInputs, seed: Decimal = ZERO) -> YearSolution:
        tolerance = self.settings.tolerance
        cap = self.settings.max_iterations
        current = seed if seed > ZERO else ZERO
        state = SolverState.SEEDED
        deltas: list[Decimal] = []

        for iteration in range(1, cap + 1):
            state = SolverState.ITERATING
            figures = evaluate_year(inputs, current)
            implied = figures["implied_interest_expense"]
            with engine_context():
                delta = abs(implied - current)
            deltas.append(delta)
            logger.debug("Year %d iteration %d: ie=%s implied=%s delta=%s",
                         inputs.year, iteration, current, implied, delta)

            if delta <= tolerance:
                state = SolverState.CONVERGED
                return YearSolution(year=inputs.year, iterations=iteration,
                                    deltas=tuple(deltas), state=state, **figures)
            current = implied

        state = SolverState.DIVERGED
        logger.warning("Year %d solver %s after %d iterations (delta %s)",
                       inputs.year, state.value, cap, deltas[-1])
        raise DivergenceError(inputs.year, deltas[-1], cap)


def solve_year(inputs: YearInputs, settings: SolverSettings | None = None,
               seed: Decimal = ZERO) -> YearSolution:
    return CircularSolver(settings).solve(inputs, seed)
