"""Year statements — working capital and YearResult assembly.

The solver produces the below-EBITDA figures and cash; this module turns
them, plus the operating sub-model outputs, into one immutable YearResult
with P&L, cash flow and balance sheet.
"""

from __future__ import annotations

from decimal import Decimal

from engine.config import WorkingCapitalSettings
from engine.convergence import YearSolution
from engine.currency import engine_context, percent_of
from engine.formulas import days_balance
from engine.types import OpexYear, RevenueYear, WorkingCapital, YearResult, YearState


def compute_working_capital(revenue: Decimal, staff_cost: Decimal,
                            settings: WorkingCapitalSettings) -> WorkingCapital:
    """Closing working-capital balances for a year.

    Receivables and deferred income follow revenue; payables and accrued
    expenses follow staff cost.
    """
    with engine_context():
        return WorkingCapital(
            receivables=days_balance(revenue, settings.collection_days),
            payables=days_balance(staff_cost, settings.payment_days),
            deferred_income=revenue * settings.deferred_income_factor,
            accrued_expenses=days_balance(staff_cost, settings.accrual_days),
        )


def working_capital_change(opening: WorkingCapital, closing: WorkingCapital) -> Decimal:
    """Increase in net working capital (a use of cash when positive)."""
    with engine_context():
        return closing.net - opening.net


def assemble_year_result(
    *,
    revenue: RevenueYear,
    opex: OpexYear,
    rent: Decimal,
    ebitda: Decimal,
    depreciation: Decimal,
    capex: Decimal,
    working_capital: WorkingCapital,
    wc_change: Decimal,
    solution: YearSolution,
    opening: YearState,
    opening_equity: Decimal,
) -> YearResult:
    """Build the YearResult for one solved year.

    Args:
        revenue: Revenue projector output for the year
        opex: Staff cost and opex for the year
        rent: Rent charged in the year
        ebitda: Revenue - staff - rent - opex
        depreciation: Charge on opening net fixed assets
        capex: Total capex outlay in the year
        working_capital: Closing working-capital balances
        wc_change: Increase in net working capital
        solution: Converged circular-solver output
        opening: Carried state at the start of the year
        opening_equity: Paid-in equity at the start of the projection

    Returns:
        Immutable YearResult.
    """
    with engine_context():
        gross_fa = opening.gross_fixed_assets + capex
        acc_dep = opening.accumulated_depreciation + depreciation
        net_fa = gross_fa - acc_dep
        retained = opening.retained_earnings + solution.net_income

        total_assets = solution.closing_cash + working_capital.receivables + net_fa
        total_liabilities = (working_capital.payables
                             + working_capital.deferred_income
                             + working_capital.accrued_expenses
                             + solution.closing_debt)

        return YearResult(
            year=revenue.year,
            tracks=revenue.tracks,
            tuition_revenue=revenue.tuition_revenue,
            other_revenue=revenue.other_revenue,
            revenue=revenue.total,
            staff_cost=opex.staff_cost,
            rent=rent,
            opex=opex.total_opex,
            ebitda=ebitda,
            ebitda_margin=percent_of(ebitda, revenue.total),
            rent_load=percent_of(rent, revenue.total),
            depreciation=depreciation,
            interest_income=solution.interest_income,
            interest_expense=solution.interest_expense,
            zakat=solution.zakat,
            net_income=solution.net_income,
            working_capital_change=wc_change,
            operating_cash_flow=solution.operating_cash_flow,
            capex=capex,
            investing_cash_flow=solution.investing_cash_flow,
            financing_cash_flow=solution.financing_cash_flow,
            net_cash_flow=solution.net_cash_flow,
            opening_cash=opening.cash,
            closing_cash=solution.closing_cash,
            receivables=working_capital.receivables,
            fixed_assets=net_fa,
            accumulated_depreciation=acc_dep,
            total_assets=total_assets,
            payables=working_capital.payables,
            deferred_income=working_capital.deferred_income,
            accrued_expenses=working_capital.accrued_expenses,
            opening_debt=opening.debt,
            debt=solution.closing_debt,
            total_liabilities=total_liabilities,
            retained_earnings=retained,
            total_equity=opening_equity + retained,
            solver_iterations=solution.iterations,
        )


def next_state(opening: YearState, result: YearResult,
               working_capital: WorkingCapital) -> YearState:
    """Carry a year's closing balances forward as the next opening state."""
    return YearState(
        cash=result.closing_cash,
        debt=result.debt,
        retained_earnings=result.retained_earnings,
        gross_fixed_assets=opening.gross_fixed_assets + result.capex,
        accumulated_depreciation=result.accumulated_depreciation,
        working_capital=working_capital,
        interest_expense=result.interest_expense,
    )
