"""Pure audit check functions for a school projection.

Each function takes engine output and returns a list of check result tuples:
    (section: str, name: str, expected: Decimal, actual: Decimal, delta: Decimal, passed: bool)

All checks read from ProjectionResult / YearResult, never re-running a
sub-model.
"""

from __future__ import annotations

from decimal import Decimal

from engine.config import GlobalAssumptions
from engine.currency import ZERO
from engine.types import ProjectionResult, YearResult

TOLERANCE = Decimal("0.01")


# ── Helper ────────────────────────────────────────────────────────

def _check(results: list, section: str, name: str,
           expected: Decimal, actual: Decimal, tolerance: Decimal = TOLERANCE) -> None:
    """Append a single check result to the results list."""
    delta = abs(expected - actual)
    ok = delta <= tolerance
    results.append((section, name, expected, actual, delta, ok))


# ── Classification ────────────────────────────────────────────────

def classify_check(section: str, name: str) -> str:
    """Return 'arithmetic' or 'model_design' for a check.

    Structural checks can fail without an arithmetic slip:
    - BS balance breaks when opening equity is set independently of the
      opening cash and fixed assets
    - the solver fixed point holds only within the solver tolerance
    """
    if "A = L + E" in name or "IE = rate x debt" in name:
        return "model_design"
    return "arithmetic"


# ── P&L ───────────────────────────────────────────────────────────

def check_pnl(years: list[YearResult] | tuple[YearResult, ...],
              zakat_rate: Decimal) -> list[tuple]:
    """P&L identities: Rev = tracks + other, EBITDA, zakat, NI."""
    results: list[tuple] = []
    sec = "P&L"

    for y in years:
        tag = f"Y{y.year}"
        _check(results, sec, f"{tag} P&L: Rev = Tracks + Other",
               sum((t.revenue for t in y.tracks), ZERO) + y.other_revenue,
               y.revenue)
        _check(results, sec, f"{tag} P&L: Rev - Staff - Rent - OpEx = EBITDA",
               y.revenue - y.staff_cost - y.rent - y.opex, y.ebitda)

        pbz = y.ebitda - y.depreciation - y.interest_expense + y.interest_income
        _check(results, sec, f"{tag} P&L: Zakat = max(PBZ,0) x rate",
               max(pbz, ZERO) * zakat_rate, y.zakat)
        _check(results, sec, f"{tag} P&L: PBZ - Zakat = NI",
               pbz - y.zakat, y.net_income)

    return results


# ── Cash Flow ─────────────────────────────────────────────────────

def check_cash_flow(years: list[YearResult] | tuple[YearResult, ...]) -> list[tuple]:
    """CF identities: CFO, CFI, net CF, opening + net = closing, min cash."""
    results: list[tuple] = []
    sec = "CF"

    for y in years:
        tag = f"Y{y.year}"
        _check(results, sec, f"{tag} CF: NI + Depr - dWC = CFO",
               y.net_income + y.depreciation - y.working_capital_change,
               y.operating_cash_flow)
        _check(results, sec, f"{tag} CF: -Capex = CFI",
               -y.capex, y.investing_cash_flow)
        _check(results, sec, f"{tag} CF: CFO + CFI + CFF = Net",
               y.operating_cash_flow + y.investing_cash_flow + y.financing_cash_flow,
               y.net_cash_flow)
        _check(results, sec, f"{tag} CF: Open + Net = Close",
               y.opening_cash + y.net_cash_flow, y.closing_cash)
        _check(results, sec, f"{tag} CF: Debt movement = CFF",
               y.debt - y.opening_debt, y.financing_cash_flow)

    return results


# ── Balance Sheet ─────────────────────────────────────────────────

def check_balance_sheet(years: list[YearResult] | tuple[YearResult, ...],
                        opening_equity: Decimal) -> list[tuple]:
    """BS identities: A = L + E, RE = cumulative NI."""
    results: list[tuple] = []
    sec = "BS"
    cum_ni = ZERO

    for y in years:
        tag = f"Y{y.year}"
        cum_ni += y.net_income
        _check(results, sec, f"{tag} BS: RE = Cum NI", cum_ni, y.retained_earnings)
        _check(results, sec, f"{tag} BS: Equity = Opening + RE",
               opening_equity + y.retained_earnings, y.total_equity)
        _check(results, sec, f"{tag} BS: A = L + E",
               y.total_liabilities + y.total_equity, y.total_assets)

    return results


# ── Continuity ────────────────────────────────────────────────────

def check_continuity(result: ProjectionResult) -> list[tuple]:
    """Contiguous years and carried balances across year boundaries."""
    results: list[tuple] = []
    sec = "CONTINUITY"
    years = result.years

    _check(results, sec, "Year count = horizon length",
           Decimal(result.horizon.n_years), Decimal(len(years)), ZERO)
    for prev, cur in zip(years, years[1:]):
        tag = f"Y{cur.year}"
        _check(results, sec, f"{tag} Year follows Y{prev.year}",
               Decimal(prev.year + 1), Decimal(cur.year), ZERO)
        _check(results, sec, f"{tag} Opening cash = prior closing",
               prev.closing_cash, cur.opening_cash, ZERO)
        _check(results, sec, f"{tag} Opening debt = prior closing",
               prev.debt, cur.opening_debt, ZERO)

    return results


# ── Solver ────────────────────────────────────────────────────────

def check_solver(years: list[YearResult] | tuple[YearResult, ...],
                 assumptions: GlobalAssumptions,
                 tolerance: Decimal = TOLERANCE) -> list[tuple]:
    """Interest expense sits at the fixed point; minimum cash respected."""
    results: list[tuple] = []
    sec = "SOLVER"
    rate = assumptions.debt_interest_rate

    for y in years:
        tag = f"Y{y.year}"
        _check(results, sec, f"{tag} Solver: IE = rate x debt",
               y.debt * rate, y.interest_expense, tolerance)
        if y.debt > y.opening_debt:
            _check(results, sec, f"{tag} Solver: Cash = minimum when borrowing",
                   assumptions.minimum_cash_balance, y.closing_cash)

    return results
