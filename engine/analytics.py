"""Post-loop analytics — computed on COMPLETED year results.

Read-only on the loop output; nothing here feeds back into the loop.
NPV discounts each year from the year before the metrics window opens, so
the first metrics year is discounted once.
"""

from __future__ import annotations

from decimal import Decimal

from engine.config import GlobalAssumptions
from engine.currency import ONE, ZERO, engine_context, safe_divide, to_decimal
from engine.errors import ConfigurationError
from engine.formulas import discount_factor
from engine.periods import Horizon
from engine.types import Summary, YearResult


def npv(rate: Decimal, values: list[tuple[int, Decimal]], base_year: int) -> Decimal:
    """Net present value of (year, amount) pairs discounted to base_year."""
    rate = to_decimal(rate, "discount_rate")
    if not ZERO <= rate <= ONE:
        raise ConfigurationError(f"discount_rate must be within [0, 1], got {rate}")
    with engine_context():
        return sum((amount * discount_factor(rate, year - base_year)
                    for year, amount in values), ZERO)


def _mean(values: list[Decimal]) -> Decimal:
    return safe_divide(sum(values, ZERO), len(values))


def metrics_window(horizon: Horizon, assumptions: GlobalAssumptions) -> tuple[int, int]:
    start = assumptions.metrics_start_year or horizon.start_year
    return start, horizon.end_year


def build_summary(years: list[YearResult], assumptions: GlobalAssumptions,
                  horizon: Horizon) -> Summary:
    """NPVs, average margins and totals over the metrics window."""
    start, end = metrics_window(horizon, assumptions)
    window = [y for y in years if start <= y.year <= end]
    base_year = start - 1
    rate = assumptions.discount_rate

    def total(attr: str) -> Decimal:
        return sum((getattr(y, attr) for y in window), ZERO)

    return Summary(
        npv_rent=npv(rate, [(y.year, y.rent) for y in window], base_year),
        npv_cash_flow=npv(rate, [(y.year, y.net_cash_flow) for y in window], base_year),
        average_ebitda_margin=_mean([y.ebitda_margin for y in window]),
        average_rent_load=_mean([y.rent_load for y in window]),
        total_revenue=total("revenue"),
        total_staff_cost=total("staff_cost"),
        total_rent=total("rent"),
        total_opex=total("opex"),
        total_ebitda=total("ebitda"),
        total_net_income=total("net_income"),
        total_capex=total("capex"),
        total_net_cash_flow=total("net_cash_flow"),
        metrics_start_year=start,
        metrics_end_year=end,
    )
