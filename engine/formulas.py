"""Generic financial formulas — stateless, no scenario knowledge.

Escalator is the one stateful helper here: the "re-apply growth every N
years, otherwise carry the prior value" cadence shared by tuition, staff
cost and rent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from engine.currency import ONE, ZERO, compound, engine_context, to_decimal
from engine.periods import is_boundary, steps_elapsed

DAYS_PER_YEAR = Decimal("365")


def escalate(base: Decimal, rate: Decimal, frequency: int,
             years_elapsed: int) -> Decimal:
    """Closed form: base × (1 + rate)^floor(years_elapsed / frequency)."""
    with engine_context():
        return base * compound(rate, steps_elapsed(years_elapsed, 0, frequency))


@dataclass
class Escalator:
    """Periodic escalation, stepped one year at a time.

    step(year) must be called with consecutive years. On a cadence boundary
    the previous value grows by (1 + rate); otherwise it carries forward
    unchanged. Years at or before base_year hold the base value.
    """
    base: Decimal
    rate: Decimal
    frequency: int
    base_year: int
    _year: int | None = field(default=None, init=False, repr=False)
    _value: Decimal = field(default=ZERO, init=False, repr=False)

    def __post_init__(self):
        if self.frequency < 1:
            raise ValueError(f"frequency must be >= 1, got {self.frequency}")

    @property
    def current(self) -> Decimal:
        return self._value

    def value_at(self, year: int) -> Decimal:
        return escalate(self.base, self.rate, self.frequency,
                        year - self.base_year)

    def step(self, year: int) -> Decimal:
        if self._year is None:
            self._value = self.value_at(year)
        elif year != self._year + 1:
            raise ValueError(
                f"Escalator stepped from {self._year} to {year}; "
                f"years must be consecutive")
        elif is_boundary(year, self.base_year, self.frequency):
            with engine_context():
                self._value = self._value * (ONE + self.rate)
        self._year = year
        return self._value


def calc_ebitda(revenue: Decimal, staff_costs: Decimal, rent: Decimal,
                opex: Decimal) -> Decimal:
    """Earnings before interest, tax, depreciation, amortisation."""
    with engine_context():
        return revenue - staff_costs - rent - opex


def calc_interest_income(opening_cash: Decimal, minimum_cash: Decimal,
                         deposit_rate: Decimal) -> Decimal:
    """Deposit interest on cash held above the minimum balance."""
    with engine_context():
        excess = opening_cash - minimum_cash
        return excess * deposit_rate if excess > ZERO else ZERO


def calc_interest_expense(debt: Decimal, debt_rate: Decimal) -> Decimal:
    """Full-year interest on a debt balance. Returns 0 if balance <= 0."""
    if debt <= ZERO:
        return ZERO
    with engine_context():
        return debt * debt_rate


def calc_zakat(profit_before_zakat: Decimal, zakat_rate: Decimal) -> Decimal:
    """Zakat on positive profit only."""
    if profit_before_zakat <= ZERO:
        return ZERO
    with engine_context():
        return profit_before_zakat * zakat_rate


def calc_depreciation(opening_fixed_assets: Decimal, rate: Decimal) -> Decimal:
    """Declining-balance depreciation on the opening net book value."""
    if opening_fixed_assets <= ZERO:
        return ZERO
    with engine_context():
        return opening_fixed_assets * rate


def days_balance(annual_amount: Decimal, days: Decimal) -> Decimal:
    """Balance equal to `days` worth of an annual flow."""
    with engine_context():
        return annual_amount / DAYS_PER_YEAR * days


def discount_factor(rate: Decimal, periods: int) -> Decimal:
    """1 / (1 + rate)^periods."""
    with engine_context():
        return ONE / compound(to_decimal(rate), periods)
