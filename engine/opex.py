"""Opex/staff cost projector.

Staff cost steps up by CPI on its cadence from the plan's base year and is
carried forward in between. Years before the base year are deflated back
from the base (one CPI step per started cadence period). Opex sub-accounts
are either fixed amounts (optionally CPI-escalated every year) or a
whole-number percent of the year's revenue.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal

from engine.currency import HUNDRED, ZERO, compound, engine_context
from engine.errors import ValidationError
from engine.formulas import Escalator
from engine.types import OpexSubAccount, OpexYear, StaffCostPlan

logger = logging.getLogger(__name__)

CPI_FREQUENCIES = (1, 2, 3)


def validate_staff_plan(plan: StaffCostPlan) -> None:
    issues = []
    if plan.base_cost is not None and plan.base_cost < ZERO:
        issues.append(("staff_plan.base_cost", f"must be >= 0, got {plan.base_cost}"))
    if plan.cpi_frequency not in CPI_FREQUENCIES:
        issues.append(("staff_plan.cpi_frequency",
                       f"must be one of {CPI_FREQUENCIES}, got {plan.cpi_frequency}"))
    if issues:
        raise ValidationError(issues)


def validate_sub_account(account: OpexSubAccount) -> None:
    field = f"opex[{account.name}]"
    if account.is_fixed:
        if account.fixed_amount is None:
            raise ValidationError.single(f"{field}.fixed_amount", "required for fixed accounts")
        if account.fixed_amount < ZERO:
            raise ValidationError.single(
                f"{field}.fixed_amount", f"must be >= 0, got {account.fixed_amount}")
    else:
        pct = account.percent_of_revenue
        if pct is None:
            raise ValidationError.single(
                f"{field}.percent_of_revenue", "required for variable accounts")
        if not ZERO <= pct <= HUNDRED:
            raise ValidationError.single(
                f"{field}.percent_of_revenue", f"must be within [0, 100], got {pct}")


class StaffCostProjector:
    def __init__(self, plan: StaffCostPlan, base_cost: Decimal, cpi_rate: Decimal,
                 default_base_year: int):
        validate_staff_plan(plan)
        self.base_cost = base_cost
        self.cpi_rate = cpi_rate
        self.frequency = plan.cpi_frequency
        self.base_year = plan.base_year if plan.base_year is not None else default_base_year
        self._escalator = Escalator(base=base_cost, rate=cpi_rate,
                                    frequency=self.frequency, base_year=self.base_year)
        logger.debug("Staff cost base %s in %d, CPI every %d year(s)",
                     base_cost, self.base_year, self.frequency)

    def cost_for_year(self, year: int) -> Decimal:
        if year >= self.base_year:
            return self._escalator.step(year)
        periods = math.ceil((self.base_year - year) / self.frequency)
        with engine_context():
            return self.base_cost / compound(self.cpi_rate, periods)


class OpexProjector:
    """Staff cost plus opex sub-accounts, one year at a time (ascending)."""

    def __init__(self, staff: StaffCostProjector,
                 accounts: tuple[OpexSubAccount, ...] | list[OpexSubAccount],
                 cpi_rate: Decimal, first_year: int):
        names = [a.name for a in accounts]
        if len(set(names)) != len(names):
            raise ValidationError.single("opex", f"duplicate account names in {names}")
        for account in accounts:
            validate_sub_account(account)
        self.staff = staff
        self.accounts = tuple(accounts)
        self._escalators = {
            a.name: Escalator(base=a.fixed_amount, rate=cpi_rate, frequency=1,
                              base_year=first_year)
            for a in self.accounts if a.is_fixed and a.escalate
        }

    def _fixed_amount(self, account: OpexSubAccount, year: int) -> Decimal:
        escalator = self._escalators.get(account.name)
        return escalator.step(year) if escalator else account.fixed_amount

    def project_year(self, year: int, revenue: Decimal) -> OpexYear:
        staff_cost = self.staff.cost_for_year(year)
        variable, fixed = ZERO, ZERO
        breakdown = []
        with engine_context():
            for account in self.accounts:
                if account.is_fixed:
                    amount = self._fixed_amount(account, year)
                    fixed += amount
                else:
                    amount = revenue * account.percent_of_revenue / HUNDRED
                    variable += amount
                breakdown.append((account.name, amount))
        return OpexYear(year=year, staff_cost=staff_cost, variable_opex=variable,
                        fixed_opex=fixed, breakdown=tuple(breakdown))
