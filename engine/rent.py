"""Rent model evaluator — one active rent model per scenario.

RentPlan is a tagged union of frozen parameter records, discriminated by
RentModel:

    PARTNER_MODEL     (land × price + BUA × construction cost) × yield,
                      optionally grown by growth_rate every `frequency` years
    FIXED_ESCALATION  base_rent × (1 + r)^floor(years / frequency); frequency
                      is required
    REVENUE_SHARE     revenue × share, recomputed every `frequency` years and
                      carried forward in between

Every variant may set start_year (defaults to horizon start) and
transition_rent, charged for years before the model starts.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from engine.currency import ONE, ZERO, engine_context, to_decimal, to_int
from engine.errors import ValidationError
from engine.formulas import Escalator
from engine.periods import Horizon

logger = logging.getLogger(__name__)

MIN_FREQUENCY = 1
MAX_FREQUENCY = 5


class RentModel(str, Enum):
    PARTNER_MODEL = "PARTNER_MODEL"
    FIXED_ESCALATION = "FIXED_ESCALATION"
    REVENUE_SHARE = "REVENUE_SHARE"


@dataclass(frozen=True)
class PartnerModelRent:
    kind: ClassVar[RentModel] = RentModel.PARTNER_MODEL
    land_size: Decimal
    land_price_per_sqm: Decimal
    bua_size: Decimal
    construction_cost_per_sqm: Decimal
    yield_base: Decimal
    growth_rate: Decimal | None = None
    frequency: int | None = None
    start_year: int | None = None
    transition_rent: Decimal | None = None

    @property
    def base_rent(self) -> Decimal:
        with engine_context():
            value = (self.land_size * self.land_price_per_sqm
                     + self.bua_size * self.construction_cost_per_sqm)
            return value * self.yield_base


@dataclass(frozen=True)
class FixedEscalationRent:
    kind: ClassVar[RentModel] = RentModel.FIXED_ESCALATION
    base_rent: Decimal
    escalation_rate: Decimal
    frequency: int
    start_year: int | None = None
    transition_rent: Decimal | None = None


@dataclass(frozen=True)
class RevenueShareRent:
    kind: ClassVar[RentModel] = RentModel.REVENUE_SHARE
    revenue_share_percent: Decimal   # fraction: 0.08 = 8%
    frequency: int = 1
    start_year: int | None = None
    transition_rent: Decimal | None = None


RentPlan = PartnerModelRent | FixedEscalationRent | RevenueShareRent

_VARIANTS: dict[RentModel, type] = {
    RentModel.PARTNER_MODEL: PartnerModelRent,
    RentModel.FIXED_ESCALATION: FixedEscalationRent,
    RentModel.REVENUE_SHARE: RevenueShareRent,
}

REQUIRED_PARAMETERS: dict[RentModel, tuple[str, ...]] = {
    RentModel.PARTNER_MODEL: ("land_size", "land_price_per_sqm", "bua_size",
                              "construction_cost_per_sqm", "yield_base"),
    RentModel.FIXED_ESCALATION: ("base_rent", "escalation_rate", "frequency"),
    RentModel.REVENUE_SHARE: ("revenue_share_percent",),
}

_INT_PARAMETERS = {"frequency", "start_year"}


def rent_plan_from_dict(data: dict) -> RentPlan:
    """Build a rent variant from {"model": ..., "parameters": {...}}.

    Unknown model names and missing required parameters raise
    ValidationError; unknown parameter names are rejected too.
    """
    raw_model = data.get("model")
    try:
        model = RentModel(str(raw_model).upper())
    except ValueError:
        raise ValidationError.single(
            "rent.model", f"unknown rent model {raw_model!r}") from None

    params = dict(data.get("parameters") or {})
    cls = _VARIANTS[model]
    allowed = {f.name for f in dataclasses.fields(cls)}

    issues = [(f"rent.{name}", "required parameter missing")
              for name in REQUIRED_PARAMETERS[model] if params.get(name) is None]
    issues += [(f"rent.{name}", f"not a parameter of {model.value}")
               for name in params if name not in allowed]
    if issues:
        raise ValidationError(issues)

    kwargs = {}
    for name, value in params.items():
        if value is None:
            continue
        if name in _INT_PARAMETERS:
            kwargs[name] = to_int(value, f"rent.{name}")
        else:
            kwargs[name] = to_decimal(value, f"rent.{name}")
    return cls(**kwargs)


def _positive(issues: list, name: str, value: Decimal) -> None:
    if value <= ZERO:
        issues.append((f"rent.{name}", f"must be > 0, got {value}"))


def _unit(issues: list, name: str, value: Decimal, *, allow_zero=True) -> None:
    low_ok = value >= ZERO if allow_zero else value > ZERO
    if not (low_ok and value <= ONE):
        bound = "[0, 1]" if allow_zero else "(0, 1]"
        issues.append((f"rent.{name}", f"must be within {bound}, got {value}"))


def _frequency(issues: list, value: int | None) -> None:
    if value is not None and not MIN_FREQUENCY <= value <= MAX_FREQUENCY:
        issues.append(("rent.frequency",
                       f"must be within [{MIN_FREQUENCY}, {MAX_FREQUENCY}], "
                       f"got {value}"))


def validate_rent_plan(plan: RentPlan, horizon: Horizon | None = None) -> None:
    """Raise ValidationError listing every invalid or missing parameter."""
    if not isinstance(plan, (PartnerModelRent, FixedEscalationRent, RevenueShareRent)):
        raise ValidationError.single(
            "rent", f"unsupported rent plan {type(plan).__name__}")

    missing = [(f"rent.{name}", "required parameter missing")
               for name in REQUIRED_PARAMETERS[plan.kind]
               if getattr(plan, name) is None]
    if missing:
        raise ValidationError(missing)

    issues: list[tuple[str, str]] = []
    if isinstance(plan, PartnerModelRent):
        for name in ("land_size", "land_price_per_sqm", "bua_size",
                     "construction_cost_per_sqm"):
            _positive(issues, name, getattr(plan, name))
        _unit(issues, "yield_base", plan.yield_base, allow_zero=False)
        if plan.growth_rate is not None:
            _unit(issues, "growth_rate", plan.growth_rate)
    elif isinstance(plan, FixedEscalationRent):
        _positive(issues, "base_rent", plan.base_rent)
        _unit(issues, "escalation_rate", plan.escalation_rate)
    else:
        _unit(issues, "revenue_share_percent", plan.revenue_share_percent)
    _frequency(issues, plan.frequency)

    if plan.transition_rent is not None and plan.transition_rent < ZERO:
        issues.append(("rent.transition_rent",
                       f"must be >= 0, got {plan.transition_rent}"))
    if (horizon is not None and plan.start_year is not None
            and not horizon.contains(plan.start_year)):
        issues.append(("rent.start_year",
                       f"{plan.start_year} outside horizon "
                       f"{horizon.start_year}-{horizon.end_year}"))
    if issues:
        raise ValidationError(issues)


class RentEvaluator:
    """Year-by-year rent for one plan. Call rent_for_year in ascending order.

    Tracks the escalation state and, for revenue share, the last
    recalculation year, so off-cadence years reuse the prior rent.
    """

    def __init__(self, plan: RentPlan, horizon: Horizon):
        validate_rent_plan(plan, horizon)
        self.plan = plan
        self.start_year = plan.start_year or horizon.start_year
        self.transition_rent = plan.transition_rent or ZERO
        self._escalator: Escalator | None = None
        self._last_rent: Decimal | None = None
        self._last_recalc_year: int | None = None

        if isinstance(plan, PartnerModelRent):
            self._escalator = Escalator(
                base=plan.base_rent,
                rate=plan.growth_rate or ZERO,
                frequency=plan.frequency or 1,
                base_year=self.start_year,
            )
        elif isinstance(plan, FixedEscalationRent):
            self._escalator = Escalator(
                base=plan.base_rent,
                rate=plan.escalation_rate,
                frequency=plan.frequency,
                base_year=self.start_year,
            )

    @property
    def last_recalculation_year(self) -> int | None:
        return self._last_recalc_year

    def rent_for_year(self, year: int, revenue: Decimal = ZERO) -> Decimal:
        if year < self.start_year:
            return self.transition_rent
        if self._escalator is not None:
            return self._escalator.step(year)
        return self._revenue_share(year, revenue)

    def _revenue_share(self, year: int, revenue: Decimal) -> Decimal:
        plan = self.plan
        due = (self._last_recalc_year is None
               or (year - self.start_year) % plan.frequency == 0)
        if due:
            if revenue < ZERO:
                raise ValidationError.single(
                    "revenue", f"negative revenue {revenue} in {year}")
            with engine_context():
                self._last_rent = revenue * plan.revenue_share_percent
            self._last_recalc_year = year
            logger.debug("Revenue-share rent recalculated for %d: %s",
                         year, self._last_rent)
        return self._last_rent


def evaluate_rent(plan: RentPlan, horizon: Horizon,
                  revenue_by_year: dict[int, Decimal] | None = None) -> dict[int, Decimal]:
    """Rent for every horizon year (revenue needed for revenue share)."""
    revenue_by_year = revenue_by_year or {}
    evaluator = RentEvaluator(plan, horizon)
    return {
        year: evaluator.rent_for_year(year, revenue_by_year.get(year, ZERO))
        for year in horizon.years
    }
