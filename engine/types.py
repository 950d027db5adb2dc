"""Data shapes for the projection engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import TYPE_CHECKING

from engine.config import GlobalAssumptions
from engine.currency import ZERO, money
from engine.periods import Horizon

if TYPE_CHECKING:
    from engine.rent import RentPlan


# ── Scenario inputs ─────────────────────────────────────────────

@dataclass(frozen=True)
class CurriculumPlan:
    """One curriculum track: capacity, tuition, sparse enrollment plan."""
    curriculum: str
    capacity: int
    base_tuition: Decimal
    enrollment: tuple[tuple[int, int], ...]   # (year, students), ascending
    cpi_frequency: int = 1
    # Staffing ratios (students per staff member), optional
    teacher_ratio: Decimal | None = None
    non_teacher_ratio: Decimal | None = None
    teacher_monthly_salary: Decimal | None = None
    non_teacher_monthly_salary: Decimal | None = None

    @property
    def has_staffing(self) -> bool:
        return None not in (self.teacher_ratio, self.non_teacher_ratio,
                            self.teacher_monthly_salary,
                            self.non_teacher_monthly_salary)


@dataclass(frozen=True)
class StaffCostPlan:
    """Annual staff cost base and its CPI cadence."""
    base_cost: Decimal | None = None
    cpi_frequency: int = 1
    base_year: int | None = None   # defaults to horizon start


@dataclass(frozen=True)
class OpexSubAccount:
    name: str
    is_fixed: bool
    fixed_amount: Decimal | None = None
    percent_of_revenue: Decimal | None = None   # whole-number percent: 6 = 6%
    escalate: bool = False


@dataclass(frozen=True)
class CapexRule:
    """Recurring reinvestment: base_cost every cycle_years from starting_year."""
    rule_id: str
    category: str
    cycle_years: int
    base_cost: Decimal
    starting_year: int
    inflation_index: str | None = None   # None = global CPI


@dataclass(frozen=True)
class ManualCapexItem:
    year: int
    category: str
    amount: Decimal
    description: str = ""


@dataclass(frozen=True)
class CapexItem:
    """A dated, inflated capex outlay. rule_id is None for manual items."""
    year: int
    category: str
    amount: Decimal
    rule_id: str | None = None
    description: str = ""


@dataclass(frozen=True)
class ScenarioInput:
    """Everything one projection needs. Never mutated by the engine."""
    name: str
    curricula: tuple[CurriculumPlan, ...]
    rent_plan: RentPlan
    staff_plan: StaffCostPlan
    assumptions: GlobalAssumptions = field(default_factory=GlobalAssumptions)
    capex_rules: tuple[CapexRule, ...] = ()
    manual_capex: tuple[ManualCapexItem, ...] = ()
    opex_accounts: tuple[OpexSubAccount, ...] = ()
    other_revenue: tuple[tuple[int, Decimal], ...] = ()   # (year, amount)


# ── Per-year sub-model output ───────────────────────────────────

@dataclass(frozen=True)
class TrackYear:
    curriculum: str
    enrollment: int
    capacity: int
    tuition: Decimal
    revenue: Decimal
    utilization: Decimal   # percent of capacity


@dataclass(frozen=True)
class RevenueYear:
    year: int
    tracks: tuple[TrackYear, ...]
    tuition_revenue: Decimal
    other_revenue: Decimal
    total: Decimal


@dataclass(frozen=True)
class OpexYear:
    year: int
    staff_cost: Decimal
    variable_opex: Decimal
    fixed_opex: Decimal
    breakdown: tuple[tuple[str, Decimal], ...]

    @property
    def total_opex(self) -> Decimal:
        return self.variable_opex + self.fixed_opex


@dataclass(frozen=True)
class WorkingCapital:
    receivables: Decimal = ZERO
    payables: Decimal = ZERO
    deferred_income: Decimal = ZERO
    accrued_expenses: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        """Net working capital (assets minus liabilities)."""
        return (self.receivables - self.payables
                - self.deferred_income - self.accrued_expenses)


# ── Carried state ───────────────────────────────────────────────

@dataclass
class YearState:
    """Opening position for the next year. Copied forward, never shared."""
    cash: Decimal
    debt: Decimal
    retained_earnings: Decimal
    gross_fixed_assets: Decimal
    accumulated_depreciation: Decimal
    working_capital: WorkingCapital
    interest_expense: Decimal = ZERO   # prior year's, for warm start

    @property
    def net_fixed_assets(self) -> Decimal:
        return self.gross_fixed_assets - self.accumulated_depreciation


# ── Year result ─────────────────────────────────────────────────

@dataclass(frozen=True)
class YearResult:
    year: int
    # Revenue
    tracks: tuple[TrackYear, ...]
    tuition_revenue: Decimal
    other_revenue: Decimal
    revenue: Decimal
    # Costs
    staff_cost: Decimal
    rent: Decimal
    opex: Decimal
    ebitda: Decimal
    ebitda_margin: Decimal   # percent
    rent_load: Decimal       # percent
    # Below EBITDA
    depreciation: Decimal
    interest_income: Decimal
    interest_expense: Decimal
    zakat: Decimal
    net_income: Decimal
    # Cash flow
    working_capital_change: Decimal
    operating_cash_flow: Decimal
    capex: Decimal
    investing_cash_flow: Decimal
    financing_cash_flow: Decimal
    net_cash_flow: Decimal
    opening_cash: Decimal
    closing_cash: Decimal
    # Balance sheet
    receivables: Decimal
    fixed_assets: Decimal
    accumulated_depreciation: Decimal
    total_assets: Decimal
    payables: Decimal
    deferred_income: Decimal
    accrued_expenses: Decimal
    opening_debt: Decimal
    debt: Decimal
    total_liabilities: Decimal
    retained_earnings: Decimal
    total_equity: Decimal
    # Solver
    solver_iterations: int

    @property
    def profit_before_zakat(self) -> Decimal:
        return self.net_income + self.zakat

    def to_record(self) -> dict:
        """Flat dict with money rounded to cents (tracks excluded)."""
        record = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "tracks":
                continue
            record[f.name] = money(value) if isinstance(value, Decimal) else value
        for track in self.tracks:
            record[f"enrollment_{track.curriculum}"] = track.enrollment
            record[f"tuition_{track.curriculum}"] = money(track.tuition)
            record[f"revenue_{track.curriculum}"] = money(track.revenue)
        return record


# ── Projection result ───────────────────────────────────────────

@dataclass(frozen=True)
class Summary:
    npv_rent: Decimal
    npv_cash_flow: Decimal
    average_ebitda_margin: Decimal
    average_rent_load: Decimal
    total_revenue: Decimal
    total_staff_cost: Decimal
    total_rent: Decimal
    total_opex: Decimal
    total_ebitda: Decimal
    total_net_income: Decimal
    total_capex: Decimal
    total_net_cash_flow: Decimal
    metrics_start_year: int
    metrics_end_year: int

    def to_dict(self) -> dict:
        return {
            f.name: (money(v) if isinstance(v, Decimal) else v)
            for f in fields(self)
            for v in [getattr(self, f.name)]
        }


@dataclass(frozen=True)
class ProjectionResult:
    """Ordered year results plus summary for one scenario."""
    scenario_name: str
    horizon: Horizon
    years: tuple[YearResult, ...]
    summary: Summary
    capex_items: tuple[CapexItem, ...] = ()

    def year(self, year: int) -> YearResult:
        return self.years[self.horizon.year_index(year)]

    def series(self, attr: str) -> list[Decimal]:
        return [getattr(y, attr) for y in self.years]

    def to_records(self) -> list[dict]:
        return [y.to_record() for y in self.years]

    @property
    def dataframe(self):
        """Year-indexed pandas DataFrame of rounded figures. Lazy import.

        Amounts become floats here; this is a display boundary only.
        """
        import pandas as pd
        df = pd.DataFrame(self.to_records())
        for col in df.columns:
            if df[col].map(lambda v: isinstance(v, Decimal)).any():
                df[col] = df[col].astype(float)
        return df.set_index("year")
