"""Curriculum/revenue projector — enrollment × CPI-stepped tuition per track.

Enrollment comes from each plan's sparse year → students entries: the exact
year if present, otherwise the most recent earlier entry. Tuition grows by
CPI only on the track's cadence boundary, counted from the first projected
year.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from decimal import Decimal

from engine.currency import ZERO, engine_context, percent_of
from engine.errors import ValidationError
from engine.formulas import Escalator
from engine.types import CurriculumPlan, RevenueYear, TrackYear

logger = logging.getLogger(__name__)

MAX_CAPACITY = 10_000
CPI_FREQUENCIES = (1, 2, 3)
MONTHS_PER_YEAR = 12


def validate_curriculum(plan: CurriculumPlan, first_year: int) -> None:
    """Raise ValidationError for every issue in one curriculum plan."""
    issues: list[tuple[str, str]] = []
    if not 0 <= plan.capacity <= MAX_CAPACITY:
        issues.append(("capacity",
                       f"must be within [0, {MAX_CAPACITY}], got {plan.capacity}"))
    if plan.base_tuition <= ZERO:
        issues.append(("base_tuition", f"must be > 0, got {plan.base_tuition}"))
    if plan.cpi_frequency not in CPI_FREQUENCIES:
        issues.append(("cpi_frequency",
                       f"must be one of {CPI_FREQUENCIES}, got {plan.cpi_frequency}"))
    for year, students in plan.enrollment:
        if students < 0:
            issues.append((f"enrollment[{year}]", f"must be >= 0, got {students}"))
        elif students > plan.capacity:
            issues.append((f"enrollment[{year}]",
                           f"{students} students exceeds capacity {plan.capacity}"))
    years = [y for y, _ in plan.enrollment]
    if years != sorted(set(years)):
        issues.append(("enrollment", "years must be unique and ascending"))
    if not plan.enrollment or plan.enrollment[0][0] > first_year:
        issues.append(("enrollment",
                       f"no entry at or before first projected year {first_year}"))
    for name in ("teacher_ratio", "non_teacher_ratio"):
        ratio = getattr(plan, name)
        if ratio is not None and ratio <= ZERO:
            issues.append((name, f"must be > 0, got {ratio}"))
    if issues:
        raise ValidationError(issues).prefixed(f"curriculum[{plan.curriculum}]")


def enrollment_for_year(plan: CurriculumPlan, year: int) -> int:
    """Exact entry for year, else the most recent earlier entry."""
    years = [y for y, _ in plan.enrollment]
    pos = bisect_right(years, year)
    if pos == 0:
        raise ValidationError.single(
            f"curriculum[{plan.curriculum}].enrollment",
            f"no entry at or before {year}")
    entry_year, students = plan.enrollment[pos - 1]
    if entry_year != year:
        logger.debug("%s: %d carries enrollment from %d",
                     plan.curriculum, year, entry_year)
    return students


class CurriculumProjector:
    """Sequential revenue projection across all tracks.

    project_year must be called with consecutive years, starting at
    first_year; each track's tuition escalator carries its state forward.
    """

    def __init__(self, plans: tuple[CurriculumPlan, ...] | list[CurriculumPlan],
                 cpi_rate: Decimal, first_year: int,
                 other_revenue: dict[int, Decimal] | None = None):
        if not plans:
            raise ValidationError.single("curricula", "at least one curriculum required")
        names = [p.curriculum for p in plans]
        if len(set(names)) != len(names):
            raise ValidationError.single("curricula", f"duplicate curriculum in {names}")
        for plan in plans:
            validate_curriculum(plan, first_year)

        self.other_revenue = dict(other_revenue or {})
        negative = [(f"other_revenue[{y}]", f"must be >= 0, got {a}")
                    for y, a in sorted(self.other_revenue.items()) if a < ZERO]
        if negative:
            raise ValidationError(negative)

        self.plans = tuple(plans)
        self.first_year = first_year
        self._tuition = {
            p.curriculum: Escalator(base=p.base_tuition, rate=cpi_rate,
                                    frequency=p.cpi_frequency,
                                    base_year=first_year)
            for p in self.plans
        }

    def project_year(self, year: int) -> RevenueYear:
        tracks = []
        with engine_context():
            for plan in self.plans:
                students = enrollment_for_year(plan, year)
                tuition = self._tuition[plan.curriculum].step(year)
                tracks.append(TrackYear(
                    curriculum=plan.curriculum,
                    enrollment=students,
                    capacity=plan.capacity,
                    tuition=tuition,
                    revenue=tuition * students,
                    utilization=percent_of(students, plan.capacity),
                ))
            tuition_revenue = sum((t.revenue for t in tracks), ZERO)
            other = self.other_revenue.get(year, ZERO)
            return RevenueYear(
                year=year,
                tracks=tuple(tracks),
                tuition_revenue=tuition_revenue,
                other_revenue=other,
                total=tuition_revenue + other,
            )

    def project(self, years) -> list[RevenueYear]:
        return [self.project_year(y) for y in years]


def _closest_enrollment(plan: CurriculumPlan, year: int) -> int:
    """Enrollment nearest to year, preferring entries at or before it."""
    earlier = [(y, s) for y, s in plan.enrollment if y <= year]
    if earlier:
        return earlier[-1][1]
    return plan.enrollment[0][1] if plan.enrollment else 0


def staff_cost_base_from_curricula(
    plans: tuple[CurriculumPlan, ...] | list[CurriculumPlan],
    year: int,
) -> Decimal:
    """Annual staff cost implied by staffing ratios at year's enrollment.

    (students / teacher_ratio × teacher salary
     + students / non_teacher_ratio × non-teacher salary) × 12, summed
    over tracks. Tracks without ratios are a ValidationError.
    """
    lacking = [p.curriculum for p in plans if not p.has_staffing]
    if not plans or lacking:
        raise ValidationError.single(
            "staff_plan.base_cost",
            f"no base cost given and curricula lack staffing ratios: {lacking}")
    total = ZERO
    with engine_context():
        for plan in plans:
            students = Decimal(_closest_enrollment(plan, year))
            monthly = (students / plan.teacher_ratio * plan.teacher_monthly_salary
                       + students / plan.non_teacher_ratio
                       * plan.non_teacher_monthly_salary)
            total += monthly * MONTHS_PER_YEAR
    return total
