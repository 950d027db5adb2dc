"""Capex scheduler — expands reinvestment rules into dated items.

A rule recurs at starting_year + cycle_years × n. Inflation compounds
from the rule's own starting year, so the first occurrence always costs
exactly base_cost. Occurrences before the horizon start are skipped but
still count toward the cycle.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from engine.config import GlobalAssumptions
from engine.currency import ZERO, compound, engine_context
from engine.errors import ValidationError
from engine.periods import Horizon
from engine.types import CapexItem, CapexRule, ManualCapexItem

logger = logging.getLogger(__name__)

MIN_CYCLE_YEARS = 1
MAX_CYCLE_YEARS = 50


def validate_rule(rule: CapexRule, rate: Decimal | None,
                  horizon: Horizon) -> list[tuple[str, str]]:
    """Return (field, message) issues for one rule; empty when valid."""
    issues: list[tuple[str, str]] = []
    if rule.base_cost <= ZERO:
        issues.append(("base_cost", f"must be > 0, got {rule.base_cost}"))
    if rate is None:
        issues.append(("inflation_index",
                       f"unknown inflation index {rule.inflation_index!r}"))
    elif rate < ZERO:
        issues.append(("inflation_rate", f"must be >= 0, got {rate}"))
    if not MIN_CYCLE_YEARS <= rule.cycle_years <= MAX_CYCLE_YEARS:
        issues.append(("cycle_years",
                       f"must be within [{MIN_CYCLE_YEARS}, {MAX_CYCLE_YEARS}], "
                       f"got {rule.cycle_years}"))
    if not horizon.contains(rule.starting_year):
        issues.append(("starting_year",
                       f"{rule.starting_year} outside horizon "
                       f"{horizon.start_year}-{horizon.end_year}"))
    return issues


def expand_rule(rule: CapexRule, rate: Decimal,
                horizon: Horizon) -> list[CapexItem]:
    """In-horizon occurrences of a single, already validated rule."""
    items = []
    year = rule.starting_year
    with engine_context():
        while year <= horizon.end_year:
            if year >= horizon.start_year:
                amount = rule.base_cost * compound(rate, year - rule.starting_year)
                items.append(CapexItem(year=year, category=rule.category,
                                       amount=amount, rule_id=rule.rule_id))
            year += rule.cycle_years
    return items


def _manual_items(manual: tuple[ManualCapexItem, ...] | list[ManualCapexItem],
                  horizon: Horizon) -> tuple[list[CapexItem], list[tuple[str, str]]]:
    items, issues = [], []
    for i, m in enumerate(manual):
        if m.amount <= ZERO:
            issues.append((f"manual[{i}].amount", f"must be > 0, got {m.amount}"))
        elif not horizon.contains(m.year):
            issues.append((f"manual[{i}].year", f"{m.year} outside horizon"))
        else:
            items.append(CapexItem(year=m.year, category=m.category,
                                   amount=m.amount, description=m.description))
    return items, issues


def _sort_key(item: CapexItem):
    return (item.year, item.category, item.rule_id or "")


def schedule_capex(
    rules: tuple[CapexRule, ...] | list[CapexRule],
    assumptions: GlobalAssumptions,
    horizon: Horizon,
    manual: tuple[ManualCapexItem, ...] | list[ManualCapexItem] = (),
) -> list[CapexItem]:
    """Expand all rules plus manual items, sorted by (year, category).

    Every invalid rule is reported in one ValidationError; no items are
    returned if any rule or manual item fails.
    """
    items: list[CapexItem] = []
    issues: list[tuple[str, str]] = []

    for rule in rules:
        rate = assumptions.index_rate(rule.inflation_index)
        rule_issues = validate_rule(rule, rate, horizon)
        if rule_issues:
            issues.extend((f"{rule.rule_id}.{f}", m) for f, m in rule_issues)
            continue
        items.extend(expand_rule(rule, rate, horizon))

    manual_items, manual_issues = _manual_items(manual, horizon)
    items.extend(manual_items)
    issues.extend(manual_issues)

    if issues:
        raise ValidationError(issues)

    items.sort(key=_sort_key)
    logger.debug("Scheduled %d capex items from %d rules and %d manual entries",
                 len(items), len(rules), len(manual))
    return items


def capex_by_year(items: list[CapexItem] | tuple[CapexItem, ...]) -> dict[int, Decimal]:
    """Total capex per year (years without items are absent)."""
    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for item in items:
        totals[item.year] += item.amount
    return dict(totals)
