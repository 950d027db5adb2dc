"""Scenario loading — persisted numbers (strings/ints/floats) to Decimals.

A scenario file is JSON or YAML with this shape:

    name: "Relocation 2028"
    assumptions: {cpi_rate: "0.03", ...}        # overrides config defaults
    curricula:
      - {curriculum: FR, capacity: 2000, base_tuition: "50000",
         cpi_frequency: 2, enrollment: {2023: 300, 2028: 800}}
    rent: {model: FIXED_ESCALATION, parameters: {base_rent: "8000000", ...}}
    staff: {base_cost: "12000000", cpi_frequency: 1}
    capex_rules: [{rule_id, category, cycle_years, base_cost, starting_year}]
    manual_capex: [{year, category, amount}]
    opex_accounts: [{name, is_fixed, fixed_amount | percent_of_revenue}]
    other_revenue: {2023: "250000"}
"""

from __future__ import annotations

import json
from pathlib import Path

import yaml

from engine.config import GlobalAssumptions, load_config
from engine.currency import optional_decimal, optional_int, to_decimal, to_int
from engine.errors import ValidationError
from engine.rent import rent_plan_from_dict
from engine.types import (
    CapexRule, CurriculumPlan, ManualCapexItem, OpexSubAccount,
    ScenarioInput, StaffCostPlan,
)


def _require(data: dict, key: str, where: str):
    if data.get(key) is None:
        raise ValidationError.single(f"{where}.{key}", "required field missing")
    return data[key]


def _int(data: dict, key: str, where: str, default=None) -> int:
    raw = data.get(key, default)
    if raw is None:
        raise ValidationError.single(f"{where}.{key}", "required field missing")
    return to_int(raw, f"{where}.{key}")


def _year_map(raw, where: str) -> dict[int, object]:
    """Accept {year: value} or [[year, value], ...]."""
    pairs = raw.items() if isinstance(raw, dict) else raw
    try:
        pairs = [(year, value) for year, value in pairs]
    except (TypeError, ValueError):
        raise ValidationError.single(where, f"malformed year mapping {raw!r}") from None
    return {to_int(year, f"{where}[{year}]"): value for year, value in pairs}


def _merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def curriculum_from_dict(data: dict) -> CurriculumPlan:
    name = str(_require(data, "curriculum", "curriculum"))
    where = f"curriculum[{name}]"
    enrollment = _year_map(_require(data, "enrollment", where), f"{where}.enrollment")
    staffing = data.get("staffing") or {}
    return CurriculumPlan(
        curriculum=name,
        capacity=_int(data, "capacity", where),
        base_tuition=to_decimal(_require(data, "base_tuition", where),
                                f"{where}.base_tuition"),
        enrollment=tuple(sorted(
            (y, to_int(s, f"{where}.enrollment[{y}]")) for y, s in enrollment.items())),
        cpi_frequency=_int(data, "cpi_frequency", where, default=1),
        teacher_ratio=optional_decimal(staffing.get("teacher_ratio"),
                                       f"{where}.teacher_ratio"),
        non_teacher_ratio=optional_decimal(staffing.get("non_teacher_ratio"),
                                           f"{where}.non_teacher_ratio"),
        teacher_monthly_salary=optional_decimal(
            staffing.get("teacher_monthly_salary"), f"{where}.teacher_monthly_salary"),
        non_teacher_monthly_salary=optional_decimal(
            staffing.get("non_teacher_monthly_salary"),
            f"{where}.non_teacher_monthly_salary"),
    )


def capex_rule_from_dict(data: dict, index: int) -> CapexRule:
    where = f"capex_rules[{index}]"
    return CapexRule(
        rule_id=str(data.get("rule_id") or f"rule-{index + 1}"),
        category=str(_require(data, "category", where)),
        cycle_years=_int(data, "cycle_years", where),
        base_cost=to_decimal(_require(data, "base_cost", where), f"{where}.base_cost"),
        starting_year=_int(data, "starting_year", where),
        inflation_index=data.get("inflation_index"),
    )


def manual_capex_from_dict(data: dict, index: int) -> ManualCapexItem:
    where = f"manual_capex[{index}]"
    return ManualCapexItem(
        year=_int(data, "year", where),
        category=str(_require(data, "category", where)),
        amount=to_decimal(_require(data, "amount", where), f"{where}.amount"),
        description=str(data.get("description", "")),
    )


def opex_account_from_dict(data: dict) -> OpexSubAccount:
    name = str(_require(data, "name", "opex"))
    return OpexSubAccount(
        name=name,
        is_fixed=bool(data.get("is_fixed", False)),
        fixed_amount=optional_decimal(data.get("fixed_amount"),
                                      f"opex[{name}].fixed_amount"),
        percent_of_revenue=optional_decimal(data.get("percent_of_revenue"),
                                            f"opex[{name}].percent_of_revenue"),
        escalate=bool(data.get("escalate", False)),
    )


def staff_plan_from_dict(data: dict | None) -> StaffCostPlan:
    data = data or {}
    return StaffCostPlan(
        base_cost=optional_decimal(data.get("base_cost"), "staff.base_cost"),
        cpi_frequency=_int(data, "cpi_frequency", "staff", default=1),
        base_year=optional_int(data.get("base_year"), "staff.base_year"),
    )


def scenario_from_dict(data: dict, defaults: dict | None = None) -> ScenarioInput:
    """Build an immutable ScenarioInput.

    defaults is the assumptions mapping the scenario overrides; it comes
    from config/engine.json when not given.
    """
    if defaults is None:
        defaults = load_config("engine").get("assumptions", {})
    assumptions = GlobalAssumptions.from_dict(
        _merge(defaults, data.get("assumptions") or {}))

    other = _year_map(data.get("other_revenue") or {}, "other_revenue")
    return ScenarioInput(
        name=str(data.get("name", "scenario")),
        curricula=tuple(curriculum_from_dict(c)
                        for c in _require(data, "curricula", "scenario")),
        rent_plan=rent_plan_from_dict(_require(data, "rent", "scenario")),
        staff_plan=staff_plan_from_dict(data.get("staff")),
        assumptions=assumptions,
        capex_rules=tuple(capex_rule_from_dict(r, i)
                          for i, r in enumerate(data.get("capex_rules") or [])),
        manual_capex=tuple(manual_capex_from_dict(m, i)
                           for i, m in enumerate(data.get("manual_capex") or [])),
        opex_accounts=tuple(opex_account_from_dict(o)
                            for o in data.get("opex_accounts") or []),
        other_revenue=tuple(sorted(
            (year, to_decimal(amount, f"other_revenue[{year}]"))
            for year, amount in other.items())),
    )


def load_scenario(path: str | Path, defaults: dict | None = None) -> ScenarioInput:
    """Read a .json, .yaml or .yml scenario file."""
    path = Path(path)
    with open(path, "r") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.load(f, Loader=yaml.SafeLoader)
        else:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValidationError.single(str(path), "scenario file must hold a mapping")
    return scenario_from_dict(data, defaults)
