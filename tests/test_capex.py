from decimal import Decimal

import pytest

from engine.capex import capex_by_year, schedule_capex
from engine.config import GlobalAssumptions
from engine.currency import engine_context, money
from engine.errors import ValidationError
from engine.types import CapexRule, ManualCapexItem

D = Decimal


@pytest.fixture
def cpi3():
    return GlobalAssumptions(cpi_rate=D("0.03"),
                             inflation_indices={"construction": D("0.05")})


def building(**kw):
    params = dict(rule_id="bld", category="Building", cycle_years=20,
                  base_cost=D("5000000"), starting_year=2028)
    params.update(kw)
    return CapexRule(**params)


def test_building_cycle_example(cpi3, horizon):
    items = schedule_capex([building()], cpi3, horizon)

    assert [i.year for i in items] == [2028, 2048]
    assert items[0].amount == D("5000000")
    with engine_context():
        expected = D("5000000") * D("1.03") ** 20
    assert items[1].amount == expected
    assert abs(money(items[1].amount) - D("9030556.59")) < 1
    assert all(i.rule_id == "bld" for i in items)


def test_schedule_is_idempotent_and_order_stable(cpi3, horizon):
    rules = [
        building(),
        CapexRule("it", "IT", 4, D("300000"), 2023),
        CapexRule("av", "Audio", 4, D("100000"), 2023),
    ]
    first = schedule_capex(rules, cpi3, horizon)
    second = schedule_capex(list(reversed(rules)), cpi3, horizon)

    assert first == second
    keys = [(i.year, i.category) for i in first]
    assert keys == sorted(keys)
    assert (first[0].year, first[0].category) == (2023, "Audio")


def test_anchoring_follows_rule_starting_year(cpi3, horizon):
    a = CapexRule("a", "Roof", 5, D("1000"), 2023)
    b = CapexRule("b", "Roof", 3, D("1000"), 2025)
    items = [i for i in schedule_capex([a, b], cpi3, horizon) if i.year == 2028]

    by_rule = {i.rule_id: i.amount for i in items}
    assert by_rule["a"] == D("1000") * D("1.03") ** 5
    assert by_rule["b"] == D("1000") * D("1.03") ** 3


def test_named_inflation_index(cpi3, horizon):
    rule = CapexRule("f", "Furniture", 10, D("1000"), 2023,
                     inflation_index="construction")
    items = schedule_capex([rule], cpi3, horizon)
    assert items[1].year == 2033
    assert items[1].amount == D("1000") * D("1.05") ** 10


@pytest.mark.parametrize("changes, field", [
    ({"base_cost": D("0")}, "bld.base_cost"),
    ({"base_cost": D("-1")}, "bld.base_cost"),
    ({"cycle_years": 0}, "bld.cycle_years"),
    ({"cycle_years": 51}, "bld.cycle_years"),
    ({"starting_year": 2020}, "bld.starting_year"),
    ({"starting_year": 2053}, "bld.starting_year"),
    ({"inflation_index": "missing"}, "bld.inflation_index"),
])
def test_invalid_rule(cpi3, horizon, changes, field):
    with pytest.raises(ValidationError) as exc:
        schedule_capex([building(**changes)], cpi3, horizon)
    assert field in exc.value.fields


def test_negative_cpi_rejected(horizon):
    with pytest.raises(ValidationError) as exc:
        schedule_capex([building()], GlobalAssumptions(cpi_rate=D("-0.01")), horizon)
    assert exc.value.fields == ["bld.inflation_rate"]


def test_failures_aggregate_across_rules(cpi3, horizon):
    bad_a = building(rule_id="a", cycle_years=0)
    bad_b = building(rule_id="b", base_cost=D("0"), starting_year=1999)
    good = building(rule_id="c")

    with pytest.raises(ValidationError) as exc:
        schedule_capex([bad_a, good, bad_b], cpi3, horizon)
    assert exc.value.fields == ["a.cycle_years", "b.base_cost", "b.starting_year"]


def test_manual_items_merge_without_rule(cpi3, horizon):
    manual = [ManualCapexItem(2028, "Fit-out", D("3000000"), "relocation")]
    items = schedule_capex([building()], cpi3, horizon, manual)

    assert [(i.year, i.category, i.rule_id) for i in items] == [
        (2028, "Building", "bld"),
        (2028, "Fit-out", None),
        (2048, "Building", "bld"),
    ]
    assert capex_by_year(items)[2028] == D("8000000")


def test_manual_item_outside_horizon(cpi3, horizon):
    with pytest.raises(ValidationError):
        schedule_capex([], cpi3, horizon, [ManualCapexItem(2060, "X", D("1"))])
