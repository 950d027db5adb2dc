from decimal import Decimal

import pytest

from engine.errors import ValidationError
from engine.periods import Horizon
from engine.rent import (
    FixedEscalationRent, PartnerModelRent, RentEvaluator, RentModel,
    RevenueShareRent, evaluate_rent, rent_plan_from_dict, validate_rent_plan,
)

D = Decimal
HZ = Horizon(2023, 2032)


def partner(**kw):
    params = dict(land_size=D("10000"), land_price_per_sqm=D("1000"),
                  bua_size=D("5000"), construction_cost_per_sqm=D("2000"),
                  yield_base=D("0.08"))
    params.update(kw)
    return PartnerModelRent(**params)


class TestPartnerModel:
    def test_yield_on_land_and_construction(self):
        rents = evaluate_rent(partner(), HZ)
        assert rents[2023] == D("1600000")
        assert set(rents.values()) == {D("1600000")}

    def test_growth_on_frequency(self):
        rents = evaluate_rent(partner(growth_rate=D("0.02"), frequency=2), HZ)
        assert rents[2023] == rents[2024] == D("1600000")
        assert rents[2025] == rents[2026] == D("1632000")
        assert rents[2027] == D("1664640")

    def test_zero_yield_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_rent_plan(partner(yield_base=D("0")))
        assert exc.value.fields == ["rent.yield_base"]


class TestFixedEscalation:
    def test_steps_every_frequency_years(self):
        plan = FixedEscalationRent(base_rent=D("1000000"),
                                   escalation_rate=D("0.05"), frequency=3)
        rents = evaluate_rent(plan, HZ)
        assert [rents[y] for y in range(2023, 2026)] == [D("1000000")] * 3
        assert rents[2026] == D("1050000")
        assert rents[2028] == D("1050000")
        assert rents[2029] == D("1102500")

    def test_transition_rent_before_start(self):
        plan = FixedEscalationRent(base_rent=D("8000000"),
                                   escalation_rate=D("0.04"), frequency=1,
                                   start_year=2028, transition_rent=D("2500000"))
        rents = evaluate_rent(plan, HZ)
        assert rents[2027] == D("2500000")
        assert rents[2028] == D("8000000")
        assert rents[2029] == D("8320000")

    def test_start_year_outside_horizon(self):
        plan = FixedEscalationRent(D("1"), D("0"), 1, start_year=2040)
        with pytest.raises(ValidationError):
            RentEvaluator(plan, HZ)


class TestRevenueShare:
    def test_recomputed_only_on_boundary(self):
        ev = RentEvaluator(RevenueShareRent(revenue_share_percent=D("0.1"),
                                            frequency=2), HZ)
        assert ev.rent_for_year(2023, D("10000000")) == D("1000000")
        assert ev.rent_for_year(2024, D("12000000")) == D("1000000")
        assert ev.last_recalculation_year == 2023
        assert ev.rent_for_year(2025, D("14000000")) == D("1400000")
        assert ev.last_recalculation_year == 2025

    def test_first_year_after_start_always_computed(self):
        plan = RevenueShareRent(D("0.08"), frequency=3, start_year=2025,
                                transition_rent=D("100"))
        ev = RentEvaluator(plan, HZ)
        assert ev.rent_for_year(2024, D("5000")) == D("100")
        assert ev.rent_for_year(2025, D("5000")) == D("400")

    def test_share_above_one_rejected(self):
        with pytest.raises(ValidationError):
            validate_rent_plan(RevenueShareRent(D("1.5")))


class TestFromDict:
    def test_builds_variant(self):
        plan = rent_plan_from_dict({
            "model": "fixed_escalation",
            "parameters": {"base_rent": "100", "escalation_rate": 0.03,
                           "frequency": 2},
        })
        assert plan == FixedEscalationRent(D("100"), D("0.03"), 2)
        assert plan.kind is RentModel.FIXED_ESCALATION

    def test_missing_required_parameter_names_field(self):
        with pytest.raises(ValidationError) as exc:
            rent_plan_from_dict({
                "model": "PARTNER_MODEL",
                "parameters": {"land_size": 1, "land_price_per_sqm": 1,
                               "bua_size": 1, "construction_cost_per_sqm": 1},
            })
        assert exc.value.fields == ["rent.yield_base"]

    def test_fixed_lease_needs_frequency(self):
        with pytest.raises(ValidationError) as exc:
            rent_plan_from_dict({
                "model": "FIXED_ESCALATION",
                "parameters": {"base_rent": "100", "escalation_rate": "0.03"},
            })
        assert exc.value.fields == ["rent.frequency"]

    @pytest.mark.parametrize("frequency", ["yearly", 2.7])
    def test_frequency_must_be_whole(self, frequency):
        with pytest.raises(ValidationError) as exc:
            rent_plan_from_dict({
                "model": "REVENUE_SHARE",
                "parameters": {"revenue_share_percent": "0.1",
                               "frequency": frequency},
            })
        assert exc.value.fields == ["rent.frequency"]

    def test_unknown_model(self):
        with pytest.raises(ValidationError):
            rent_plan_from_dict({"model": "GROUND_LEASE", "parameters": {}})

    def test_unknown_parameter(self):
        with pytest.raises(ValidationError) as exc:
            rent_plan_from_dict({"model": "REVENUE_SHARE",
                                 "parameters": {"revenue_share_percent": "0.1",
                                                "base_rent": "5"}})
        assert exc.value.fields == ["rent.base_rent"]


@pytest.mark.parametrize("plan, field", [
    (FixedEscalationRent(D("100"), D("0.05"), frequency=6), "rent.frequency"),
    (FixedEscalationRent(D("100"), D("1.5"), frequency=1), "rent.escalation_rate"),
    (FixedEscalationRent(D("0"), D("0.05"), frequency=1), "rent.base_rent"),
    (FixedEscalationRent(D("100"), D("0.05"), frequency=1,
                         transition_rent=D("-1")), "rent.transition_rent"),
    (partner(land_size=D("0")), "rent.land_size"),
    (partner(growth_rate=D("2")), "rent.growth_rate"),
])
def test_out_of_range_parameters(plan, field):
    with pytest.raises(ValidationError) as exc:
        validate_rent_plan(plan)
    assert field in exc.value.fields
