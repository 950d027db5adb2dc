from decimal import Decimal

import pytest

from engine.currency import engine_context
from engine.errors import ValidationError
from engine.opex import OpexProjector, StaffCostProjector
from engine.types import OpexSubAccount, StaffCostPlan

D = Decimal
CPI = D("0.03")


def staff(frequency=1, base_year=None, base=D("1000000"), first_year=2023):
    return StaffCostProjector(StaffCostPlan(base_cost=base, cpi_frequency=frequency,
                                            base_year=base_year),
                              base, CPI, first_year)


def test_staff_cost_carries_forward_between_boundaries():
    projector = staff(frequency=3)
    costs = [projector.cost_for_year(y) for y in range(2023, 2030)]
    assert costs[:3] == [D("1000000")] * 3
    assert costs[3:6] == [D("1030000")] * 3
    assert costs[6] == D("1060900")


def test_staff_cost_deflates_before_base_year():
    projector = staff(frequency=2, base_year=2028)
    with engine_context():
        one_step = D("1000000") / D("1.03")
        two_steps = D("1000000") / D("1.03") ** 2
        three_steps = D("1000000") / D("1.03") ** 3
    assert projector.cost_for_year(2023) == three_steps
    assert projector.cost_for_year(2026) == one_step
    assert projector.cost_for_year(2027) == one_step
    assert projector.cost_for_year(2025) == two_steps
    assert projector.cost_for_year(2028) == D("1000000")
    assert projector.cost_for_year(2029) == D("1000000")
    assert projector.cost_for_year(2030) == D("1030000")


def test_sub_accounts_fixed_variable_and_escalating():
    accounts = [
        OpexSubAccount("Utilities", is_fixed=True, fixed_amount=D("100000"),
                       escalate=True),
        OpexSubAccount("Insurance", is_fixed=True, fixed_amount=D("50000")),
        OpexSubAccount("Marketing", is_fixed=False, percent_of_revenue=D("6")),
    ]
    projector = OpexProjector(staff(), accounts, CPI, 2023)

    y1 = projector.project_year(2023, D("10000000"))
    assert y1.staff_cost == D("1000000")
    assert y1.fixed_opex == D("150000")
    assert y1.variable_opex == D("600000")
    assert y1.total_opex == D("750000")
    assert dict(y1.breakdown)["Marketing"] == D("600000")

    y2 = projector.project_year(2024, D("20000000"))
    assert dict(y2.breakdown) == {
        "Utilities": D("103000"),
        "Insurance": D("50000"),
        "Marketing": D("1200000"),
    }


@pytest.mark.parametrize("account, field", [
    (OpexSubAccount("Rates", is_fixed=True), "opex[Rates].fixed_amount"),
    (OpexSubAccount("Rates", is_fixed=True, fixed_amount=D("-1")),
     "opex[Rates].fixed_amount"),
    (OpexSubAccount("Fees", is_fixed=False), "opex[Fees].percent_of_revenue"),
    (OpexSubAccount("Fees", is_fixed=False, percent_of_revenue=D("101")),
     "opex[Fees].percent_of_revenue"),
])
def test_invalid_sub_account(account, field):
    with pytest.raises(ValidationError) as exc:
        OpexProjector(staff(), [account], CPI, 2023)
    assert exc.value.fields == [field]


def test_staff_frequency_bounds():
    with pytest.raises(ValidationError):
        staff(frequency=4)
