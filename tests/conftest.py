"""Shared fixtures: a small deterministic scenario and engine config."""

from __future__ import annotations

import dataclasses
from decimal import Decimal

import pytest

from engine.config import EngineConfig, GlobalAssumptions, WorkingCapitalSettings
from engine.periods import Horizon
from engine.rent import FixedEscalationRent
from engine.types import CurriculumPlan, ScenarioInput, StaffCostPlan

D = Decimal


@pytest.fixture
def horizon() -> Horizon:
    return Horizon(2023, 2052)


@pytest.fixture
def cfg() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def assumptions() -> GlobalAssumptions:
    """Plain assumptions: no working capital, no depreciation."""
    return GlobalAssumptions(
        cpi_rate=D("0.03"),
        discount_rate=D("0.08"),
        zakat_rate=D("0.025"),
        debt_interest_rate=D("0.05"),
        deposit_interest_rate=D("0.02"),
        minimum_cash_balance=D("1000000"),
        depreciation_rate=D("0"),
        starting_cash=D("5000000"),
        working_capital=WorkingCapitalSettings(
            collection_days=D("0"), payment_days=D("0")),
    )


@pytest.fixture
def curriculum() -> CurriculumPlan:
    return CurriculumPlan(
        curriculum="FR",
        capacity=1000,
        base_tuition=D("10000"),
        enrollment=((2023, 500),),
        cpi_frequency=1,
    )


@pytest.fixture
def make_scenario(assumptions, curriculum):
    """Factory: base scenario with any field replaced."""
    base = ScenarioInput(
        name="base",
        curricula=(curriculum,),
        rent_plan=FixedEscalationRent(base_rent=D("500000"),
                                      escalation_rate=D("0.02"), frequency=1),
        staff_plan=StaffCostPlan(base_cost=D("1000000"), cpi_frequency=1),
        assumptions=assumptions,
    )

    def _make(**changes) -> ScenarioInput:
        return dataclasses.replace(base, **changes)

    return _make
