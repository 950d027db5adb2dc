import dataclasses
import threading
from decimal import Decimal

import pytest

from audit.checks import check_balance_sheet, check_cash_flow, check_pnl
from engine.currency import engine_context, is_close
from engine.errors import (
    ConfigurationError, DivergenceError, ProjectionCancelled, ValidationError,
)
from engine.orchestrator import run_projection
from engine.types import CapexRule, ManualCapexItem

D = Decimal


class CancelAfter:
    """Signal that trips after n year-boundary checks."""

    def __init__(self, n):
        self.n = n
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.n


def test_years_contiguous_over_full_horizon(make_scenario, cfg):
    result = run_projection(make_scenario(), cfg)

    years = [y.year for y in result.years]
    assert len(years) == 2052 - 2023 + 1
    assert years == list(range(2023, 2053))


def test_closing_cash_carries_to_next_opening(make_scenario, cfg):
    result = run_projection(make_scenario(), cfg)

    assert result.years[0].opening_cash == D("5000000")
    for prev, cur in zip(result.years, result.years[1:]):
        assert cur.opening_cash == prev.closing_cash
        assert cur.opening_debt == prev.debt


def test_no_debt_scenario_solves_each_year_in_one_iteration(make_scenario, cfg):
    result = run_projection(make_scenario(), cfg)

    first = result.years[0]
    assert first.revenue == D("5000000")
    assert first.ebitda == D("3500000")
    assert first.interest_income == D("80000")
    assert all(y.interest_expense == 0 and y.debt == 0 for y in result.years)
    assert all(y.solver_iterations == 1 for y in result.years)
    assert first.rent_load == D("10")
    assert first.ebitda_margin == D("70")


def test_alternating_deficit_and_surplus_years(make_scenario, cfg):
    cfg = cfg.with_horizon(2023, 2030)
    scenario = make_scenario(
        assumptions=dataclasses.replace(make_scenario().assumptions,
                                        starting_cash=D("1000000")),
        manual_capex=(
            ManualCapexItem(2023, "Campus", D("6000000")),
            ManualCapexItem(2025, "Campus", D("6000000")),
            ManualCapexItem(2027, "Campus", D("8000000")),
            ManualCapexItem(2029, "Campus", D("8000000")),
        ),
    )
    result = run_projection(scenario, cfg)

    for y in result.years:
        assert y.closing_cash >= D("1000000") - D("0.01")
        if y.year % 2:
            assert y.debt > 0, y.year
            assert is_close(y.closing_cash, D("1000000"))
            assert is_close(y.interest_expense, y.debt * D("0.05"))
        else:
            assert y.debt == 0, y.year
            assert y.financing_cash_flow < 0
            assert y.interest_expense == 0

    checks = (check_pnl(result.years, D("0.025"))
              + check_cash_flow(result.years)
              + check_balance_sheet(result.years, D("1000000")))
    assert [c for c in checks if not c[5]] == []


def test_validation_error_aborts_without_result(make_scenario, cfg):
    scenario = make_scenario(
        capex_rules=(CapexRule("roof", "Roof", 0, D("1000"), 2030),))
    with pytest.raises(ValidationError) as exc:
        run_projection(scenario, cfg)
    assert exc.value.fields == ["roof.cycle_years"]


def test_discount_rate_out_of_range_is_configuration_error(make_scenario, cfg):
    a = make_scenario().assumptions.with_overrides(discount_rate="1.5")
    with pytest.raises(ConfigurationError):
        run_projection(make_scenario(assumptions=a), cfg)


def test_pathological_interest_rate_diverges(make_scenario, cfg):
    a = make_scenario().assumptions.with_overrides(
        debt_interest_rate="1.5", minimum_cash_balance="1000000000000")
    with pytest.raises(DivergenceError) as exc:
        run_projection(make_scenario(assumptions=a), cfg)
    assert exc.value.year == 2023


def test_cancelled_before_start(make_scenario, cfg):
    event = threading.Event()
    event.set()
    with pytest.raises(ProjectionCancelled) as exc:
        run_projection(make_scenario(), cfg, cancel_event=event)
    assert exc.value.year == 2023


def test_cancelled_at_year_boundary(make_scenario, cfg):
    signal = CancelAfter(3)
    with pytest.raises(ProjectionCancelled) as exc:
        run_projection(make_scenario(), cfg, cancel_event=signal)
    assert exc.value.year == 2026
    assert signal.calls == 4


def test_identical_inputs_give_identical_results(make_scenario, cfg):
    assert run_projection(make_scenario(), cfg) == run_projection(make_scenario(), cfg)


def test_summary_metrics(make_scenario, cfg):
    result = run_projection(make_scenario(), cfg)
    s = result.summary

    with engine_context():
        npv_rent = sum(y.rent / D("1.08") ** (y.year - 2022) for y in result.years)
        margin = sum(y.ebitda_margin for y in result.years) / 30
    assert abs(s.npv_rent - npv_rent) < D("0.01")
    assert abs(s.average_ebitda_margin - margin) < D("0.0001")
    assert s.total_rent == sum(y.rent for y in result.years)
    assert (s.metrics_start_year, s.metrics_end_year) == (2023, 2052)


def test_metrics_window_start(make_scenario, cfg):
    a = dataclasses.replace(make_scenario().assumptions, metrics_start_year=2028)
    result = run_projection(make_scenario(assumptions=a), cfg)
    s = result.summary

    window = [y for y in result.years if y.year >= 2028]
    assert s.total_revenue == sum(y.revenue for y in window)
    with engine_context():
        first = window[0].rent / D("1.08")
    assert s.npv_rent > first


def test_capex_flows_into_fixed_assets(make_scenario, cfg):
    a = dataclasses.replace(make_scenario().assumptions, depreciation_rate=D("0.10"))
    scenario = make_scenario(
        assumptions=a,
        capex_rules=(CapexRule("bld", "Building", 20, D("5000000"), 2028),))
    result = run_projection(scenario, cfg)

    assert [i.year for i in result.capex_items] == [2028, 2048]
    y2028, y2029 = result.year(2028), result.year(2029)
    assert y2028.capex == D("5000000")
    assert y2028.depreciation == 0
    assert y2028.fixed_assets == D("5000000")
    assert y2029.depreciation == D("500000")
    assert y2029.fixed_assets == D("4500000")
    assert y2028.investing_cash_flow == D("-5000000")


def test_records_and_dataframe(make_scenario, cfg):
    result = run_projection(make_scenario(), cfg)
    record = result.to_records()[0]
    assert record["year"] == 2023
    assert record["revenue"] == D("5000000.00")
    assert record["enrollment_FR"] == 500

    pd = pytest.importorskip("pandas")
    df = result.dataframe
    assert isinstance(df, pd.DataFrame)
    assert list(df.index) == list(range(2023, 2053))
    assert df.loc[2023, "revenue"] == pytest.approx(5_000_000.0)
