from decimal import Decimal

import pytest

from engine.analytics import npv
from engine.errors import ConfigurationError

D = Decimal

FLOWS = [(2023 + i, D("1000000") + D("50000") * i) for i in range(30)]


def test_single_value_discounted_once():
    assert abs(npv(D("0.10"), [(2023, D("110"))], 2022) - D("100")) < D("1e-20")


def test_zero_rate_is_plain_sum():
    assert npv(D("0"), FLOWS, 2022) == sum(v for _, v in FLOWS)


@pytest.mark.parametrize("low, high", [
    ("0", "0.01"), ("0.05", "0.08"), ("0.08", "0.12"), ("0.5", "1"),
])
def test_higher_rate_strictly_lowers_npv_of_positive_flows(low, high):
    assert npv(D(high), FLOWS, 2022) < npv(D(low), FLOWS, 2022)


@pytest.mark.parametrize("rate", ["-0.01", "1.01", "2"])
def test_rate_outside_unit_interval(rate):
    with pytest.raises(ConfigurationError):
        npv(D(rate), FLOWS, 2022)
