from decimal import Decimal

import pytest

from engine.currency import (
    compound, engine_context, format_money, is_close, money, percent_of, safe_divide,
    to_decimal, to_int,
)
from engine.errors import ValidationError


class TestToDecimal:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(0.03) == Decimal("0.03")

    def test_int_and_string(self):
        assert to_decimal(5) == Decimal("5")
        assert to_decimal(" 12.50 ") == Decimal("12.50")
        assert to_decimal(Decimal("7.25")) == Decimal("7.25")

    @pytest.mark.parametrize("bad", [None, True, "abc", float("nan"),
                                     float("inf"), "NaN", [1]])
    def test_rejects_non_numbers(self, bad):
        with pytest.raises(ValidationError):
            to_decimal(bad, "amount")

    def test_error_names_field(self):
        with pytest.raises(ValidationError) as exc:
            to_decimal("x", "base_cost")
        assert exc.value.fields == ["base_cost"]


class TestToInt:
    def test_whole_numbers(self):
        assert to_int(2028) == 2028
        assert to_int("2028") == 2028
        assert to_int(3.0) == 3
        assert to_int(Decimal("4.00")) == 4

    @pytest.mark.parametrize("bad", [2.5, "2.7", Decimal("0.5"), True, "yearly", None])
    def test_never_truncates_or_guesses(self, bad):
        with pytest.raises(ValidationError) as exc:
            to_int(bad, "cycle_years")
        assert exc.value.fields == ["cycle_years"]


def test_money_rounds_half_up():
    assert money(Decimal("2.675")) == Decimal("2.68")
    assert money("1.005") == Decimal("1.01")
    assert money(-1.005) == Decimal("-1.01")


def test_compound_is_exact_decimal_power():
    assert compound("0.03", 2) == Decimal("1.0609")
    assert compound(0, 30) == Decimal("1")
    with engine_context():
        assert compound("0.03", 20) == Decimal("1.03") ** 20


def test_thirty_years_of_compounding_has_no_float_drift():
    value = Decimal("100")
    for _ in range(30):
        value *= compound("0.1", 1)
    assert money(value) == Decimal("1744.94")


def test_safe_divide_and_percent():
    assert safe_divide(1, 0) == Decimal("0")
    assert safe_divide(1, 4) == Decimal("0.25")
    assert percent_of(25, 200) == Decimal("12.5")
    assert percent_of(5, 0) == Decimal("0")


def test_is_close_and_format():
    assert is_close("100.004", 100)
    assert not is_close("100.02", 100)
    assert format_money(1234.5) == "1,234.50"
    assert format_money(Decimal("-9030556.174")) == "-9,030,556.17"
