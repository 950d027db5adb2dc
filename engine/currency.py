"""Decimal money layer — every engine amount is a Decimal.

to_decimal(100)        -> Decimal("100")
to_decimal(0.03)       -> Decimal("0.03")     (via str, no binary drift)
to_decimal("1,250.50") -> ValidationError     (no locale parsing)
to_decimal(float("nan")) -> ValidationError
money(Decimal("1.005")) -> Decimal("1.01")    (ROUND_HALF_UP, output only)
to_int(2.5)            -> ValidationError     (whole numbers only)
compound(0.03, 20)     -> (1.03)^20 at full precision

Internal arithmetic keeps full precision (engine_context). Rounding to
cents happens only at presentation boundaries (money, format_money).
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext

from engine.errors import ValidationError

PRECISION = 34
CENTS = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
DEFAULT_TOLERANCE = Decimal("0.01")

ENGINE_CONTEXT = Context(prec=PRECISION, rounding=ROUND_HALF_UP)

Number = Decimal | int | float | str


@contextmanager
def engine_context():
    """Run a block under the engine's decimal precision and rounding."""
    with localcontext(ENGINE_CONTEXT) as ctx:
        yield ctx


def to_decimal(value: Number, field: str = "value") -> Decimal:
    """Normalize a Decimal, int, float or numeric string to Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError.single(field, f"expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError.single(field, f"non-finite number {value!r}")
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError.single(
                field, f"not a numeric string: {value!r}") from None
    else:
        raise ValidationError.single(
            field, f"unsupported numeric type {type(value).__name__}")
    if not result.is_finite():
        raise ValidationError.single(field, f"non-finite number {value!r}")
    return result


def optional_decimal(value: Number | None, field: str = "value") -> Decimal | None:
    return None if value is None else to_decimal(value, field)


def to_int(value: Number, field: str = "value") -> int:
    """Normalize a whole number (int, integral float/Decimal, numeric string).

    to_int("2028") -> 2028, to_int(3.0) -> 3, to_int(2.5) -> ValidationError.
    Never truncates.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = to_decimal(value, field)
    if number != number.to_integral_value():
        raise ValidationError.single(
            field, f"expected a whole number, got {value!r}")
    return int(number)


def optional_int(value: Number | None, field: str = "value") -> int | None:
    return None if value is None else to_int(value, field)


def compound(rate: Number, periods: int) -> Decimal:
    """(1 + rate) ** periods using Decimal power."""
    with engine_context():
        return (ONE + to_decimal(rate, "rate")) ** int(periods)


def safe_divide(numerator: Number, denominator: Number) -> Decimal:
    """Divide, returning 0 when the denominator is zero."""
    den = to_decimal(denominator, "denominator")
    if den.is_zero():
        return ZERO
    with engine_context():
        return to_decimal(numerator, "numerator") / den


def percent_of(part: Number, whole: Number) -> Decimal:
    """part as a percentage of whole (0 when whole is zero)."""
    with engine_context():
        return safe_divide(part, whole) * HUNDRED


def money(value: Number) -> Decimal:
    """Round to cents for output."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def is_close(a: Number, b: Number, tolerance: Number = DEFAULT_TOLERANCE) -> bool:
    with engine_context():
        return abs(to_decimal(a) - to_decimal(b)) <= to_decimal(tolerance)


def format_money(value: Number) -> str:
    """'1,234.56' style rendering for reports."""
    return f"{money(value):,.2f}"
