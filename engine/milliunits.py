"""Milliunit primitives: integer money arithmetic.

A milliunit is 1/1000 of a currency unit ($10.50 == 10_500). Every amount the
engine stores or computes is a plain ``int`` in milliunits; conversion to and
from decimals happens only at the edges (``to_milliunits`` / ``from_milliunits``).

Every entry point validates its input and raises FinancialSafetyError for
NaN, infinities, non-numeric values and magnitudes above MAX_SAFE_MILLIUNITS.
Nothing is ever coerced to zero.
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP
from typing import NewType

from engine.errors import FinancialSafetyError
from utils.constants import MAX_SAFE_MILLIUNITS, MILLIUNIT_FACTOR

Milliunit = NewType("Milliunit", int)

ZERO = Milliunit(0)

_FACTOR = Decimal(MILLIUNIT_FACTOR)
_ONE = Decimal(1)


def _to_decimal(value, context: str) -> Decimal:
    """Finite Decimal for any int/float/Decimal/numeric str, else FinancialSafetyError."""
    if isinstance(value, bool):
        raise FinancialSafetyError(
            f"[Financial Safety] Invalid monetary value in {context}: {value!r} (bool)."
        )
    if isinstance(value, float):
        if not math.isfinite(value):
            raise FinancialSafetyError(
                f"[Financial Safety] Invalid monetary value in {context}: {value!r}. "
                "Monetary values must be finite numbers."
            )
        # str() gives the shortest repr, so 10.5 becomes exactly 10.5
        return Decimal(str(value))
    if isinstance(value, (int, Decimal, str)):
        try:
            dec = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise FinancialSafetyError(
                f"[Financial Safety] Invalid monetary value in {context}: {value!r}."
            ) from None
        if not dec.is_finite():
            raise FinancialSafetyError(
                f"[Financial Safety] Invalid monetary value in {context}: {value!r}. "
                "Monetary values must be finite numbers."
            )
        return dec
    raise FinancialSafetyError(
        f"[Financial Safety] Invalid monetary value in {context}: {value!r} "
        f"(type: {type(value).__name__})."
    )


def _round(value: Decimal, rounding: str, context: str) -> int:
    try:
        return int(value.quantize(_ONE, rounding=rounding))
    except InvalidOperation:
        # result wider than the decimal context precision
        raise FinancialSafetyError(
            f"[Financial Safety] Value exceeds safe integer precision in {context}: {value}."
        ) from None


def _checked(value: int, context: str) -> Milliunit:
    if abs(value) > MAX_SAFE_MILLIUNITS:
        raise FinancialSafetyError(
            f"[Financial Safety] Value exceeds safe integer precision in {context}: "
            f"{value}. Max safe milliunit = ±{MAX_SAFE_MILLIUNITS}."
        )
    return Milliunit(value)


# ── Conversion ────────────────────────────────────────────────────────────────

def to_milliunits(amount) -> Milliunit:
    """Convert a decimal currency amount to milliunits.

    >>> to_milliunits(10.50)
    10500
    >>> to_milliunits("-5.123")
    -5123
    """
    dec = _to_decimal(amount, "to_milliunits")
    scaled = _round(dec * _FACTOR, ROUND_HALF_UP, "to_milliunits")
    return _checked(scaled, "to_milliunits")


def from_milliunits(amount: int) -> Decimal:
    """Convert milliunits back to an exact decimal currency amount."""
    value = milliunit(amount)
    return Decimal(value) / _FACTOR


def milliunit(value) -> Milliunit:
    """Wrap a value that is already in milliunits (e.g. read from the DB)."""
    if isinstance(value, int) and not isinstance(value, bool):
        return _checked(value, "milliunit")
    dec = _to_decimal(value, "milliunit")
    if dec != dec.to_integral_value():
        raise FinancialSafetyError(
            f"[Financial Safety] Milliunit values must be whole numbers: {value!r}."
        )
    return _checked(int(dec), "milliunit")


# ── Arithmetic ────────────────────────────────────────────────────────────────

def add(a: int, b: int) -> Milliunit:
    return _checked(milliunit(a) + milliunit(b), "add")


def sub(a: int, b: int) -> Milliunit:
    return _checked(milliunit(a) - milliunit(b), "sub")


def neg(a: int) -> Milliunit:
    return Milliunit(-milliunit(a))


def abs_(a: int) -> Milliunit:
    return Milliunit(abs(milliunit(a)))


def min_(a: int, b: int) -> Milliunit:
    return Milliunit(min(milliunit(a), milliunit(b)))


def max_(a: int, b: int) -> Milliunit:
    return Milliunit(max(milliunit(a), milliunit(b)))


def sign(a: int) -> int:
    value = milliunit(a)
    return (value > 0) - (value < 0)


def sum_(values) -> Milliunit:
    total = 0
    for v in values:
        total += milliunit(v)
    return _checked(total, "sum")


def multiply(amount: int, scalar) -> Milliunit:
    """Multiply by a plain scalar (rate, percentage, quantity).

    The result is rounded to the nearest milliunit, halves away from zero.
    """
    factor = _to_decimal(scalar, "multiply(scalar)")
    product = _round(Decimal(milliunit(amount)) * factor, ROUND_HALF_UP, "multiply")
    return _checked(product, "multiply")


def divide(amount: int, divisor) -> Milliunit:
    """Divide using banker's rounding (round half to even).

    >>> divide(2500, 1000)
    2
    >>> divide(3500, 1000)
    4
    """
    dec = _to_decimal(divisor, "divide(divisor)")
    if dec == 0:
        raise FinancialSafetyError("[Financial Safety] Division by zero in divide.")
    quotient = _round(Decimal(milliunit(amount)) / dec, ROUND_HALF_EVEN, "divide")
    return _checked(quotient, "divide")
