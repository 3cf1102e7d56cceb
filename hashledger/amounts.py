"""
amounts.py - Fixed-point helpers.

Balances are Decimal in memory and TEXT in SQLite.  Values are truncated
(never rounded up) to the smallest unit of their currency.
"""

from decimal import ROUND_DOWN, Context, Decimal, InvalidOperation
from typing import Union

from hashledger.config import HASH_POWER_UNIT, UNITS
from hashledger.errors import InvalidAmount

ZERO = Decimal("0")

# Wide enough for 2.1M * hash_power / total without intermediate rounding.
CONTEXT = Context(prec=40)

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    """Parse a user or database value into a Decimal (floats rejected)."""
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, str)) and not isinstance(value, bool):
        try:
            d = Decimal(value)
        except InvalidOperation:
            raise InvalidAmount(f"Not a decimal amount: {value!r}")
    else:
        raise InvalidAmount(f"Unsupported amount type: {type(value).__name__}")
    if not d.is_finite():
        raise InvalidAmount(f"Amount must be finite: {value!r}")
    return d


def quantize(value: Decimal, unit: Decimal) -> Decimal:
    return value.quantize(unit, rounding=ROUND_DOWN, context=CONTEXT)


def money(value: Number, currency: str) -> Decimal:
    return quantize(to_decimal(value), UNITS[currency])


def hash_power(value: Number) -> Decimal:
    return quantize(to_decimal(value), HASH_POWER_UNIT)


def positive(value: Number, currency: str) -> Decimal:
    """Parse a request amount; must be > 0 and exact at the currency's unit."""
    d = to_decimal(value)
    q = money(d, currency)
    if q <= ZERO:
        raise InvalidAmount("Amount must be positive")
    if q != d:
        places = -UNITS[currency].as_tuple().exponent
        raise InvalidAmount(f"{currency} amounts have at most {places} decimals")
    return q


def dec(text) -> Decimal:
    """Decode a stored TEXT amount."""
    if text is None or text == "":
        return ZERO
    return Decimal(text)


def enc(value: Decimal) -> str:
    """Encode an amount for storage."""
    return format(value, "f")
