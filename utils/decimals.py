# utils/decimals.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100.00")


def to_decimal(value) -> Decimal:
    """Coerce DB values, floats, ints and user strings to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Strings may carry a
    thousands separator ("1,250.50"). Raises ValueError on garbage.
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value).replace(",", "").replace('"', "").strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}") from None


def round2(value) -> Decimal:
    # half away from zero, 2 places
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
