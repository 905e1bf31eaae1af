"""
Money helpers.

All amounts are stored and compared as integer minor units (cents).
Floats only appear while parsing user input.
"""
import math
from typing import Union

from app.core.exceptions import ObligationValidationError, InvalidAmountError

# Ten trillion units; keeps cents exact in a float and well inside BSON int64.
MAX_AMOUNT_CENTS = 10 ** 15


def parse_amount(value: Union[str, int, float], field: str = "amount") -> int:
    """
    Convert a decimal amount ("12.50", 12.5) to integer cents.

    Rounds half up, so "0.125" becomes 13. The sign is kept; callers decide
    whether zero or negative amounts are acceptable.
    """
    if isinstance(value, bool) or value is None:
        raise ObligationValidationError("Amount is required", field=field)

    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ObligationValidationError("Amount is required", field=field)

    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ObligationValidationError("Amount must be a valid number", field=field)

    if not math.isfinite(number):
        raise ObligationValidationError("Amount must be a valid number", field=field)

    cents = number * 100
    if not math.isfinite(cents) or abs(cents) > MAX_AMOUNT_CENTS:
        raise ObligationValidationError("Amount is too large", field=field)

    return math.floor(cents + 0.5)


def ensure_positive(amount_cents: int) -> None:
    if amount_cents <= 0:
        raise InvalidAmountError()


def format_amount(amount_cents: int) -> str:
    """1250 -> "12.50", -300 -> "-3.00"."""
    sign = "-" if amount_cents < 0 else ""
    units, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{units}.{cents:02d}"
