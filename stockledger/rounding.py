"""
Quantity rounding — isolated, testable, reusable.

Every externally supplied quantity is normalized to whole units before it is
compared against stock or written to the ledger. Rounding is always UP:
a job that needs 10.3 sheets consumes 11.

Examples:
    to_units(10.3)        # 11
    to_units('2.0001')    # 3
    to_units(Decimal(5))  # 5
"""

import math
from decimal import Decimal, InvalidOperation

from stockledger.exceptions import ValidationError


def to_decimal(quantity) -> Decimal:
    """
    Coerce int/float/Decimal/str into a finite Decimal.

    Floats go through str() so 10.3 stays 10.3 and not 10.300000000000000710...

    Raises:
        ValidationError('INVALID_QUANTITY'): If the value is not a finite number
    """
    if isinstance(quantity, bool):
        raise ValidationError('INVALID_QUANTITY', requested=quantity)
    try:
        value = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError('INVALID_QUANTITY', requested=quantity) from None
    if not value.is_finite():
        raise ValidationError('INVALID_QUANTITY', requested=quantity)
    return value


def to_units(quantity) -> int:
    """Round a quantity up to the nearest whole unit."""
    return math.ceil(to_decimal(quantity))


def positive_units(quantity) -> int:
    """
    Round up a quantity that must be strictly positive.

    The check happens on the raw value: 0 and negatives are rejected,
    0.2 is accepted and becomes 1.

    Raises:
        ValidationError('INVALID_QUANTITY'): If quantity <= 0
    """
    value = to_decimal(quantity)
    if value <= 0:
        raise ValidationError('INVALID_QUANTITY', requested=quantity)
    return math.ceil(value)
