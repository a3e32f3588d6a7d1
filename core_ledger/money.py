"""
Monetary Value Module

Converts inputs to Decimal and rounds every stored value to 2 decimal
places using ROUND_HALF_UP. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union
import re
import unicodedata

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

AmountLike = Union[Decimal, int, float, str]

AMOUNT_TEXT = re.compile(r"[+-]?[0-9.,]*[0-9][0-9.,]*")


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a raw amount to Decimal without rounding

    Floats go through str() so 0.1 becomes Decimal('0.1') and not its
    binary expansion.

    Raises:
        ValueError: If value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to Decimal")
    else:
        raise ValueError(f"Cannot convert {value!r} to Decimal")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def round_money(value: AmountLike) -> Decimal:
    """Round to 2 decimal places, half-up. Idempotent."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: AmountLike) -> str:
    """Format with exactly 2 decimal digits and no grouping"""
    return f"{round_money(value):.2f}"


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert user-entered text to Decimal, handling common formats

    Args:
        value: String representation of number, e.g. "1,250.50" or "$40"

    Returns:
        Decimal value

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace; anything else left over is an error
    clean_value = "".join(
        ch for ch in value if not ch.isspace() and unicodedata.category(ch) != "Sc"
    )
    if not AMOUNT_TEXT.fullmatch(clean_value):
        raise ValueError(f"Cannot parse amount '{value}'")

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Thousands separator
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    return to_decimal(clean_value)
