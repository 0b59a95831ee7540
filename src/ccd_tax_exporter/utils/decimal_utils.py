"""Decimal utilities for on-chain amounts.

On-chain amounts are integers in the asset's smallest unit (micro-CCD for
CCD). They are only converted to Decimal for display, never to float.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional


def parse_units(raw_amount: Optional[object]) -> Optional[int]:
    """Parse a raw amount in smallest units into an int.

    The wallet-proxy reports amounts as decimal strings ("-1000000"), but
    plain ints are accepted too. Fractional values are rejected because a
    smallest unit cannot be split.

    Args:
        raw_amount: Raw amount (string, int, or None).

    Returns:
        Amount as int, or None if missing or unparseable.
    """
    if raw_amount is None or isinstance(raw_amount, bool):
        return None

    if isinstance(raw_amount, int):
        return raw_amount

    try:
        amount = Decimal(str(raw_amount).strip())
    except InvalidOperation:
        return None

    if not amount.is_finite() or amount != amount.to_integral_value():
        return None

    return int(amount)


def units_to_decimal(amount: int, decimals: int) -> Decimal:
    """Convert an amount in smallest units to a Decimal in whole units.

    Args:
        amount: Amount in smallest units.
        decimals: Number of decimal places of the asset.

    Returns:
        Exact Decimal value (e.g. 1500000 with 6 decimals -> 1.500000).
    """
    return Decimal(amount).scaleb(-decimals)


def format_units(amount: int, decimals: int) -> str:
    """Format an amount in smallest units with the asset's native precision.

    The sign is dropped: the export columns (sent/received) carry the
    direction, so amounts are always rendered non-negative.

    Args:
        amount: Amount in smallest units.
        decimals: Number of decimal places of the asset.

    Returns:
        Formatted string with exactly `decimals` fractional digits.
    """
    value = units_to_decimal(abs(amount), decimals)
    return f"{value:.{decimals}f}"
