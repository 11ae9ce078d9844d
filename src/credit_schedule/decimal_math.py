"""Decimal arithmetic helpers that never round-trip through float."""
from __future__ import annotations

from decimal import Decimal

from .config import ONE, ZERO


def power(base: Decimal, exponent: int) -> Decimal:
    """Return base ** exponent for an integer exponent using exponentiation by squaring.

    Compounding a daily factor over a period multiplies many values close to 1;
    doing it in Decimal keeps every intermediate product at context precision
    instead of losing digits to a float pow().
    """
    if not isinstance(exponent, int) or isinstance(exponent, bool):
        raise TypeError(f"exponent must be an int, got {type(exponent).__name__}")
    if exponent == 0:
        return ONE
    if exponent == 1:
        return base
    if base == ZERO:
        return ZERO
    if base == ONE:
        return ONE

    result = ONE
    current = base
    remaining = abs(exponent)
    while remaining:
        if remaining & 1:
            result *= current
        current *= current
        remaining >>= 1

    return ONE / result if exponent < 0 else result
