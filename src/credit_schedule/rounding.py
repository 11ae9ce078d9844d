"""Rounding policy applied after every monetary computation.

The policy is passed explicitly to every step that rounds; there is no
module-level rounding state, so calculations with different policies never
interfere with each other.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from enum import Enum


class RoundingMode(Enum):
    HALF_EVEN = "half-even"                    # bankers' rounding
    HALF_AWAY_FROM_ZERO = "half-away-from-zero"

    @property
    def decimal_rounding(self) -> str:
        # decimal.ROUND_HALF_UP rounds ties away from zero
        return ROUND_HALF_UP if self is RoundingMode.HALF_AWAY_FROM_ZERO else ROUND_HALF_EVEN


def round_amount(value: Decimal, mode: RoundingMode, decimals: int) -> Decimal:
    """Quantize *value* to *decimals* places using *mode*."""
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=mode.decimal_rounding)


@dataclass(frozen=True)
class RoundingPolicy:
    mode: RoundingMode
    decimals: int

    def __call__(self, value: Decimal) -> Decimal:
        return round_amount(value, self.mode, self.decimals)

    def with_decimals(self, decimals: int) -> RoundingPolicy:
        return RoundingPolicy(self.mode, decimals)
