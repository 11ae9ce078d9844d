"""Application-wide constants and calculator configuration defaults.

All tuneable defaults live here so there is a single place to adjust them.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# ── Numeric convenience ───────────────────────────────────────────────────────

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# ── Rounding ──────────────────────────────────────────────────────────────────

MIN_ROUNDING_DECIMALS: int = 4
MAX_ROUNDING_DECIMALS: int = 10
DEFAULT_ROUNDING_DECIMALS: int = 4
CASH_DECIMALS: int = 2          # reported amounts are re-rounded to cents

# ── Schedule checks ───────────────────────────────────────────────────────────

FINAL_PAYMENT_TOLERANCE = CENT
LEVEL_PAYMENT_HEADROOM = Decimal("1000")   # initial upper bracket = principal + headroom

# ── APR solver ────────────────────────────────────────────────────────────────

APR_DAYS_PER_YEAR: float = 365.0
APR_INITIAL_GUESS: float = 0.10
APR_NEWTON_MAX_ITER: int = 50
APR_BISECTION_MAX_ITER: int = 200
APR_TOLERANCE: float = 1e-8
APR_MIN_DERIVATIVE: float = 1e-12
APR_LOWER_BOUND: float = -0.99
APR_NEWTON_UPPER_BOUND: float = 10.0
APR_BISECTION_UPPER_BOUND: float = 1.0
APR_DECIMALS: int = 4


@dataclass(frozen=True)
class CalculatorConfiguration:
    """Solver tolerances, iteration caps and validation switches for one calculation."""
    level_payment_tolerance: Decimal = Decimal("0.0001")
    max_level_payment_iterations: int = 200
    max_range_iterations: int = 25
    # Record soft-condition warning strings (flags on items are always set)
    enable_warnings: bool = True
    # Escalate negative amortization to NegativeAmortizationError
    strict: bool = False
