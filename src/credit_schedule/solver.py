"""Level payment (annuity) solver.

The fixed installment is found numerically rather than with the textbook
annuity formula because period lengths and rates vary from one period to
the next. The ending balance is monotonically decreasing in the installment,
which makes a bracketed bisection safe.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Sequence

from .config import LEVEL_PAYMENT_HEADROOM, ZERO, CalculatorConfiguration
from .interest import InterestStrategy
from .models import CreditParameters
from .rates import RateTimeline

logger = logging.getLogger(__name__)


def simulate_ending_balance(
    parameters: CreditParameters,
    timeline: RateTimeline,
    payment_dates: Sequence[date],
    total_payment: Decimal,
    interest_strategy: InterestStrategy,
) -> Decimal:
    """Run the schedule with a fixed *total_payment* and return the balance left.

    No final adjustment is made: a positive result means the installment is
    too small to amortize the loan.
    """
    round_ = parameters.rounding_policy
    remaining = parameters.principal
    previous = parameters.start_date

    for payment_date in payment_dates:
        result = interest_strategy.calculate(
            previous,
            payment_date,
            remaining,
            parameters.margin_rate,
            timeline,
            parameters.day_count_basis,
        )
        interest = round_(result.interest)
        principal = min(max(total_payment - interest, ZERO), remaining)
        principal = round_(principal)
        remaining = round_(remaining - principal)
        previous = payment_date

    return remaining


def solve_level_payment(
    parameters: CreditParameters,
    timeline: RateTimeline,
    payment_dates: Sequence[date],
    interest_strategy: InterestStrategy,
    configuration: CalculatorConfiguration,
) -> Decimal:
    """Return the rounded installment that amortizes the loan to zero."""

    def balance(payment: Decimal) -> Decimal:
        return simulate_ending_balance(parameters, timeline, payment_dates, payment, interest_strategy)

    low = ZERO
    high = max(parameters.principal, parameters.principal + LEVEL_PAYMENT_HEADROOM)

    expansions = 0
    while balance(high) > ZERO and expansions < configuration.max_range_iterations:
        low, high = high, high * 2
        expansions += 1
    logger.debug("Level payment bracket [%s, %s] after %s expansions", low, high, expansions)

    iterations = 0
    while iterations < configuration.max_level_payment_iterations:
        if high - low <= configuration.level_payment_tolerance:
            break
        mid = (low + high) / 2
        if balance(mid) > ZERO:
            low = mid
        else:
            high = mid
        iterations += 1

    target = parameters.rounding_policy((low + high) / 2)
    logger.debug("Level payment %s solved in %s bisection steps", target, iterations)
    return target
