"""Annual percentage rate: the IRR of the disbursement and the repayment stream.

NPV(r) = Σ cash_flow × (1 + r)^(−years),  years = days_from_start / 365.

Solved with Newton-Raphson from 10 %, falling back to bisection when Newton
stalls or leaves the admissible domain. Float is used here only; the
schedule amounts it consumes are already final.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .config import (
    APR_BISECTION_MAX_ITER,
    APR_BISECTION_UPPER_BOUND,
    APR_DAYS_PER_YEAR,
    APR_DECIMALS,
    APR_INITIAL_GUESS,
    APR_LOWER_BOUND,
    APR_MIN_DERIVATIVE,
    APR_NEWTON_MAX_ITER,
    APR_NEWTON_UPPER_BOUND,
    APR_TOLERANCE,
    ZERO,
)
from .models import CreditParameters, ScheduleItem

logger = logging.getLogger(__name__)


def build_cash_flows(
    parameters: CreditParameters, schedule: Iterable[ScheduleItem]
) -> list[tuple[date, Decimal]]:
    """Signed cash flows from the borrower's view: +disbursement, −each payment."""
    flows = [(parameters.start_date, parameters.disbursement)]
    flows.extend((item.payment_date, -item.total_payment) for item in schedule)
    flows.sort(key=lambda flow: flow[0])
    return flows


def _to_percent(rate: float) -> Decimal:
    return (Decimal(repr(rate)) * 100).quantize(
        Decimal(1).scaleb(-APR_DECIMALS), rounding=ROUND_HALF_UP
    )


def compute_annual_percentage_rate(
    parameters: CreditParameters, schedule: Iterable[ScheduleItem]
) -> Decimal:
    """Return the APR in percent, rounded half away from zero to 4 decimals.

    *schedule* may be a ScheduleResult or any iterable of ScheduleItem. A
    schedule without payments has no rate and yields 0.
    """
    flows = build_cash_flows(parameters, schedule)
    if len(flows) < 2:
        return ZERO

    start = flows[0][0]
    terms = [((day - start).days / APR_DAYS_PER_YEAR, float(amount)) for day, amount in flows]

    def npv(rate: float) -> float:
        return sum(amount * (1 + rate) ** -years for years, amount in terms)

    def derivative(rate: float) -> float:
        return sum(-years * amount * (1 + rate) ** -(years + 1) for years, amount in terms)

    guess = APR_INITIAL_GUESS
    for iteration in range(1, APR_NEWTON_MAX_ITER + 1):
        value = npv(guess)
        if abs(value) < APR_TOLERANCE:
            logger.debug("APR Newton converged on value at iter %s: %s", iteration, guess)
            return _to_percent(guess)
        slope = derivative(guess)
        if abs(slope) < APR_MIN_DERIVATIVE:
            logger.debug("APR Newton aborted: flat derivative at iter %s", iteration)
            break
        next_guess = guess - value / slope
        if next_guess <= APR_LOWER_BOUND or next_guess > APR_NEWTON_UPPER_BOUND:
            logger.debug("APR Newton aborted: iterate %s left the domain", next_guess)
            break
        if abs(next_guess - guess) < APR_TOLERANCE:
            logger.debug("APR Newton converged on step at iter %s: %s", iteration, next_guess)
            return _to_percent(next_guess)
        guess = next_guess

    return _to_percent(_bisect(npv))


def _bisect(npv) -> float:
    lower, upper = APR_LOWER_BOUND, APR_BISECTION_UPPER_BOUND
    value_lower = npv(lower)
    for iteration in range(1, APR_BISECTION_MAX_ITER + 1):
        mid = (lower + upper) / 2
        value = npv(mid)
        if abs(value) < APR_TOLERANCE:
            logger.debug("APR bisection converged at iter %s: %s", iteration, mid)
            return mid
        if value_lower * value < 0:
            upper = mid
        else:
            lower, value_lower = mid, value
    logger.debug("APR bisection exhausted %s iterations", APR_BISECTION_MAX_ITER)
    return (lower + upper) / 2
