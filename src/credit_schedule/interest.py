"""Interest accrual strategies.

Every strategy shares the same call signature and returns an InterestResult.
Periods are split into rate-homogeneous chunks by the rate timeline, so the
cost of a calculation does not grow with the number of days in a period.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from .config import HUNDRED, ONE, ZERO
from .decimal_math import power
from .models import DayCountBasis, InterestApplication
from .rates import RateChunk, RateTimeline


@dataclass(frozen=True)
class RateBreakdown:
    days: int
    base_rate: Decimal
    margin_rate: Decimal
    effective_rate: Decimal
    interest_contribution: Decimal


@dataclass(frozen=True)
class InterestResult:
    interest: Decimal
    effective_rate: Decimal                  # day-weighted, margin included
    nominal_rate: Optional[Decimal] = None
    period_rate: Optional[Decimal] = None
    breakdown: tuple[RateBreakdown, ...] = ()


class InterestStrategy(Protocol):
    def calculate(
        self,
        date_from: date,
        date_to: date,
        principal: Decimal,
        margin_rate: Decimal,
        timeline: RateTimeline,
        basis: DayCountBasis,
    ) -> InterestResult: ...


def _days_between(date_from: date, date_to: date) -> int:
    return max((date_to - date_from).days, 0)


def _weighted_average(chunks: list[RateChunk], days: int) -> Decimal:
    """Day-weighted average base rate over the chunks."""
    if days <= 0:
        return ZERO
    return sum((chunk.base_rate * chunk.days for chunk in chunks), ZERO) / days


class SimpleDailyAccrual:
    """Simple interest accrued daily at whatever rate is in effect that day."""

    def calculate(
        self,
        date_from: date,
        date_to: date,
        principal: Decimal,
        margin_rate: Decimal,
        timeline: RateTimeline,
        basis: DayCountBasis,
    ) -> InterestResult:
        denominator = basis.denominator
        days = _days_between(date_from, date_to)

        interest = ZERO
        weighted_rate = ZERO
        breakdown = []
        for chunk in timeline.chunks(date_from, date_to):
            effective = chunk.base_rate + margin_rate
            contribution = principal * effective / HUNDRED / denominator * chunk.days
            interest += contribution
            weighted_rate += effective * chunk.days
            breakdown.append(RateBreakdown(
                days=chunk.days,
                base_rate=chunk.base_rate,
                margin_rate=margin_rate,
                effective_rate=effective,
                interest_contribution=contribution,
            ))

        average = weighted_rate / days if days > 0 else ZERO
        return InterestResult(interest, average, breakdown=tuple(breakdown))


class ApplyChangedRateNextPeriod:
    """Uses the rate in effect on the first day for the whole period.

    A change of the base rate mid-period only takes effect from the next
    payment period onwards.
    """

    def calculate(
        self,
        date_from: date,
        date_to: date,
        principal: Decimal,
        margin_rate: Decimal,
        timeline: RateTimeline,
        basis: DayCountBasis,
    ) -> InterestResult:
        days = _days_between(date_from, date_to)
        base_rate = timeline.rate_on(date_from)
        effective = base_rate + margin_rate
        interest = principal * effective / HUNDRED / basis.denominator * days
        entry = RateBreakdown(days, base_rate, margin_rate, effective, interest)
        return InterestResult(interest, effective, breakdown=(entry,))


class CompoundDaily:
    """Interest compounded every day: principal × (Π (1 + r_i/denominator)^days_i − 1)."""

    def calculate(
        self,
        date_from: date,
        date_to: date,
        principal: Decimal,
        margin_rate: Decimal,
        timeline: RateTimeline,
        basis: DayCountBasis,
    ) -> InterestResult:
        denominator = basis.denominator
        days = _days_between(date_from, date_to)
        chunks = timeline.chunks(date_from, date_to)

        factor = ONE
        breakdown = []
        for chunk in chunks:
            effective = chunk.base_rate + margin_rate
            chunk_factor = power(ONE + effective / HUNDRED / denominator, chunk.days)
            breakdown.append(RateBreakdown(
                days=chunk.days,
                base_rate=chunk.base_rate,
                margin_rate=margin_rate,
                effective_rate=effective,
                interest_contribution=principal * factor * (chunk_factor - ONE),
            ))
            factor *= chunk_factor

        nominal = _weighted_average(chunks, days) + margin_rate
        period_rate = factor - ONE
        return InterestResult(
            interest=principal * period_rate,
            effective_rate=nominal,
            nominal_rate=nominal,
            period_rate=period_rate,
            breakdown=tuple(breakdown),
        )


class CompoundPeriodic:
    """Compounding *periods_per_year* times a year at the period's average nominal rate."""

    def __init__(self, periods_per_year: int) -> None:
        self.periods_per_year = periods_per_year

    def calculate(
        self,
        date_from: date,
        date_to: date,
        principal: Decimal,
        margin_rate: Decimal,
        timeline: RateTimeline,
        basis: DayCountBasis,
    ) -> InterestResult:
        days = _days_between(date_from, date_to)
        chunks = timeline.chunks(date_from, date_to)

        average_base = _weighted_average(chunks, days)
        nominal = average_base + margin_rate
        n = Decimal(self.periods_per_year)
        exponent = n * days / basis.denominator
        # Decimal supports fractional exponents for a positive base
        period_rate = (ONE + nominal / HUNDRED / n) ** exponent - ONE
        interest = principal * period_rate
        entry = RateBreakdown(days, average_base, margin_rate, nominal, interest)
        return InterestResult(
            interest=interest,
            effective_rate=nominal,
            nominal_rate=nominal,
            period_rate=period_rate,
            breakdown=(entry,),
        )


def interest_strategy_for(application: InterestApplication) -> InterestStrategy:
    """Build the strategy for *application*."""
    if application is InterestApplication.APPLY_CHANGED_RATE_NEXT_PERIOD:
        return ApplyChangedRateNextPeriod()
    if application is InterestApplication.COMPOUND_DAILY:
        return CompoundDaily()
    if application is InterestApplication.COMPOUND_MONTHLY:
        return CompoundPeriodic(12)
    if application is InterestApplication.COMPOUND_QUARTERLY:
        return CompoundPeriodic(4)
    return SimpleDailyAccrual()
