"""Rate timeline: validation of the rate periods and rate-homogeneous queries.

A valid timeline is a set of periods which, sorted by start date, are
contiguous (each starts the day after the previous one ends), never overlap,
and together cover the whole credit span.
"""
from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from .models import RatePeriod, ValidationError

_ONE_DAY = timedelta(days=1)


class RateTimelineIssue(Enum):
    EMPTY = "empty"
    DEGENERATE_PERIOD = "degenerate_period"
    MISSING_COVERAGE = "missing_coverage"
    OVERLAP = "overlap"
    GAP = "gap"


class RateTimelineError(ValidationError):
    """Raised when the rate periods do not form a valid timeline."""

    def __init__(self, issue: RateTimelineIssue, message: str) -> None:
        super().__init__(message)
        self.issue = issue


@dataclass(frozen=True)
class RateChunk:
    """Sub-interval [start, end) over which the base rate does not change."""
    start: date
    end: date
    base_rate: Decimal

    @property
    def days(self) -> int:
        return (self.end - self.start).days


def validate_rate_periods(
    periods: Iterable[RatePeriod], start: date, end: date
) -> list[RatePeriod]:
    """Check the periods against the credit span and return them sorted.

    Raises RateTimelineError naming the first violation found.
    """
    ordered = sorted(periods, key=lambda period: period.date_from)
    if not ordered:
        raise RateTimelineError(
            RateTimelineIssue.EMPTY, "No interest rate periods were provided."
        )

    for period in ordered:
        if period.date_from >= period.date_to:
            raise RateTimelineError(
                RateTimelineIssue.DEGENERATE_PERIOD,
                f"Rate period {period.date_from:%Y-%m-%d} → {period.date_to:%Y-%m-%d} "
                f"must start before it ends.",
            )

    first, last = ordered[0], ordered[-1]
    if first.date_from > start or last.date_to < end:
        raise RateTimelineError(
            RateTimelineIssue.MISSING_COVERAGE,
            f"Rate periods cover {first.date_from:%Y-%m-%d} → {last.date_to:%Y-%m-%d} "
            f"but the credit runs {start:%Y-%m-%d} → {end:%Y-%m-%d}.",
        )

    for previous, current in zip(ordered, ordered[1:]):
        if current.date_from <= previous.date_to:
            raise RateTimelineError(
                RateTimelineIssue.OVERLAP,
                f"Rate period starting {current.date_from:%Y-%m-%d} overlaps the period "
                f"ending {previous.date_to:%Y-%m-%d}.",
            )
        if current.date_from > previous.date_to + _ONE_DAY:
            raise RateTimelineError(
                RateTimelineIssue.GAP,
                f"No rate defined between {previous.date_to + _ONE_DAY:%Y-%m-%d} "
                f"and {current.date_from - _ONE_DAY:%Y-%m-%d}.",
            )

    return ordered


class RateTimeline:
    """Sorted, queryable view over the rate periods."""

    def __init__(self, periods: Iterable[RatePeriod]) -> None:
        self._periods = tuple(sorted(periods, key=lambda period: period.date_from))
        self._starts = [period.date_from for period in self._periods]

    @classmethod
    def validated(cls, periods: Iterable[RatePeriod], start: date, end: date) -> RateTimeline:
        return cls(validate_rate_periods(periods, start, end))

    @property
    def periods(self) -> tuple:
        return self._periods

    def period_on(self, day: date) -> RatePeriod:
        """Return the period covering *day*."""
        index = bisect_right(self._starts, day) - 1
        if index >= 0:
            period = self._periods[index]
            if period.date_to >= day:
                return period
        raise RateTimelineError(
            RateTimelineIssue.MISSING_COVERAGE,
            f"No interest rate defined for {day:%Y-%m-%d}.",
        )

    def rate_on(self, day: date) -> Decimal:
        return self.period_on(day).rate

    def chunks(self, date_from: date, date_to: date) -> list[RateChunk]:
        """Split [date_from, date_to) into rate-homogeneous chunks."""
        chunks: list[RateChunk] = []
        current = date_from
        while current < date_to:
            period = self.period_on(current)
            chunk_end = min(period.date_to + _ONE_DAY, date_to)
            chunks.append(RateChunk(current, chunk_end, period.rate))
            current = chunk_end
        return chunks

    def changes_within(self, start: date, end: date) -> list[RatePeriod]:
        """Periods whose start falls strictly inside (start, end)."""
        return [period for period in self._periods if start < period.date_from < end]
