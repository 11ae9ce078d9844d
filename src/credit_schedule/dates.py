"""Payment date generation."""
from __future__ import annotations

import calendar
from datetime import date, timedelta

from .models import PaymentDay, PaymentFrequency, ValidationError

_MONTHS_PER_STEP: dict[PaymentFrequency, int] = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
}


def _add_months(day: date, months: int) -> tuple[int, int]:
    year, month_index = divmod(day.year * 12 + (day.month - 1) + months, 12)
    return year, month_index + 1


def _snap(year: int, month: int, payment_day: PaymentDay) -> date:
    if payment_day is PaymentDay.FIRST:
        return date(year, month, 1)
    if payment_day is PaymentDay.TENTH:
        return date(year, month, 10)
    return date(year, month, calendar.monthrange(year, month)[1])


def next_payment_date(current: date, frequency: PaymentFrequency, payment_day: PaymentDay) -> date:
    """Date of the payment following *current* (not yet clamped to the credit end)."""
    if frequency is PaymentFrequency.DAILY:
        return current + timedelta(days=1)
    year, month = _add_months(current, _MONTHS_PER_STEP[frequency])
    return _snap(year, month, payment_day)


def generate_payment_dates(
    start: date,
    end: date,
    frequency: PaymentFrequency,
    payment_day: PaymentDay,
) -> list[date]:
    """Return strictly increasing payment dates; the last one is always *end*.

    Each date closes one period, the first period opening on *start*. A cadence
    that would overshoot *end* is clamped to it, which yields a short final period.
    """
    if end <= start:
        raise ValidationError("Credit end date must be after start date.")

    dates: list[date] = []
    current = start
    # Every step advances at least one day, so the span bounds the loop
    for _ in range((end - start).days):
        if current >= end:
            break
        nxt = min(next_payment_date(current, frequency, payment_day), end)
        dates.append(nxt)
        current = nxt

    if not dates or dates[-1] != end:
        dates.append(end)
    return dates
