"""Narrative calculation log: structured entries describing each step.

The log is a side channel for audit and debugging. Nothing in the numeric
path reads it back.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .interest import InterestResult
from .models import (
    CreditParameters,
    InterestApplication,
    LogEntry,
    LogEntryKind,
    RatePeriod,
    RepaymentStyle,
)

_SMALL = Decimal("0.000001")


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _pct(value: Decimal) -> str:
    return f"{value:.4f}%"


def _day(value: date) -> str:
    return f"{value:%Y-%m-%d}"


def rate_change_entry(period: RatePeriod, margin_rate: Decimal) -> LogEntry:
    return LogEntry(
        description="Interest rate change",
        formula="effective_rate = base_rate + margin",
        substituted=f"{_pct(period.rate)} + {_pct(margin_rate)}",
        result=(
            f"{_pct(period.rate + margin_rate)} "
            f"(in effect {_day(period.date_from)} → {_day(period.date_to)})"
        ),
        kind=LogEntryKind.RATE_CHANGE,
        metadata={
            "base_rate": _pct(period.rate),
            "margin_rate": _pct(margin_rate),
            "date_from": _day(period.date_from),
            "date_to": _day(period.date_to),
        },
    )


def header_entry(number: int, period_start: date, period_end: date, balance: Decimal) -> LogEntry:
    return LogEntry(
        description=f"Payment {number} ({_day(period_start)} → {_day(period_end)})",
        formula="",
        substituted="",
        result=f"Opening balance: {_money(balance)}",
        kind=LogEntryKind.HEADER,
        payment_number=number,
        payment_date=period_end,
        metadata={
            "period_start": _day(period_start),
            "period_end": _day(period_end),
            "principal_before": _money(balance),
        },
    )


def days_entry(number: int, payment_date: date, previous_date: date, days: int) -> LogEntry:
    return LogEntry(
        description="Days in period",
        formula="days = payment_date - previous_date",
        substituted=f"{_day(payment_date)} - {_day(previous_date)}",
        result=f"{days} days",
        kind=LogEntryKind.PERIOD,
        payment_number=number,
        payment_date=payment_date,
    )


def weighted_rate_entry(
    number: int, payment_date: date, result: InterestResult, days: int
) -> Optional[LogEntry]:
    """Detail entry for a period spanning several rates, None otherwise."""
    breakdown = result.breakdown
    if len(breakdown) <= 1 or days == 0:
        return None
    terms = " + ".join(f"{_pct(entry.effective_rate)} × {entry.days}" for entry in breakdown)
    numerator = sum((entry.effective_rate * entry.days for entry in breakdown), Decimal(0))
    return LogEntry(
        description="Average rate in period",
        formula="avg_rate = Σ(rate_i × days_i) / Σ days_i",
        substituted=f"({terms}) / {days}",
        result=f"{_pct(result.effective_rate)} over {days} days",
        kind=LogEntryKind.DETAIL,
        payment_number=number,
        payment_date=payment_date,
        metadata={
            "weighted_rate": _pct(result.effective_rate),
            "total_days": str(days),
            "numerator": f"{numerator:.6f}",
            "breakdown": "; ".join(
                f"{_pct(entry.effective_rate)}×{entry.days} days "
                f"(margin {_pct(entry.margin_rate)}, base {_pct(entry.base_rate)})"
                for entry in breakdown
            ),
        },
    )


_INTEREST_LABELS: dict[InterestApplication, tuple[str, str]] = {
    InterestApplication.DAILY_ACCRUAL: (
        "Interest (daily accrual)",
        "interest = balance × avg_daily_rate × days",
    ),
    InterestApplication.APPLY_CHANGED_RATE_NEXT_PERIOD: (
        "Interest (rate at period start)",
        "interest = balance × (start_rate / 100 / basis) × days",
    ),
    InterestApplication.COMPOUND_DAILY: (
        "Interest (daily compounding)",
        "interest = balance × (Π(1 + r_i/100/basis)^days_i - 1)",
    ),
    InterestApplication.COMPOUND_MONTHLY: (
        "Interest (monthly compounding)",
        "interest = balance × ((1 + r_nom/100/12)^(12×t) - 1)",
    ),
    InterestApplication.COMPOUND_QUARTERLY: (
        "Interest (quarterly compounding)",
        "interest = balance × ((1 + r_nom/100/4)^(4×t) - 1)",
    ),
}


def _interest_substitution(
    application: InterestApplication,
    result: InterestResult,
    balance: Decimal,
    days: int,
    denominator: Decimal,
) -> str:
    basis = f"(days: {days}, basis: {denominator})"
    if application is InterestApplication.COMPOUND_DAILY:
        factors = " × ".join(
            f"(1 + {_pct(entry.effective_rate)}/100/{denominator})^{entry.days}"
            for entry in result.breakdown
        )
        return f"{_money(balance)} × ({factors} - 1) {basis}"
    if application in (InterestApplication.COMPOUND_MONTHLY, InterestApplication.COMPOUND_QUARTERLY):
        n = 12 if application is InterestApplication.COMPOUND_MONTHLY else 4
        nominal = result.nominal_rate if result.nominal_rate is not None else result.effective_rate
        return f"{_money(balance)} × ((1 + {_pct(nominal)}/100/{n})^({n}×{days}/{denominator}) - 1) {basis}"
    if application is InterestApplication.APPLY_CHANGED_RATE_NEXT_PERIOD:
        return f"{_money(balance)} × ({_pct(result.effective_rate)}/100/{denominator}) × {days}"
    if result.breakdown and days > 0:
        terms = " + ".join(f"{_pct(entry.effective_rate)}×{entry.days}" for entry in result.breakdown)
        text = f"{_money(balance)} × (({terms}) / {days}) × {days}/{denominator}"
        return text + " (day-weighted average)" if len(result.breakdown) > 1 else text
    return f"{_money(balance)} × {result.effective_rate:.6f} {basis}"


def interest_entry(
    number: int,
    payment_date: date,
    parameters: CreditParameters,
    result: InterestResult,
    rounded: Decimal,
    balance: Decimal,
    days: int,
) -> LogEntry:
    application = parameters.interest_application
    description, formula = _INTEREST_LABELS[application]
    denominator = parameters.day_count_basis.denominator
    outcome = _money(rounded)
    if abs(result.interest - rounded) > _SMALL:
        outcome += f" (before rounding: {result.interest:.6f})"
    return LogEntry(
        description=description,
        formula=formula,
        substituted=_interest_substitution(application, result, balance, days, denominator),
        result=outcome,
        kind=LogEntryKind.INTEREST,
        payment_number=number,
        payment_date=payment_date,
        metadata={
            "principal": _money(balance),
            "effective_rate": _pct(result.effective_rate),
            "days": str(days),
            "day_count_basis": str(denominator),
            "raw_interest": f"{result.interest:.6f}",
            "rounded_interest": _money(rounded),
            "rate_breakdown_count": str(len(result.breakdown)),
        },
    )


def principal_entry(
    number: int,
    payment_date: date,
    parameters: CreditParameters,
    raw: Decimal,
    rounded: Decimal,
    balance: Decimal,
    interest: Decimal,
    target: Optional[Decimal],
    is_last: bool,
) -> LogEntry:
    style = parameters.repayment_style
    if style is RepaymentStyle.BULLET:
        description = "Principal (bullet, final)" if is_last else "Principal (bullet)"
        formula = "principal = balance" if is_last else "principal = 0"
        substituted = _money(balance) if is_last else "0"
    elif style is RepaymentStyle.DECREASING_INSTALLMENTS:
        description = "Principal (final)" if is_last else "Principal (decreasing installment)"
        formula = "principal = balance" if is_last else "principal = initial_principal / payment_count"
        substituted = _money(balance) if is_last else f"{_money(parameters.principal)} / payment_count"
    else:
        description = "Principal (equal installment)"
        if is_last:
            formula, substituted = "principal = balance", _money(balance)
        else:
            formula = "principal = target_payment - interest"
            substituted = f"{_money(target)} - {_money(interest)}" if target is not None else ""

    outcome = _money(rounded)
    if abs(raw - rounded) > _SMALL:
        outcome += f" (before rounding: {raw:.6f})"
    return LogEntry(
        description=description,
        formula=formula,
        substituted=substituted,
        result=outcome,
        kind=LogEntryKind.PRINCIPAL,
        payment_number=number,
        payment_date=payment_date,
        metadata={
            "principal_remaining": _money(balance),
            "interest": _money(interest),
            "raw_principal": f"{raw:.6f}",
            "rounded_principal": _money(rounded),
            "target_payment": _money(target) if target is not None else "n/a",
        },
    )


def summary_entry(
    number: int, payment_date: date, remaining: Decimal, principal: Decimal, interest: Decimal
) -> LogEntry:
    before = remaining + principal
    total = principal + interest
    return LogEntry(
        description="Payment summary",
        formula="new_balance = balance_before - principal",
        substituted=f"{_money(before)} - {_money(principal)}",
        result=(
            f"Balance: {_money(remaining)} | Payment: {_money(total)} "
            f"(interest: {_money(interest)}, principal: {_money(principal)})"
        ),
        kind=LogEntryKind.SUMMARY,
        payment_number=number,
        payment_date=payment_date,
        metadata={
            "principal_before": _money(before),
            "principal_after": _money(remaining),
            "principal_payment": _money(principal),
            "interest_payment": _money(interest),
            "total_payment": _money(total),
        },
    )


def render_markdown(entries: Iterable[LogEntry]) -> str:
    """Render the log as a Markdown document."""
    lines = ["# Credit calculation log", "", "## Steps", ""]
    for index, entry in enumerate(entries, start=1):
        lines.append(f"### {index}. {entry.description}")
        lines.append(f"- Formula: {entry.formula}")
        lines.append(f"- With values: {entry.substituted}")
        lines.append(f"- Result: {entry.result}")
        lines.append("")
    return "\n".join(lines)
