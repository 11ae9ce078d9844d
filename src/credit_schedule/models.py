"""Typed request/response structures shared by the engine and its collaborators.

Rates are percentages (5 means 5 %), amounts are Decimal. Every structure is
immutable; a calculation only ever builds new values.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, Flag
from typing import Mapping, Optional

from .config import (
    DEFAULT_ROUNDING_DECIMALS,
    HUNDRED,
    MAX_ROUNDING_DECIMALS,
    MIN_ROUNDING_DECIMALS,
    ZERO,
)
from .rounding import RoundingMode, RoundingPolicy


class ScheduleError(Exception):
    """Base class for every error raised by the schedule engine."""


class ValidationError(ScheduleError, ValueError):
    """Raised when the input is rejected before any computation happens."""


class PaymentFrequency(Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class PaymentDay(Enum):
    """Day of month payments snap to for monthly and quarterly cadences."""
    FIRST = "first"
    TENTH = "tenth"
    LAST = "last"


class DayCountBasis(Enum):
    ACTUAL_365 = "actual/365"
    ACTUAL_360 = "actual/360"

    @property
    def denominator(self) -> Decimal:
        return Decimal("360") if self is DayCountBasis.ACTUAL_360 else Decimal("365")


class RepaymentStyle(Enum):
    EQUAL_INSTALLMENTS = "equal"
    DECREASING_INSTALLMENTS = "decreasing"
    BULLET = "bullet"


class InterestApplication(Enum):
    DAILY_ACCRUAL = "daily"
    APPLY_CHANGED_RATE_NEXT_PERIOD = "next-period"
    COMPOUND_DAILY = "compound-daily"
    COMPOUND_MONTHLY = "compound-monthly"
    COMPOUND_QUARTERLY = "compound-quarterly"

    @property
    def is_compound(self) -> bool:
        return self in (
            InterestApplication.COMPOUND_DAILY,
            InterestApplication.COMPOUND_MONTHLY,
            InterestApplication.COMPOUND_QUARTERLY,
        )


class ScheduleWarning(Flag):
    NONE = 0
    NEGATIVE_AMORTIZATION = 1
    INTEREST_EXCEEDS_PAYMENT = 2
    FINAL_PAYMENT_ADJUSTED = 4


@dataclass(frozen=True)
class CreditParameters:
    principal: Decimal
    margin_rate: Decimal
    start_date: date
    end_date: date
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    payment_day: PaymentDay = PaymentDay.LAST
    day_count_basis: DayCountBasis = DayCountBasis.ACTUAL_365
    rounding_mode: RoundingMode = RoundingMode.HALF_EVEN
    rounding_decimals: int = DEFAULT_ROUNDING_DECIMALS
    # Optional upfront fees: percentage of principal and/or flat amount
    fee_rate: Decimal = ZERO
    fee_amount: Decimal = ZERO
    repayment_style: RepaymentStyle = RepaymentStyle.DECREASING_INSTALLMENTS
    interest_application: InterestApplication = InterestApplication.DAILY_ACCRUAL

    @property
    def rounding_policy(self) -> RoundingPolicy:
        """Internal rounding; decimals outside the supported range are clamped to it."""
        decimals = min(max(self.rounding_decimals, MIN_ROUNDING_DECIMALS), MAX_ROUNDING_DECIMALS)
        return RoundingPolicy(self.rounding_mode, decimals)

    @property
    def disbursement(self) -> Decimal:
        """Amount actually paid out: principal net of the upfront fees."""
        amount = self.principal
        if self.fee_rate > ZERO:
            amount -= self.principal * self.fee_rate / HUNDRED
        if self.fee_amount > ZERO:
            amount -= self.fee_amount
        return amount


@dataclass(frozen=True)
class RatePeriod:
    date_from: date
    date_to: date   # inclusive
    rate: Decimal   # base rate, percent


@dataclass(frozen=True)
class ScheduleItem:
    payment_date: date
    days_in_period: int
    interest_rate: Decimal                  # day-weighted effective annual rate incl. margin
    interest_amount: Decimal
    principal_payment: Decimal
    total_payment: Decimal
    remaining_principal: Decimal
    nominal_rate: Optional[Decimal] = None
    effective_period_rate: Optional[Decimal] = None
    is_final_payment_adjusted: bool = False
    warnings: ScheduleWarning = ScheduleWarning.NONE


class LogEntryKind(Enum):
    RATE_CHANGE = "rate_change"
    HEADER = "header"
    PERIOD = "period"
    DETAIL = "detail"
    INTEREST = "interest"
    PRINCIPAL = "principal"
    SUMMARY = "summary"


@dataclass(frozen=True)
class LogEntry:
    """One step of the narrative calculation log."""
    description: str
    formula: str
    substituted: str
    result: str
    kind: LogEntryKind
    payment_number: Optional[int] = None
    payment_date: Optional[date] = None
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScheduleResult:
    items: tuple[ScheduleItem, ...]
    warnings: tuple[str, ...] = ()
    target_level_payment: Optional[Decimal] = None
    actual_final_payment: Optional[Decimal] = None
    calculation_log: tuple[LogEntry, ...] = ()

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def total_interest(self) -> Decimal:
        return sum((item.interest_amount for item in self.items), ZERO)

    @property
    def total_principal(self) -> Decimal:
        return sum((item.principal_payment for item in self.items), ZERO)

    @property
    def total_paid(self) -> Decimal:
        return sum((item.total_payment for item in self.items), ZERO)
