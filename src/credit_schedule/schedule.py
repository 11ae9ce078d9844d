"""Schedule orchestration (validate → dates → level payment → periods → cash rounding).

Each call owns its running balance; nothing is shared between calculations.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Optional

from . import narrative
from .config import (
    CASH_DECIMALS,
    FINAL_PAYMENT_TOLERANCE,
    ZERO,
    CalculatorConfiguration,
)
from .dates import generate_payment_dates
from .interest import interest_strategy_for
from .models import (
    CreditParameters,
    DayCountBasis,
    InterestApplication,
    PaymentDay,
    PaymentFrequency,
    RatePeriod,
    RepaymentStyle,
    ScheduleError,
    ScheduleItem,
    ScheduleResult,
    ScheduleWarning,
    ValidationError,
)
from .principal import PrincipalContext, principal_strategy_for
from .rates import RateTimeline
from .rounding import RoundingMode, RoundingPolicy
from .solver import solve_level_payment

logger = logging.getLogger(__name__)


class NegativeAmortizationError(ScheduleError):
    """Raised in strict mode when an installment does not cover the interest."""


_ENUM_FIELDS = (
    ("payment_frequency", PaymentFrequency),
    ("payment_day", PaymentDay),
    ("day_count_basis", DayCountBasis),
    ("rounding_mode", RoundingMode),
    ("interest_application", InterestApplication),
)


def validate_parameters(parameters: CreditParameters) -> None:
    """Raise ValidationError if the parameters cannot describe a credit."""
    if parameters.end_date <= parameters.start_date:
        raise ValidationError("Credit end date must be after start date.")
    if not parameters.principal.is_finite() or parameters.principal <= ZERO:
        raise ValidationError(f"Principal must be positive, got {parameters.principal}.")
    if not isinstance(parameters.repayment_style, RepaymentStyle):
        raise ValidationError(f"Unsupported repayment style: {parameters.repayment_style!r}")
    for name, enum_type in _ENUM_FIELDS:
        value = getattr(parameters, name)
        if not isinstance(value, enum_type):
            raise ValidationError(f"Unsupported {name.replace('_', ' ')}: {value!r}")


def calculate(
    parameters: CreditParameters,
    rate_periods: Iterable[RatePeriod],
    configuration: Optional[CalculatorConfiguration] = None,
    include_log: bool = False,
) -> ScheduleResult:
    """Compute the full amortization schedule.

    Raises ValidationError (or its RateTimelineError subclass) before any item
    is produced when the input is malformed, and NegativeAmortizationError in
    strict mode.
    """
    configuration = configuration or CalculatorConfiguration()

    validate_parameters(parameters)
    timeline = RateTimeline.validated(rate_periods, parameters.start_date, parameters.end_date)

    payment_dates = generate_payment_dates(
        parameters.start_date,
        parameters.end_date,
        parameters.payment_frequency,
        parameters.payment_day,
    )
    logger.debug("Generated %s payment dates", len(payment_dates))

    interest_strategy = interest_strategy_for(parameters.interest_application)
    principal_strategy = principal_strategy_for(parameters, len(payment_dates))

    target: Optional[Decimal] = None
    if parameters.repayment_style is RepaymentStyle.EQUAL_INSTALLMENTS:
        target = solve_level_payment(
            parameters, timeline, payment_dates, interest_strategy, configuration
        )

    round_ = parameters.rounding_policy
    items: list[ScheduleItem] = []
    warnings: list[str] = []
    log: list = []
    remaining = parameters.principal
    previous = parameters.start_date
    count = len(payment_dates)

    if include_log:
        log.extend(
            narrative.rate_change_entry(period, parameters.margin_rate)
            for period in timeline.changes_within(parameters.start_date, parameters.end_date)
        )

    for index, payment_date in enumerate(payment_dates):
        number = index + 1
        is_last = index == count - 1
        days = (payment_date - previous).days

        if include_log:
            log.append(narrative.header_entry(number, previous, payment_date, remaining))
            log.append(narrative.days_entry(number, payment_date, previous, days))

        interest_result = interest_strategy.calculate(
            previous,
            payment_date,
            remaining,
            parameters.margin_rate,
            timeline,
            parameters.day_count_basis,
        )
        interest = round_(interest_result.interest)

        if include_log:
            if not parameters.interest_application.is_compound:
                detail = narrative.weighted_rate_entry(number, payment_date, interest_result, days)
                if detail is not None:
                    log.append(detail)
            log.append(narrative.interest_entry(
                number, payment_date, parameters, interest_result, interest, remaining, days
            ))

        context = PrincipalContext(
            remaining_principal=remaining,
            interest_amount=interest,
            payment_index=index,
            total_payments=count,
            is_last_payment=is_last,
            target_total_payment=target,
        )
        principal_raw = principal_strategy.calculate(context)

        item_warnings = _check_amortization(
            number, is_last, principal_raw, interest, target, configuration, warnings
        )
        principal = round_(max(principal_raw, ZERO))

        if include_log:
            log.append(narrative.principal_entry(
                number, payment_date, parameters, principal_raw, principal,
                remaining, interest, target, is_last,
            ))

        remaining = round_(remaining - principal)
        total = interest + principal

        if include_log:
            log.append(narrative.summary_entry(number, payment_date, remaining, principal, interest))

        adjusted = (
            is_last
            and target is not None
            and abs(total - target) > FINAL_PAYMENT_TOLERANCE
        )
        if adjusted:
            item_warnings |= ScheduleWarning.FINAL_PAYMENT_ADJUSTED
            if configuration.enable_warnings:
                warnings.append(
                    f"Payment {number}: final payment adjusted to {total:.2f} "
                    f"(target {target:.2f}) to close the loan."
                )

        items.append(ScheduleItem(
            payment_date=payment_date,
            days_in_period=days,
            interest_rate=interest_result.effective_rate,
            interest_amount=interest,
            principal_payment=principal,
            total_payment=total,
            remaining_principal=max(remaining, ZERO),
            nominal_rate=interest_result.nominal_rate,
            effective_period_rate=interest_result.period_rate,
            is_final_payment_adjusted=adjusted,
            warnings=item_warnings,
        ))
        previous = payment_date

    return _to_cash(
        ScheduleResult(
            items=tuple(items),
            warnings=tuple(warnings),
            target_level_payment=target,
            actual_final_payment=items[-1].total_payment if items else None,
            calculation_log=tuple(log),
        ),
        round_.with_decimals(CASH_DECIMALS),
    )


def _check_amortization(
    number: int,
    is_last: bool,
    principal_raw: Decimal,
    interest: Decimal,
    target: Optional[Decimal],
    configuration: CalculatorConfiguration,
    warnings: list[str],
) -> ScheduleWarning:
    """Flag payments that do not amortize the loan; raise instead in strict mode.

    The last payment always closes the loan, so only the negative principal
    check applies to it.
    """
    flags = ScheduleWarning.NONE
    if target is not None and not is_last and interest > target:
        flags |= ScheduleWarning.INTEREST_EXCEEDS_PAYMENT | ScheduleWarning.NEGATIVE_AMORTIZATION
        message = (
            f"Payment {number}: interest ({interest:.2f}) exceeds the target "
            f"installment ({target:.2f})."
        )
    elif principal_raw < ZERO:
        flags |= ScheduleWarning.NEGATIVE_AMORTIZATION
        message = f"Payment {number}: computed principal {principal_raw:.2f} is negative."
    else:
        return flags

    if configuration.strict:
        raise NegativeAmortizationError(message)
    if configuration.enable_warnings:
        warnings.append(message)
    return flags


def _to_cash(result: ScheduleResult, cents: RoundingPolicy) -> ScheduleResult:
    """Re-round every reported amount to whole cents.

    Interest and principal are rounded independently and the total is their
    sum, so each item still satisfies interest + principal == total.
    """
    items = []
    for item in result.items:
        interest = cents(item.interest_amount)
        principal = cents(item.principal_payment)
        items.append(replace(
            item,
            interest_amount=interest,
            principal_payment=principal,
            total_payment=interest + principal,
            remaining_principal=cents(item.remaining_principal),
        ))
    return replace(
        result,
        items=tuple(items),
        target_level_payment=(
            cents(result.target_level_payment) if result.target_level_payment is not None else None
        ),
        actual_final_payment=items[-1].total_payment if items else None,
    )
