"""Principal repayment strategies.

Every strategy pays exactly the remaining balance on the last payment, which
closes the loan and absorbs whatever rounding residue built up before it.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from .config import ZERO
from .models import CreditParameters, RepaymentStyle, ValidationError


@dataclass(frozen=True)
class PrincipalContext:
    remaining_principal: Decimal
    interest_amount: Decimal
    payment_index: int
    total_payments: int
    is_last_payment: bool
    target_total_payment: Optional[Decimal] = None


class PrincipalStrategy(Protocol):
    def calculate(self, context: PrincipalContext) -> Decimal: ...


class Bullet:
    """Interest-only payments; the whole principal is repaid at maturity."""

    def calculate(self, context: PrincipalContext) -> Decimal:
        return context.remaining_principal if context.is_last_payment else ZERO


class DecreasingInstallments:
    """Equal principal steps, so the total payment decreases with the interest."""

    def __init__(self, step: Decimal) -> None:
        self.step = step

    def calculate(self, context: PrincipalContext) -> Decimal:
        if context.is_last_payment:
            return context.remaining_principal
        return self.step


class Annuity:
    """Level total payment: principal is whatever the target leaves after interest."""

    def calculate(self, context: PrincipalContext) -> Decimal:
        if context.target_total_payment is None:
            raise ValueError("Target total payment must be provided for the annuity strategy.")
        if context.is_last_payment:
            return context.remaining_principal
        principal = min(context.target_total_payment - context.interest_amount, context.remaining_principal)
        return max(principal, ZERO)


def principal_strategy_for(parameters: CreditParameters, payment_count: int) -> PrincipalStrategy:
    """Build the strategy for the parameters' repayment style."""
    style = parameters.repayment_style
    if style is RepaymentStyle.BULLET:
        return Bullet()
    if style is RepaymentStyle.DECREASING_INSTALLMENTS:
        policy = parameters.rounding_policy
        return DecreasingInstallments(policy(parameters.principal / payment_count))
    if style is RepaymentStyle.EQUAL_INSTALLMENTS:
        return Annuity()
    raise ValidationError(f"Unsupported repayment style: {style!r}")
