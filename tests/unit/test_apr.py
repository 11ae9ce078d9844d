"""Unit tests for apr.py — cash flows and the IRR solve."""
from datetime import date
from decimal import Decimal

import pytest

from credit_schedule.apr import _bisect, build_cash_flows, compute_annual_percentage_rate
from credit_schedule.models import CreditParameters, RatePeriod, RepaymentStyle, ScheduleItem
from credit_schedule.schedule import calculate

ZERO = Decimal("0")
FLAT_4 = [RatePeriod(date(2024, 1, 1), date(2024, 12, 31), Decimal("4"))]


def _params(fee_rate="0", fee_amount="0", principal="1000"):
    return CreditParameters(
        principal=Decimal(principal),
        margin_rate=Decimal("1"),
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        fee_rate=Decimal(fee_rate),
        fee_amount=Decimal(fee_amount),
        repayment_style=RepaymentStyle.EQUAL_INSTALLMENTS,
    )


def _item(payment_date, total):
    return ScheduleItem(
        payment_date=payment_date,
        days_in_period=0,
        interest_rate=ZERO,
        interest_amount=ZERO,
        principal_payment=Decimal(total),
        total_payment=Decimal(total),
        remaining_principal=ZERO,
    )


class TestBuildCashFlows:
    def test_signs_and_order(self):
        items = [_item(date(2024, 3, 1), "600"), _item(date(2024, 2, 1), "500")]
        flows = build_cash_flows(_params(), items)
        assert flows == [
            (date(2024, 1, 1), Decimal("1000")),
            (date(2024, 2, 1), Decimal("-500")),
            (date(2024, 3, 1), Decimal("-600")),
        ]

    def test_disbursement_net_of_fees(self):
        flows = build_cash_flows(_params(fee_rate="2", fee_amount="15"), [])
        # 1000 − 1000 × 2 % − 15
        assert flows == [(date(2024, 1, 1), Decimal("965"))]


class TestComputeAPR:
    def test_exact_one_year(self):
        # 1000 out, 1100 back after 365 days → 10 %
        apr = compute_annual_percentage_rate(_params(), [_item(date(2024, 12, 31), "1100")])
        assert apr == Decimal("10.0000")

    def test_no_payments(self):
        assert compute_annual_percentage_rate(_params(), []) == ZERO

    def test_close_to_nominal_rate(self):
        """Zero fees, flat rate, short tenor, level payments → APR ≈ nominal 5 %."""
        params = _params()
        schedule = calculate(params, FLAT_4)
        apr = compute_annual_percentage_rate(params, schedule)
        assert abs(apr - Decimal("5")) < Decimal("0.5")
        assert apr.as_tuple().exponent == -4

    def test_fees_increase_apr_monotonically(self):
        schedule = calculate(_params(), FLAT_4)
        aprs = [
            compute_annual_percentage_rate(_params(fee_rate=rate), schedule)
            for rate in ("0", "0.5", "1", "2")
        ]
        assert all(a < b for a, b in zip(aprs, aprs[1:]))

    def test_flat_fee_increases_apr(self):
        schedule = calculate(_params(), FLAT_4)
        plain = compute_annual_percentage_rate(_params(), schedule)
        with_fee = compute_annual_percentage_rate(_params(fee_amount="25"), schedule)
        assert with_fee > plain

    def test_accepts_schedule_result_or_items(self):
        params = _params()
        schedule = calculate(params, FLAT_4)
        assert compute_annual_percentage_rate(params, schedule) == \
            compute_annual_percentage_rate(params, list(schedule.items))


class TestBisectionFallback:
    def test_finds_root_with_sign_change(self):
        assert _bisect(lambda rate: 0.25 - rate) == pytest.approx(0.25, abs=1e-7)

    def test_root_near_lower_bound(self):
        assert _bisect(lambda rate: rate + 0.5) == pytest.approx(-0.5, abs=1e-7)
