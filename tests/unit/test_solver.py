"""Unit tests for solver.py — level payment bisection."""
from datetime import date
from decimal import Decimal

from credit_schedule.config import CalculatorConfiguration
from credit_schedule.dates import generate_payment_dates
from credit_schedule.interest import SimpleDailyAccrual
from credit_schedule.models import CreditParameters, RatePeriod, RepaymentStyle
from credit_schedule.rates import RateTimeline
from credit_schedule.solver import simulate_ending_balance, solve_level_payment

ZERO = Decimal("0")


def _setup(principal="12000", rate="4", margin="1", end=date(2024, 12, 31)):
    params = CreditParameters(
        principal=Decimal(principal),
        margin_rate=Decimal(margin),
        start_date=date(2024, 1, 1),
        end_date=end,
        repayment_style=RepaymentStyle.EQUAL_INSTALLMENTS,
    )
    timeline = RateTimeline([RatePeriod(date(2024, 1, 1), date(2025, 12, 31), Decimal(rate))])
    dates = generate_payment_dates(params.start_date, params.end_date,
                                   params.payment_frequency, params.payment_day)
    return params, timeline, dates


class TestSimulateEndingBalance:
    def test_zero_payment_keeps_principal(self):
        params, timeline, dates = _setup()
        balance = simulate_ending_balance(params, timeline, dates, ZERO, SimpleDailyAccrual())
        assert balance == Decimal("12000")

    def test_large_payment_clears_balance(self):
        params, timeline, dates = _setup()
        balance = simulate_ending_balance(params, timeline, dates, Decimal("20000"), SimpleDailyAccrual())
        assert balance == ZERO

    def test_monotone_in_payment(self):
        params, timeline, dates = _setup()
        balances = [
            simulate_ending_balance(params, timeline, dates, Decimal(p), SimpleDailyAccrual())
            for p in ("500", "800", "1000", "1100")
        ]
        assert all(a >= b for a, b in zip(balances, balances[1:]))


class TestSolveLevelPayment:
    def test_amortizes_to_zero(self):
        params, timeline, dates = _setup()
        configuration = CalculatorConfiguration()
        target = solve_level_payment(params, timeline, dates, SimpleDailyAccrual(), configuration)
        balance = simulate_ending_balance(params, timeline, dates, target, SimpleDailyAccrual())
        # A bracket of 0.0001 moves the ending balance by at most a few tenths of a cent
        assert balance <= Decimal("0.01")
        # Slightly less must leave something owing
        short = simulate_ending_balance(params, timeline, dates, target - Decimal("0.01"), SimpleDailyAccrual())
        assert short > ZERO

    def test_close_to_annuity_formula(self):
        params, timeline, dates = _setup()
        target = solve_level_payment(params, timeline, dates, SimpleDailyAccrual(), CalculatorConfiguration())
        # Textbook monthly annuity at 5 %: 12000 × r / (1 − (1 + r)^−12) ≈ 1027.29
        assert abs(target - Decimal("1027.29")) < Decimal("1")

    def test_zero_rate(self):
        params, timeline, dates = _setup(rate="0", margin="0")
        target = solve_level_payment(params, timeline, dates, SimpleDailyAccrual(), CalculatorConfiguration())
        assert abs(target - Decimal("1000")) <= Decimal("0.0001")

    def test_rounded_to_internal_decimals(self):
        params, timeline, dates = _setup()
        target = solve_level_payment(params, timeline, dates, SimpleDailyAccrual(), CalculatorConfiguration())
        assert target.as_tuple().exponent == -4

    def test_high_rate(self):
        params, timeline, dates = _setup(principal="1000", rate="80", end=date(2025, 12, 31))
        target = solve_level_payment(params, timeline, dates, SimpleDailyAccrual(), CalculatorConfiguration())
        balance = simulate_ending_balance(params, timeline, dates, target, SimpleDailyAccrual())
        assert balance <= Decimal("0.01")

    def test_bracket_expands_when_interest_exceeds_headroom(self):
        # One 30-day period at 20000 %: interest ≈ 16438 > principal + 1000
        params, timeline, dates = _setup(principal="1000", rate="20000", margin="0", end=date(2024, 1, 31))
        target = solve_level_payment(params, timeline, dates, SimpleDailyAccrual(), CalculatorConfiguration())
        assert target > Decimal("17000")
        balance = simulate_ending_balance(params, timeline, dates, target, SimpleDailyAccrual())
        assert balance <= Decimal("0.01")
