"""Unit tests for rounding.py."""
from decimal import Decimal

import pytest

from credit_schedule.rounding import RoundingMode, RoundingPolicy, round_amount


class TestRoundAmount:
    @pytest.mark.parametrize("value,mode,decimals,expected", [
        # Ties: bankers' rounding goes to the even digit
        (Decimal("0.125"), RoundingMode.HALF_EVEN, 2, Decimal("0.12")),
        (Decimal("0.135"), RoundingMode.HALF_EVEN, 2, Decimal("0.14")),
        # Ties: away from zero, both signs
        (Decimal("0.125"), RoundingMode.HALF_AWAY_FROM_ZERO, 2, Decimal("0.13")),
        (Decimal("-0.125"), RoundingMode.HALF_AWAY_FROM_ZERO, 2, Decimal("-0.13")),
        # Non-ties agree in both modes
        (Decimal("42.46575"), RoundingMode.HALF_EVEN, 4, Decimal("42.4658")),
        (Decimal("42.465753"), RoundingMode.HALF_AWAY_FROM_ZERO, 4, Decimal("42.4658")),
    ])
    def test_modes(self, value, mode, decimals, expected):
        assert round_amount(value, mode, decimals) == expected

    def test_exponent_matches_decimals(self):
        result = round_amount(Decimal("7"), RoundingMode.HALF_EVEN, 6)
        assert result.as_tuple().exponent == -6


class TestRoundingPolicy:
    def test_callable(self):
        policy = RoundingPolicy(RoundingMode.HALF_AWAY_FROM_ZERO, 2)
        assert policy(Decimal("2.675")) == Decimal("2.68")

    def test_with_decimals_keeps_mode(self):
        policy = RoundingPolicy(RoundingMode.HALF_EVEN, 8).with_decimals(2)
        assert policy.mode is RoundingMode.HALF_EVEN
        assert policy.decimals == 2
        assert policy(Decimal("0.005")) == Decimal("0.00")

    def test_independent_policies(self):
        """Two policies used side by side never affect each other."""
        coarse = RoundingPolicy(RoundingMode.HALF_EVEN, 4)
        fine = RoundingPolicy(RoundingMode.HALF_AWAY_FROM_ZERO, 10)
        value = Decimal("1.23456789015")
        assert coarse(value) == Decimal("1.2346")
        assert fine(value) == Decimal("1.2345678902")
        assert coarse(value) == Decimal("1.2346")
