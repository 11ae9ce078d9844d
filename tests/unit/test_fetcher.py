"""Unit tests for fetcher.py — no network, requests.get is monkeypatched."""
from datetime import date, timedelta
from decimal import Decimal

import pytest
import requests

from credit_schedule import fetcher
from credit_schedule.fetcher import (
    DEFAULT_ECB_SERIES,
    FetchError,
    fetch_ecb_rate_periods,
    rate_periods_from_observations,
)
from credit_schedule.models import CreditParameters, RatePeriod
from credit_schedule.rates import validate_rate_periods
from credit_schedule.schedule import calculate

START = date(2024, 1, 1)
END = date(2024, 12, 31)


def _sdmx(observations):
    """Minimal SDMX-JSON document with one series."""
    times = [{"id": day} for day, _ in observations]
    values = {str(i): [value] for i, (_, value) in enumerate(observations)}
    return {
        "structure": {"dimensions": {"observation": [{"id": "TIME_PERIOD", "values": times}]}},
        "dataSets": [{"series": {"0:0:0:0:0:0:0": {"observations": values}}}],
    }


class _FakeResponse:
    def __init__(self, payload, status_error=None):
        self._payload = payload
        self._status_error = status_error

    def raise_for_status(self):
        if self._status_error is not None:
            raise self._status_error

    def json(self):
        return self._payload


class TestRatePeriodsFromObservations:
    def test_contiguous_periods(self):
        observations = [
            (date(2023, 9, 20), Decimal("4.5")),
            (date(2024, 6, 12), Decimal("4.25")),
            (date(2024, 9, 18), Decimal("3.65")),
        ]
        periods = rate_periods_from_observations(observations, START, END)
        assert periods == [
            RatePeriod(date(2023, 9, 20), date(2024, 6, 11), Decimal("4.5")),
            RatePeriod(date(2024, 6, 12), date(2024, 9, 17), Decimal("4.25")),
            RatePeriod(date(2024, 9, 18), date(2024, 12, 31), Decimal("3.65")),
        ]
        assert validate_rate_periods(periods, START, END) == periods

    def test_equal_rates_merged(self):
        observations = [
            (date(2023, 12, 29), Decimal("4.5")),
            (date(2024, 1, 2), Decimal("4.5")),
            (date(2024, 1, 3), Decimal("4.5")),
        ]
        periods = rate_periods_from_observations(observations, START, END)
        assert periods == [RatePeriod(date(2023, 12, 29), END, Decimal("4.5"))]

    def test_unsorted_input(self):
        observations = [
            (date(2024, 3, 1), Decimal("3")),
            (date(2023, 1, 1), Decimal("2")),
        ]
        periods = rate_periods_from_observations(observations, START, END)
        assert [p.rate for p in periods] == [Decimal("2"), Decimal("3")]
        assert periods[0].date_to == date(2024, 2, 29)

    def test_change_on_end_date_ignored(self):
        observations = [(date(2023, 1, 1), Decimal("2")), (END, Decimal("3"))]
        assert rate_periods_from_observations(observations, START, END) == [
            RatePeriod(date(2023, 1, 1), END, Decimal("2")),
        ]

    def test_nothing_before_start(self):
        with pytest.raises(FetchError, match="No rate observation"):
            rate_periods_from_observations([(date(2024, 2, 1), Decimal("3"))], START, END)

    def test_change_day_after_start(self):
        start = date(2024, 6, 11)
        observations = [
            (date(2023, 9, 20), Decimal("4.5")),
            (date(2024, 6, 12), Decimal("4.25")),
        ]
        periods = rate_periods_from_observations(observations, start, END)
        assert periods == [
            RatePeriod(date(2023, 9, 20), date(2024, 6, 11), Decimal("4.5")),
            RatePeriod(date(2024, 6, 12), END, Decimal("4.25")),
        ]
        params = CreditParameters(
            principal=Decimal("10000"), margin_rate=Decimal("1"), start_date=start, end_date=END
        )
        result = calculate(params, periods)
        assert result.items[-1].remaining_principal == Decimal("0")

    def test_consecutive_day_changes_merged(self):
        observations = [
            (date(2023, 9, 20), Decimal("4.5")),
            (date(2024, 6, 12), Decimal("4.25")),
            (date(2024, 6, 13), Decimal("4")),
        ]
        periods = rate_periods_from_observations(observations, START, END)
        assert periods == [
            RatePeriod(date(2023, 9, 20), date(2024, 6, 11), Decimal("4.5")),
            RatePeriod(date(2024, 6, 12), END, Decimal("4")),
        ]
        params = CreditParameters(
            principal=Decimal("10000"), margin_rate=Decimal("1"), start_date=START, end_date=END
        )
        result = calculate(params, periods)
        assert len(result) == 12

    def test_one_day_change_back_collapses(self):
        observations = [
            (date(2023, 9, 20), Decimal("4.5")),
            (date(2024, 6, 12), Decimal("9")),
            (date(2024, 6, 13), Decimal("4.5")),
        ]
        periods = rate_periods_from_observations(observations, START, END)
        assert periods == [RatePeriod(date(2023, 9, 20), END, Decimal("4.5"))]

    def test_every_period_spans_two_days(self):
        observations = [(date(2024, 1, 1) + timedelta(days=i), Decimal(i % 3)) for i in range(10)]
        periods = rate_periods_from_observations(observations, START, END)
        assert all(p.date_from < p.date_to for p in periods)
        assert validate_rate_periods(periods, START, END) == periods


class TestFetchEcbRatePeriods:
    def test_parses_response(self, monkeypatch):
        calls = {}

        def fake_get(url, params=None, timeout=None):
            calls.update(url=url, params=params, timeout=timeout)
            return _FakeResponse(_sdmx([("2023-09-20", 4.5), ("2024-06-12", 4.25)]))

        monkeypatch.setattr(fetcher.requests, "get", fake_get)
        periods = fetch_ecb_rate_periods(START, END)

        assert DEFAULT_ECB_SERIES in calls["url"]
        assert calls["params"]["endPeriod"] == "2024-12-31"
        assert calls["params"]["startPeriod"] < "2024-01-01"
        assert calls["timeout"] == 10
        assert periods == [
            RatePeriod(date(2023, 9, 20), date(2024, 6, 11), Decimal("4.5")),
            RatePeriod(date(2024, 6, 12), date(2024, 12, 31), Decimal("4.25")),
        ]

    def test_missing_values_skipped(self, monkeypatch):
        payload = _sdmx([("2023-09-20", 4.5), ("2024-06-12", None)])
        monkeypatch.setattr(fetcher.requests, "get", lambda *a, **kw: _FakeResponse(payload))
        assert fetch_ecb_rate_periods(START, END) == [
            RatePeriod(date(2023, 9, 20), END, Decimal("4.5")),
        ]

    def test_network_error(self, monkeypatch):
        def fake_get(*args, **kwargs):
            raise requests.ConnectionError("unreachable")

        monkeypatch.setattr(fetcher.requests, "get", fake_get)
        with pytest.raises(FetchError, match="request failed"):
            fetch_ecb_rate_periods(START, END)

    def test_http_error(self, monkeypatch):
        response = _FakeResponse({}, status_error=requests.HTTPError("404 Not Found"))
        monkeypatch.setattr(fetcher.requests, "get", lambda *a, **kw: response)
        with pytest.raises(FetchError, match="404"):
            fetch_ecb_rate_periods(START, END, series="FM/D.XX")

    def test_malformed_payload(self, monkeypatch):
        monkeypatch.setattr(fetcher.requests, "get", lambda *a, **kw: _FakeResponse({"dataSets": []}))
        with pytest.raises(FetchError, match="Failed to parse"):
            fetch_ecb_rate_periods(START, END)
