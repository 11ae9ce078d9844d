"""Online base-rate fetcher — ECB Data Portal.

Turns the history of an ECB rate series into a contiguous rate timeline for a
credit. Only fetches when the user asks for it (no background polling).
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable

import requests

from .models import RatePeriod

logger = logging.getLogger(__name__)

# Timeout for HTTP calls (seconds)
_TIMEOUT = 10

# Main refinancing operations fixed rate, daily observations
DEFAULT_ECB_SERIES = "FM/D.U2.EUR.4F.KR.MRR_FR.LEV"

_ECB_URL = "https://data-api.ecb.europa.eu/service/data/{series}"

# How far before the credit start to look for the rate already in effect
_LOOKBACK = timedelta(days=400)

_ONE_DAY = timedelta(days=1)


class FetchError(Exception):
    """Raised when an online rate fetch fails for any reason."""


def rate_periods_from_observations(
    observations: Iterable[tuple[date, Decimal]], start: date, end: date
) -> list[RatePeriod]:
    """Build contiguous periods covering [start, end] from dated rate observations.

    The period in effect on *start* opens on the day its rate was first
    observed, so it may begin before *start*. Every later change of the rate
    opens a new period and the last period runs to *end*. A rate observed for
    a single day before changing again cannot form a period of its own; the
    following rate takes over that day.
    """
    changes: list[tuple[date, Decimal]] = []
    for day, rate in sorted(observations):
        if day >= end:
            break
        if changes and rate == changes[-1][1]:
            continue
        if changes and day - changes[-1][0] == _ONE_DAY:
            changes[-1] = (changes[-1][0], rate)
            if len(changes) > 1 and changes[-2][1] == rate:
                changes.pop()
            continue
        changes.append((day, rate))

    opening = [index for index, (day, _) in enumerate(changes) if day <= start]
    if not opening:
        raise FetchError(f"No rate observation on or before {start:%Y-%m-%d}.")
    changes = changes[opening[-1]:]

    periods = []
    for (day, rate), following in zip(changes, changes[1:] + [None]):
        date_to = following[0] - _ONE_DAY if following else end
        periods.append(RatePeriod(date_from=day, date_to=date_to, rate=rate))
    return periods


def fetch_ecb_rate_periods(
    start: date, end: date, series: str = DEFAULT_ECB_SERIES
) -> list[RatePeriod]:
    """Fetch *series* from the ECB and return rate periods covering [start, end].

    Raises FetchError on any error (network, parsing, missing data).
    """
    params = {
        "startPeriod": (start - _LOOKBACK).isoformat(),
        "endPeriod": end.isoformat(),
        "format": "jsondata",
    }
    try:
        resp = requests.get(_ECB_URL.format(series=series), params=params, timeout=_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"ECB API request failed: {exc}") from exc

    try:
        data = resp.json()
        # SDMX-JSON: observation keys index into the TIME_PERIOD dimension values
        times = data["structure"]["dimensions"]["observation"][0]["values"]
        series_data = data["dataSets"][0]["series"]
        observations = series_data[next(iter(series_data))]["observations"]
        parsed = []
        for index, values in observations.items():
            value = values[0]
            if value is None:
                continue
            day = date.fromisoformat(times[int(index)]["id"])
            parsed.append((day, Decimal(str(value))))
    except (KeyError, IndexError, StopIteration, TypeError, ValueError, InvalidOperation) as exc:
        raise FetchError(f"Failed to parse ECB response for {series}: {exc}") from exc

    logger.debug("Fetched %s observations for %s", len(parsed), series)
    return rate_periods_from_observations(parsed, start, end)
