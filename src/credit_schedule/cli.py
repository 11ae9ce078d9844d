"""Command-line entry point — click options + rich rendering of the schedule.

Parameters come from a JSON request file (``--request``), from the command
line, or from interactive prompts for the mandatory fields, in that order of
increasing precedence for the first two. Rate periods come from repeated
``--rate FROM:TO:RATE`` options, from the request file, or from the ECB.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .apr import compute_annual_percentage_rate
from .config import CalculatorConfiguration
from .fetcher import DEFAULT_ECB_SERIES, FetchError, fetch_ecb_rate_periods
from .models import (
    CreditParameters,
    DayCountBasis,
    InterestApplication,
    PaymentDay,
    PaymentFrequency,
    RatePeriod,
    RepaymentStyle,
    ScheduleError,
    ScheduleResult,
    ScheduleWarning,
    ValidationError,
)
from .narrative import render_markdown
from .rounding import RoundingMode
from .schedule import calculate

console = Console()
err_console = Console(stderr=True, style="bold red")

# ──────────────────────────────────────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────────────────────────────────────

def _fmt_money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _fmt_pct(value: Decimal) -> str:
    return f"{value:.4f}%"


def _fmt_flags(warnings: ScheduleWarning) -> str:
    labels = {
        ScheduleWarning.NEGATIVE_AMORTIZATION: "neg-am",
        ScheduleWarning.INTEREST_EXCEEDS_PAYMENT: "int>pmt",
        ScheduleWarning.FINAL_PAYMENT_ADJUSTED: "adjusted",
    }
    return " ".join(label for flag, label in labels.items() if flag in warnings)


# ──────────────────────────────────────────────────────────────────────────────
# Result display
# ──────────────────────────────────────────────────────────────────────────────

def display_schedule(result: ScheduleResult) -> None:
    t = Table(title="Amortization Schedule", box=box.MINIMAL_HEAVY_HEAD)
    for col in ("#", "Date", "Days", "Rate", "Interest", "Principal", "Payment", "Balance", "Flags"):
        t.add_column(col, justify="right")

    for number, item in enumerate(result.items, start=1):
        t.add_row(
            str(number),
            f"{item.payment_date:%Y-%m-%d}",
            str(item.days_in_period),
            _fmt_pct(item.interest_rate),
            _fmt_money(item.interest_amount),
            _fmt_money(item.principal_payment),
            _fmt_money(item.total_payment),
            _fmt_money(item.remaining_principal),
            _fmt_flags(item.warnings),
        )
    console.print(t)


def display_summary(parameters: CreditParameters, result: ScheduleResult, apr: Decimal) -> None:
    t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    t.add_column("Field", style="cyan")
    t.add_column("Value", justify="right")

    t.add_row("Principal", _fmt_money(parameters.principal))
    t.add_row("Disbursement (net of fees)", _fmt_money(parameters.disbursement))
    t.add_row("Payments", str(len(result)))
    if result.target_level_payment is not None:
        t.add_row("Target level payment", _fmt_money(result.target_level_payment))
    if result.actual_final_payment is not None:
        t.add_row("Final payment", _fmt_money(result.actual_final_payment))
    t.add_row("Total interest", _fmt_money(result.total_interest))
    t.add_row("Total paid", _fmt_money(result.total_paid))
    t.add_row("APR (effective annual rate)", _fmt_pct(apr))

    console.print(Panel(t, title="[bold green]Credit Summary[/bold green]", expand=False))

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def display_log(result: ScheduleResult) -> None:
    for entry in result.calculation_log:
        console.print(f"[bold]{entry.description}[/bold]")
        if entry.formula:
            console.print(f"  [dim]{entry.formula}[/dim]")
        if entry.substituted:
            console.print(f"  {entry.substituted}")
        console.print(f"  → {entry.result}")


# ──────────────────────────────────────────────────────────────────────────────
# Input helpers
# ──────────────────────────────────────────────────────────────────────────────

def _parse_decimal(raw: str, name: str) -> Decimal:
    try:
        value = Decimal(str(raw).replace(",", ".").replace(" ", ""))
    except InvalidOperation:
        raise ValidationError(f"Invalid number for {name}: '{raw}'") from None
    if not value.is_finite():
        raise ValidationError(f"Invalid number for {name}: '{raw}' (must be finite)")
    return value


def _parse_date(raw: str, name: str) -> date:
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValidationError(f"Invalid date for {name}: '{raw}' (expected YYYY-MM-DD)") from None


def _parse_choice(enum_type, raw: str, name: str):
    try:
        return enum_type(str(raw).strip().lower())
    except ValueError:
        valid = ", ".join(member.value for member in enum_type)
        raise ValidationError(f"Unsupported {name} '{raw}'. Valid values: {valid}") from None


def _parse_rate(raw: str) -> RatePeriod:
    parts = raw.split(":")
    if len(parts) != 3:
        raise ValidationError(f"Invalid --rate '{raw}'. Use FROM:TO:RATE, e.g. 2024-01-01:2024-12-31:4.5")
    return RatePeriod(
        date_from=_parse_date(parts[0], "rate start"),
        date_to=_parse_date(parts[1], "rate end"),
        rate=_parse_decimal(parts[2], "rate"),
    )


def _prompt_decimal(prompt: str) -> Decimal:
    while True:
        raw = console.input(f"[bold]{prompt}[/bold] ").strip()
        try:
            return _parse_decimal(raw, prompt)
        except ValidationError as exc:
            err_console.print(f"  {exc}")


def _prompt_date(prompt: str) -> date:
    while True:
        raw = console.input(f"[bold]{prompt}[/bold] ").strip()
        try:
            return _parse_date(raw, prompt)
        except ValidationError as exc:
            err_console.print(f"  {exc}")


_CHOICES = {
    "payment_frequency": PaymentFrequency,
    "payment_day": PaymentDay,
    "day_count_basis": DayCountBasis,
    "rounding_mode": RoundingMode,
    "repayment_style": RepaymentStyle,
    "interest_application": InterestApplication,
}
_DECIMALS = ("principal", "margin_rate", "fee_rate", "fee_amount")
_DATES = ("start_date", "end_date")


def build_parameters(raw: dict) -> CreditParameters:
    """Convert canonical field names with string values into CreditParameters."""
    unknown = set(raw) - set(_CHOICES) - set(_DECIMALS) - set(_DATES) - {"rounding_decimals"}
    if unknown:
        raise ValidationError(f"Unknown parameter(s): {', '.join(sorted(unknown))}")

    kwargs: dict = {}
    for name, value in raw.items():
        if value is None:
            continue
        if name in _CHOICES:
            kwargs[name] = _parse_choice(_CHOICES[name], value, name.replace("_", " "))
        elif name in _DECIMALS:
            kwargs[name] = _parse_decimal(value, name)
        elif name in _DATES:
            kwargs[name] = _parse_date(value, name)
        else:
            try:
                kwargs[name] = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid integer for {name}: '{value}'") from None
    return CreditParameters(**kwargs)


def load_request(path: Path) -> tuple[dict, list[RatePeriod]]:
    """Read a JSON request: {"parameters": {...}, "rates": [{"date_from", "date_to", "rate"}]}."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Cannot read request file {path}: {exc}") from exc

    rates = []
    for entry in document.get("rates", []):
        try:
            rates.append(RatePeriod(
                date_from=_parse_date(entry["date_from"], "rate start"),
                date_to=_parse_date(entry["date_to"], "rate end"),
                rate=_parse_decimal(entry["rate"], "rate"),
            ))
        except KeyError as exc:
            raise ValidationError(f"Rate entry is missing {exc}") from None
    return dict(document.get("parameters", {})), rates


# ──────────────────────────────────────────────────────────────────────────────
# Click entry point
# ──────────────────────────────────────────────────────────────────────────────

def _choice(enum_type) -> click.Choice:
    return click.Choice([member.value for member in enum_type], case_sensitive=False)


@click.command()
@click.option("--request", "request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="JSON request with 'parameters' and 'rates'.")
@click.option("--principal", type=str, default=None, help="Loan principal.")
@click.option("--margin", type=str, default=None, help="Margin over the base rate, in percent.")
@click.option("--start", type=str, default=None, help="Credit start date (YYYY-MM-DD).")
@click.option("--end", type=str, default=None, help="Credit end date (YYYY-MM-DD).")
@click.option("--frequency", type=_choice(PaymentFrequency), default=None, help="Payment frequency.")
@click.option("--payment-day", type=_choice(PaymentDay), default=None, help="Day of month payments fall on.")
@click.option("--basis", type=_choice(DayCountBasis), default=None, help="Day-count basis.")
@click.option("--rounding", type=_choice(RoundingMode), default=None, help="Rounding mode.")
@click.option("--decimals", type=int, default=None, help="Internal rounding decimals (4-10).")
@click.option("--style", type=_choice(RepaymentStyle), default=None, help="Repayment style.")
@click.option("--interest", type=_choice(InterestApplication), default=None, help="Interest application.")
@click.option("--fee-rate", type=str, default=None, help="Upfront fee, percent of principal.")
@click.option("--fee-amount", type=str, default=None, help="Upfront fee, flat amount.")
@click.option("--rate", "rates", multiple=True, help="Rate period FROM:TO:RATE (repeatable).")
@click.option("--ecb-series", type=str, default=None, is_flag=False, flag_value=DEFAULT_ECB_SERIES,
              help=f"Fetch base rates from the ECB (default series: {DEFAULT_ECB_SERIES}).")
@click.option("--log", "show_log", is_flag=True, default=False, help="Print the calculation log.")
@click.option("--export-log", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the calculation log as Markdown.")
@click.option("--strict", is_flag=True, default=False, help="Fail on negative amortization.")
@click.option("--verbose", is_flag=True, default=False, help="Debug logging.")
def main(
    request_file: Optional[Path],
    principal: Optional[str],
    margin: Optional[str],
    start: Optional[str],
    end: Optional[str],
    frequency: Optional[str],
    payment_day: Optional[str],
    basis: Optional[str],
    rounding: Optional[str],
    decimals: Optional[int],
    style: Optional[str],
    interest: Optional[str],
    fee_rate: Optional[str],
    fee_amount: Optional[str],
    rates: tuple,
    ecb_series: Optional[str],
    show_log: bool,
    export_log: Optional[Path],
    strict: bool,
    verbose: bool,
) -> None:
    """Credit schedule calculator: amortization schedule and APR."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )

    console.print(Panel("[bold blue]Credit Schedule[/bold blue]", expand=False))

    try:
        raw: dict = {}
        periods: list[RatePeriod] = []
        if request_file is not None:
            raw, periods = load_request(request_file)

        overrides = {
            "principal": principal,
            "margin_rate": margin,
            "start_date": start,
            "end_date": end,
            "payment_frequency": frequency,
            "payment_day": payment_day,
            "day_count_basis": basis,
            "rounding_mode": rounding,
            "rounding_decimals": decimals,
            "repayment_style": style,
            "interest_application": interest,
            "fee_rate": fee_rate,
            "fee_amount": fee_amount,
        }
        raw.update({name: value for name, value in overrides.items() if value is not None})

        # Mandatory fields not supplied anywhere are asked for interactively
        if raw.get("principal") is None:
            raw["principal"] = str(_prompt_decimal("Principal?"))
        if raw.get("margin_rate") is None:
            raw["margin_rate"] = str(_prompt_decimal("Margin (percent)?"))
        if raw.get("start_date") is None:
            raw["start_date"] = _prompt_date("Start date (YYYY-MM-DD)?").isoformat()
        if raw.get("end_date") is None:
            raw["end_date"] = _prompt_date("End date (YYYY-MM-DD)?").isoformat()

        parameters = build_parameters(raw)

        if rates:
            periods = [_parse_rate(item) for item in rates]
        if ecb_series is not None:
            console.print(f"  Fetching base rates ({ecb_series}) from the ECB…")
            periods = fetch_ecb_rate_periods(parameters.start_date, parameters.end_date, ecb_series)

        configuration = CalculatorConfiguration(strict=strict)
        result = calculate(
            parameters,
            periods,
            configuration,
            include_log=show_log or export_log is not None,
        )
    except (ScheduleError, FetchError) as exc:
        err_console.print(f"Error: {exc}")
        sys.exit(1)

    apr = compute_annual_percentage_rate(parameters, result)

    display_schedule(result)
    display_summary(parameters, result, apr)

    if show_log:
        display_log(result)
    if export_log is not None:
        export_log.write_text(render_markdown(result.calculation_log), encoding="utf-8")
        console.print(f"  [green]Calculation log written to {export_log}[/green]")
