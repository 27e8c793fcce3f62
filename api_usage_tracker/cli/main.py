"""
CLI interface for API Usage Tracker.

Provides command-line access to backend detection and usage display.
"""

import json
import logging
import sys
from dataclasses import dataclass
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from api_usage_tracker.config.loader import TrackerConfig, resolve_tracker_config
from api_usage_tracker.core.detector import fetch_usage_sync
from api_usage_tracker.core.models import UsageRecord

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@dataclass(frozen=True)
class BalanceSummary:
    """Balance figures shown to the user for one usage record."""
    total: float
    remaining: float
    used_percent: float


def summarize_balance(record: UsageRecord, initial_balance: float = 0.0) -> Optional[BalanceSummary]:
    """Work out the balance to display for a usage record.

    The backend's own limit wins. When it reports none, a manually
    configured initial balance is used instead. Returns None when neither
    is available, in which case only spend is shown.
    """
    if not record.is_unlimited:
        total = record.total
        remaining = record.remaining
    elif initial_balance > 0:
        total = initial_balance
        remaining = initial_balance - record.total_used
    else:
        return None

    return BalanceSummary(
        total=total,
        remaining=remaining,
        used_percent=record.total_used / total * 100
    )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


def _resolve_config(
    config_path: Optional[str],
    api_key: Optional[str],
    endpoint: Optional[str],
    initial_balance: Optional[float]
) -> TrackerConfig:
    config = resolve_tracker_config(config_path)
    return TrackerConfig(
        api_key=api_key if api_key is not None else config.api_key,
        endpoint=endpoint if endpoint is not None else config.endpoint,
        refresh_interval=config.refresh_interval,
        initial_balance=initial_balance if initial_balance is not None else config.initial_balance
    )


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """API Usage Tracker CLI."""
    if ctx.invoked_subcommand is None:
        console.print("API Usage Tracker - Use --help to see available commands")


@app.command()
def status(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file"
    )
):
    """Show which credentials the tracker would use."""
    try:
        config = resolve_tracker_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not config.is_configured:
        console.print("[yellow]![/] API Key or Endpoint not configured")
        sys.exit(EXIT_CODE_FAIL)

    console.print("[green]✓[/] API Usage Tracker is configured")
    console.print(f"Endpoint: {config.endpoint}")
    console.print(f"API Key: {config.masked_api_key}")
    console.print(f"Refresh interval: {config.refresh_interval}s")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def fetch(
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        "-k",
        help="Gateway API key (overrides config and environment)"
    ),
    endpoint: Optional[str] = typer.Option(
        None,
        "--endpoint",
        "-e",
        help="Gateway base URL (overrides config and environment)"
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file"
    ),
    initial_balance: Optional[float] = typer.Option(
        None,
        "--initial-balance",
        "-b",
        help="Balance to track against when the backend reports no limit"
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the raw usage record as JSON"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log probe activity"
    )
):
    """
    Detect the gateway behind the endpoint and show its usage.

    Tries the NewAPI, OneAPI and OpenRouter billing schemas in order and
    reports the first one that answers.
    """
    _configure_logging(verbose)

    try:
        config = _resolve_config(config_path, api_key, endpoint, initial_balance)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    record = fetch_usage_sync(config.api_key, config.endpoint)

    if as_json:
        console.print_json(json.dumps(record.to_dict()))
    else:
        _display_usage(record, config.initial_balance)

    sys.exit(EXIT_CODE_FAIL if record.error else EXIT_CODE_PASS)


def _format_currency(amount: float, places: int = 2) -> str:
    """Format currency with sign, symbol and thousands separator."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.{places}f}"


def _display_usage(record: UsageRecord, initial_balance: float) -> None:
    """Display a usage record as a summary table."""
    if record.error:
        console.print(f"[bold yellow]![/] {record.error}")
        return

    console.print(f"\n[bold]API Usage ({record.backend_type.value})[/bold]")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Amount", justify="right")

    balance = summarize_balance(record, initial_balance)
    if balance is not None:
        table.add_row("Remaining balance", _format_currency(balance.remaining))
        table.add_row(
            "Used",
            f"{balance.used_percent:.1f}% of {_format_currency(balance.total)}"
        )

    table.add_row("Today", _format_currency(record.today_used, places=4))
    table.add_row("This month", _format_currency(record.month_used, places=4))
    table.add_row("Total", _format_currency(record.total_used, places=4))

    console.print(table)


if __name__ == "__main__":
    app()
