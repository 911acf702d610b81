"""Click CLI entry point for the finance command.

Handles argument parsing, config loading, client construction and error
display.  All business logic is delegated to ``pipeline``, ``portfolio``,
``config`` and ``export`` modules.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from personal_finance import __version__
from personal_finance.config import (
    build_kubera_client,
    build_lunch_money_client,
    initialize,
    load_config,
)
from personal_finance.errors import ConfigError, FinanceError
from personal_finance.export import (
    categories_to_dict,
    dumps,
    load_categories,
    portfolio_to_dict,
    print_net_worth,
    print_summary,
    write_snapshot,
)
from personal_finance.models import AppConfig, DateRange
from personal_finance.pipeline import get_categorized_summaries, get_categorized_transactions
from personal_finance.portfolio import get_portfolio


def _validate_date(value: str, label: str) -> str:
    """Validate that *value* is a real ``YYYY-MM-DD`` date.

    Returns the validated string, or raises ``click.BadParameter``.
    """
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        raise click.BadParameter(
            f"Invalid {label} date: {value!r}. Expected YYYY-MM-DD (e.g. 2026-01-31)."
        )
    return value


def _date_range(start: str, end: str) -> DateRange:
    _validate_date(start, "start")
    _validate_date(end, "end")
    try:
        return DateRange.from_strings(start, end)
    except FinanceError as exc:
        raise click.BadParameter(f"Invalid date range: {exc}") from exc


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _load_config_or_exit(root: Path) -> AppConfig:
    try:
        return load_config(root)
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'finance init' to create a config file.",
            err=True,
        )
        sys.exit(1)
    except ConfigError as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)


def _emit(data: dict[str, Any], output: str | None) -> None:
    """Print *data* as JSON, or write it to *output* when given."""
    if output:
        path = write_snapshot(data, output)
        click.echo(f"Wrote {path}", err=True)
    else:
        click.echo(dumps(data))


def _categorize_command(
    fetch: Callable, start: str, end: str, output: str | None, verbose: bool, debug: bool
) -> None:
    _configure_logging(verbose, debug)

    try:
        date_range = _date_range(start, end)
    except click.BadParameter as exc:
        click.echo(f"Error: {exc.format_message()}", err=True)
        sys.exit(1)

    config = _load_config_or_exit(Path.cwd())

    try:
        client = build_lunch_money_client(config)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    try:
        result = fetch(client, date_range)
    except FinanceError as exc:
        click.echo(f"Error categorizing transactions: {exc}", err=True)
        sys.exit(1)

    _emit(categories_to_dict(result), output)


_verbose_option = click.option(
    "--verbose", is_flag=True, default=False, help="Detailed progress output."
)
_debug_option = click.option(
    "--debug", is_flag=True, default=False, help="Developer-level diagnostics."
)
_output_option = click.option(
    "--output",
    default=None,
    type=click.Path(dir_okay=False),
    help="Write JSON to this file instead of stdout.",
)


@click.group()
@click.version_option(version=__version__, prog_name="personal-finance")
def cli() -> None:
    """Categorized spending and net worth snapshots from Lunch Money and Kubera."""


@cli.command()
@click.option("--start", required=True, help="Inclusive start date, YYYY-MM-DD.")
@click.option("--end", required=True, help="Inclusive end date, YYYY-MM-DD.")
@_output_option
@_verbose_option
@_debug_option
def transactions(start: str, end: str, output: str | None, verbose: bool, debug: bool) -> None:
    """Full transaction list for a date range, organized by category."""
    _categorize_command(get_categorized_transactions, start, end, output, verbose, debug)


@cli.command()
@click.option("--start", required=True, help="Inclusive start date, YYYY-MM-DD.")
@click.option("--end", required=True, help="Inclusive end date, YYYY-MM-DD.")
@_output_option
@_verbose_option
@_debug_option
def summaries(start: str, end: str, output: str | None, verbose: bool, debug: bool) -> None:
    """Category totals for a date range, without individual transactions."""
    _categorize_command(get_categorized_summaries, start, end, output, verbose, debug)


@cli.command("net-worth")
@_output_option
@click.option("--text", is_flag=True, default=False, help="Print a readable summary instead of JSON.")
@_verbose_option
@_debug_option
def net_worth(output: str | None, text: bool, verbose: bool, debug: bool) -> None:
    """Net worth, asset holdings and debts from Kubera."""
    if text and output:
        raise click.UsageError("--text cannot be combined with --output.")

    _configure_logging(verbose, debug)
    config = _load_config_or_exit(Path.cwd())

    try:
        client = build_kubera_client(config)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    try:
        portfolio = get_portfolio(client)
    except FinanceError as exc:
        click.echo(f"Error fetching portfolio: {exc}", err=True)
        sys.exit(1)

    if text:
        print_net_worth(portfolio)
    else:
        _emit(portfolio_to_dict(portfolio), output)


@cli.command()
@click.argument("snapshot", type=click.Path(exists=True, dir_okay=False))
@_verbose_option
@_debug_option
def report(snapshot: str, verbose: bool, debug: bool) -> None:
    """Print a category breakdown from a saved transactions snapshot."""
    _configure_logging(verbose, debug)

    try:
        categories = load_categories(snapshot)
    except json.JSONDecodeError as exc:
        click.echo(f"Error: {snapshot} is not valid JSON: {exc}", err=True)
        sys.exit(1)
    except (FinanceError, AttributeError, TypeError) as exc:
        click.echo(f"Error reading snapshot: {exc}", err=True)
        sys.exit(1)

    print_summary(categories, title=Path(snapshot).name)


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
@_verbose_option
@_debug_option
def init(target_dir: str, verbose: bool, debug: bool) -> None:
    """Write a default config.toml (existing files are left alone)."""
    _configure_logging(verbose, debug)
    target = Path(target_dir).resolve()

    try:
        created = initialize(target)
    except OSError as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    if created:
        click.echo(f"Wrote default configuration to {target / 'config.toml'}")
    else:
        click.echo(f"Configuration already exists in {target}")
