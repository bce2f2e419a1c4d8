"""Command-line interface for the accrual engine.

This module uses the ``click`` library to implement a multi-command
interface. Each command reads a JSON case file of the form::

    {
      "loan": {"principal_amount": "10000", "interest_rate": "12", ...},
      "transactions": [{"type": "Disbursement", "date": "2024-01-01", ...}],
      "schedule": [{"due_date": "2024-02-01", "interest_amount": "101.92", ...}]
    }

and prints a ledger, a settlement quote, a formula-based estimate or a
schedule reconciliation. Results can also be exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from .amortization import accrue_interest
from .config import configure_logging
from .data_models import Loan, ScheduleEntry, Transaction, parse_transactions
from .exceptions import LoanAccrualError, ValidationError
from .formatter import (
    accrual_to_dict,
    ledger_row,
    ledger_to_dict,
    print_ledger,
    print_reconciliation,
    print_settlement,
    print_summary,
    reconciliation_to_dict,
    settlement_to_dict,
)
from .ledger import build_ledger
from .reconciliation import reconcile_schedule
from .settlement import SettlementMode, calculate_settlement, formula_days_elapsed
from .utils import parse_date, round_money


def parse_date_option(value: str) -> date:
    """Parse a YYYY-MM-DD command-line value."""
    try:
        return parse_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def load_case(path: Path) -> Tuple[Loan, List[Transaction], List[ScheduleEntry]]:
    """Read and validate a JSON case file."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Cannot read case file {path}: {exc}")
    if not isinstance(data, dict) or "loan" not in data:
        raise click.ClickException(f"Case file {path} has no 'loan' object")
    try:
        loan = Loan.from_dict(data["loan"])
        transactions = parse_transactions(data.get("transactions", []))
        schedule = [ScheduleEntry.from_dict(row) for row in data.get("schedule", [])]
    except ValidationError as exc:
        raise click.ClickException(str(exc))
    return loan, transactions, schedule


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def export_ledger_csv(path: Path, entries) -> None:
    """Export ledger entries to a CSV file."""
    header = ["Date", "Type", "Detail", "Amount", "Principal"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for entry in entries:
            writer.writerow(ledger_row(entry))


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging verbosity",
)
def cli(log_level: str) -> None:
    """Interest accrual and settlement calculations for serviced loans."""
    configure_logging(log_level)


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--as-of", "as_of", help="Accrue interest up to this date (YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def ledger(case_file: Path, as_of: Optional[str], output: Optional[str]) -> None:
    """Build the day-by-day interest ledger for a loan."""
    loan, transactions, _ = load_case(case_file)
    as_of_date = parse_date_option(as_of) if as_of else date.today()
    try:
        result = build_ledger(loan, transactions, as_of_date)
    except LoanAccrualError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            write_json(path, ledger_to_dict(result.entries, result.summary))
        elif path.suffix.lower() == ".csv":
            export_ledger_csv(path, result.entries)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Ledger exported to {path}")
    else:
        print_summary(result.summary)
        print_ledger(result.entries)


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--date", "settlement_date", required=True, help="Settlement date (YYYY-MM-DD)")
@click.option(
    "--mode",
    type=click.Choice(SettlementMode.ALL),
    default=SettlementMode.LEDGER,
    help="ledger: reconcile against transactions; formula: estimate from the loan terms",
)
@click.option("--output", "output", type=str, help="Output file path (.json)")
def settle(case_file: Path, settlement_date: str, mode: str, output: Optional[str]) -> None:
    """Quote the amount required to settle a loan on a date."""
    loan, transactions, _ = load_case(case_file)
    on = parse_date_option(settlement_date)
    try:
        result = calculate_settlement(loan, transactions, on, mode=mode)
    except LoanAccrualError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Settlement export must use .json extension")
        write_json(path, {"settlement": settlement_to_dict(result)})
        click.echo(f"Settlement exported to {path}")
    else:
        print_settlement(result)


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--date", "as_of", required=True, help="Estimate interest up to this date (YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def estimate(case_file: Path, as_of: str, output: Optional[str]) -> None:
    """Estimate accrued interest from the loan terms alone."""
    loan, _, _ = load_case(case_file)
    days = formula_days_elapsed(loan, parse_date_option(as_of))
    try:
        result = accrue_interest(loan, days)
    except LoanAccrualError as exc:
        raise click.ClickException(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Estimate export must use .json extension")
        write_json(path, {"days_elapsed": days, "estimate": accrual_to_dict(result)})
        click.echo(f"Estimate exported to {path}")
        return
    click.echo(f"{loan.interest_type} interest over {days} days: "
               f"{round_money(result.total_interest_due):.2f}")
    for row in result.period_breakdown:
        click.echo("\t".join([
            str(row.period_number),
            row.due_date.isoformat(),
            f"{row.opening_balance:.2f}",
            f"{row.interest:.2f}",
            f"{row.closing_balance:.2f}",
        ]))


@cli.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--date", "as_of", required=True, help="Reconcile up to this date (YYYY-MM-DD)")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def reconcile(case_file: Path, as_of: str, output: Optional[str]) -> None:
    """Compare scheduled interest with interest actually received."""
    _, transactions, schedule = load_case(case_file)
    if not schedule:
        raise click.ClickException("Case file has no schedule to reconcile against")
    result = reconcile_schedule(schedule, transactions, parse_date_option(as_of))
    if output:
        write_json(Path(output), {"reconciliation": reconciliation_to_dict(result)})
        click.echo(f"Reconciliation exported to {output}")
    else:
        print_reconciliation(result)


if __name__ == "__main__":
    cli()
