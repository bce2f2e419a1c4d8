"""Output helpers for the accrual engine.

This module renders ledgers, settlement quotes and reconciliations as simple
tab-separated tables for the terminal, and converts the result dataclasses
into JSON-serialisable dictionaries for file export and the web API.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from .data_models import (
    AccrualResult,
    DisbursementEntry,
    InterestAccrual,
    LedgerEntry,
    LedgerSummary,
    RateChangeEntry,
    RepaymentEntry,
    ScheduleReconciliation,
    SettlementResult,
)

ENTRY_TYPES = {
    InterestAccrual: "InterestAccrual",
    DisbursementEntry: "Disbursement",
    RepaymentEntry: "Repayment",
    RateChangeEntry: "RateChange",
}


def jsonable(value: Any) -> Any:
    """Recursively convert Decimals, dates and dataclasses for ``json.dump``."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return jsonable(asdict(value))
    if isinstance(value, dict):
        return {key: jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(item) for item in value]
    return value


def entry_type(entry: LedgerEntry) -> str:
    try:
        return ENTRY_TYPES[type(entry)]
    except KeyError:
        raise TypeError(f"Unknown ledger entry: {type(entry).__name__}") from None


def entry_to_dict(entry: LedgerEntry) -> Dict[str, Any]:
    data = {"type": entry_type(entry)}
    data.update(jsonable(entry))
    return data


def ledger_to_dict(entries: Iterable[LedgerEntry], summary: LedgerSummary) -> Dict[str, Any]:
    return {
        "summary": jsonable(summary),
        "entries": [entry_to_dict(e) for e in entries],
    }


def settlement_to_dict(result: SettlementResult) -> Dict[str, Any]:
    return jsonable(result)


def accrual_to_dict(result: AccrualResult) -> Dict[str, Any]:
    return jsonable(result)


def reconciliation_to_dict(result: ScheduleReconciliation) -> Dict[str, Any]:
    return jsonable(result)


def ledger_row(entry: LedgerEntry) -> List[str]:
    """Flatten one entry into ``[date, type, detail, amount, principal]``."""
    if isinstance(entry, InterestAccrual):
        return [
            entry.to_date.isoformat(),
            "Interest",
            f"{entry.days}d @ {entry.rate}% on {entry.principal:.2f}",
            f"{entry.interest:.2f}",
            f"{entry.principal:.2f}",
        ]
    if isinstance(entry, DisbursementEntry):
        return [entry.date.isoformat(), "Disbursement", "", f"{entry.amount:.2f}",
                f"{entry.principal_after:.2f}"]
    if isinstance(entry, RepaymentEntry):
        return [
            entry.date.isoformat(),
            "Repayment",
            f"interest {entry.interest_applied:.2f} / principal {entry.principal_applied:.2f}",
            f"{entry.amount:.2f}",
            f"{entry.principal_after:.2f}",
        ]
    if isinstance(entry, RateChangeEntry):
        return [entry.date.isoformat(), "Rate change", f"{entry.from_rate}% -> {entry.to_rate}%",
                "", f"{entry.principal_balance:.2f}"]
    raise TypeError(f"Unknown ledger entry: {type(entry).__name__}")


def print_summary(summary: LedgerSummary) -> None:
    """Print the top-line ledger figures."""
    print("Summary")
    print("-" * 72)
    print(f"Interest accrued      : {summary.total_interest_accrued:.2f}")
    print(f"Interest paid         : {summary.total_interest_paid:.2f}")
    print(f"Interest outstanding  : {summary.interest_outstanding:.2f}")
    print(f"Principal outstanding : {summary.principal_outstanding:.2f}")
    print("-" * 72)


def print_ledger(entries: Iterable[LedgerEntry]) -> None:
    """Print ledger entries as a simple table."""
    print("\t".join(["Date", "Type", "Detail", "Amount", "Principal"]))
    for entry in entries:
        print("\t".join(ledger_row(entry)))


def print_settlement(result: SettlementResult, show_periods: bool = True) -> None:
    """Print a settlement quote, its interest periods and capital history."""
    print(f"Settlement ({result.mode}) as of {result.settlement_date.isoformat()}")
    print("-" * 72)
    print(f"Days elapsed          : {result.days_elapsed}")
    print(f"Principal remaining   : {result.principal_remaining:.2f}")
    print(f"Interest accrued      : {result.interest_accrued:.2f}")
    print(f"Interest paid         : {result.interest_paid:.2f}")
    print(f"Interest remaining    : {result.interest_remaining:.2f}")
    if result.exit_fee:
        print(f"Exit fee              : {result.exit_fee:.2f}")
    print(f"Settlement amount     : {result.settlement_amount:.2f}")
    print("-" * 72)
    if show_periods and result.interest_periods:
        print("\t".join(["From", "To", "Days", "Opening", "Interest", "Principal", "Closing"]))
        for p in result.interest_periods:
            print("\t".join([
                p.start_date.isoformat(),
                p.end_date.isoformat(),
                str(p.days),
                f"{p.opening_principal:.2f}",
                f"{p.period_interest:.2f}",
                f"{p.principal_payment:.2f}",
                f"{p.closing_principal:.2f}",
            ]))
    if show_periods and result.breakdown:
        print("\t".join(["Period", "Due", "Days", "Opening", "Interest", "Closing"]))
        for row in result.breakdown:
            print("\t".join([
                str(row.period_number),
                row.due_date.isoformat(),
                f"{row.days:.3f}",
                f"{row.opening_balance:.2f}",
                f"{row.interest:.2f}",
                f"{row.closing_balance:.2f}",
            ]))
    if len(result.transaction_history) > 1:
        print("\t".join(["Date", "Type", "Amount", "Principal", "Interest", "Balance"]))
        for tx in result.transaction_history:
            print("\t".join([
                tx.date.isoformat(),
                tx.type,
                f"{tx.amount:.2f}",
                f"{tx.principal_applied:.2f}",
                f"{tx.interest_applied:.2f}",
                f"{tx.principal_balance:.2f}",
            ]))


def print_reconciliation(result: ScheduleReconciliation) -> None:
    print(f"Schedule reconciliation as of {result.as_of.isoformat()}")
    print("-" * 72)
    print(f"Instalments due       : {result.installments_due}")
    print(f"Expected interest     : {result.expected_interest:.2f}")
    print(f"Capitalized interest  : {result.capitalized_interest:.2f}")
    print(f"Interest paid         : {result.interest_paid:.2f}")
    print(f"Interest arrears      : {result.interest_arrears:.2f}")
    if result.interest_credit:
        print(f"Interest credit       : {result.interest_credit:.2f}")
    if result.next_due_date:
        print(f"Next due date         : {result.next_due_date.isoformat()}")
    print("-" * 72)
