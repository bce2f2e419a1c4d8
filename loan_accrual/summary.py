"""Reduction of ledger entries and interest periods into top-line figures.

This is the single place where totals are rounded to currency precision.
Everything upstream works on unrounded ``Decimal`` values so that rounding
error does not compound across many accrual periods.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .data_models import (
    DisbursementEntry,
    InterestAccrual,
    InterestPeriod,
    LedgerEntry,
    LedgerSummary,
    RateChangeEntry,
    RepaymentEntry,
)
from .utils import ZERO, round_money


def principal_of(entry: LedgerEntry) -> Decimal:
    """Principal balance standing after ``entry``."""
    if isinstance(entry, InterestAccrual):
        return entry.principal
    if isinstance(entry, (DisbursementEntry, RepaymentEntry)):
        return entry.principal_after
    if isinstance(entry, RateChangeEntry):
        return entry.principal_balance
    raise TypeError(f"Unknown ledger entry: {type(entry).__name__}")


def ledger_totals(entries: Iterable[LedgerEntry]):
    """Unrounded ``(accrued, paid, principal)`` for a sequence of entries."""
    accrued = ZERO
    paid = ZERO
    principal = ZERO
    for entry in entries:
        if isinstance(entry, InterestAccrual):
            accrued += entry.interest
        elif isinstance(entry, RepaymentEntry):
            paid += entry.interest_applied
        elif not isinstance(entry, (DisbursementEntry, RateChangeEntry)):
            raise TypeError(f"Unknown ledger entry: {type(entry).__name__}")
        principal = principal_of(entry)
    return accrued, paid, principal


def make_summary(accrued: Decimal, paid: Decimal, principal: Decimal) -> LedgerSummary:
    return LedgerSummary(
        total_interest_accrued=round_money(accrued),
        total_interest_paid=round_money(paid),
        interest_outstanding=round_money(accrued - paid),
        principal_outstanding=round_money(principal),
    )


def summarize_ledger(entries: Iterable[LedgerEntry]) -> LedgerSummary:
    """Summarize a ledger produced by the ledger walker."""
    return make_summary(*ledger_totals(entries))


def summarize_periods(
    periods: Iterable[InterestPeriod],
    interest_paid: Decimal,
    principal_outstanding: Decimal,
) -> LedgerSummary:
    """Summarize settlement interest periods against the interest paid."""
    accrued = sum((p.period_interest for p in periods), ZERO)
    return make_summary(accrued, interest_paid, principal_outstanding)
