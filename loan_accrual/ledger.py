"""Day-by-day interest ledger built by replaying the event timeline.

The walker keeps a running principal and a running rate, starting from the
loan's start date and base rate. Between consecutive events it emits an
``InterestAccrual`` for the elapsed days (simple interest, ACT/365), then
applies the event and emits the matching entry. A trailing accrual carries
the ledger up to the as-of date, which is how "interest accrued to today" is
represented.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from .data_models import (
    DISBURSEMENT,
    RATE_CHANGE,
    REPAYMENT,
    DisbursementEntry,
    InterestAccrual,
    LedgerEntry,
    LedgerResult,
    Loan,
    RateChangeEntry,
    RepaymentEntry,
    StateChangeEvent,
    Transaction,
)
from .exceptions import MissingLoanError
from .summary import make_summary
from .timeline import build_timeline
from .utils import ZERO, daily_rate, days_between

logger = logging.getLogger(__name__)


class _WalkState:
    """Mutable cursor used while replaying one timeline."""

    def __init__(self, loan: Loan) -> None:
        self.last_event_date = loan.start_date
        self.rate = loan.interest_rate
        self.principal = ZERO
        self.accrued = ZERO
        self.paid = ZERO

    def accrue_to(self, to_date: date) -> Optional[InterestAccrual]:
        if to_date <= self.last_event_date or self.principal <= 0:
            return None
        days = days_between(self.last_event_date, to_date)
        interest = self.principal * daily_rate(self.rate) * days
        self.accrued += interest
        return InterestAccrual(
            from_date=self.last_event_date,
            to_date=to_date,
            days=days,
            principal=self.principal,
            rate=self.rate,
            interest=interest,
            running_interest_accrued=self.accrued,
            running_interest_paid=self.paid,
        )

    def apply(self, event: StateChangeEvent) -> LedgerEntry:
        if event.kind == DISBURSEMENT:
            self.principal += event.principal_delta
            return DisbursementEntry(
                date=event.date,
                amount=event.principal_delta,
                principal_after=self.principal,
            )
        if event.kind == REPAYMENT:
            applied = -event.principal_delta
            self.principal = max(ZERO, self.principal - applied)
            self.paid += event.interest_applied
            return RepaymentEntry(
                date=event.date,
                amount=event.amount,
                interest_applied=event.interest_applied,
                principal_applied=applied,
                principal_after=self.principal,
            )
        if event.kind == RATE_CHANGE:
            change = event.rate_change
            self.rate = change.to_rate
            return RateChangeEntry(
                date=event.date,
                from_rate=change.from_rate,
                to_rate=change.to_rate,
                principal_balance=self.principal,
            )
        raise ValueError(f"Unknown event kind: {event.kind}")


def walk_ledger(
    loan: Loan,
    events: Iterable[StateChangeEvent],
    as_of: Optional[date] = None,
) -> LedgerResult:
    """Replay ``events`` once and return the ledger entries and summary.

    Parameters
    ----------
    loan: Loan
        Supplies the start date and the opening rate.
    events: Iterable[StateChangeEvent]
        Timeline produced by ``build_timeline``; must already be sorted.
    as_of: date, optional
        Date the trailing accrual runs to. Without it the ledger stops at the
        last event.
    """
    if loan is None:
        raise MissingLoanError("build a ledger")

    state = _WalkState(loan)
    entries: List[LedgerEntry] = []
    for event in events:
        accrual = state.accrue_to(event.date)
        if accrual is not None:
            entries.append(accrual)
        entries.append(state.apply(event))
        state.last_event_date = event.date

    if as_of is not None:
        trailing = state.accrue_to(as_of)
        if trailing is not None:
            entries.append(trailing)

    logger.debug(
        "Ledger for %s: %d entries, accrued %s, paid %s",
        loan.loan_number or loan.start_date, len(entries), state.accrued, state.paid,
    )
    summary = make_summary(state.accrued, state.paid, state.principal)
    return LedgerResult(entries=tuple(entries), summary=summary)


def build_ledger(
    loan: Loan,
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
) -> LedgerResult:
    """Build the timeline for ``transactions`` and walk it to ``as_of``."""
    events = build_timeline(loan, transactions, as_of)
    return walk_ledger(loan, events, as_of)


def accrued_interest(entries: Iterable[LedgerEntry]) -> Decimal:
    """Unrounded sum of the interest in a ledger's accrual entries."""
    return sum(
        (e.interest for e in entries if isinstance(e, InterestAccrual)),
        ZERO,
    )
