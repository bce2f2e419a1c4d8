"""Normalization of loan transactions into a state-change timeline.

Disbursements, repayments and an optional penalty-rate switch are folded into
one chronologically ordered list of ``StateChangeEvent`` objects. Events on
the same day are ordered Disbursement, RateChange, Repayment, so a same-day
advance is in the principal before a repayment reduces it and a same-day rate
change is in force before the repayment is applied.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional

from .config import EVENT_PRIORITY
from .data_models import (
    DISBURSEMENT,
    RATE_CHANGE,
    REPAYMENT,
    Loan,
    RateChange,
    StateChangeEvent,
    Transaction,
)
from .exceptions import MissingLoanError

logger = logging.getLogger(__name__)


def _event_from_transaction(tx: Transaction) -> Optional[StateChangeEvent]:
    if tx.type == DISBURSEMENT:
        return StateChangeEvent(
            date=tx.date,
            kind=DISBURSEMENT,
            principal_delta=tx.principal_added,
            amount=tx.principal_added,
        )
    if tx.type == REPAYMENT:
        return StateChangeEvent(
            date=tx.date,
            kind=REPAYMENT,
            principal_delta=-tx.principal_applied,
            interest_applied=tx.interest_applied,
            amount=tx.amount,
        )
    logger.debug("Skipping transaction of unknown type %r on %s", tx.type, tx.date)
    return None


def penalty_event(loan: Loan, as_of: Optional[date] = None) -> Optional[StateChangeEvent]:
    """Return the synthesized penalty-rate switch, if it falls in range.

    The switch is produced only when the loan carries a penalty rate whose
    start date lies within ``[loan.start_date, as_of]``; without ``as_of``
    there is no upper bound.
    """
    if not loan.penalty_applies:
        return None
    starts = loan.penalty_rate_from
    if starts < loan.start_date or (as_of is not None and starts > as_of):
        return None
    return StateChangeEvent(
        date=starts,
        kind=RATE_CHANGE,
        rate_change=RateChange(from_rate=loan.interest_rate, to_rate=loan.penalty_rate),
    )


def event_sort_key(event: StateChangeEvent):
    return event.date, EVENT_PRIORITY[event.kind]


def build_timeline(
    loan: Loan,
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
) -> List[StateChangeEvent]:
    """Build the ordered event timeline for ``loan``.

    Parameters
    ----------
    loan: Loan
        Terms of the loan; supplies the base and penalty rates.
    transactions: Iterable[Transaction]
        Raw transactions in any order. Soft-deleted ones are ignored.
    as_of: date, optional
        Cut-off date. Transactions after it are left out, and it bounds the
        window in which the penalty rate can start.

    Returns
    -------
    List[StateChangeEvent]
        Events sorted by date, then by the fixed same-day priority.
    """
    if loan is None:
        raise MissingLoanError("build an event timeline")

    events: List[StateChangeEvent] = []
    for tx in transactions or []:
        if tx.is_deleted:
            logger.debug("Ignoring deleted %s of %s on %s", tx.type, tx.amount, tx.date)
            continue
        if as_of is not None and tx.date > as_of:
            logger.debug("Ignoring %s on %s after cut-off %s", tx.type, tx.date, as_of)
            continue
        event = _event_from_transaction(tx)
        if event is not None:
            events.append(event)

    rate_event = penalty_event(loan, as_of)
    if rate_event is not None:
        logger.debug(
            "Penalty rate %s%% replaces %s%% from %s",
            loan.penalty_rate, loan.interest_rate, rate_event.date,
        )
        events.append(rate_event)

    # sorted() is stable, so same-day events of one kind keep their input order
    return sorted(events, key=event_sort_key)
