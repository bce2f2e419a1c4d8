"""Reconciliation of a repayment schedule against actual repayments.

Schedule rows come from an external per-product scheduler. Interest on
serviced periods is expected in cash on its due date; interest on roll-up
periods is capitalized and is reported separately rather than as arrears.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List

from .data_models import REPAYMENT, ScheduleEntry, ScheduleReconciliation, Transaction
from .utils import ZERO, round_money

logger = logging.getLogger(__name__)


def reconcile_schedule(
    schedule: Iterable[ScheduleEntry],
    transactions: Iterable[Transaction],
    as_of: date,
) -> ScheduleReconciliation:
    """Compare interest due by ``as_of`` with interest actually received."""
    rows: List[ScheduleEntry] = sorted(
        schedule or [], key=lambda row: (row.due_date, row.installment_number)
    )
    due = [row for row in rows if row.due_date <= as_of]
    upcoming = [row for row in rows if row.due_date > as_of]

    expected = sum((row.interest_amount for row in due if not row.is_roll_up_period), ZERO)
    capitalized = sum((row.interest_amount for row in due if row.is_roll_up_period), ZERO)
    paid = sum(
        (
            tx.interest_applied for tx in transactions or []
            if tx.type == REPAYMENT and not tx.is_deleted and tx.date <= as_of
        ),
        ZERO,
    )
    logger.debug(
        "Reconciled %d of %d schedule rows to %s: expected %s, paid %s",
        len(due), len(rows), as_of, expected, paid,
    )
    return ScheduleReconciliation(
        as_of=as_of,
        installments_due=len(due),
        expected_interest=round_money(expected),
        capitalized_interest=round_money(capitalized),
        interest_paid=round_money(paid),
        interest_arrears=round_money(max(ZERO, expected - paid)),
        interest_credit=round_money(max(ZERO, paid - expected)),
        next_due_date=upcoming[0].due_date if upcoming else None,
    )
