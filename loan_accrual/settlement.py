"""Settlement quotes: what it takes to discharge a loan on a given date.

Two calculation modes coexist and are intentionally kept apart:

``formula``
    Interest comes from the loan's amortization model (see
    ``amortization``) over ``settlement_date - start_date`` days. The
    settlement day itself is not counted. Needs no repayment history.

``ledger``
    Interest is rebuilt period by period from the transaction history. A new
    period starts at every repayment that reduces principal, every further
    advance and the day a penalty rate takes effect. The settlement day is
    counted, so ``days_elapsed`` is one more than in formula mode.

The two modes can disagree for the same loan. That is expected: they follow
different day-count conventions and serve different audit purposes.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from .amortization import AmortizationModel, accrue_interest
from .config import EVENT_PRIORITY
from .data_models import (
    DISBURSEMENT,
    RATE_CHANGE,
    REPAYMENT,
    InterestPeriod,
    Loan,
    SettlementResult,
    Transaction,
    TransactionHistoryRow,
)
from .exceptions import MissingLoanError, ValidationError
from .summary import make_summary, summarize_periods
from .utils import ZERO, daily_rate, days_between, round_money

logger = logging.getLogger(__name__)


class SettlementMode:
    FORMULA = "formula"
    LEDGER = "ledger"
    ALL = (FORMULA, LEDGER)


def effective_rate(loan: Loan, on_date: date) -> Decimal:
    """Annual rate in force on ``on_date``, honouring the penalty rate."""
    if loan.penalty_applies and on_date >= loan.penalty_rate_from:
        return loan.penalty_rate
    return loan.interest_rate


def formula_days_elapsed(loan: Loan, settlement_date: date) -> int:
    return max(0, days_between(loan.start_date, settlement_date))


def ledger_days_elapsed(loan: Loan, settlement_date: date) -> int:
    return max(0, days_between(loan.start_date, settlement_date) + 1)


def _active(transactions: Iterable[Transaction], settlement_date: date) -> List[Transaction]:
    return [
        tx for tx in transactions or []
        if not tx.is_deleted and tx.date <= settlement_date
    ]


def _further_advances(loan: Loan, transactions: Iterable[Transaction]) -> List[Transaction]:
    # the start-date disbursement is the initial principal, not an advance
    return [
        tx for tx in transactions
        if tx.type == DISBURSEMENT and tx.date != loan.start_date
    ]


def _repayments(transactions: Iterable[Transaction]) -> List[Transaction]:
    return [tx for tx in transactions if tx.type == REPAYMENT]


def transaction_history(
    loan: Loan,
    transactions: Iterable[Transaction],
    settlement_date: Optional[date] = None,
) -> List[TransactionHistoryRow]:
    """Chronological replay of capital movements with a running balance.

    The history opens with the initial principal disbursed on the start date,
    followed by repayments and further advances in date order.
    """
    if settlement_date is not None:
        active = _active(transactions, settlement_date)
    else:
        active = [tx for tx in transactions or [] if not tx.is_deleted]
    moves = sorted(
        _repayments(active) + _further_advances(loan, active),
        key=lambda tx: (tx.date, EVENT_PRIORITY[tx.type]),
    )

    balance = loan.principal_amount
    rows = [TransactionHistoryRow(
        date=loan.start_date,
        type=DISBURSEMENT,
        description="Loan disbursement",
        amount=balance,
        principal_applied=ZERO,
        interest_applied=ZERO,
        principal_balance=balance,
    )]
    for tx in moves:
        if tx.type == REPAYMENT:
            balance = max(ZERO, balance - tx.principal_applied)
            rows.append(TransactionHistoryRow(
                date=tx.date,
                type=REPAYMENT,
                description=tx.reference or "Payment",
                amount=tx.amount,
                principal_applied=tx.principal_applied,
                interest_applied=tx.interest_applied,
                principal_balance=balance,
            ))
        else:
            balance += tx.principal_added
            rows.append(TransactionHistoryRow(
                date=tx.date,
                type=DISBURSEMENT,
                description=tx.reference or "Further advance",
                amount=tx.principal_added,
                principal_applied=ZERO,
                interest_applied=ZERO,
                principal_balance=balance,
            ))
    return rows


def interest_periods(
    loan: Loan,
    transactions: Iterable[Transaction],
    settlement_date: date,
) -> List[InterestPeriod]:
    """Split ``[start_date, settlement_date]`` at every capital or rate event.

    Each period earns ``opening_principal * daily_rate * days``. Changes that
    fall on the same day are applied together when that day's period closes.
    """
    active = _active(transactions, settlement_date)
    boundaries = [
        (tx.date, EVENT_PRIORITY[REPAYMENT], ZERO, tx.principal_applied)
        for tx in _repayments(active) if tx.principal_applied > 0
    ]
    boundaries += [
        (tx.date, EVENT_PRIORITY[DISBURSEMENT], tx.principal_added, ZERO)
        for tx in _further_advances(loan, active)
    ]
    if loan.penalty_applies and loan.start_date < loan.penalty_rate_from <= settlement_date:
        boundaries.append((loan.penalty_rate_from, EVENT_PRIORITY[RATE_CHANGE], ZERO, ZERO))
    boundaries.sort(key=lambda b: (b[0], b[1]))

    # interest runs up to and including the settlement day
    end_date = settlement_date + timedelta(days=1)
    principal = loan.principal_amount
    period_start = loan.start_date
    periods: List[InterestPeriod] = []

    index = 0
    while index < len(boundaries):
        boundary_date = boundaries[index][0]
        advanced = ZERO
        repaid = ZERO
        while index < len(boundaries) and boundaries[index][0] == boundary_date:
            advanced += boundaries[index][2]
            repaid += boundaries[index][3]
            index += 1
        closing = max(ZERO, principal + advanced - repaid)
        days = days_between(period_start, boundary_date)
        if days > 0:
            rate = daily_rate(effective_rate(loan, period_start))
            periods.append(InterestPeriod(
                start_date=period_start,
                end_date=boundary_date,
                days=days,
                opening_principal=principal,
                daily_rate=rate,
                period_interest=principal * rate * days,
                principal_payment=repaid,
                closing_principal=closing,
                disbursement_amount=advanced,
            ))
            period_start = boundary_date
        principal = closing

    days = days_between(period_start, end_date)
    if days > 0:
        rate = daily_rate(effective_rate(loan, period_start))
        periods.append(InterestPeriod(
            start_date=period_start,
            end_date=end_date,
            days=days,
            opening_principal=principal,
            daily_rate=rate,
            period_interest=principal * rate * days,
            principal_payment=ZERO,
            closing_principal=principal,
        ))
    return periods


def calculate_settlement(
    loan: Loan,
    transactions: Iterable[Transaction],
    settlement_date: date,
    mode: str = SettlementMode.LEDGER,
    models: Optional[Mapping[str, AmortizationModel]] = None,
) -> SettlementResult:
    """Quote the amount needed to settle ``loan`` on ``settlement_date``.

    Parameters
    ----------
    loan: Loan
        The loan being settled.
    transactions: Iterable[Transaction]
        Recorded transactions; deleted ones and those after the settlement
        date are ignored.
    settlement_date: date
        Day the loan would be discharged.
    mode: str
        ``"ledger"`` (transaction-reconciled) or ``"formula"``.
    models: Mapping[str, AmortizationModel], optional
        Strategy map for formula mode; ``default_models()`` when omitted.

    Returns
    -------
    SettlementResult
        Rounded totals plus the interest periods (ledger mode) or the model
        breakdown (formula mode) and the transaction history.
    """
    if loan is None:
        raise MissingLoanError("calculate a settlement")
    if mode not in SettlementMode.ALL:
        raise ValidationError("mode", mode, f"expected one of {', '.join(SettlementMode.ALL)}")

    transactions = list(transactions or [])
    active = _active(transactions, settlement_date)
    repayments = _repayments(active)
    principal_paid = sum((tx.principal_applied for tx in repayments), ZERO)
    interest_paid = sum((tx.interest_applied for tx in repayments), ZERO)
    # same running balance the history and the interest periods carry
    history = transaction_history(loan, active)
    principal_remaining = history[-1].principal_balance

    periods: List[InterestPeriod] = []
    breakdown = ()
    if mode == SettlementMode.FORMULA:
        days_elapsed = formula_days_elapsed(loan, settlement_date)
        accrual = accrue_interest(loan, days_elapsed, models)
        breakdown = accrual.period_breakdown
        summary = make_summary(accrual.total_interest_due, interest_paid, principal_remaining)
    else:
        days_elapsed = ledger_days_elapsed(loan, settlement_date)
        periods = interest_periods(loan, active, settlement_date)
        summary = summarize_periods(periods, interest_paid, principal_remaining)

    interest_remaining = max(ZERO, summary.interest_outstanding)
    exit_fee = round_money(loan.exit_fee)
    settlement_amount = summary.principal_outstanding + interest_remaining + exit_fee
    logger.debug(
        "Settlement (%s) on %s: principal %s, interest %s, exit fee %s",
        mode, settlement_date, summary.principal_outstanding, interest_remaining, exit_fee,
    )
    return SettlementResult(
        mode=mode,
        settlement_date=settlement_date,
        original_principal=loan.principal_amount,
        principal_paid=round_money(principal_paid),
        principal_remaining=summary.principal_outstanding,
        interest_accrued=summary.total_interest_accrued,
        interest_paid=summary.total_interest_paid,
        interest_remaining=interest_remaining,
        exit_fee=exit_fee,
        settlement_amount=settlement_amount,
        days_elapsed=days_elapsed,
        interest_periods=tuple(periods),
        transaction_history=tuple(history),
        breakdown=tuple(breakdown),
    )


def live_interest_outstanding(
    loan: Loan,
    transactions: Iterable[Transaction],
    as_of: date,
    models: Optional[Mapping[str, AmortizationModel]] = None,
) -> Decimal:
    """Formula-accrued interest less interest paid; negative when overpaid."""
    if loan is None:
        raise MissingLoanError("calculate interest outstanding")
    accrual = accrue_interest(loan, formula_days_elapsed(loan, as_of), models)
    paid = sum((tx.interest_applied for tx in _repayments(_active(transactions, as_of))), ZERO)
    return round_money(accrual.total_interest_due - paid)
