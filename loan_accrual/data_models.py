"""Data models for the accrual engine.

This module defines dataclasses for the inputs of a calculation (the loan's
static terms, its transactions and externally generated schedule rows), the
ephemeral state-change events derived from them, and the outputs: ledger
entries, settlement quotes and summaries. All of them are frozen; an entry
represents a closed historical fact and is never mutated after creation.

Inputs arriving as plain dictionaries (JSON files, HTTP bodies) are parsed
through the ``from_dict`` constructors, which raise ``ValidationError`` for
malformed fields instead of silently defaulting them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from .exceptions import ValidationError
from .utils import ZERO, parse_date, to_decimal

FLAT = "Flat"
REDUCING = "Reducing"
INTEREST_ONLY = "Interest-Only"
ROLLED_UP = "Rolled-Up"
INTEREST_TYPES = (FLAT, REDUCING, INTEREST_ONLY, ROLLED_UP)

MONTHLY = "Monthly"
WEEKLY = "Weekly"
PERIODS = (MONTHLY, WEEKLY)

DISBURSEMENT = "Disbursement"
REPAYMENT = "Repayment"
RATE_CHANGE = "RateChange"
TRANSACTION_TYPES = (DISBURSEMENT, REPAYMENT)


# --------------------------------------------------------------------------
# Field parsing helpers
# --------------------------------------------------------------------------

def _required(data: Mapping[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ValidationError(key, reason="field is required")
    return value


def _decimal(data: Mapping[str, Any], key: str, default: Optional[Decimal] = None,
             required: bool = False, allow_negative: bool = False) -> Optional[Decimal]:
    raw = _required(data, key) if required else data.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = to_decimal(raw)
    except ValueError as exc:
        raise ValidationError(key, raw, "not a number") from exc
    if value < 0 and not allow_negative:
        raise ValidationError(key, raw, "must not be negative")
    return value


def _date(data: Mapping[str, Any], key: str, required: bool = False) -> Optional[date]:
    raw = _required(data, key) if required else data.get(key)
    if raw is None or raw == "":
        return None
    try:
        return parse_date(raw)
    except ValueError as exc:
        raise ValidationError(key, raw, "not a calendar date") from exc


def _int(data: Mapping[str, Any], key: str, default: Optional[int] = None,
         required: bool = False) -> Optional[int]:
    raw = _required(data, key) if required else data.get(key)
    if raw is None or raw == "":
        return default
    try:
        number = to_decimal(raw)
    except ValueError as exc:
        raise ValidationError(key, raw, "not an integer") from exc
    if number != number.to_integral_value():
        raise ValidationError(key, raw, "not an integer")
    value = int(number)
    if value < 0:
        raise ValidationError(key, raw, "must not be negative")
    return value


def _choice(data: Mapping[str, Any], key: str, choices: Tuple[str, ...],
            default: Optional[str] = None) -> str:
    raw = data.get(key)
    if raw is None or raw == "":
        if default is None:
            raise ValidationError(key, reason="field is required")
        return default
    if raw not in choices:
        raise ValidationError(key, raw, f"expected one of {', '.join(choices)}")
    return raw


def _bool(data: Mapping[str, Any], key: str) -> bool:
    raw = data.get(key, False)
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "true", "yes", "y")
    return bool(raw)


# --------------------------------------------------------------------------
# Inputs
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class Loan:
    """Static terms of a loan.

    Attributes
    ----------
    principal_amount: Decimal
        Gross principal the borrower owes from ``start_date``.
    interest_rate: Decimal
        Annual nominal rate in percent (``12`` means 12 %).
    interest_type: str
        One of ``Flat``, ``Reducing``, ``Interest-Only`` or ``Rolled-Up``.
    duration: int
        Term expressed as a count of ``period`` units.
    penalty_rate, penalty_rate_from:
        Replacement annual rate and the date it takes effect, honoured only
        when ``has_penalty_rate`` is set.
    total_interest: Decimal, optional
        Pre-computed interest for flat loans. Derived from the terms when
        absent.
    """

    principal_amount: Decimal
    interest_rate: Decimal
    interest_type: str
    start_date: date
    duration: int
    period: str = MONTHLY
    has_penalty_rate: bool = False
    penalty_rate: Optional[Decimal] = None
    penalty_rate_from: Optional[date] = None
    exit_fee: Decimal = ZERO
    roll_up_length: Optional[int] = None
    roll_up_amount: Optional[Decimal] = None
    total_interest: Optional[Decimal] = None
    loan_number: Optional[str] = None

    @property
    def penalty_applies(self) -> bool:
        """True when the penalty terms are complete enough to be used."""
        return (
            self.has_penalty_rate
            and self.penalty_rate is not None
            and self.penalty_rate_from is not None
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Loan":
        if not isinstance(data, Mapping):
            raise ValidationError("loan", reason="expected an object")
        return cls(
            principal_amount=_decimal(data, "principal_amount", required=True),
            interest_rate=_decimal(data, "interest_rate", required=True),
            interest_type=_choice(data, "interest_type", INTEREST_TYPES),
            start_date=_date(data, "start_date", required=True),
            duration=_int(data, "duration", required=True),
            period=_choice(data, "period", PERIODS, default=MONTHLY),
            has_penalty_rate=_bool(data, "has_penalty_rate"),
            penalty_rate=_decimal(data, "penalty_rate"),
            penalty_rate_from=_date(data, "penalty_rate_from"),
            exit_fee=_decimal(data, "exit_fee", default=ZERO),
            roll_up_length=_int(data, "roll_up_length"),
            roll_up_amount=_decimal(data, "roll_up_amount"),
            total_interest=_decimal(data, "total_interest"),
            loan_number=str(data["loan_number"]) if data.get("loan_number") else None,
        )


@dataclass(frozen=True)
class Transaction:
    """A capital-moving transaction recorded against a loan.

    ``principal_applied`` and ``interest_applied`` describe how a repayment
    was allocated; both default to zero when the allocation is not recorded.
    ``gross_amount`` is what the borrower owes for a disbursement (before any
    deducted fees) and falls back to ``amount``.
    """

    type: str
    date: date
    amount: Decimal
    principal_applied: Decimal = ZERO
    interest_applied: Decimal = ZERO
    gross_amount: Optional[Decimal] = None
    is_deleted: bool = False
    reference: str = ""

    @property
    def principal_added(self) -> Decimal:
        return self.gross_amount if self.gross_amount is not None else self.amount

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        if not isinstance(data, Mapping):
            raise ValidationError("transaction", reason="expected an object")
        return cls(
            type=_choice(data, "type", TRANSACTION_TYPES),
            date=_date(data, "date", required=True),
            amount=_decimal(data, "amount", required=True),
            principal_applied=_decimal(data, "principal_applied", default=ZERO),
            interest_applied=_decimal(data, "interest_applied", default=ZERO),
            gross_amount=_decimal(data, "gross_amount"),
            is_deleted=_bool(data, "is_deleted"),
            reference=str(data.get("reference") or data.get("description") or ""),
        )


def parse_transactions(rows: Iterable[Mapping[str, Any]]) -> List[Transaction]:
    """Parse raw transaction rows, reporting the offending row on failure."""
    transactions: List[Transaction] = []
    for index, row in enumerate(rows or []):
        try:
            transactions.append(Transaction.from_dict(row))
        except ValidationError as exc:
            exc.details["row"] = index
            raise
    return transactions


@dataclass(frozen=True)
class ScheduleEntry:
    """One row of an externally generated repayment schedule."""

    due_date: date
    interest_amount: Decimal
    installment_number: int
    calculation_days: Optional[int] = None
    calculation_principal_start: Optional[Decimal] = None
    is_roll_up_period: bool = False
    is_serviced_period: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduleEntry":
        if not isinstance(data, Mapping):
            raise ValidationError("schedule", reason="expected an object")
        return cls(
            due_date=_date(data, "due_date", required=True),
            interest_amount=_decimal(data, "interest_amount", default=ZERO),
            installment_number=_int(data, "installment_number", default=0),
            calculation_days=_int(data, "calculation_days"),
            calculation_principal_start=_decimal(data, "calculation_principal_start"),
            is_roll_up_period=_bool(data, "is_roll_up_period"),
            is_serviced_period=_bool(data, "is_serviced_period"),
        )


# --------------------------------------------------------------------------
# Timeline events
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class RateChange:
    from_rate: Decimal
    to_rate: Decimal


@dataclass(frozen=True)
class StateChangeEvent:
    """A normalized change to the loan's principal or rate on one day."""

    date: date
    kind: str  # Disbursement, RateChange or Repayment
    principal_delta: Decimal = ZERO
    interest_applied: Decimal = ZERO
    rate_change: Optional[RateChange] = None
    amount: Decimal = ZERO


# --------------------------------------------------------------------------
# Ledger entries
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class InterestAccrual:
    """Simple interest earned over ``[from_date, to_date)``."""

    from_date: date
    to_date: date
    days: int
    principal: Decimal
    rate: Decimal
    interest: Decimal
    running_interest_accrued: Decimal
    running_interest_paid: Decimal


@dataclass(frozen=True)
class DisbursementEntry:
    date: date
    amount: Decimal
    principal_after: Decimal


@dataclass(frozen=True)
class RepaymentEntry:
    date: date
    amount: Decimal
    interest_applied: Decimal
    principal_applied: Decimal
    principal_after: Decimal


@dataclass(frozen=True)
class RateChangeEntry:
    date: date
    from_rate: Decimal
    to_rate: Decimal
    principal_balance: Decimal


LedgerEntry = Union[InterestAccrual, DisbursementEntry, RepaymentEntry, RateChangeEntry]


@dataclass(frozen=True)
class LedgerSummary:
    """Top-line figures rounded to currency precision."""

    total_interest_accrued: Decimal
    total_interest_paid: Decimal
    interest_outstanding: Decimal
    principal_outstanding: Decimal


@dataclass(frozen=True)
class LedgerResult:
    entries: Tuple[LedgerEntry, ...]
    summary: LedgerSummary


# --------------------------------------------------------------------------
# Formula-based accrual
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class AccrualPeriod:
    """A display row of a formula-based accrual breakdown."""

    period_number: int
    due_date: date
    days: Decimal
    opening_balance: Decimal
    rate: Decimal
    interest: Decimal
    principal_reduction: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class AccrualResult:
    total_interest_due: Decimal
    period_breakdown: Tuple[AccrualPeriod, ...] = ()


# --------------------------------------------------------------------------
# Settlement
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class InterestPeriod:
    start_date: date
    end_date: date
    days: int
    opening_principal: Decimal
    daily_rate: Decimal
    period_interest: Decimal
    principal_payment: Decimal
    closing_principal: Decimal
    disbursement_amount: Decimal = ZERO


@dataclass(frozen=True)
class TransactionHistoryRow:
    date: date
    type: str
    description: str
    amount: Decimal
    principal_applied: Decimal
    interest_applied: Decimal
    principal_balance: Decimal


@dataclass(frozen=True)
class SettlementResult:
    """A settlement quote as of ``settlement_date``.

    Monetary totals are rounded to 2 decimal places; the rows in
    ``interest_periods`` keep full precision.
    """

    mode: str
    settlement_date: date
    original_principal: Decimal
    principal_paid: Decimal
    principal_remaining: Decimal
    interest_accrued: Decimal
    interest_paid: Decimal
    interest_remaining: Decimal
    exit_fee: Decimal
    settlement_amount: Decimal
    days_elapsed: int
    interest_periods: Tuple[InterestPeriod, ...] = ()
    transaction_history: Tuple[TransactionHistoryRow, ...] = ()
    breakdown: Tuple[AccrualPeriod, ...] = ()


# --------------------------------------------------------------------------
# Schedule reconciliation
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class ScheduleReconciliation:
    as_of: date
    installments_due: int
    expected_interest: Decimal
    capitalized_interest: Decimal
    interest_paid: Decimal
    interest_arrears: Decimal
    interest_credit: Decimal
    next_due_date: Optional[date] = None
