"""Formula-based interest accrual, one strategy per interest type.

These models reconstruct how much interest a loan has earned from its terms
alone, without a repayment history. They back quick settlement estimates and
the "formula" settlement mode. Each model returns the authoritative scalar
``total_interest_due`` plus a display-only, period-by-period breakdown capped
at ``PREVIEW_LIMIT`` rows.

Strategies are looked up in an explicit ``{interest_type: model}`` map that
the caller may supply; ``default_models()`` builds a fresh one on each call.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from .config import PREVIEW_LIMIT
from .data_models import (
    FLAT,
    INTEREST_ONLY,
    REDUCING,
    ROLLED_UP,
    AccrualPeriod,
    AccrualResult,
    Loan,
)
from .exceptions import MissingLoanError, UnsupportedInterestTypeError
from .utils import (
    ZERO,
    advance_period,
    daily_rate,
    days_between,
    period_length_days,
    period_rate,
    periods_per_year,
)

logger = logging.getLogger(__name__)

ONE = Decimal(1)


def annuity_payment(principal: Decimal, rate_per_period: Decimal, term: int) -> Decimal:
    """Return the fixed instalment that amortizes ``principal`` over ``term``.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the per-period interest rate and
    ``n`` is the number of payments. When the interest rate is zero, the
    payment simplifies to ``P / n``.
    """
    if term <= 0:
        raise ValueError("Term must be positive")
    if rate_per_period == 0:
        return principal / Decimal(term)
    factor = (1 + rate_per_period) ** term
    return principal * (rate_per_period * factor) / (factor - 1)


class RateWindow:
    """Base rate, optionally replaced by the penalty rate from a given day.

    Days are counted from the loan's start date; ``penalty_day`` is the first
    day accruing at the penalty rate.
    """

    def __init__(self, base_rate: Decimal, penalty_rate: Optional[Decimal] = None,
                 penalty_day: Optional[int] = None) -> None:
        self.base_rate = base_rate
        self.penalty_rate = penalty_rate if penalty_day is not None else None
        self.penalty_day = penalty_day

    @classmethod
    def for_loan(cls, loan: Loan, days_elapsed: int) -> "RateWindow":
        if loan.penalty_applies:
            penalty_day = max(0, days_between(loan.start_date, loan.penalty_rate_from))
            if penalty_day < days_elapsed:
                return cls(loan.interest_rate, loan.penalty_rate, penalty_day)
        return cls(loan.interest_rate)

    @property
    def split(self) -> bool:
        return self.penalty_day is not None

    def rate_on(self, day: Decimal) -> Decimal:
        if self.split and day >= self.penalty_day:
            return self.penalty_rate
        return self.base_rate

    def day_counts(self, start_day: Decimal, end_day: Decimal) -> Tuple[Decimal, Decimal]:
        """Days of ``[start_day, end_day)`` at the base and penalty rates."""
        if not self.split:
            return end_day - start_day, ZERO
        at_penalty = max(ZERO, end_day - max(start_day, Decimal(self.penalty_day)))
        return end_day - start_day - at_penalty, at_penalty

    def simple_interest(self, balance: Decimal, start_day: Decimal, end_day: Decimal) -> Decimal:
        base_days, penalty_days = self.day_counts(start_day, end_day)
        interest = balance * daily_rate(self.base_rate) * base_days
        if penalty_days:
            interest += balance * daily_rate(self.penalty_rate) * penalty_days
        return interest

    def growth(self, day: Decimal) -> Decimal:
        """Daily-compounded growth factor over ``[0, day)``."""
        base_days, penalty_days = self.day_counts(ZERO, day)
        factor = (ONE + daily_rate(self.base_rate)) ** base_days
        if penalty_days:
            factor *= (ONE + daily_rate(self.penalty_rate)) ** penalty_days
        return factor


def period_bounds(days: Decimal, period_days: Decimal,
                  limit: Optional[int] = PREVIEW_LIMIT) -> Iterator[Tuple[int, Decimal, Decimal]]:
    """Yield ``(number, start_day, end_day)`` for each elapsed period.

    The final period is cut short at ``days``. At most ``limit`` periods are
    produced; ``None`` means no limit.
    """
    number = 1
    start = ZERO
    while start < days and (limit is None or number <= limit):
        end = min(start + period_days, days)
        yield number, start, end
        number += 1
        start = end


def _due_date(loan: Loan, number: int, end_day: Decimal, full: bool):
    if full:
        return advance_period(loan.start_date, loan.period, number)
    return loan.start_date + timedelta(days=int(end_day))


class AmortizationModel:
    """Base strategy: guards the shared edge cases and builds the result."""

    interest_type: str = ""

    def accrue(self, loan: Loan, days_elapsed: int) -> AccrualResult:
        """Total interest earned after ``days_elapsed`` days.

        ``days_elapsed <= 0`` or a non-positive principal yields zero.
        """
        if loan is None:
            raise MissingLoanError("accrue interest")
        if days_elapsed <= 0 or loan.principal_amount <= 0:
            return AccrualResult(total_interest_due=ZERO)
        window = RateWindow.for_loan(loan, days_elapsed)
        total, rows = self._accrue(loan, Decimal(days_elapsed), window)
        return AccrualResult(total_interest_due=total, period_breakdown=tuple(rows))

    def _accrue(self, loan: Loan, days: Decimal,
                window: RateWindow) -> Tuple[Decimal, List[AccrualPeriod]]:
        raise NotImplementedError


class FlatModel(AmortizationModel):
    """Total interest fixed up front and spread evenly over the term.

    Accrual is capped at the loan's total interest. Once a penalty rate is in
    force the cap no longer applies and interest accrues daily on the original
    principal at the base rate, then at the penalty rate.
    """

    interest_type = FLAT

    @staticmethod
    def total_interest(loan: Loan) -> Decimal:
        if loan.total_interest is not None:
            return loan.total_interest
        return (loan.principal_amount * loan.interest_rate / Decimal(100)
                * Decimal(loan.duration) / Decimal(periods_per_year(loan.period)))

    def _accrue(self, loan, days, window):
        principal = loan.principal_amount
        period_days = period_length_days(loan.period)
        rows: List[AccrualPeriod] = []

        if window.split:
            total = window.simple_interest(principal, ZERO, days)
            for number, start, end in period_bounds(days, period_days):
                interest = window.simple_interest(principal, start, end)
                rows.append(AccrualPeriod(
                    number, _due_date(loan, number, end, end - start == period_days),
                    end - start, principal, window.rate_on(start), interest, ZERO, principal,
                ))
            return total, rows

        if loan.duration <= 0:
            logger.debug("Flat loan with no term; no interest accrues")
            return ZERO, rows
        cap = self.total_interest(loan)
        per_day = cap / (Decimal(loan.duration) * period_days)
        total = min(per_day * days, cap)

        remaining = total
        for number, start, end in period_bounds(days, period_days):
            interest = min(per_day * (end - start), remaining)
            remaining -= interest
            rows.append(AccrualPeriod(
                number, _due_date(loan, number, end, end - start == period_days),
                end - start, principal, loan.interest_rate, interest, ZERO, principal,
            ))
        return total, rows


class ReducingModel(AmortizationModel):
    """Amortizing annuity: a fixed instalment repays principal each period.

    Completed periods earn the period rate on the reducing balance; the
    trailing partial period earns the daily rate on what is left.
    """

    interest_type = REDUCING

    def _accrue(self, loan, days, window):
        rows: List[AccrualPeriod] = []
        if loan.duration <= 0:
            logger.debug("Reducing loan with no term; no interest accrues")
            return ZERO, rows

        period_days = period_length_days(loan.period)
        base_rate = period_rate(loan.interest_rate, loan.period)
        penalty_rate = period_rate(window.penalty_rate, loan.period) if window.split else base_rate
        payment = annuity_payment(loan.principal_amount, base_rate, loan.duration)

        completed = min(int(days // period_days), loan.duration)
        balance = loan.principal_amount
        total = ZERO
        for index in range(completed):
            number = index + 1
            period_end = Decimal(number) * period_days
            use_penalty = window.split and window.penalty_day < period_end
            interest = balance * (penalty_rate if use_penalty else base_rate)
            reduction = min(payment - balance * base_rate, balance)
            total += interest
            if number <= PREVIEW_LIMIT:
                rows.append(AccrualPeriod(
                    number, advance_period(loan.start_date, loan.period, number), period_days,
                    balance, window.penalty_rate if use_penalty else loan.interest_rate,
                    interest, reduction, balance - reduction,
                ))
            balance -= reduction

        leftover = days - Decimal(completed) * period_days
        if leftover > 0 and balance > 0:
            rate = window.penalty_rate if window.split else loan.interest_rate
            interest = balance * daily_rate(rate) * leftover
            total += interest
            if completed < PREVIEW_LIMIT:
                rows.append(AccrualPeriod(
                    completed + 1, loan.start_date + timedelta(days=int(days)), leftover,
                    balance, rate, interest, ZERO, balance,
                ))
        return total, rows


class InterestOnlyModel(AmortizationModel):
    """Principal stays outstanding; each period earns the period rate on it."""

    interest_type = INTEREST_ONLY

    def _accrue(self, loan, days, window):
        principal = loan.principal_amount
        period_days = period_length_days(loan.period)
        per_period = principal * period_rate(loan.interest_rate, loan.period)
        rows: List[AccrualPeriod] = []
        total = ZERO
        for number, start, end in period_bounds(days, period_days, limit=None):
            full = end - start == period_days
            if window.split:
                interest = window.simple_interest(principal, start, end)
            elif full:
                interest = per_period
            else:
                interest = principal * daily_rate(loan.interest_rate) * (end - start)
            total += interest
            if number <= PREVIEW_LIMIT:
                rows.append(AccrualPeriod(
                    number, _due_date(loan, number, end, full), end - start,
                    principal, window.rate_on(start), interest, ZERO, principal,
                ))
        return total, rows


class RolledUpModel(AmortizationModel):
    """Interest compounds daily and is added to the balance; nothing is repaid."""

    interest_type = ROLLED_UP

    def _accrue(self, loan, days, window):
        principal = loan.principal_amount
        total = principal * (window.growth(days) - ONE)
        period_days = period_length_days(loan.period)
        rows: List[AccrualPeriod] = []
        for number, start, end in period_bounds(days, period_days):
            opening = principal * window.growth(start)
            closing = principal * window.growth(end)
            rows.append(AccrualPeriod(
                number, _due_date(loan, number, end, end - start == period_days),
                end - start, opening, window.rate_on(start), closing - opening, ZERO, closing,
            ))
        return total, rows


def default_models() -> Dict[str, AmortizationModel]:
    """Return a new strategy map covering the four built-in interest types."""
    return {
        FLAT: FlatModel(),
        REDUCING: ReducingModel(),
        INTEREST_ONLY: InterestOnlyModel(),
        ROLLED_UP: RolledUpModel(),
    }


def accrue_interest(
    loan: Loan,
    days_elapsed: int,
    models: Optional[Mapping[str, AmortizationModel]] = None,
) -> AccrualResult:
    """Accrue interest with the strategy registered for ``loan.interest_type``."""
    if loan is None:
        raise MissingLoanError("accrue interest")
    models = models if models is not None else default_models()
    model = models.get(loan.interest_type)
    if model is None:
        raise UnsupportedInterestTypeError(loan.interest_type, models.keys())
    return model.accrue(loan, days_elapsed)
