"""
Settlement calculator tests for the formula and ledger-reconciled modes.
"""

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from loan_accrual.exceptions import MissingLoanError, ValidationError
from loan_accrual.settlement import (
    SettlementMode,
    calculate_settlement,
    effective_rate,
    formula_days_elapsed,
    interest_periods,
    ledger_days_elapsed,
    live_interest_outstanding,
    transaction_history,
)
from loan_accrual.utils import round_money
from tests.factories import START, disbursement, make_loan, repayment

TENTH = date(2024, 1, 10)
MONTH_END = date(2024, 1, 31)


class TestDayCounts:

    def test_modes_count_days_differently(self, loan):
        assert formula_days_elapsed(loan, TENTH) == 9
        assert ledger_days_elapsed(loan, TENTH) == 10

    def test_results_report_their_own_day_count(self, loan, initial_disbursement):
        formula = calculate_settlement(loan, [initial_disbursement], TENTH, mode="formula")
        ledger = calculate_settlement(loan, [initial_disbursement], TENTH, mode="ledger")
        assert formula.days_elapsed == 9
        assert ledger.days_elapsed == 10

    def test_settling_before_start(self, loan):
        assert formula_days_elapsed(loan, date(2023, 12, 1)) == 0
        assert ledger_days_elapsed(loan, date(2023, 12, 1)) == 0


class TestFormulaMode:

    def test_interest_only_quote(self, loan, initial_disbursement):
        result = calculate_settlement(loan, [initial_disbursement], TENTH, mode="formula")
        assert result.mode == SettlementMode.FORMULA
        assert result.interest_accrued == Decimal("29.59")
        assert result.settlement_amount == Decimal("10029.59")
        assert result.interest_periods == ()
        assert len(result.breakdown) == 1

    def test_interest_paid_is_deducted(self, loan, initial_disbursement):
        early = repayment(date(2024, 1, 5), 0, "10.00")
        result = calculate_settlement(loan, [initial_disbursement, early], TENTH,
                                      mode="formula")
        assert result.interest_paid == Decimal("10.00")
        assert result.interest_remaining == Decimal("19.59")


class TestLedgerMode:

    def test_single_period(self, loan, initial_disbursement):
        result = calculate_settlement(loan, [initial_disbursement], TENTH)
        assert result.mode == SettlementMode.LEDGER
        [period] = result.interest_periods
        assert period.start_date == START
        assert period.end_date == date(2024, 1, 11)
        assert period.days == 10
        assert result.interest_accrued == Decimal("32.88")
        assert result.settlement_amount == Decimal("10032.88")

    def test_repayment_splits_period(self, loan, initial_disbursement, mid_month_repayment):
        result = calculate_settlement(
            loan, [initial_disbursement, mid_month_repayment], MONTH_END
        )
        first, second = result.interest_periods
        assert (first.days, first.opening_principal) == (15, Decimal("10000"))
        assert first.principal_payment == Decimal("5000")
        assert first.closing_principal == Decimal("5000")
        assert (second.days, second.opening_principal) == (16, Decimal("5000"))
        assert result.interest_accrued == Decimal("75.62")
        assert result.interest_paid == Decimal("49.32")
        assert result.interest_remaining == Decimal("26.30")
        assert result.principal_paid == Decimal("5000.00")
        assert result.principal_remaining == Decimal("5000.00")
        assert result.settlement_amount == Decimal("5026.30")

    def test_exit_fee_is_added(self, initial_disbursement, mid_month_repayment):
        loan = make_loan(exit_fee=Decimal("250"))
        result = calculate_settlement(
            loan, [initial_disbursement, mid_month_repayment], MONTH_END
        )
        assert result.exit_fee == Decimal("250.00")
        assert result.settlement_amount == Decimal("5276.30")

    def test_further_advance(self, loan, initial_disbursement):
        advance = disbursement(date(2024, 1, 11), 2000)
        result = calculate_settlement(
            loan, [initial_disbursement, advance], date(2024, 1, 20)
        )
        first, second = result.interest_periods
        assert first.days == second.days == 10
        assert second.opening_principal == Decimal("12000")
        assert first.disbursement_amount == Decimal("2000")
        assert result.interest_accrued == Decimal("72.33")
        assert result.principal_remaining == Decimal("12000.00")
        assert result.settlement_amount == Decimal("12072.33")

    def test_penalty_rate_starts_new_period(self, penalty_loan, initial_disbursement):
        result = calculate_settlement(penalty_loan, [initial_disbursement], MONTH_END)
        first, second = result.interest_periods
        assert first.end_date == date(2024, 1, 20)
        assert first.days == 19
        assert second.days == 12
        assert second.daily_rate > first.daily_rate
        assert result.interest_accrued == Decimal("121.64")

    def test_interest_only_repayment_does_not_split(self, loan, initial_disbursement):
        interest_only = repayment(date(2024, 1, 5), 0, "10")
        periods = interest_periods(loan, [initial_disbursement, interest_only], TENTH)
        assert len(periods) == 1

    def test_same_day_changes_close_one_period(self, loan, initial_disbursement):
        day = date(2024, 1, 6)
        txs = [initial_disbursement, disbursement(day, 1000), repayment(day, 3000, 0)]
        first, second = interest_periods(loan, txs, TENTH)
        assert first.end_date == day
        assert first.disbursement_amount == Decimal("1000")
        assert first.principal_payment == Decimal("3000")
        assert second.opening_principal == Decimal("8000")

    def test_overpaid_interest_is_not_refunded(self, loan, initial_disbursement):
        early = repayment(date(2024, 1, 5), 0, 500)
        result = calculate_settlement(loan, [initial_disbursement, early], TENTH)
        assert result.interest_remaining == Decimal("0")
        assert result.settlement_amount == Decimal("10000.00")

    def test_overpaid_principal_floors_at_zero(self, loan, initial_disbursement):
        big = repayment(date(2024, 1, 5), 12000, 0)
        result = calculate_settlement(loan, [initial_disbursement, big], TENTH)
        assert result.principal_remaining == Decimal("0.00")
        assert result.interest_periods[-1].closing_principal == 0

    def test_transactions_may_be_a_generator(self, loan, initial_disbursement,
                                             mid_month_repayment):
        txs = [initial_disbursement, mid_month_repayment]
        from_list = calculate_settlement(loan, txs, MONTH_END)
        from_generator = calculate_settlement(loan, (tx for tx in txs), MONTH_END)
        assert from_generator == from_list
        assert from_generator.interest_accrued == Decimal("75.62")
        assert len(from_generator.interest_periods) == 2
        assert len(from_generator.transaction_history) == 2

    def test_advance_after_overpayment(self, loan, initial_disbursement):
        txs = [
            initial_disbursement,
            repayment(date(2024, 1, 5), 12000, 0),
            disbursement(date(2024, 1, 8), 3000),
        ]
        result = calculate_settlement(loan, txs, TENTH)
        assert result.principal_remaining == Decimal("3000.00")
        assert result.transaction_history[-1].principal_balance == Decimal("3000")
        assert result.interest_periods[-1].closing_principal == Decimal("3000")
        assert [p.opening_principal for p in result.interest_periods] == [
            Decimal("10000"), Decimal("0"), Decimal("3000"),
        ]
        assert result.interest_accrued == Decimal("16.11")
        assert result.settlement_amount == Decimal("3016.11")


class TestFiltering:

    def test_deleted_and_later_transactions_are_ignored(self, loan, initial_disbursement):
        txs = [
            initial_disbursement,
            repayment(date(2024, 1, 5), 4000, 0, deleted=True),
            repayment(date(2024, 2, 5), 4000, 0),
        ]
        result = calculate_settlement(loan, txs, TENTH)
        assert result.principal_paid == Decimal("0.00")
        assert len(result.interest_periods) == 1
        assert len(result.transaction_history) == 1

    def test_invalid_mode(self, loan):
        with pytest.raises(ValidationError) as excinfo:
            calculate_settlement(loan, [], TENTH, mode="monthly")
        assert excinfo.value.field == "mode"

    def test_missing_loan(self):
        with pytest.raises(MissingLoanError):
            calculate_settlement(None, [], TENTH)


class TestTransactionHistory:

    def test_history_opens_with_loan_disbursement(self, loan, initial_disbursement,
                                                  mid_month_repayment):
        advance = disbursement(date(2024, 1, 20), 1500)
        rows = transaction_history(
            loan, [advance, mid_month_repayment, initial_disbursement]
        )
        assert [r.description for r in rows] == [
            "Loan disbursement", "Payment", "Further advance",
        ]
        assert [r.principal_balance for r in rows] == [
            Decimal("10000"), Decimal("5000"), Decimal("6500"),
        ]

    def test_reference_is_used_as_description(self, loan):
        tx = repayment(date(2024, 1, 5), 100, 0)
        tx = replace(tx, reference="Standing order")
        rows = transaction_history(loan, [tx])
        assert rows[1].description == "Standing order"


class TestRates:

    def test_effective_rate(self, penalty_loan):
        assert effective_rate(penalty_loan, date(2024, 1, 19)) == Decimal("12")
        assert effective_rate(penalty_loan, date(2024, 1, 20)) == Decimal("18")

    def test_live_interest_outstanding(self, loan, initial_disbursement):
        assert live_interest_outstanding(loan, [initial_disbursement], TENTH) == \
            Decimal("29.59")
        overpaid = repayment(date(2024, 1, 5), 0, 50)
        assert live_interest_outstanding(loan, [overpaid], TENTH) == Decimal("-20.41")


@st.composite
def settlement_cases(draw):
    loan = make_loan(
        principal_amount=draw(st.decimals(min_value=0, max_value=50000, places=2)),
        interest_rate=draw(st.decimals(min_value=0, max_value=40, places=2)),
        interest_type=draw(st.sampled_from(["Flat", "Reducing", "Interest-Only", "Rolled-Up"])),
        exit_fee=draw(st.decimals(min_value=0, max_value=500, places=2)),
    )
    txs = [disbursement(START, loan.principal_amount)]
    for _ in range(draw(st.integers(min_value=0, max_value=5))):
        on = START + timedelta(days=draw(st.integers(min_value=0, max_value=400)))
        txs.append(repayment(
            on,
            draw(st.decimals(min_value=0, max_value=60000, places=2)),
            draw(st.decimals(min_value=0, max_value=5000, places=2)),
        ))
    settle_on = START + timedelta(days=draw(st.integers(min_value=-30, max_value=400)))
    return loan, txs, settle_on


class TestSettlementProperties:

    @given(settlement_cases(), st.sampled_from(SettlementMode.ALL))
    @settings(max_examples=100, deadline=None)
    def test_settlement_never_negative(self, case, mode):
        """
        PROPERTY: non-negative inputs never produce a negative quote.
        """
        loan, txs, settle_on = case
        result = calculate_settlement(loan, txs, settle_on, mode=mode)
        assert result.settlement_amount >= 0
        assert result.interest_remaining >= 0
        assert result.principal_remaining >= 0

    @given(settlement_cases(), st.lists(
        st.tuples(st.integers(min_value=1, max_value=400),
                  st.decimals(min_value=0, max_value=20000, places=2)),
        max_size=3,
    ))
    @settings(max_examples=100, deadline=None)
    def test_one_principal_balance(self, case, advances):
        """
        PROPERTY: the quoted principal, the history's closing balance and the
        last interest period's closing principal agree.
        """
        loan, txs, settle_on = case
        txs = list(txs) + [disbursement(START + timedelta(days=d), amount)
                           for d, amount in advances]
        result = calculate_settlement(loan, txs, settle_on, mode=SettlementMode.LEDGER)
        closing = result.transaction_history[-1].principal_balance
        assert result.principal_remaining == round_money(closing)
        if result.interest_periods:
            assert result.interest_periods[-1].closing_principal == closing
