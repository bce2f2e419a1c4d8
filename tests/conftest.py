"""
conftest.py - Shared pytest fixtures for the accrual engine tests
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from tests.factories import START, disbursement, make_loan, repayment


@pytest.fixture
def loan():
    """10,000 at 12 % interest-only, starting 2024-01-01."""
    return make_loan()


@pytest.fixture
def penalty_loan():
    """Same loan with an 18 % penalty rate from 2024-01-20."""
    return make_loan(
        has_penalty_rate=True,
        penalty_rate=Decimal("18"),
        penalty_rate_from=date(2024, 1, 20),
    )


@pytest.fixture
def initial_disbursement():
    return disbursement(START, 10000)


@pytest.fixture
def mid_month_repayment():
    return repayment(date(2024, 1, 16), "5000", "49.32")


@pytest.fixture
def case_payload():
    """A JSON-ready case as accepted by the CLI and the web API."""
    return {
        "loan": {
            "principal_amount": "10000",
            "interest_rate": "12",
            "interest_type": "Interest-Only",
            "start_date": "2024-01-01",
            "duration": 12,
            "period": "Monthly",
            "exit_fee": "250",
        },
        "transactions": [
            {"type": "Disbursement", "date": "2024-01-01", "amount": "10000"},
            {
                "type": "Repayment",
                "date": "2024-01-16",
                "amount": "5049.32",
                "principal_applied": "5000",
                "interest_applied": "49.32",
            },
            {
                "type": "Repayment",
                "date": "2024-01-20",
                "amount": "999",
                "principal_applied": "999",
                "is_deleted": True,
            },
        ],
        "schedule": [
            {"due_date": "2024-02-01", "interest_amount": "101.92", "installment_number": 1,
             "is_serviced_period": True},
            {"due_date": "2024-03-01", "interest_amount": "47.67", "installment_number": 2,
             "is_serviced_period": True},
        ],
    }


@pytest.fixture
def case_file(tmp_path, case_payload):
    path = tmp_path / "case.json"
    path.write_text(json.dumps(case_payload), encoding="utf-8")
    return path
