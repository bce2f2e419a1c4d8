import logging
import os

from flask import Flask, jsonify, request

from loan_accrual.amortization import accrue_interest
from loan_accrual.config import configure_logging
from loan_accrual.data_models import Loan, ScheduleEntry, parse_transactions
from loan_accrual.exceptions import LoanAccrualError, ValidationError
from loan_accrual.formatter import (
    accrual_to_dict,
    ledger_to_dict,
    reconciliation_to_dict,
    settlement_to_dict,
)
from loan_accrual.ledger import build_ledger
from loan_accrual.reconciliation import reconcile_schedule
from loan_accrual.settlement import SettlementMode, calculate_settlement, formula_days_elapsed
from loan_accrual.utils import parse_date

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("body", reason="expected a JSON object")
    return data


def _case_from_payload(data: dict):
    if not data.get("loan"):
        raise ValidationError("loan", reason="field is required")
    loan = Loan.from_dict(data["loan"])
    transactions = parse_transactions(data.get("transactions") or [])
    return loan, transactions


def _date_field(data: dict, key: str, required: bool = True):
    raw = data.get(key)
    if not raw:
        if required:
            raise ValidationError(key, reason="field is required")
        return None
    try:
        return parse_date(raw)
    except ValueError as exc:
        raise ValidationError(key, raw, "not a calendar date") from exc


@app.errorhandler(LoanAccrualError)
def handle_accrual_error(exc: LoanAccrualError):
    logger.info("Rejected request to %s: %s", request.path, exc)
    return jsonify({"error": exc.message, "details": exc.details}), 400


@app.get("/health")
def health():
    return jsonify({"status": "ok"})


@app.post("/api/ledger")
def ledger():
    data = _payload()
    loan, transactions = _case_from_payload(data)
    as_of = _date_field(data, "as_of", required=False)
    result = build_ledger(loan, transactions, as_of)
    return jsonify(ledger_to_dict(result.entries, result.summary))


@app.post("/api/settlement")
def settlement():
    data = _payload()
    loan, transactions = _case_from_payload(data)
    settlement_date = _date_field(data, "settlement_date")
    mode = data.get("mode") or SettlementMode.LEDGER
    result = calculate_settlement(loan, transactions, settlement_date, mode=mode)
    return jsonify({"settlement": settlement_to_dict(result)})


@app.post("/api/estimate")
def estimate():
    data = _payload()
    loan, _ = _case_from_payload(data)
    days = formula_days_elapsed(loan, _date_field(data, "as_of"))
    result = accrue_interest(loan, days)
    return jsonify({"days_elapsed": days, "estimate": accrual_to_dict(result)})


@app.post("/api/reconciliation")
def reconciliation():
    data = _payload()
    transactions = parse_transactions(data.get("transactions") or [])
    schedule = [ScheduleEntry.from_dict(row) for row in data.get("schedule") or []]
    result = reconcile_schedule(schedule, transactions, _date_field(data, "as_of"))
    return jsonify({"reconciliation": reconciliation_to_dict(result)})


if __name__ == "__main__":
    configure_logging(os.environ.get("LOAN_ACCRUAL_LOG_LEVEL", "WARNING"))
    print("Starting loan accrual API...")
    app.run(host="0.0.0.0", port=8710, debug=True)
