"""
Command-line tests driven through click's CliRunner.
"""

import csv
import json

import pytest
from click.testing import CliRunner

from loan_accrual.main import cli


@pytest.fixture
def runner():
    return CliRunner()


def test_ledger_summary(runner, case_file):
    result = runner.invoke(cli, ["ledger", str(case_file), "--as-of", "2024-01-31"])
    assert result.exit_code == 0, result.output
    assert "Interest accrued      : 73.97" in result.output
    assert "Interest outstanding  : 24.65" in result.output
    assert "Rate change" not in result.output


def test_ledger_csv_export(runner, case_file, tmp_path):
    out = tmp_path / "ledger.csv"
    result = runner.invoke(
        cli, ["ledger", str(case_file), "--as-of", "2024-01-31", "--output", str(out)]
    )
    assert result.exit_code == 0, result.output
    with out.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["Date", "Type", "Detail", "Amount", "Principal"]
    assert [r[1] for r in rows[1:]] == ["Disbursement", "Interest", "Repayment", "Interest"]


def test_ledger_json_export(runner, case_file, tmp_path):
    out = tmp_path / "ledger.json"
    result = runner.invoke(
        cli, ["ledger", str(case_file), "--as-of", "2024-01-31", "--output", str(out)]
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["summary"]["total_interest_paid"] == 49.32
    assert payload["entries"][0]["type"] == "Disbursement"


def test_ledger_rejects_unknown_export(runner, case_file, tmp_path):
    out = tmp_path / "ledger.xlsx"
    result = runner.invoke(cli, ["ledger", str(case_file), "--output", str(out)])
    assert result.exit_code != 0
    assert not out.exists()


def test_settle_ledger_mode(runner, case_file):
    result = runner.invoke(cli, ["settle", str(case_file), "--date", "2024-01-31"])
    assert result.exit_code == 0, result.output
    assert "Days elapsed          : 31" in result.output
    assert "Exit fee              : 250.00" in result.output
    assert "Settlement amount     : 5276.30" in result.output


def test_settle_formula_mode(runner, case_file):
    result = runner.invoke(
        cli, ["settle", str(case_file), "--date", "2024-01-10", "--mode", "formula"]
    )
    assert result.exit_code == 0, result.output
    assert "Days elapsed          : 9" in result.output


def test_settle_json_export(runner, case_file, tmp_path):
    out = tmp_path / "quote.json"
    result = runner.invoke(
        cli, ["settle", str(case_file), "--date", "2024-01-31", "--output", str(out)]
    )
    assert result.exit_code == 0, result.output
    quote = json.loads(out.read_text(encoding="utf-8"))["settlement"]
    assert quote["settlement_amount"] == 5276.3
    assert quote["transaction_history"][0]["description"] == "Loan disbursement"


def test_settle_rejects_bad_date(runner, case_file):
    result = runner.invoke(cli, ["settle", str(case_file), "--date", "31/01/2024"])
    assert result.exit_code == 2
    assert "Invalid date string" in result.output


def test_estimate(runner, case_file):
    result = runner.invoke(cli, ["estimate", str(case_file), "--date", "2024-01-10"])
    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[0] == "Interest-Only interest over 9 days: 29.59"


def test_reconcile(runner, case_file):
    result = runner.invoke(cli, ["reconcile", str(case_file), "--date", "2024-02-15"])
    assert result.exit_code == 0, result.output
    assert "Interest arrears      : 52.60" in result.output
    assert "Next due date         : 2024-03-01" in result.output


def test_reconcile_without_schedule(runner, case_payload, tmp_path):
    del case_payload["schedule"]
    path = tmp_path / "case.json"
    path.write_text(json.dumps(case_payload), encoding="utf-8")
    result = runner.invoke(cli, ["reconcile", str(path), "--date", "2024-02-15"])
    assert result.exit_code == 1
    assert "no schedule" in result.output


def test_invalid_case_file(runner, case_payload, tmp_path):
    case_payload["loan"]["interest_rate"] = "twelve"
    path = tmp_path / "case.json"
    path.write_text(json.dumps(case_payload), encoding="utf-8")
    result = runner.invoke(cli, ["ledger", str(path)])
    assert result.exit_code == 1
    assert "Invalid 'interest_rate'" in result.output


def test_unreadable_case_file(runner, tmp_path):
    path = tmp_path / "case.json"
    path.write_text("{not json", encoding="utf-8")
    result = runner.invoke(cli, ["ledger", str(path)])
    assert result.exit_code == 1
    assert "Cannot read case file" in result.output
