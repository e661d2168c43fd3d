import json
import shutil

from au_payroll import cli

from conftest import DATA_DIR


def run_cli(capsys, *argv):
    cli.main(list(argv))
    return capsys.readouterr().out


def test_calculate_prints_payslip_json(capsys):
    output = json.loads(run_cli(capsys, "calculate", "E001", "2024-06-01", "2024-06-14"))

    assert output["employee_id"] == "E001"
    assert output["totals"]["net_pay"] == 2265.4
    assert output["is_valid"] is True


def test_run_reports_status_totals_and_errors(capsys):
    output = json.loads(run_cli(capsys, "run", "2024-06-01", "2024-06-14"))

    assert output["status"] == "CompletedWithErrors"
    assert output["totals"]["employee_count"] == 2
    assert [e["employee_id"] for e in output["errors"]] == ["E003"]
    assert [p["employee_id"] for p in output["payslips"]] == ["E001", "E002"]


def test_run_limited_to_selected_employees(capsys):
    output = json.loads(run_cli(capsys, "run", "2024-06-01", "2024-06-14", "--employee", "E002"))

    assert output["status"] == "Completed"
    assert [p["employee_id"] for p in output["payslips"]] == ["E002"]


def test_interpret_uses_employee_award(capsys):
    output = json.loads(run_cli(capsys, "interpret", "E002", "2024-06-01", "2024-06-14"))

    assert output["award_id"] == "retail"
    assert output["total_shift_loading_amount"] == 30.0


def test_withhold_for_explicit_year(capsys):
    output = json.loads(run_cli(capsys, "withhold", "3000", "--year", "2023-24"))

    assert output == {"financial_year": "2023-24", "pay_frequency": "Fortnightly", "tax": 608.35}


def test_tax_tables_lists_years(capsys):
    lines = run_cli(capsys, "tax-tables").strip().splitlines()

    assert lines == ["2023-24", "2024-25"]


def test_default_store_path_can_be_replaced(capsys, tmp_path, monkeypatch):
    data_path = tmp_path / "store.json"
    shutil.copy(f"{DATA_DIR}/sample_store.json", data_path)
    monkeypatch.setattr(cli, "DEFAULT_DATA_PATH", data_path)

    output = json.loads(run_cli(capsys, "run", "2024-06-01", "2024-06-14", "--employee", "E001"))

    assert output["totals"]["gross_pay"] == 3000.0
