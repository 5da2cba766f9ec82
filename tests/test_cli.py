import json
import textwrap
from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook
from typer.testing import CliRunner

from transaction_classifier.cli import app, cmd_validate_config

runner = CliRunner()

CSV_TEXT = textwrap.dedent(
    """\
    Date,Amount,Description
    2024-01-15,-50.00,Coffee Shop
    2024-01-20,-12.30,Bakery
    2024-02-31,-4.00,Coffee Corner
    """
)


def _invoke(*args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


@pytest.fixture
def loaded(tmp_path: Path) -> Path:
    """A workspace with one mapped file and a coffee rule."""

    csv_path = tmp_path / "jan.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")
    _invoke("add-file", str(csv_path), "--has-headers")
    _invoke("map-columns", "jan.csv", "--date-index", "0", "--amount-index", "1", "-d", "2")
    _invoke(
        "add-rule",
        "--category",
        "Food",
        "--subcategory",
        "Coffee",
        "--code",
        'return row.description.includes("Coffee");',
    )
    return csv_path


def test_apply_json_scenario(loaded: Path) -> None:
    result = _invoke("apply", "--json")
    txs = json.loads(result.stdout)
    assert [t["description"] for t in txs] == ["Coffee Shop", "Bakery", "Coffee Corner"]
    first = txs[0]
    assert first["amount"] == -50
    assert first["category"] == "Food"
    assert first["subcategory"] == "Coffee"
    assert first["dateString"] == "2024-01-15"
    assert "category" not in txs[1]
    assert txs[2]["dateString"] == "Invalid Date"


def test_apply_summary(loaded: Path) -> None:
    out = _invoke("apply").stdout
    assert "Transactions: 3 (matched 2, unmatched 1)" in out
    assert "Date parse errors: 1" in out


def test_list_files_shows_mapping(loaded: Path) -> None:
    out = _invoke("list-files").stdout
    assert "jan.csv" in out
    assert "4 rows" in out
    assert "amount=1" in out
    assert "headers=yes" in out


def test_rule_editing_and_ordering(loaded: Path) -> None:
    _invoke("add-rule", "--category", "Spending", "--code", "return row.amount < 0;")
    rules = json.loads(_invoke("export-config").stdout)["rules"]
    coffee_id, spending_id = rules[0]["id"], rules[1]["id"]

    _invoke("move-rule", spending_id, "1")
    out = _invoke("apply", "--json").stdout
    assert {t["category"] for t in json.loads(out)} == {"Spending"}

    edited = _invoke("edit-rule", coffee_id, "--code", "return (;").stdout
    assert "INVALID" in edited
    listing = _invoke("list-rules").stdout
    assert listing.splitlines()[0].startswith(f"1. {spending_id}")
    assert "INVALID" in listing.splitlines()[1]

    _invoke("delete-rule", spending_id)
    assert spending_id not in _invoke("list-rules").stdout


def test_config_export_import_round_trip(loaded: Path, tmp_path: Path) -> None:
    out_path = tmp_path / "rules.json"
    _invoke("export-config", "--output", str(out_path))
    exported = json.loads(out_path.read_text(encoding="utf-8"))

    _invoke("add-rule", "--category", "Extra")
    assert "Imported 1 rules" in _invoke("import-config", str(out_path)).stdout
    assert json.loads(_invoke("export-config").stdout) == exported


def test_import_config_rejects_bad_document(loaded: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text('{"rules": 1}', encoding="utf-8")
    result = runner.invoke(app, ["import-config", str(bad)])
    assert result.exit_code == 1
    assert "rules must be an array" in result.output
    assert "Food" in _invoke("list-rules").stdout


def test_validate_config_command(tmp_path: Path) -> None:
    path = tmp_path / "cfg.json"
    path.write_text('{"rules": [{"category": "X", "jsCode": "return (;"}]}', encoding="utf-8")
    result = runner.invoke(app, ["validate-config", str(path)])
    assert result.exit_code == 1
    assert "Invalid JavaScript" in result.stdout
    assert "warning: Rule 1: missing id" in result.stdout

    path.write_text('{"rules": [{"id": "a", "category": "X", "jsCode": "return 1;"}]}')
    assert cmd_validate_config(str(path)) == 0


def test_mapping_export_and_load(loaded: Path, tmp_path: Path) -> None:
    doc = json.loads(_invoke("export-mapping", "jan.csv").stdout)
    assert doc["columnMapping"]["descriptionIndices"] == [2]

    doc["columnMapping"]["descriptionIndices"] = [2, 0]
    path = tmp_path / "mapping.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    _invoke("load-mapping", "jan.csv", str(path))
    txs = json.loads(_invoke("apply", "--json").stdout)
    assert txs[0]["description"] == "Coffee Shop 2024-01-15"


def test_rename_and_remove_file(loaded: Path) -> None:
    _invoke("rename-file", "jan.csv", "january.csv")
    assert "january.csv" in _invoke("list-files").stdout
    _invoke("remove-file", "january.csv")
    assert "No data files." in _invoke("list-files").stdout


def test_report_command(loaded: Path) -> None:
    out = _invoke("report").stdout
    assert "Food total" in out
    assert "2024-01" in out
    assert "n/a" in out


def test_reset_clears_workspace(loaded: Path) -> None:
    _invoke("reset", "--yes")
    assert "No data files." in _invoke("list-files").stdout
    assert "No rules." in _invoke("list-rules").stdout


def test_unknown_ids_report_errors() -> None:
    for args in (["remove-file", "nope.csv"], ["delete-rule", "rule-x"], ["move-rule", "r", "1"]):
        result = runner.invoke(app, args)
        assert result.exit_code == 1
        assert "Error:" in result.output


def test_missing_file_and_legacy_xls_errors(tmp_path: Path) -> None:
    result = runner.invoke(app, ["add-file", str(tmp_path / "missing.csv")])
    assert result.exit_code == 1
    assert "File not found" in result.output

    sheet = tmp_path / "x.xls"
    sheet.write_bytes(b"PK")
    result = runner.invoke(app, ["add-file", str(sheet)])
    assert result.exit_code == 1
    assert "Unsupported file format" in result.output


def test_add_xlsx_file(tmp_path: Path) -> None:
    book = tmp_path / "statement.xlsx"
    wb = Workbook()
    for row in (
        ["Date", "Amount", "Description"],
        [datetime(2024, 1, 15), -50.0, "Coffee Shop"],
        [datetime(2024, 1, 16), None, "Pending"],
    ):
        wb.active.append(row)
    wb.save(book)

    assert "3 rows" in _invoke("add-file", str(book), "--has-headers").stdout
    _invoke(
        "map-columns", "statement.xlsx", "--date-index", "0", "--amount-index", "1", "-d", "2"
    )
    _invoke("add-rule", "--category", "Food", "--code", "return row.amount === -50;")

    (tx,) = json.loads(_invoke("apply", "--json").stdout)
    assert tx["dateString"] == "2024-01-15"
    assert tx["category"] == "Food"


def test_invalid_mapping_change_is_rejected(loaded: Path) -> None:
    result = runner.invoke(app, ["map-columns", "jan.csv", "--decimal-separator", ";"])
    assert result.exit_code == 1
    assert "invalid column mapping" in result.output


def test_database_url_option(tmp_path: Path) -> None:
    url = f"sqlite+pysqlite:///{tmp_path / 'other' / 'ws.db'}"
    _invoke("--database-url", url, "add-rule", "--category", "Solo")
    assert "Solo" in _invoke("--database-url", url, "list-rules").stdout
    assert "No rules." in _invoke("list-rules").stdout


def test_no_subcommand_shows_help() -> None:
    result = runner.invoke(app, [])
    assert "add-file" in result.output
