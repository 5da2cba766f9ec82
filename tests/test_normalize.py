from datetime import date

from transaction_classifier.models import INVALID_DATE, ColumnMapping, DateFormat
from transaction_classifier.normalize import (
    build_description,
    cell_text,
    has_amount_cell,
    normalize_row,
)

TODAY = date(2030, 6, 1)


def _mapping(**overrides) -> ColumnMapping:
    base = {
        "date_index": 0,
        "amount_index": 1,
        "description_indices": [2],
        "date_format": DateFormat.YYYY_MM_DD,
        "decimal_separator": ".",
        "column_names": ["Date", "Amount", "Payee"],
    }
    base.update(overrides)
    return ColumnMapping(**base)


def test_normalize_snapshot() -> None:
    tx = normalize_row(["2024-01-15", "-50.00", "Coffee Shop"], _mapping(), "jan.csv", today=TODAY)

    assert tx.date == date(2024, 1, 15)
    assert tx.date_string == "2024-01-15"
    assert (tx.year, tx.month, tx.day) == (2024, 1, 15)
    assert tx.amount == -50.0
    assert tx.description == "Coffee Shop"
    assert tx.filename == "jan.csv"
    assert tx.category is None and tx.subcategory is None
    assert tx.raw_data == {
        "Date": "2024-01-15",
        "Amount": "-50.00",
        "Payee": "Coffee Shop",
        "filename": "jan.csv",
        "date": date(2024, 1, 15),
        "amount": -50.0,
        "description": "Coffee Shop",
    }
    assert list(tx.raw_data) == [
        "Date",
        "Amount",
        "Payee",
        "filename",
        "date",
        "amount",
        "description",
    ]


def test_unnamed_columns_use_synthetic_names() -> None:
    mapping = _mapping(column_names=[])
    tx = normalize_row(["2024-01-15", "1", "x", "extra"], mapping, "f.csv", today=TODAY)
    assert tx.raw_data["col0"] == "2024-01-15"
    assert tx.raw_data["col3"] == "extra"


def test_invalid_date_uses_sentinel_and_placeholder_date() -> None:
    tx = normalize_row(["2024-02-31", "10", "x"], _mapping(), "f.csv", today=TODAY)
    assert tx.date_string == INVALID_DATE
    assert (tx.year, tx.month, tx.day) == (0, 0, 0)
    assert tx.date == TODAY
    assert not tx.date_parsed


def test_unmapped_date_leaves_date_fields_empty() -> None:
    tx = normalize_row(["x", "10", "y"], _mapping(date_index=None), "f.csv", today=TODAY)
    assert tx.date_string == ""
    assert tx.year == 0
    assert "date" not in tx.raw_data


def test_description_joins_columns_in_mapping_order() -> None:
    mapping = _mapping(description_indices=[3, 2])
    tx = normalize_row(["2024-01-15", "1", "Shop", "Card 42"], mapping, "f.csv", today=TODAY)
    assert tx.description == "Card 42 Shop"


def test_description_index_out_of_range_is_empty_cell() -> None:
    assert build_description(["a", "b"], [0, 9, 1]) == "a  b"
    assert build_description(["a"], [5]) == ""


def test_comma_decimal_mapping() -> None:
    tx = normalize_row(
        ["15-01-2024", "-45,99", "Bakker"],
        _mapping(date_format=DateFormat.DD_MM_YYYY, decimal_separator=","),
        "nl.csv",
        today=TODAY,
    )
    assert tx.amount == -45.99
    assert tx.date_string == "2024-01-15"


def test_spreadsheet_style_cells() -> None:
    assert cell_text(None) == ""
    assert cell_text(0) == ""
    assert cell_text(12.0) == "12"
    assert cell_text(12.5) == "12.5"
    tx = normalize_row([20240115, -12.5, None], _mapping(date_format=DateFormat.YYYYMMDD), "x.csv")
    assert tx.date_string == "2024-01-15"
    assert tx.amount == -12.5
    assert tx.description == ""


def test_amount_cell_presence() -> None:
    mapping = _mapping()
    assert has_amount_cell(["2024-01-01", ""], mapping)
    assert not has_amount_cell(["2024-01-01"], mapping)
    assert not has_amount_cell(["2024-01-01", None], mapping)
    assert not has_amount_cell(["2024-01-01", "1"], _mapping(amount_index=None))
