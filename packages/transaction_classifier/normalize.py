"""Raw row → ``Transaction`` normalization driven by a ``ColumnMapping``.

Rows are ordered sequences of heterogeneous cells (strings from CSV, numbers
from spreadsheets, ``None`` where a sheet had no value). A mapped index past
the end of a row reads as a missing cell: the field is left unparsed rather
than raising.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any

from .amounts import parse_amount
from .dates import format_date, parse_date
from .models import INVALID_DATE, ColumnMapping, Transaction

_MISSING: Any = object()


def cell_at(row: Sequence[Any], index: int | None) -> Any:
    """Return ``row[index]`` or a sentinel when the index is unset or out of range."""

    if index is None or index < 0 or index >= len(row):
        return _MISSING
    return row[index]


def is_missing(value: Any) -> bool:
    """True for cells that are absent: out of range, unmapped, or ``None``."""

    return value is _MISSING or value is None


def has_amount_cell(row: Sequence[Any], mapping: ColumnMapping) -> bool:
    """Whether ``row`` carries a value in the amount column.

    Rows without one (trailing blank lines, short footer rows, or any row when
    no amount column is mapped) are not transactions.
    """

    return not is_missing(cell_at(row, mapping.amount_index))


def cell_text(value: Any) -> str:
    """Stringify a cell the way rule authors see it; falsy cells become ``""``."""

    if is_missing(value) or not value:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_description(row: Sequence[Any], indices: Sequence[int]) -> str:
    """Join the cells at ``indices`` with single spaces, trimming only the ends."""

    return " ".join(cell_text(cell_at(row, i)) for i in indices).strip()


def normalize_row(
    row: Sequence[Any],
    mapping: ColumnMapping,
    filename: str,
    *,
    today: date | None = None,
) -> Transaction:
    """Turn one raw row into an unclassified ``Transaction``.

    ``raw_data`` maps each column name (or ``col<N>``) to its original cell,
    then ``filename``, then the derived ``date``/``amount``/``description``
    values so rule code sees parsed types. A failed date yields the
    ``INVALID_DATE`` sentinel with zeroed components and ``today`` as the
    placeholder date.
    """

    raw_data: dict[str, Any] = {}
    for idx, cell in enumerate(row):
        raw_data[mapping.column_name(idx)] = cell
    raw_data["filename"] = filename

    fallback = today or date.today()
    tx_date = fallback
    date_string = ""
    year = month = day = 0
    if mapping.date_index is not None:
        parsed = parse_date(cell_text(cell_at(row, mapping.date_index)), mapping.date_format)
        if parsed is not None:
            tx_date = parsed
            year, month, day = parsed.year, parsed.month, parsed.day
            date_string = format_date(parsed)
        else:
            date_string = INVALID_DATE
        raw_data["date"] = tx_date

    amount = 0.0
    if mapping.amount_index is not None:
        amount = parse_amount(
            cell_text(cell_at(row, mapping.amount_index)), mapping.decimal_separator
        )
        raw_data["amount"] = amount

    description = build_description(row, mapping.description_indices)
    raw_data["description"] = description

    return Transaction(
        date=tx_date,
        date_string=date_string,
        year=year,
        month=month,
        day=day,
        amount=amount,
        description=description,
        filename=filename,
        raw_data=raw_data,
    )


__all__ = [
    "build_description",
    "cell_at",
    "cell_text",
    "has_amount_cell",
    "is_missing",
    "normalize_row",
]
