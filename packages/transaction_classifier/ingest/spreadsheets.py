"""Load the first worksheet of an ``.xlsx`` workbook as rows of cells.

Cells keep their spreadsheet types (numbers stay ``int``/``float``, blank
cells are ``None``) so normalization sees what the sheet holds. Date and
time cells become ISO strings (``YYYY-MM-DD`` for whole dates), which keeps
rows JSON-serializable and readable with the ``YYYY-MM-DD`` date layout.
"""

from __future__ import annotations

import csv
import io
import zipfile
from collections.abc import Sequence
from datetime import date, datetime, time
from os import PathLike
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..logging_setup import get_logger

_logger = get_logger("transaction_classifier.ingest.spreadsheets")


def _cell_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


def read_xlsx_rows(path: str | PathLike[str]) -> list[list[Any]]:
    """Return the non-empty rows of the first worksheet, trailing blanks trimmed.

    Raises ``ValueError`` when the file is not a readable workbook.
    """

    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise ValueError(f"Cannot read workbook {path}: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        rows: list[list[Any]] = []
        for values in sheet.iter_rows(values_only=True):
            row = [_cell_value(v) for v in values]
            while row and row[-1] is None:
                row.pop()
            if row:
                rows.append(row)
    finally:
        workbook.close()

    _logger.debug("read %d rows from first sheet %r of %s", len(rows), sheet.title, path)
    return rows


def rows_to_csv(rows: Sequence[Sequence[Any]]) -> str:
    """Render sheet rows as CSV text (blank cells become empty fields)."""

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    for row in rows:
        writer.writerow(["" if v is None else v for v in row])
    return buf.getvalue()


__all__ = ["read_xlsx_rows", "rows_to_csv"]
