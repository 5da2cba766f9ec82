"""Load bank exports (delimited text or ``.xlsx``) into ``DataFile`` records.

Text parsing follows RFC 4180 via the stdlib :mod:`csv` module (quoted
fields with embedded delimiters and newlines, doubled quotes) and every cell
stays a string. Workbook cells keep their sheet types. Typing happens later
in normalization through the column mapping.

Header handling is explicit: callers say whether the first row is a header.
No attempt is made to guess.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from os import PathLike
from pathlib import Path
from typing import Any

from ..models import ColumnMapping, DataFile
from ..normalize import cell_text
from ..session import new_file_id
from .spreadsheets import read_xlsx_rows, rows_to_csv

XLSX_SUFFIXES = frozenset({".xlsx", ".xlsm"})


def read_csv_rows(text: str, *, delimiter: str | None = None) -> list[list[str]]:
    """Split CSV ``text`` into rows of string cells.

    Blank lines (rows with no cells) are dropped. When ``delimiter`` is not
    given, it is sniffed among ``, ; \\t |`` and defaults to a comma.
    """

    if delimiter is None:
        delimiter = _sniff_delimiter(text)
    with io.StringIO(text, newline="") as f:
        reader = csv.reader(f, delimiter=delimiter)
        return [row for row in reader if row]


def _sniff_delimiter(text: str) -> str:
    sample = text[:8192]
    if not sample.strip():
        return ","
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
    except csv.Error:
        return ","


def default_column_names(rows: Sequence[Sequence[object]], *, has_headers: bool) -> list[str]:
    """Column names for a freshly loaded file.

    With a header row, each header cell names its column verbatim (empty or
    zero cells fall back to ``col<N>``); otherwise every column of the first
    row is ``col<N>``.
    """

    if not rows:
        return []
    first = rows[0]
    if not has_headers:
        return [f"col{i}" for i in range(len(first))]
    names: list[str] = []
    for i, cell in enumerate(first):
        label = cell_text(cell)
        names.append(label or f"col{i}")
    return names


def data_file_from_rows(
    rows: Sequence[Sequence[Any]],
    *,
    name: str,
    raw_content: str,
    has_headers: bool = False,
) -> DataFile:
    """Build a ``DataFile`` with a default (unmapped) column mapping."""

    mapping = ColumnMapping(
        column_names=default_column_names(rows, has_headers=has_headers),
        has_headers=has_headers,
    )
    return DataFile(
        id=new_file_id(),
        name=name,
        raw_content=raw_content,
        parsed_rows=[list(r) for r in rows],
        column_mapping=mapping,
    )


def data_file_from_text(
    text: str,
    *,
    name: str,
    has_headers: bool = False,
    delimiter: str | None = None,
) -> DataFile:
    rows = read_csv_rows(text, delimiter=delimiter)
    return data_file_from_rows(rows, name=name, raw_content=text, has_headers=has_headers)


def load_data_file(
    path: str | PathLike[str],
    *,
    name: str | None = None,
    has_headers: bool = False,
    delimiter: str | None = None,
) -> DataFile:
    """Read a CSV/TXT/TAB export or an ``.xlsx`` workbook into a new ``DataFile``.

    The display ``name`` defaults to the file name. Workbooks contribute
    their first sheet, with a CSV rendering of it as ``raw_content``;
    ``delimiter`` only applies to text files. Legacy binary ``.xls`` files
    are rejected.
    """

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix in XLSX_SUFFIXES:
        rows = read_xlsx_rows(p)
        return data_file_from_rows(
            rows, name=name or p.name, raw_content=rows_to_csv(rows), has_headers=has_headers
        )
    if suffix == ".xls":
        raise ValueError("Unsupported file format: .xls (save the workbook as .xlsx or CSV)")
    text = p.read_text(encoding="utf-8-sig")
    return data_file_from_text(
        text, name=name or p.name, has_headers=has_headers, delimiter=delimiter
    )


__all__ = [
    "XLSX_SUFFIXES",
    "data_file_from_rows",
    "data_file_from_text",
    "default_column_names",
    "load_data_file",
    "read_csv_rows",
]
