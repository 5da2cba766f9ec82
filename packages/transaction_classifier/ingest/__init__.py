"""Ingestion of delimited text exports and workbooks into ``DataFile`` records."""

from .csv_files import (
    data_file_from_rows,
    data_file_from_text,
    default_column_names,
    load_data_file,
    read_csv_rows,
)
from .spreadsheets import read_xlsx_rows, rows_to_csv

__all__ = [
    "data_file_from_rows",
    "data_file_from_text",
    "default_column_names",
    "load_data_file",
    "read_csv_rows",
    "read_xlsx_rows",
    "rows_to_csv",
]
