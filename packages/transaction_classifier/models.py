"""Data models for ``transaction_classifier``.

Configuration-like records (column mappings, rules, data files) are Pydantic
models so they validate at the boundary and round-trip through the camelCase
JSON interchange format unchanged. ``Transaction`` is a frozen dataclass: it is
derived data, rebuilt from scratch on every batch apply and never edited in
place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enumerations and constants
# ---------------------------------------------------------------------------


class DateFormat(StrEnum):
    """Supported date layout tokens (month is 1-based in every token)."""

    YYYY_MM_DD = "YYYY-MM-DD"
    DD_MM_YYYY = "DD-MM-YYYY"
    MM_DD_YYYY = "MM-DD-YYYY"
    YYYYMMDD = "YYYYMMDD"
    DDMMYYYY = "DDMMYYYY"
    MMDDYYYY = "MMDDYYYY"
    DD_SLASH_MM_SLASH_YYYY = "DD/MM/YYYY"
    MM_SLASH_DD_SLASH_YYYY = "MM/DD/YYYY"


DecimalSeparator: TypeAlias = Literal[".", ","]

INVALID_DATE = "Invalid Date"
"""Literal ``date_string`` assigned when a mapped date cell fails to parse."""


class _CamelModel(BaseModel):
    # Interchange JSON uses camelCase keys; Python code uses snake_case.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------


class ColumnMapping(_CamelModel):
    """Which raw columns carry date/amount/description, plus format hints.

    Indices refer to positions in each parsed row. An index that falls past
    the end of a particular row is not an error: the field is simply treated
    as not parsed for that row.
    """

    date_index: int | None = None
    date_format: DateFormat = DateFormat.YYYY_MM_DD
    amount_index: int | None = None
    decimal_separator: Literal[".", ","] = "."
    description_indices: list[int] = Field(default_factory=list)
    column_names: list[str] = Field(default_factory=list)
    has_headers: bool = False

    @field_validator("date_index", "amount_index")
    @classmethod
    def _non_negative_index(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("column index must be >= 0")
        return v

    @field_validator("description_indices")
    @classmethod
    def _non_negative_indices(cls, v: list[int]) -> list[int]:
        if any(i < 0 for i in v):
            raise ValueError("description indices must be >= 0")
        return v

    def column_name(self, index: int) -> str:
        """Return the mapped name for ``index`` or the synthetic ``col<N>``."""

        if index < len(self.column_names) and self.column_names[index]:
            return self.column_names[index]
        return f"col{index}"

    def with_changes(self, **changes: Any) -> ColumnMapping:
        """Return a validated copy with ``changes`` applied (snake_case keys)."""

        data = self.model_dump()
        data.update(changes)
        return ColumnMapping.model_validate(data)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class Rule(_CamelModel):
    """A user-authored ``(category, subcategory, predicate source)`` triple.

    ``js_code`` is the body of a JavaScript function taking one parameter,
    ``row``. ``is_valid`` is the syntactic validity flag maintained at edit
    time; rules with ``is_valid=False`` are never evaluated. Position in the
    owning rule list is the rule's precedence.
    """

    id: str = ""
    category: str = ""
    subcategory: str = ""
    js_code: str = ""
    is_valid: bool = False
    error: str | None = None


class RulesConfig(_CamelModel):
    """Top-level shape of the exported/imported rule configuration."""

    rules: list[Rule]


# ---------------------------------------------------------------------------
# Data files
# ---------------------------------------------------------------------------


class DataFile(_CamelModel):
    """An imported tabular file: raw text, parsed rows and its column mapping."""

    id: str
    name: str
    raw_content: str = ""
    parsed_rows: list[list[Any]] = Field(default_factory=list)
    column_mapping: ColumnMapping = Field(default_factory=ColumnMapping)


# ---------------------------------------------------------------------------
# Transactions (derived)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """One normalized, optionally classified record derived from one raw row.

    ``date_string`` is canonical ``YYYY-MM-DD``, the ``INVALID_DATE`` sentinel
    when the mapped date failed to parse, or empty when no date column is
    mapped. ``year``/``month``/``day`` are ``0`` unless the date parsed.
    ``category`` and ``subcategory`` are set together by exactly one rule, or
    both left as ``None``.
    """

    date: date
    date_string: str
    year: int
    month: int
    day: int
    amount: float
    description: str
    filename: str
    raw_data: dict[str, Any] = field(default_factory=dict)
    category: str | None = None
    subcategory: str | None = None

    def __post_init__(self) -> None:
        if (self.category is None) != (self.subcategory is None):
            raise ValueError("category and subcategory must be set together")

    @property
    def is_classified(self) -> bool:
        return self.category is not None

    @property
    def date_parsed(self) -> bool:
        return self.year != 0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable mapping using the interchange key names."""

        out: dict[str, Any] = {
            "date": self.date.isoformat(),
            "dateString": self.date_string,
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "amount": self.amount,
            "description": self.description,
            "filename": self.filename,
            "rawData": {k: _jsonable(v) for k, v in self.raw_data.items()},
        }
        if self.category is not None:
            out["category"] = self.category
            out["subcategory"] = self.subcategory
        return out


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


__all__ = [
    "ColumnMapping",
    "DataFile",
    "DateFormat",
    "DecimalSeparator",
    "INVALID_DATE",
    "Rule",
    "RulesConfig",
    "Transaction",
]
