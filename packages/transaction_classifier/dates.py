"""Date parsing for user-selected date layouts.

``parse_date`` never raises: malformed, impossible (e.g. Feb 31) or
out-of-range inputs return ``None`` and the caller decides whether to count
the failure.
"""

from __future__ import annotations

import re
from datetime import date

from .models import DateFormat

MIN_YEAR = 1900
MAX_YEAR = 2100

_INT_RE = re.compile(r"^[+-]?\d+$")

# Field order for delimited layouts: (delimiter, order of y/m/d components)
_DELIMITED: dict[DateFormat, tuple[str, tuple[str, str, str]]] = {
    DateFormat.YYYY_MM_DD: ("-", ("y", "m", "d")),
    DateFormat.DD_MM_YYYY: ("-", ("d", "m", "y")),
    DateFormat.MM_DD_YYYY: ("-", ("m", "d", "y")),
    DateFormat.DD_SLASH_MM_SLASH_YYYY: ("/", ("d", "m", "y")),
    DateFormat.MM_SLASH_DD_SLASH_YYYY: ("/", ("m", "d", "y")),
}

# Fixed-width layouts: slice bounds per component
_FIXED: dict[DateFormat, dict[str, tuple[int, int]]] = {
    DateFormat.YYYYMMDD: {"y": (0, 4), "m": (4, 6), "d": (6, 8)},
    DateFormat.DDMMYYYY: {"d": (0, 2), "m": (2, 4), "y": (4, 8)},
    DateFormat.MMDDYYYY: {"m": (0, 2), "d": (2, 4), "y": (4, 8)},
}


def _to_int(part: str) -> int | None:
    s = part.strip()
    if not _INT_RE.match(s):
        return None
    return int(s)


def _components(s: str, fmt: DateFormat) -> dict[str, int] | None:
    if fmt in _DELIMITED:
        delim, order = _DELIMITED[fmt]
        parts = s.split(delim)
        if len(parts) < 3:
            return None
        # Extra trailing parts are ignored; only the first three are read.
        values = [_to_int(p) for p in parts[:3]]
        if any(v is None for v in values):
            return None
        return dict(zip(order, values, strict=True))  # type: ignore[arg-type]

    bounds = _FIXED[fmt]
    out: dict[str, int] = {}
    for key, (lo, hi) in bounds.items():
        v = _to_int(s[lo:hi])
        if v is None:
            return None
        out[key] = v
    return out


def parse_date(raw: str, fmt: DateFormat | str) -> date | None:
    """Parse ``raw`` according to ``fmt`` and return a calendar date.

    Returns ``None`` when the input is empty, does not fit the layout, is not
    a real calendar date, or has a year outside ``[1900, 2100]``.
    """

    s = str(raw).strip()
    if not s:
        return None

    try:
        layout = DateFormat(fmt)
    except ValueError:
        return None

    parts = _components(s, layout)
    if parts is None:
        return None

    year, month, day = parts["y"], parts["m"], parts["d"]
    if year < MIN_YEAR or year > MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_date(d: date) -> str:
    """Return the canonical ``YYYY-MM-DD`` representation."""

    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


__all__ = ["MAX_YEAR", "MIN_YEAR", "format_date", "parse_date"]
