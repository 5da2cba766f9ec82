"""Amount parsing with a per-file decimal separator convention.

Deliberately lenient: any input yields a float, defaulting to ``0``. No
currency or thousands-grouping logic exists beyond stripping every character
that is not a digit, ``.`` or ``-``.

Known quirk: with the ``","`` convention only the *first* comma becomes a
decimal point, so grouped values such as ``"1.234,56"`` become
``"1.234.56"`` and parse as ``1.234`` (the longest valid leading number).
"""

from __future__ import annotations

import re

_STRIP_RE = re.compile(r"[^0-9.\-]")
# Longest leading float, mirroring a lenient prefix parse.
_LEADING_FLOAT_RE = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")


def parse_amount(raw: str | None, decimal_separator: str = ".") -> float:
    """Return the signed amount encoded in ``raw`` (``0.0`` when unparseable)."""

    s = raw if raw else "0"
    if decimal_separator == ",":
        s = s.replace(",", ".", 1)

    cleaned = _STRIP_RE.sub("", s)
    m = _LEADING_FLOAT_RE.match(cleaned)
    if m is None:
        return 0.0
    value = float(m.group(0))
    # Collapses -0.0 as well as zero.
    return value or 0.0


__all__ = ["parse_amount"]
