"""Category/month trend pivot over classified transactions.

Only classified transactions contribute. Rows are keyed by
``(category, subcategory)``; columns are calendar months (``YYYY-MM``),
with transactions whose date did not parse collected under ``"n/a"``.
Cells hold the sum of absolute amounts.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Transaction

UNCATEGORIZED = "Uncategorized"
NO_MONTH = "n/a"


@dataclass(frozen=True, slots=True)
class PivotRow:
    category: str
    subcategory: str
    by_month: dict[str, float]

    @property
    def total(self) -> float:
        return sum(self.by_month.values())

    @property
    def average(self) -> float:
        """Average over the months that have data (0.0 when there are none)."""

        if not self.by_month:
            return 0.0
        return self.total / len(self.by_month)


def month_key(tx: Transaction) -> str:
    if not tx.date_parsed:
        return NO_MONTH
    return f"{tx.year:04d}-{tx.month:02d}"


def build_pivot(transactions: Iterable[Transaction]) -> list[PivotRow]:
    """Aggregate classified ``transactions`` into rows sorted by category/subcategory."""

    sums: dict[tuple[str, str], dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for tx in transactions:
        if not tx.is_classified:
            continue
        key = (tx.category or "", tx.subcategory or UNCATEGORIZED)
        sums[key][month_key(tx)] += abs(tx.amount)
    return [
        PivotRow(category=cat, subcategory=sub, by_month=dict(months))
        for (cat, sub), months in sorted(sums.items())
    ]


def pivot_months(rows: Iterable[PivotRow]) -> list[str]:
    """Sorted month columns across ``rows``; ``"n/a"`` always sorts last."""

    months = {m for row in rows for m in row.by_month}
    dated = sorted(m for m in months if m != NO_MONTH)
    return dated + ([NO_MONTH] if NO_MONTH in months else [])


def _fmt(value: float) -> str:
    return f"{value:,.2f}"


def report_trends(transactions: Iterable[Transaction]) -> str:
    """Render the pivot as a fixed-width text table.

    Each category block lists its subcategories followed by a category total
    line. Returns a short notice when nothing is classified.
    """

    rows = build_pivot(transactions)
    if not rows:
        return "No categorized transactions."

    months = pivot_months(rows)
    headers = ["Category", "Subcategory", *months, "Total", "Average"]

    table: list[list[str]] = []
    by_category: dict[str, list[PivotRow]] = defaultdict(list)
    for row in rows:
        by_category[row.category].append(row)

    for category, cat_rows in by_category.items():
        totals: dict[str, float] = defaultdict(float)
        for row in cat_rows:
            table.append(
                [
                    row.category,
                    row.subcategory,
                    *(_fmt(row.by_month[m]) if m in row.by_month else "" for m in months),
                    _fmt(row.total),
                    _fmt(row.average),
                ]
            )
            for m, v in row.by_month.items():
                totals[m] += v
        cat_total = PivotRow(category=category, subcategory="", by_month=dict(totals))
        table.append(
            [
                f"{category} total",
                "",
                *(_fmt(totals[m]) if m in totals else "" for m in months),
                _fmt(cat_total.total),
                _fmt(cat_total.average),
            ]
        )

    widths = [len(h) for h in headers]
    for line in table:
        widths = [max(w, len(cell)) for w, cell in zip(widths, line, strict=True)]

    def render(cells: list[str]) -> str:
        # Two leading text columns left-aligned, numbers right-aligned.
        parts = [
            cell.ljust(w) if i < 2 else cell.rjust(w)
            for i, (cell, w) in enumerate(zip(cells, widths, strict=True))
        ]
        return "  ".join(parts).rstrip()

    out = [render(headers), render(["-" * w for w in widths])]
    out.extend(render(line) for line in table)
    return "\n".join(out)


__all__ = ["NO_MONTH", "UNCATEGORIZED", "PivotRow", "build_pivot", "pivot_months", "report_trends"]
