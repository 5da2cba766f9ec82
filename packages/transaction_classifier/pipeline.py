"""Batch apply: rebuild the full transaction set from data files and rules.

``apply_rules`` is a pure, from-scratch recomputation. Every call normalizes
every data row of every file with the file's current column mapping and
classifies the result with the current rule list; nothing is carried over
from previous runs. Per-row and per-rule failures are contained and only
reported through the counters on ``ApplyResult``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from .classify import classify
from .logging_setup import get_logger
from .models import INVALID_DATE, DataFile, Rule, Transaction
from .normalize import has_amount_cell, normalize_row
from .rules import RuleEngine, rule_time_limit_from_env

_logger = get_logger("transaction_classifier.pipeline")


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """Outcome of one batch apply.

    ``date_parse_errors`` counts mapped date cells that failed to parse and is
    informational only. ``rule_errors`` counts rule compile/execution
    failures, each of which was treated as "no match".
    """

    transactions: tuple[Transaction, ...]
    date_parse_errors: int
    rule_errors: int = 0

    @property
    def matched(self) -> int:
        return sum(1 for t in self.transactions if t.is_classified)

    @property
    def unmatched(self) -> int:
        return len(self.transactions) - self.matched


def data_rows(data_file: DataFile) -> list[list]:
    """Rows of ``data_file`` that become transactions, in file order.

    Drops the header row when the mapping says the file has one, then any row
    without a value in the amount column.
    """

    mapping = data_file.column_mapping
    start_row = 1 if mapping.has_headers else 0
    return [row for row in data_file.parsed_rows[start_row:] if has_amount_cell(row, mapping)]


def transactions_for_file(
    data_file: DataFile,
    rules: Sequence[Rule],
    engine: RuleEngine,
    *,
    today: date | None = None,
) -> tuple[list[Transaction], int]:
    """Normalize and classify one file; return ``(transactions, date_errors)``."""

    mapping = data_file.column_mapping
    out: list[Transaction] = []
    date_errors = 0
    for row in data_rows(data_file):
        tx = normalize_row(row, mapping, data_file.name, today=today)
        if tx.date_string == INVALID_DATE:
            date_errors += 1
        out.append(classify(tx, rules, engine))
    return out, date_errors


def apply_rules(
    data_files: Sequence[DataFile],
    rules: Sequence[Rule],
    *,
    engine: RuleEngine | None = None,
) -> ApplyResult:
    """Normalize and classify all rows of all ``data_files``.

    Output order is file order, then row order within each file. Never raises
    for malformed cells or failing rules.
    """

    if engine is None:
        engine = RuleEngine(time_limit=rule_time_limit_from_env())
    errors_before = engine.error_count
    # One wall-clock date per batch keeps placeholder dates consistent.
    today = date.today()

    transactions: list[Transaction] = []
    date_parse_errors = 0
    for data_file in data_files:
        file_txs, file_errors = transactions_for_file(data_file, rules, engine, today=today)
        _logger.debug(
            "%s: %d transactions, %d date parse errors",
            data_file.name,
            len(file_txs),
            file_errors,
        )
        transactions.extend(file_txs)
        date_parse_errors += file_errors

    result = ApplyResult(
        transactions=tuple(transactions),
        date_parse_errors=date_parse_errors,
        rule_errors=engine.error_count - errors_before,
    )
    _logger.info(
        "applied %d rules to %d files: %d transactions (%d matched), "
        "%d date parse errors, %d rule errors",
        len(rules),
        len(data_files),
        len(result.transactions),
        result.matched,
        result.date_parse_errors,
        result.rule_errors,
    )
    return result


__all__ = ["ApplyResult", "apply_rules", "data_rows", "transactions_for_file"]
