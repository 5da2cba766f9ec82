"""Explicit workspace state: data files, the ordered rule list, derived results.

A ``Workspace`` is owned by its caller (the CLI builds one per command from
storage). All edits go through its methods; ``apply_rules`` recomputes the
transaction set from scratch and swaps it in as a whole.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from . import config as config_mod
from .logging_setup import get_logger
from .models import ColumnMapping, DataFile, Rule, Transaction
from .pipeline import ApplyResult, apply_rules
from .rules import RuleEngine, rule_time_limit_from_env

_logger = get_logger("transaction_classifier.session")

DEFAULT_RULE_CODE = 'let matches = [\n"coolblue",\n]\nreturn matches.some(w => row.description.includes(w));'


def new_rule_id() -> str:
    return f"rule-{uuid.uuid4().hex[:12]}"


def new_file_id() -> str:
    return f"file-{uuid.uuid4().hex[:12]}"


@dataclass
class Workspace:
    data_files: list[DataFile] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)
    transactions: tuple[Transaction, ...] = ()
    last_result: ApplyResult | None = None
    _engine: RuleEngine | None = field(default=None, repr=False, compare=False)

    # ---- helpers -------------------------------------------------------------

    @property
    def engine(self) -> RuleEngine:
        """JS context for edit-time syntax checks (never used to run rules)."""

        if self._engine is None:
            self._engine = RuleEngine(time_limit=rule_time_limit_from_env())
        return self._engine

    def _file_index(self, file_id: str) -> int:
        for i, f in enumerate(self.data_files):
            if f.id == file_id:
                return i
        raise KeyError(f"unknown data file: {file_id!r}")

    def _rule_index(self, rule_id: str) -> int:
        for i, r in enumerate(self.rules):
            if r.id == rule_id:
                return i
        raise KeyError(f"unknown rule: {rule_id!r}")

    def get_data_file(self, key: str) -> DataFile:
        """Look a data file up by id, falling back to its display name."""

        for f in self.data_files:
            if f.id == key:
                return f
        for f in self.data_files:
            if f.name == key:
                return f
        raise KeyError(f"unknown data file: {key!r}")

    def get_rule(self, rule_id: str) -> Rule:
        return self.rules[self._rule_index(rule_id)]

    # ---- data files ----------------------------------------------------------

    def add_data_file(self, data_file: DataFile) -> DataFile:
        self.data_files.append(data_file)
        _logger.info("added data file %s (%d rows)", data_file.name, len(data_file.parsed_rows))
        return data_file

    def remove_data_file(self, file_id: str) -> DataFile:
        return self.data_files.pop(self._file_index(file_id))

    def rename_data_file(self, file_id: str, name: str) -> DataFile:
        i = self._file_index(file_id)
        updated = self.data_files[i].model_copy(update={"name": name})
        self.data_files[i] = updated
        return updated

    def update_mapping(self, file_id: str, **changes: Any) -> ColumnMapping:
        """Apply partial mapping ``changes`` (snake_case keys) after validation."""

        i = self._file_index(file_id)
        mapping = self.data_files[i].column_mapping.with_changes(**changes)
        self.data_files[i] = self.data_files[i].model_copy(update={"column_mapping": mapping})
        return mapping

    def import_column_mapping(self, file_id: str, text: str) -> ColumnMapping:
        """Replace one file's mapping with the mapping document in ``text``."""

        i = self._file_index(file_id)
        mapping = config_mod.parse_column_mapping(text)
        self.data_files[i] = self.data_files[i].model_copy(update={"column_mapping": mapping})
        return mapping

    def export_column_mapping(self, file_id: str) -> str:
        return config_mod.export_column_mapping(self.get_data_file(file_id).column_mapping)

    # ---- rules ---------------------------------------------------------------

    def add_rule(self, *, category: str = "", subcategory: str = "") -> Rule:
        """Append a new rule with placeholder code (lowest precedence)."""

        rule = Rule(
            id=new_rule_id(),
            category=category,
            subcategory=subcategory,
            js_code=DEFAULT_RULE_CODE,
            is_valid=True,
        )
        self.rules.append(rule)
        return rule

    def update_rule(
        self,
        rule_id: str,
        *,
        category: str | None = None,
        subcategory: str | None = None,
        js_code: str | None = None,
    ) -> Rule:
        """Edit a rule in place; new code is syntax-checked immediately."""

        i = self._rule_index(rule_id)
        updates: dict[str, Any] = {}
        if category is not None:
            updates["category"] = category
        if subcategory is not None:
            updates["subcategory"] = subcategory
        if js_code is not None:
            message = self.engine.check_syntax(js_code)
            updates.update(js_code=js_code, is_valid=message is None, error=message)
        rule = self.rules[i].model_copy(update=updates)
        self.rules[i] = rule
        return rule

    def delete_rule(self, rule_id: str) -> Rule:
        return self.rules.pop(self._rule_index(rule_id))

    def move_rule(self, rule_id: str, position: int) -> list[Rule]:
        """Move a rule to ``position`` (0-based, clamped to the list bounds)."""

        rule = self.rules.pop(self._rule_index(rule_id))
        position = max(0, min(position, len(self.rules)))
        self.rules.insert(position, rule)
        return self.rules

    def reorder_rules(self, rule_ids: Sequence[str]) -> list[Rule]:
        """Replace the rule order with ``rule_ids``, which must be a permutation."""

        if sorted(rule_ids) != sorted(r.id for r in self.rules):
            raise ValueError("new order must contain every rule id exactly once")
        by_id = {r.id: r for r in self.rules}
        self.rules = [by_id[rid] for rid in rule_ids]
        return self.rules

    # ---- config --------------------------------------------------------------

    def export_config(self) -> str:
        return config_mod.export_config(self.rules)

    def import_config(self, text: str) -> list[Rule]:
        """Replace the whole rule list with the rules in ``text``."""

        self.rules = config_mod.import_config(text)
        return self.rules

    # ---- batch ---------------------------------------------------------------

    def apply_rules(self) -> ApplyResult:
        """Recompute all transactions on a fresh JS context.

        ``self.engine`` serves edit-time syntax checks only; rule code that
        writes JS globals must not leak from one apply into the next.
        """

        engine = RuleEngine(time_limit=rule_time_limit_from_env())
        result = apply_rules(tuple(self.data_files), tuple(self.rules), engine=engine)
        self.transactions = result.transactions
        self.last_result = result
        return result

    def reset(self) -> None:
        self.data_files = []
        self.rules = []
        self.transactions = ()
        self.last_result = None


__all__ = ["DEFAULT_RULE_CODE", "Workspace", "new_file_id", "new_rule_id"]
