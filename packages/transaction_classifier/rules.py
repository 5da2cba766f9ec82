"""Rule compilation and evaluation on an embedded JavaScript engine.

Rule predicates are JavaScript function bodies over a single parameter
``row`` (the shape of the configuration format, where the source lives under
``jsCode``). They run inside a QuickJS context via the ``quickjs`` package.

Trust boundary
--------------
Rule code is trusted user input. The engine gives rules no host bindings (no
file, network or process access is exposed), but it is not a hardened
sandbox. The only resource control is an optional per-invocation CPU time
limit; an invocation that exceeds it fails like any other execution error.

Compilation and execution are separate, independently failable steps:
``RuleEngine.compile`` yields a ``CompiledPredicate`` or a ``CompileFailure``,
and ``evaluate`` converts any failure into ``RuleOutcome.ERROR`` (treated as
no match by the classifier).
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

import quickjs

from .logging_setup import get_logger
from .models import Rule, Transaction

_logger = get_logger("transaction_classifier.rules")

# Rebuilds JS-native values (``Date``) on the decoded row before the predicate
# sees it. ``rawData.date`` aliases ``row.date`` only when it was derived from
# a mapped date column.
_PRELUDE = r"""
function __txnHydrate(payload) {
  var row = payload.row;
  var d = row.year > 0 ? new Date(row.year, row.month - 1, row.day) : new Date();
  row.date = d;
  if (payload.rawDate) {
    row.rawData.date = d;
  }
  return row;
}
"""

_WRAPPER_HEAD = (
    "(function (__payload) {\n"
    "  var row = __txnHydrate(JSON.parse(__payload));\n"
    "  return !!(function (row) {\n"
)
_WRAPPER_TAIL = "\n  })(row);\n})"


class RuleOutcome(Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CompiledPredicate:
    source: str
    fn: Any


@dataclass(frozen=True, slots=True)
class CompileFailure:
    source: str
    message: str


def rule_time_limit_from_env() -> float | None:
    """Read ``TXN_CLASSIFIER_RULE_TIME_LIMIT`` (seconds); unset/invalid → None."""

    raw = os.getenv("TXN_CLASSIFIER_RULE_TIME_LIMIT")
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        _logger.warning("ignoring invalid TXN_CLASSIFIER_RULE_TIME_LIMIT=%r", raw)
        return None
    return value if value > 0 else None


class RuleEngine:
    """A QuickJS context plus a per-source cache of compiled predicates.

    One engine serves a whole batch; it is not thread-safe. ``error_count``
    accumulates execution/compilation failures seen by ``evaluate``.
    """

    def __init__(self, *, time_limit: float | None = None) -> None:
        self._ctx = quickjs.Context()
        if time_limit is not None and time_limit > 0:
            self._ctx.set_time_limit(time_limit)
        self._ctx.eval(_PRELUDE)
        self._cache: dict[str, CompiledPredicate | CompileFailure] = {}
        self.error_count = 0

    def compile(self, source: str) -> CompiledPredicate | CompileFailure:
        """Compile ``source`` without running it; results are cached by source."""

        cached = self._cache.get(source)
        if cached is not None:
            return cached
        try:
            fn = self._ctx.eval(_WRAPPER_HEAD + source + _WRAPPER_TAIL)
        except quickjs.JSException as e:
            result: CompiledPredicate | CompileFailure = CompileFailure(source, _diagnostic(e))
        else:
            result = CompiledPredicate(source, fn)
        self._cache[source] = result
        return result

    def check_syntax(self, source: str) -> str | None:
        """Return a diagnostic for invalid ``source``, or ``None`` when it compiles."""

        compiled = self.compile(source)
        if isinstance(compiled, CompileFailure):
            return compiled.message
        return None

    def run(self, compiled: CompiledPredicate, payload: str) -> bool:
        """Invoke a compiled predicate on a serialized row; errors propagate."""

        return bool(compiled.fn(payload))


def _diagnostic(exc: BaseException) -> str:
    text = str(exc).strip()
    # QuickJS appends a stack trace after the first line.
    return text.splitlines()[0] if text else exc.__class__.__name__


def _payload_value(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def transaction_payload(tx: Transaction) -> str:
    """Serialize ``tx`` into the JSON document handed to predicates."""

    row = {
        "date": tx.date.isoformat(),
        "dateString": tx.date_string,
        "year": tx.year,
        "month": tx.month,
        "day": tx.day,
        "amount": tx.amount,
        "description": tx.description,
        "filename": tx.filename,
        "rawData": {k: _payload_value(v) for k, v in tx.raw_data.items()},
    }
    raw_date = isinstance(tx.raw_data.get("date"), date)
    return json.dumps({"row": row, "rawDate": raw_date}, ensure_ascii=False)


def is_evaluable(rule: Rule) -> bool:
    """Rules flagged invalid or with empty code are skipped, never compiled."""

    return rule.is_valid and bool(rule.js_code)


def evaluate(
    rule: Rule,
    transaction: Transaction,
    engine: RuleEngine | None = None,
    *,
    payload: str | None = None,
) -> RuleOutcome:
    """Run one rule against one transaction.

    ``payload`` may be supplied to reuse one serialization across many rules.
    Failures never propagate: they are logged at DEBUG and reported as
    ``RuleOutcome.ERROR``.
    """

    if not is_evaluable(rule):
        return RuleOutcome.NO_MATCH

    if engine is None:
        engine = RuleEngine(time_limit=rule_time_limit_from_env())

    compiled = engine.compile(rule.js_code)
    if isinstance(compiled, CompileFailure):
        engine.error_count += 1
        _logger.debug("rule %s failed to compile: %s", rule.id, compiled.message)
        return RuleOutcome.ERROR

    try:
        matched = engine.run(compiled, payload or transaction_payload(transaction))
    except Exception as e:  # noqa: BLE001 - any rule failure degrades to no match
        engine.error_count += 1
        _logger.debug("rule %s raised during evaluation: %s", rule.id, _diagnostic(e))
        return RuleOutcome.ERROR
    return RuleOutcome.MATCH if matched else RuleOutcome.NO_MATCH


def validate_rule_code(source: str, engine: RuleEngine | None = None) -> str | None:
    """Edit-time syntax check. Returns the diagnostic, or ``None`` if valid."""

    return (engine or RuleEngine()).check_syntax(source)


def validate_rule(rule: Rule, engine: RuleEngine | None = None) -> Rule:
    """Return ``rule`` with ``is_valid``/``error`` recomputed from its code."""

    message = validate_rule_code(rule.js_code, engine)
    return rule.model_copy(update={"is_valid": message is None, "error": message})


__all__ = [
    "CompileFailure",
    "CompiledPredicate",
    "RuleEngine",
    "RuleOutcome",
    "evaluate",
    "is_evaluable",
    "rule_time_limit_from_env",
    "transaction_payload",
    "validate_rule",
    "validate_rule_code",
]
