"""First-match-wins classification over an ordered rule list."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence

from .models import Rule, Transaction
from .rules import (
    RuleEngine,
    RuleOutcome,
    evaluate,
    is_evaluable,
    rule_time_limit_from_env,
    transaction_payload,
)


def find_matching_rule(
    transaction: Transaction,
    rules: Sequence[Rule],
    engine: RuleEngine,
) -> Rule | None:
    """Return the earliest rule in ``rules`` that matches, or ``None``.

    Rules are consulted strictly in list order and iteration stops at the
    first match. Skipped rules (invalid/empty) and rules that error count as
    no match.
    """

    payload: str | None = None
    for rule in rules:
        if not is_evaluable(rule):
            continue
        if payload is None:
            payload = transaction_payload(transaction)
        if evaluate(rule, transaction, engine, payload=payload) is RuleOutcome.MATCH:
            return rule
    return None


def classify(
    transaction: Transaction,
    rules: Sequence[Rule],
    engine: RuleEngine | None = None,
) -> Transaction:
    """Return ``transaction`` labelled by the first matching rule.

    When no rule matches the transaction is returned unchanged (unmatched),
    with ``category`` and ``subcategory`` both ``None``.
    """

    if engine is None:
        engine = RuleEngine(time_limit=rule_time_limit_from_env())
    rule = find_matching_rule(transaction, rules, engine)
    if rule is None:
        return transaction
    return dataclasses.replace(transaction, category=rule.category, subcategory=rule.subcategory)


__all__ = ["classify", "find_matching_rule"]
