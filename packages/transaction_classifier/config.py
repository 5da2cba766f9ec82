"""Rule configuration and column-mapping JSON interchange.

Rule config format::

    {"rules": [{"id": ..., "category": ..., "subcategory": ...,
                "jsCode": ..., "isValid": true}, ...]}

Importing a rule config replaces the whole rule list (never merges). A
column-mapping document applies to exactly one data file and is either
``{"columnMapping": {...}}`` or the bare mapping object.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .models import ColumnMapping, Rule, RulesConfig
from .rules import RuleEngine


def export_config(rules: Sequence[Rule]) -> str:
    """Serialize ``rules`` (in order) to the config JSON document."""

    payload = {"rules": [r.to_json_dict() for r in rules]}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e


def import_config(text: str) -> list[Rule]:
    """Parse a config document and return its rule list in order.

    Raises ``ValueError`` for invalid JSON, a missing/non-list ``rules`` key,
    or rule entries of the wrong shape.
    """

    data = _load_json(text)
    if not isinstance(data, dict) or "rules" not in data:
        raise ValueError('Config must have "rules" property')
    if not isinstance(data["rules"], list):
        raise ValueError("rules must be an array")
    try:
        return list(RulesConfig.model_validate(data).rules)
    except ValidationError as e:
        raise ValueError(f"Invalid rule entry: {e}") from e


@dataclass(slots=True)
class ConfigValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_config(text: str, engine: RuleEngine | None = None) -> ConfigValidation:
    """Check a config document before import without changing any state.

    Missing ids, categories or code are warnings; malformed JSON, a bad
    ``rules`` property and rule code that fails to compile are errors.
    """

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return ConfigValidation(False, [f"Invalid JSON: {e}"], [])

    errors: list[str] = []
    warnings: list[str] = []

    rules = data.get("rules") if isinstance(data, dict) else None
    if rules is None:
        errors.append('Config must have "rules" property')
    elif not isinstance(rules, list):
        errors.append("rules must be an array")
    else:
        engine = engine or RuleEngine()
        for n, rule in enumerate(rules, start=1):
            if not isinstance(rule, dict):
                errors.append(f"Rule {n}: must be an object")
                continue
            if not rule.get("id"):
                warnings.append(f"Rule {n}: missing id")
            if not rule.get("category"):
                warnings.append(f"Rule {n}: missing category")
            code = rule.get("jsCode")
            if not code:
                warnings.append(f"Rule {n}: missing jsCode")
                continue
            if not isinstance(code, str):
                errors.append(f"Rule {n}: jsCode must be a string")
                continue
            message = engine.check_syntax(code)
            if message is not None:
                label = rule.get("category") or "unnamed"
                errors.append(f"Rule {n} ({label}): Invalid JavaScript - {message}")

    return ConfigValidation(not errors, errors, warnings)


def export_column_mapping(mapping: ColumnMapping) -> str:
    return json.dumps({"columnMapping": mapping.to_json_dict()}, indent=2, ensure_ascii=False)


def parse_column_mapping(text: str) -> ColumnMapping:
    """Parse a column-mapping document; raises ``ValueError`` when malformed."""

    data = _load_json(text)
    if isinstance(data, dict) and "columnMapping" in data:
        data = data["columnMapping"]
    if not isinstance(data, dict):
        raise ValueError("column mapping must be a JSON object")
    try:
        return ColumnMapping.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid column mapping: {e}") from e


__all__ = [
    "ConfigValidation",
    "export_column_mapping",
    "export_config",
    "import_config",
    "parse_column_mapping",
    "validate_config",
]
