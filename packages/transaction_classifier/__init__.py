"""Public interface for the ``transaction_classifier`` package.

This module exposes the package's models and core operations as the stable
import surface. There is no runtime logic here, only symbol re-exports.
"""

from .amounts import parse_amount
from .classify import classify, find_matching_rule
from .config import (
    ConfigValidation,
    export_column_mapping,
    export_config,
    import_config,
    parse_column_mapping,
    validate_config,
)
from .dates import format_date, parse_date
from .models import (
    INVALID_DATE,
    ColumnMapping,
    DataFile,
    DateFormat,
    Rule,
    RulesConfig,
    Transaction,
)
from .normalize import normalize_row
from .pipeline import ApplyResult, apply_rules
from .report import build_pivot, report_trends
from .rules import RuleEngine, RuleOutcome, evaluate, validate_rule, validate_rule_code
from .session import Workspace

__all__ = [
    # Models
    "ColumnMapping",
    "DataFile",
    "DateFormat",
    "INVALID_DATE",
    "Rule",
    "RulesConfig",
    "Transaction",
    # Parsing and normalization
    "format_date",
    "normalize_row",
    "parse_amount",
    "parse_date",
    # Rules and classification
    "RuleEngine",
    "RuleOutcome",
    "classify",
    "evaluate",
    "find_matching_rule",
    "validate_rule",
    "validate_rule_code",
    # Batch apply and reporting
    "ApplyResult",
    "apply_rules",
    "build_pivot",
    "report_trends",
    # Configuration interchange
    "ConfigValidation",
    "export_column_mapping",
    "export_config",
    "import_config",
    "parse_column_mapping",
    "validate_config",
    # Workspace
    "Workspace",
]
