from datetime import date

import pytest

from transaction_classifier.models import ColumnMapping, Rule, Transaction
from transaction_classifier.normalize import normalize_row
from transaction_classifier.rules import (
    CompiledPredicate,
    CompileFailure,
    RuleEngine,
    RuleOutcome,
    evaluate,
    rule_time_limit_from_env,
    validate_rule,
    validate_rule_code,
)

MAPPING = ColumnMapping(
    date_index=0,
    amount_index=1,
    description_indices=[2],
    column_names=["Date", "Amount", "Payee"],
)


@pytest.fixture
def engine() -> RuleEngine:
    return RuleEngine()


@pytest.fixture
def coffee() -> Transaction:
    return normalize_row(["2024-01-15", "-50.00", "Coffee Shop"], MAPPING, "jan.csv")


def _rule(code: str, *, valid: bool = True) -> Rule:
    return Rule(id="r", category="Food", subcategory="Coffee", js_code=code, is_valid=valid)


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ('return row.description.includes("Coffee");', RuleOutcome.MATCH),
        ('return row.description.includes("Tea");', RuleOutcome.NO_MATCH),
        ("return row.amount < 0 && row.filename === 'jan.csv';", RuleOutcome.MATCH),
        ("return row.date.getFullYear() === 2024 && row.date.getMonth() === 0;", RuleOutcome.MATCH),
        ("return row.rawData.date instanceof Date;", RuleOutcome.MATCH),
        ('return row.rawData.Payee === "Coffee Shop";', RuleOutcome.MATCH),
        ('return row.dateString === "2024-01-15" && row.day === 15;', RuleOutcome.MATCH),
        ('return "yes";', RuleOutcome.MATCH),
        ("return 0;", RuleOutcome.NO_MATCH),
        ("var x = 1;", RuleOutcome.NO_MATCH),
    ],
)
def test_evaluate_outcomes(
    code: str, expected: RuleOutcome, coffee: Transaction, engine: RuleEngine
) -> None:
    assert evaluate(_rule(code), coffee, engine) is expected


def test_runtime_errors_are_contained(coffee: Transaction, engine: RuleEngine) -> None:
    assert evaluate(_rule('throw new Error("boom");'), coffee, engine) is RuleOutcome.ERROR
    assert evaluate(_rule("return missingName.length > 0;"), coffee, engine) is RuleOutcome.ERROR
    assert engine.error_count == 2


def test_syntax_error_in_code_flagged_valid_is_an_error(
    coffee: Transaction, engine: RuleEngine
) -> None:
    assert evaluate(_rule("return (;"), coffee, engine) is RuleOutcome.ERROR
    assert engine.error_count == 1


def test_invalid_rules_are_never_run(coffee: Transaction, engine: RuleEngine) -> None:
    rule = _rule('throw new Error("never");', valid=False)
    assert evaluate(rule, coffee, engine) is RuleOutcome.NO_MATCH
    assert evaluate(_rule(""), coffee, engine) is RuleOutcome.NO_MATCH
    assert engine.error_count == 0


def test_rules_cannot_mutate_the_transaction(coffee: Transaction, engine: RuleEngine) -> None:
    code = 'row.description = "changed"; row.amount = 1; return false;'
    assert evaluate(_rule(code), coffee, engine) is RuleOutcome.NO_MATCH
    assert coffee.description == "Coffee Shop"
    assert evaluate(_rule('return row.description === "Coffee Shop";'), coffee, engine) is (
        RuleOutcome.MATCH
    )


def test_invalid_date_row_still_gets_a_date(engine: RuleEngine) -> None:
    tx = normalize_row(["garbage", "1", "x"], MAPPING, "f.csv", today=date(2030, 6, 1))
    code = 'return row.year === 0 && row.dateString === "Invalid Date" && row.date instanceof Date;'
    assert evaluate(_rule(code), tx, engine) is RuleOutcome.MATCH


def test_time_limit_turns_runaway_rules_into_errors(coffee: Transaction) -> None:
    engine = RuleEngine(time_limit=0.05)
    assert evaluate(_rule("while (true) {}"), coffee, engine) is RuleOutcome.ERROR
    assert evaluate(_rule("return true;"), coffee, engine) is RuleOutcome.MATCH


def test_compile_is_cached_and_separate_from_running(engine: RuleEngine) -> None:
    ok = engine.compile("return true;")
    assert isinstance(ok, CompiledPredicate)
    assert engine.compile("return true;") is ok
    bad = engine.compile("return (;")
    assert isinstance(bad, CompileFailure)
    assert "SyntaxError" in bad.message


def test_validate_rule_code(engine: RuleEngine) -> None:
    assert validate_rule_code("return row.amount > 0;", engine) is None
    message = validate_rule_code("return row.amount >;", engine)
    assert message is not None and "SyntaxError" in message


def test_validate_rule_recomputes_flags(engine: RuleEngine) -> None:
    fixed = validate_rule(_rule("return true;", valid=False), engine)
    assert fixed.is_valid and fixed.error is None
    broken = validate_rule(_rule("return {;"), engine)
    assert not broken.is_valid and broken.error


def test_time_limit_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    assert rule_time_limit_from_env() is None
    monkeypatch.setenv("TXN_CLASSIFIER_RULE_TIME_LIMIT", "0.5")
    assert rule_time_limit_from_env() == 0.5
    monkeypatch.setenv("TXN_CLASSIFIER_RULE_TIME_LIMIT", "soon")
    assert rule_time_limit_from_env() is None
