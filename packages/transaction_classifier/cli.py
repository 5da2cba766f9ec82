# ruff: noqa: I001
"""CLI for the ``transaction_classifier`` package.

Each ``cmd_*`` handler loads the workspace from storage, performs one edit or
query, writes the workspace back and returns a process exit code. Errors are
written to stderr as ``Error: ...`` and yield exit code 1. The Typer
commands at the bottom are thin wrappers that translate options into handler
arguments.

Environment variables are loaded from a local ``.env`` (never overriding the
real environment) before any command runs. The workspace database is taken
from ``--database-url``, then ``DATABASE_URL``, then a SQLite file under
``./.txn_classifier/``.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from db.client import ensure_schema, session_scope
from .logging_setup import configure_logging, get_logger
from .models import DateFormat, Rule
from .persistence import clear_workspace, load_workspace, save_workspace
from .session import Workspace

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./.txn_classifier/workspace.db"

_logger = get_logger("transaction_classifier.cli")


# ---- Small module-level helpers used by CLI commands -------------------------


def resolve_cli_database_url(override: str | None = None) -> str:
    return override or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


@contextmanager
def open_workspace(database_url: str | None, *, save: bool = True) -> Iterator[Workspace]:
    """Load the stored workspace, yield it, then persist it in one transaction."""

    url = resolve_cli_database_url(database_url)
    ensure_schema(database_url=url)
    with session_scope(database_url=url) as session:
        ws = load_workspace(session)
        yield ws
        if save:
            save_workspace(session, ws)


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _key_error_text(e: KeyError) -> str:
    return str(e.args[0]) if e.args else "not found"


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8-sig")


def _write_or_print(text: str, output: Path | None) -> None:
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")


def _rule_status(rule: Rule) -> str:
    if rule.is_valid:
        return "valid"
    return f"INVALID: {rule.error}" if rule.error else "INVALID"


# ---- Data files ---------------------------------------------------------------


def cmd_add_file(
    path: str,
    *,
    name: str | None = None,
    has_headers: bool = False,
    delimiter: str | None = None,
    database_url: str | None = None,
) -> int:
    """Import a CSV/TXT/TAB export or .xlsx workbook as a new data file."""

    from .ingest import load_data_file

    try:
        data_file = load_data_file(path, name=name, has_headers=has_headers, delimiter=delimiter)
    except FileNotFoundError:
        return _error(f"File not found: {path}")
    except PermissionError:
        return _error(f"Permission denied: {path}")
    except UnicodeDecodeError as e:
        return _error(f"File is not valid UTF-8 text: {path} ({e.reason})")
    except ValueError as e:
        return _error(str(e))

    try:
        with open_workspace(database_url) as ws:
            ws.add_data_file(data_file)
    except Exception as e:
        return _error(f"failed to save workspace: {e}")

    print(f"{data_file.id}\t{data_file.name}\t{len(data_file.parsed_rows)} rows")
    return 0


def cmd_list_files(*, database_url: str | None = None) -> int:
    try:
        with open_workspace(database_url, save=False) as ws:
            files = list(ws.data_files)
    except Exception as e:
        return _error(f"failed to load workspace: {e}")

    if not files:
        print("No data files.")
        return 0
    for f in files:
        m = f.column_mapping
        desc = ",".join(str(i) for i in m.description_indices) or "-"
        print(
            f"{f.id}\t{f.name}\t{len(f.parsed_rows)} rows\t"
            f"date={m.date_index if m.date_index is not None else '-'} ({m.date_format})\t"
            f"amount={m.amount_index if m.amount_index is not None else '-'} "
            f"({m.decimal_separator!r})\tdescription={desc}\t"
            f"headers={'yes' if m.has_headers else 'no'}"
        )
    return 0


def cmd_remove_file(file: str, *, database_url: str | None = None) -> int:
    try:
        with open_workspace(database_url) as ws:
            removed = ws.remove_data_file(ws.get_data_file(file).id)
    except KeyError as e:
        return _error(_key_error_text(e))
    except Exception as e:
        return _error(f"failed to remove data file: {e}")
    print(f"Removed {removed.name}")
    return 0


def cmd_rename_file(file: str, new_name: str, *, database_url: str | None = None) -> int:
    if not new_name.strip():
        return _error("new name must not be empty")
    try:
        with open_workspace(database_url) as ws:
            updated = ws.rename_data_file(ws.get_data_file(file).id, new_name)
    except KeyError as e:
        return _error(_key_error_text(e))
    except Exception as e:
        return _error(f"failed to rename data file: {e}")
    print(f"Renamed to {updated.name}")
    return 0


def cmd_map_columns(
    file: str,
    *,
    changes: dict[str, Any],
    database_url: str | None = None,
) -> int:
    """Apply partial column-mapping ``changes`` to one data file."""

    if not changes:
        return _error("no mapping changes given")
    try:
        with open_workspace(database_url) as ws:
            mapping = ws.update_mapping(ws.get_data_file(file).id, **changes)
    except KeyError as e:
        return _error(_key_error_text(e))
    except ValueError as e:
        return _error(f"invalid column mapping: {e}")
    except Exception as e:
        return _error(f"failed to update column mapping: {e}")
    print(json.dumps(mapping.to_json_dict(), ensure_ascii=False))
    return 0


def cmd_load_mapping(file: str, mapping_path: str, *, database_url: str | None = None) -> int:
    try:
        text = _read_text(Path(mapping_path))
    except OSError as e:
        return _error(f"cannot read {mapping_path}: {e}")
    try:
        with open_workspace(database_url) as ws:
            data_file = ws.get_data_file(file)
            ws.import_column_mapping(data_file.id, text)
    except KeyError as e:
        return _error(_key_error_text(e))
    except ValueError as e:
        return _error(str(e))
    except Exception as e:
        return _error(f"failed to import column mapping: {e}")
    print(f"Column mapping loaded for {data_file.name}")
    return 0


def cmd_export_mapping(
    file: str, *, output: str | None = None, database_url: str | None = None
) -> int:
    try:
        with open_workspace(database_url, save=False) as ws:
            text = ws.export_column_mapping(file)
    except KeyError as e:
        return _error(_key_error_text(e))
    except Exception as e:
        return _error(f"failed to export column mapping: {e}")
    try:
        _write_or_print(text, Path(output) if output else None)
    except OSError as e:
        return _error(f"cannot write {output}: {e}")
    return 0


# ---- Rules --------------------------------------------------------------------


def _resolve_code(code: str | None, code_file: str | None) -> str | None:
    if code is not None and code_file is not None:
        raise ValueError("give either --code or --code-file, not both")
    if code_file is not None:
        return _read_text(Path(code_file))
    return code


def cmd_add_rule(
    *,
    category: str = "",
    subcategory: str = "",
    code: str | None = None,
    code_file: str | None = None,
    database_url: str | None = None,
) -> int:
    """Append a rule; without code it gets the placeholder predicate."""

    try:
        source = _resolve_code(code, code_file)
    except (OSError, ValueError) as e:
        return _error(str(e))
    try:
        with open_workspace(database_url) as ws:
            rule = ws.add_rule(category=category, subcategory=subcategory)
            if source is not None:
                rule = ws.update_rule(rule.id, js_code=source)
    except Exception as e:
        return _error(f"failed to add rule: {e}")
    print(f"{rule.id}\t{_rule_status(rule)}")
    return 0


def cmd_edit_rule(
    rule_id: str,
    *,
    category: str | None = None,
    subcategory: str | None = None,
    code: str | None = None,
    code_file: str | None = None,
    database_url: str | None = None,
) -> int:
    try:
        source = _resolve_code(code, code_file)
    except (OSError, ValueError) as e:
        return _error(str(e))
    try:
        with open_workspace(database_url) as ws:
            rule = ws.update_rule(
                rule_id, category=category, subcategory=subcategory, js_code=source
            )
    except KeyError as e:
        return _error(_key_error_text(e))
    except Exception as e:
        return _error(f"failed to edit rule: {e}")
    print(f"{rule.id}\t{_rule_status(rule)}")
    return 0


def cmd_delete_rule(rule_id: str, *, database_url: str | None = None) -> int:
    try:
        with open_workspace(database_url) as ws:
            ws.delete_rule(rule_id)
    except KeyError as e:
        return _error(_key_error_text(e))
    except Exception as e:
        return _error(f"failed to delete rule: {e}")
    print(f"Deleted {rule_id}")
    return 0


def cmd_move_rule(rule_id: str, position: int, *, database_url: str | None = None) -> int:
    """Move a rule to 1-based ``position`` (clamped to the list)."""

    try:
        with open_workspace(database_url) as ws:
            rules = ws.move_rule(rule_id, position - 1)
            new_pos = next(i for i, r in enumerate(rules, start=1) if r.id == rule_id)
    except KeyError as e:
        return _error(_key_error_text(e))
    except Exception as e:
        return _error(f"failed to move rule: {e}")
    print(f"{rule_id} is now rule {new_pos}")
    return 0


def cmd_list_rules(*, show_code: bool = False, database_url: str | None = None) -> int:
    try:
        with open_workspace(database_url, save=False) as ws:
            rules = list(ws.rules)
    except Exception as e:
        return _error(f"failed to load workspace: {e}")

    if not rules:
        print("No rules.")
        return 0
    for pos, rule in enumerate(rules, start=1):
        label = f"{rule.category or '(no category)'} / {rule.subcategory or '-'}"
        print(f"{pos}. {rule.id}\t{label}\t{_rule_status(rule)}")
        if show_code:
            for line in rule.js_code.splitlines():
                print(f"    {line}")
    return 0


# ---- Rule configuration -------------------------------------------------------


def cmd_export_config(*, output: str | None = None, database_url: str | None = None) -> int:
    try:
        with open_workspace(database_url, save=False) as ws:
            text = ws.export_config()
    except Exception as e:
        return _error(f"failed to export config: {e}")
    try:
        _write_or_print(text, Path(output) if output else None)
    except OSError as e:
        return _error(f"cannot write {output}: {e}")
    return 0


def cmd_import_config(config_path: str, *, database_url: str | None = None) -> int:
    """Replace the whole rule list with the rules in ``config_path``."""

    try:
        text = _read_text(Path(config_path))
    except OSError as e:
        return _error(f"cannot read {config_path}: {e}")
    try:
        with open_workspace(database_url) as ws:
            rules = ws.import_config(text)
    except ValueError as e:
        return _error(f"invalid config: {e}")
    except Exception as e:
        return _error(f"failed to import config: {e}")
    print(f"Imported {len(rules)} rules")
    return 0


def cmd_validate_config(config_path: str) -> int:
    """Report errors and warnings for a config file without importing it."""

    from .config import validate_config

    try:
        text = _read_text(Path(config_path))
    except OSError as e:
        return _error(f"cannot read {config_path}: {e}")

    result = validate_config(text)
    for message in result.errors:
        print(f"error: {message}")
    for message in result.warnings:
        print(f"warning: {message}")
    if result.valid:
        print("Config is valid")
        return 0
    return 1


# ---- Batch apply and reporting ----------------------------------------------


def cmd_apply(
    *,
    as_json: bool = False,
    list_transactions: bool = False,
    database_url: str | None = None,
) -> int:
    """Recompute every transaction from the stored files and rules."""

    try:
        with open_workspace(database_url, save=False) as ws:
            result = ws.apply_rules()
    except Exception as e:
        return _error(f"apply failed: {e}")

    if as_json:
        print(json.dumps([t.to_dict() for t in result.transactions], indent=2, ensure_ascii=False))
        return 0

    if list_transactions:
        for t in result.transactions:
            label = f"{t.category} / {t.subcategory}" if t.is_classified else "-"
            print(f"{t.date_string}\t{t.amount:.2f}\t{label}\t{t.description}")
    print(
        f"Transactions: {len(result.transactions)} "
        f"(matched {result.matched}, unmatched {result.unmatched})"
    )
    if result.date_parse_errors:
        print(f"Date parse errors: {result.date_parse_errors}")
    if result.rule_errors:
        print(f"Rule errors: {result.rule_errors}")
    return 0


def cmd_report(*, database_url: str | None = None) -> int:
    from .report import report_trends

    try:
        with open_workspace(database_url, save=False) as ws:
            result = ws.apply_rules()
    except Exception as e:
        return _error(f"apply failed: {e}")
    print(report_trends(result.transactions))
    return 0


def cmd_reset(*, database_url: str | None = None) -> int:
    """Delete every stored data file and rule."""

    url = resolve_cli_database_url(database_url)
    try:
        ensure_schema(database_url=url)
        with session_scope(database_url=url) as session:
            removed = clear_workspace(session)
    except Exception as e:
        return _error(f"reset failed: {e}")
    _logger.info("cleared %d workspace entries", removed)
    print("Workspace cleared")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Classify bank transactions from CSV/XLSX exports with ordered, user-authored "
        "JavaScript rules. Loads settings from a local .env before running."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used in ``Annotated`` below.
OUTPUT_OPTION: OptionInfo = typer.Option(
    "--output", "-o", help="Write to this file instead of stdout."
)
CODE_OPTION: OptionInfo = typer.Option("--code", help="Rule body (JavaScript).")
CODE_FILE_OPTION: OptionInfo = typer.Option(
    "--code-file", help="Read the rule body from this file."
)


def _db(ctx: typer.Context) -> str | None:
    obj = ctx.obj or {}
    return obj.get("database_url")


@app.command("add-file")
def add_file_cmd(
    ctx: typer.Context,
    path: Annotated[
        Path, typer.Argument(help="CSV/TXT/TAB export or .xlsx workbook to import.")
    ],
    *,
    name: Annotated[str | None, typer.Option(help="Display name (defaults to file name).")] = None,
    has_headers: Annotated[
        bool, typer.Option("--has-headers", help="Treat the first row as column headers.")
    ] = False,
    delimiter: Annotated[
        str | None, typer.Option(help="Field delimiter (sniffed when omitted).")
    ] = None,
) -> None:
    """Import a data file."""

    raise typer.Exit(
        cmd_add_file(
            str(path),
            name=name,
            has_headers=has_headers,
            delimiter=delimiter,
            database_url=_db(ctx),
        )
    )


@app.command("list-files")
def list_files_cmd(ctx: typer.Context) -> None:
    """List data files and their column mappings."""

    raise typer.Exit(cmd_list_files(database_url=_db(ctx)))


@app.command("remove-file")
def remove_file_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="Data file id or name.")],
) -> None:
    """Remove a data file."""

    raise typer.Exit(cmd_remove_file(file, database_url=_db(ctx)))


@app.command("rename-file")
def rename_file_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="Data file id or name.")],
    new_name: Annotated[str, typer.Argument(help="New display name.")],
) -> None:
    """Rename a data file."""

    raise typer.Exit(cmd_rename_file(file, new_name, database_url=_db(ctx)))


@app.command("map-columns")
def map_columns_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="Data file id or name.")],
    *,
    date_index: Annotated[int | None, typer.Option(help="0-based date column.")] = None,
    date_format: Annotated[DateFormat | None, typer.Option(help="Date layout.")] = None,
    amount_index: Annotated[int | None, typer.Option(help="0-based amount column.")] = None,
    decimal_separator: Annotated[
        str | None, typer.Option(help='Decimal separator: "." or ",".')
    ] = None,
    description_index: Annotated[
        list[int] | None,
        typer.Option(
            "--description-index",
            "-d",
            help="Description column (repeat for several, in order).",
        ),
    ] = None,
    has_headers: Annotated[
        bool | None,
        typer.Option("--has-headers/--no-headers", help="Whether the first row is a header."),
    ] = None,
    clear_date: Annotated[bool, typer.Option(help="Unmap the date column.")] = False,
    clear_amount: Annotated[bool, typer.Option(help="Unmap the amount column.")] = False,
) -> None:
    """Change which columns carry date, amount and description."""

    changes: dict[str, Any] = {}
    if date_index is not None:
        changes["date_index"] = date_index
    if clear_date:
        changes["date_index"] = None
    if date_format is not None:
        changes["date_format"] = date_format
    if amount_index is not None:
        changes["amount_index"] = amount_index
    if clear_amount:
        changes["amount_index"] = None
    if decimal_separator is not None:
        changes["decimal_separator"] = decimal_separator
    if description_index:
        changes["description_indices"] = list(description_index)
    if has_headers is not None:
        changes["has_headers"] = has_headers
    raise typer.Exit(cmd_map_columns(file, changes=changes, database_url=_db(ctx)))


@app.command("load-mapping")
def load_mapping_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="Data file id or name.")],
    mapping_path: Annotated[Path, typer.Argument(help="Column-mapping JSON document.")],
) -> None:
    """Replace a data file's column mapping from a JSON document."""

    raise typer.Exit(cmd_load_mapping(file, str(mapping_path), database_url=_db(ctx)))


@app.command("export-mapping")
def export_mapping_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="Data file id or name.")],
    output: Annotated[Path | None, OUTPUT_OPTION] = None,
) -> None:
    """Export a data file's column mapping as JSON."""

    raise typer.Exit(
        cmd_export_mapping(file, output=str(output) if output else None, database_url=_db(ctx))
    )


@app.command("add-rule")
def add_rule_cmd(
    ctx: typer.Context,
    *,
    category: Annotated[str, typer.Option(help="Category assigned on match.")] = "",
    subcategory: Annotated[str, typer.Option(help="Subcategory assigned on match.")] = "",
    code: Annotated[str | None, CODE_OPTION] = None,
    code_file: Annotated[Path | None, CODE_FILE_OPTION] = None,
) -> None:
    """Append a rule (lowest precedence)."""

    raise typer.Exit(
        cmd_add_rule(
            category=category,
            subcategory=subcategory,
            code=code,
            code_file=str(code_file) if code_file else None,
            database_url=_db(ctx),
        )
    )


@app.command("edit-rule")
def edit_rule_cmd(
    ctx: typer.Context,
    rule_id: Annotated[str, typer.Argument(help="Rule id.")],
    *,
    category: Annotated[str | None, typer.Option(help="New category.")] = None,
    subcategory: Annotated[str | None, typer.Option(help="New subcategory.")] = None,
    code: Annotated[str | None, CODE_OPTION] = None,
    code_file: Annotated[Path | None, CODE_FILE_OPTION] = None,
) -> None:
    """Edit a rule; new code is syntax-checked."""

    raise typer.Exit(
        cmd_edit_rule(
            rule_id,
            category=category,
            subcategory=subcategory,
            code=code,
            code_file=str(code_file) if code_file else None,
            database_url=_db(ctx),
        )
    )


@app.command("delete-rule")
def delete_rule_cmd(
    ctx: typer.Context,
    rule_id: Annotated[str, typer.Argument(help="Rule id.")],
) -> None:
    """Delete a rule."""

    raise typer.Exit(cmd_delete_rule(rule_id, database_url=_db(ctx)))


@app.command("move-rule")
def move_rule_cmd(
    ctx: typer.Context,
    rule_id: Annotated[str, typer.Argument(help="Rule id.")],
    position: Annotated[int, typer.Argument(help="New 1-based position.")],
) -> None:
    """Move a rule to a new position in the precedence order."""

    raise typer.Exit(cmd_move_rule(rule_id, position, database_url=_db(ctx)))


@app.command("list-rules")
def list_rules_cmd(
    ctx: typer.Context,
    *,
    show_code: Annotated[bool, typer.Option("--show-code", help="Print rule bodies.")] = False,
) -> None:
    """List rules in precedence order."""

    raise typer.Exit(cmd_list_rules(show_code=show_code, database_url=_db(ctx)))


@app.command("export-config")
def export_config_cmd(
    ctx: typer.Context,
    output: Annotated[Path | None, OUTPUT_OPTION] = None,
) -> None:
    """Export the rule configuration as JSON."""

    raise typer.Exit(
        cmd_export_config(output=str(output) if output else None, database_url=_db(ctx))
    )


@app.command("import-config")
def import_config_cmd(
    ctx: typer.Context,
    config_path: Annotated[Path, typer.Argument(help="Rule configuration JSON.")],
) -> None:
    """Replace all rules with the rules from a JSON configuration."""

    raise typer.Exit(cmd_import_config(str(config_path), database_url=_db(ctx)))


@app.command("validate-config")
def validate_config_cmd(
    config_path: Annotated[Path, typer.Argument(help="Rule configuration JSON.")],
) -> None:
    """Check a rule configuration without importing it."""

    raise typer.Exit(cmd_validate_config(str(config_path)))


@app.command("apply")
def apply_cmd(
    ctx: typer.Context,
    *,
    as_json: Annotated[bool, typer.Option("--json", help="Print transactions as JSON.")] = False,
    list_transactions: Annotated[
        bool, typer.Option("--list", help="Print one line per transaction.")
    ] = False,
) -> None:
    """Classify every row of every data file with the current rules."""

    raise typer.Exit(
        cmd_apply(as_json=as_json, list_transactions=list_transactions, database_url=_db(ctx))
    )


@app.command("report")
def report_cmd(ctx: typer.Context) -> None:
    """Print category totals per month."""

    raise typer.Exit(cmd_report(database_url=_db(ctx)))


@app.command("reset")
def reset_cmd(
    ctx: typer.Context,
    *,
    yes: Annotated[bool, typer.Option("--yes", help="Do not ask for confirmation.")] = False,
) -> None:
    """Delete all data files and rules."""

    if not yes:
        typer.confirm("Delete all data files and rules?", abort=True)
    raise typer.Exit(cmd_reset(database_url=_db(ctx)))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    database_url: Annotated[
        str | None,
        typer.Option(help="Override DATABASE_URL (falls back to env var, then a local SQLite file)."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(help="Log level (falls back to TXN_CLASSIFIER_LOG_LEVEL, then WARNING)."),
    ] = None,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e

    ctx.obj = {"database_url": database_url}

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
