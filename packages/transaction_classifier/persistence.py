# ruff: noqa: I001
"""Workspace persistence on top of the shared ``db`` library.

Storage layout (one row per durable entry in ``ws_entries``):

- ``finance-config``: ``{"rules": [...]}`` in the config interchange format.
- ``finance-file-<sanitized name>``: one full ``DataFile`` document per file,
  where the display name is sanitized by replacing every character outside
  ``[A-Za-z0-9.-]`` with ``_``.

Transactions are never stored; they are recomputed by batch apply. Entries
that fail to decode are logged and skipped so one bad row cannot hide the
rest of the workspace.
"""

from __future__ import annotations

import re

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.workspace import WsEntry
from .logging_setup import get_logger
from .models import DataFile, Rule, RulesConfig
from .session import Workspace

CONFIG_KEY = "finance-config"
FILE_KEY_PREFIX = "finance-file-"

_SANITIZE_RE = re.compile(r"[^a-zA-Z0-9.-]")

_logger = get_logger("transaction_classifier.persistence")


def sanitize_name(name: str) -> str:
    return _SANITIZE_RE.sub("_", name)


def file_key(name: str) -> str:
    """Storage key for a data file with display name ``name``."""

    return f"{FILE_KEY_PREFIX}{sanitize_name(name)}"


def _upsert(
    session: Session, *, key: str, kind: str, payload: dict, position: int = 0
) -> None:
    row = session.get(WsEntry, key)
    if row is None:
        session.add(WsEntry(key=key, kind=kind, payload=payload, position=position))
    else:
        row.kind = kind
        row.payload = payload
        row.position = position


def save_workspace(session: Session, workspace: Workspace) -> None:
    """Write every data file and the rule config; drop stale file entries.

    File entries whose key no longer matches a current data file (removed or
    renamed files) are deleted. Two files whose names sanitize to the same
    key share one entry; the later file wins.
    """

    live_keys: set[str] = set()
    for position, data_file in enumerate(workspace.data_files):
        key = file_key(data_file.name)
        live_keys.add(key)
        _upsert(
            session,
            key=key,
            kind="file",
            payload=data_file.to_json_dict(),
            position=position,
        )

    _upsert(
        session,
        key=CONFIG_KEY,
        kind="config",
        payload={"rules": [r.to_json_dict() for r in workspace.rules]},
    )

    stale = select(WsEntry.key).where(WsEntry.kind == "file")
    stale_keys = [k for k in session.execute(stale).scalars() if k not in live_keys]
    if stale_keys:
        session.execute(delete(WsEntry).where(WsEntry.key.in_(stale_keys)))
    session.flush()


def load_rules(session: Session) -> list[Rule]:
    row = session.get(WsEntry, CONFIG_KEY)
    if row is None:
        return []
    try:
        return list(RulesConfig.model_validate(row.payload).rules)
    except ValidationError as e:
        _logger.warning("ignoring unreadable rule config: %s", e)
        return []


def load_data_files(session: Session) -> list[DataFile]:
    rows = session.execute(
        select(WsEntry).where(WsEntry.kind == "file").order_by(WsEntry.position, WsEntry.key)
    ).scalars()
    files: list[DataFile] = []
    for row in rows:
        try:
            files.append(DataFile.model_validate(row.payload))
        except ValidationError as e:
            _logger.warning("skipping unreadable data file entry %s: %s", row.key, e)
    return files


def load_workspace(session: Session) -> Workspace:
    """Rebuild a ``Workspace`` from storage (no transactions until applied)."""

    return Workspace(data_files=load_data_files(session), rules=load_rules(session))


def clear_workspace(session: Session) -> int:
    """Delete every stored entry; returns the number of rows removed."""

    result = session.execute(delete(WsEntry))
    return result.rowcount or 0


__all__ = [
    "CONFIG_KEY",
    "FILE_KEY_PREFIX",
    "clear_workspace",
    "file_key",
    "load_data_files",
    "load_rules",
    "load_workspace",
    "sanitize_name",
    "save_workspace",
]
