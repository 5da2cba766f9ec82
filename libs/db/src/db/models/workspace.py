from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Key/value store: ws_entries
# ---------------------------


class WsEntry(Base):
    """One durable workspace entry.

    Keys follow the storage layout of the classifier: ``finance-config`` for
    the rule configuration and ``finance-file-<sanitized name>`` for each
    data file. ``payload`` holds the camelCase JSON document as-is.
    """

    __tablename__ = "ws_entries"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # Display order of data files; the config entry stays at 0.
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (CheckConstraint("kind in ('config','file')", name="ck_ws_entries_kind"),)


__all__ = [
    "Base",
    "WsEntry",
]
