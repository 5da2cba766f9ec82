"""SQLAlchemy models for the workspace store used by ``transaction_classifier``."""

from .workspace import Base, WsEntry

__all__ = [
    "Base",
    "WsEntry",
]
