"""db: workspace storage library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.workspace`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.workspace import Base, WsEntry

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "WsEntry",
]
