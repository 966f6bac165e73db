"""Dialect-aware INSERT ... ON CONFLICT support."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession) -> Any:
    """Return the dialect's ``insert`` construct if it supports ON CONFLICT, else None."""
    name = db.bind.dialect.name if db.bind is not None else ""
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert

        return insert
    if name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        return insert
    return None
