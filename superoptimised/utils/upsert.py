"""Dialect-aware INSERT constructs supporting ON CONFLICT clauses."""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, model):
    """Return an ``insert(model)`` for the session's dialect.

    Both the SQLite and PostgreSQL constructs expose ``on_conflict_do_update``
    and ``on_conflict_do_nothing`` with the same signature.
    """
    if db.bind.dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
