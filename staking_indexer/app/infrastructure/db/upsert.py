from __future__ import annotations

from typing import Any

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection


def dialect_insert(conn: AsyncConnection, table: Table) -> Any:
    """
    Return an INSERT construct that supports ON CONFLICT for the connection's dialect.

    PostgreSQL is the production backend; SQLite is used by the test suite.
    Both expose the same on_conflict_do_nothing / on_conflict_do_update API.
    """
    name = conn.dialect.name
    if name == "postgresql":
        return pg_insert(table)
    if name == "sqlite":
        return sqlite_insert(table)
    raise ValueError(f"Unsupported database dialect for upserts: {name!r}")
