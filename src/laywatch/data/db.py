"""DuckDB connection manager for the snapshot store."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import duckdb

from laywatch.config import settings


_connection: duckdb.DuckDBPyConnection | None = None


def get_connection() -> duckdb.DuckDBPyConnection:
    """Get or create the singleton read-write DuckDB connection."""
    global _connection
    if _connection is None:
        settings.ensure_dirs()
        _connection = duckdb.connect(settings.db_path_str)
    return _connection


@contextmanager
def transaction() -> Iterator[duckdb.DuckDBPyConnection]:
    """Run a block of statements atomically.

    Commits when the block exits cleanly; any exception rolls back every
    statement issued on the connection inside it and is re-raised.
    """
    conn = get_connection()
    conn.begin()
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


def execute(sql: str, params: list | None = None) -> duckdb.DuckDBPyConnection:
    """Execute SQL on the default connection."""
    conn = get_connection()
    if params:
        return conn.execute(sql, params)
    return conn.execute(sql)


def fetch_df(sql: str, params: list | None = None):
    """Execute SQL and return a pandas DataFrame."""
    result = execute(sql, params)
    return result.fetchdf()


def close() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None
