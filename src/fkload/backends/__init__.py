"""
Backend implementations for writing rows.

A backend provides:
- errors: driver exception types, reported as InsertError
- insert_row(step, row): insert and return the stored row
- update_rows(step, updates): apply (key, values) pairs
- transaction(): context manager around a whole load
"""

from fkload.backends.postgres import PostgresBackend
from fkload.backends.sqlite import SqliteBackend
from fkload.backends.staging import StagingBackend, StagingIntegrityError
from fkload.introspection import detect_dialect


def create_backend(conn, schema: str = "public", dialect: str | None = None):
    """
    Create the row writer for a connection.

    Args:
        conn: psycopg or sqlite3 connection
        schema: PostgreSQL schema (ignored by SQLite)
        dialect: "postgresql" or "sqlite" (default: detected from conn)
    """
    dialect = dialect or detect_dialect(conn)
    if dialect == "sqlite":
        return SqliteBackend(conn)
    if dialect == "postgresql":
        return PostgresBackend(conn, schema)
    raise ValueError(f"Unsupported dialect '{dialect}'. Available: postgresql, sqlite")


__all__ = [
    "PostgresBackend",
    "SqliteBackend",
    "StagingBackend",
    "StagingIntegrityError",
    "create_backend",
]
