"""Schema introspection backends."""

import sqlite3

from fkload.introspection.base import SchemaIntrospector
from fkload.introspection.catalog import CatalogIntrospector
from fkload.introspection.pragma import PragmaIntrospector

INTROSPECTORS: dict[str, type[SchemaIntrospector]] = {
    "postgresql": CatalogIntrospector,
    "sqlite": PragmaIntrospector,
}


def detect_dialect(conn) -> str:
    """Guess the dialect from the connection type."""
    if isinstance(conn, sqlite3.Connection):
        return "sqlite"
    return "postgresql"


def create_introspector(
    conn, schema: str = "public", dialect: str | None = None
) -> SchemaIntrospector:
    """
    Create the introspector for a connection.

    Args:
        conn: psycopg or sqlite3 connection
        schema: PostgreSQL schema (ignored by SQLite)
        dialect: "postgresql" or "sqlite" (default: detected from conn)

    Raises:
        ValueError: If the dialect is not supported
    """
    dialect = dialect or detect_dialect(conn)
    if dialect not in INTROSPECTORS:
        raise ValueError(
            f"Unsupported dialect '{dialect}'. Available: {', '.join(INTROSPECTORS)}"
        )
    if dialect == "sqlite":
        return PragmaIntrospector(conn)
    return CatalogIntrospector(conn, schema)


__all__ = [
    "CatalogIntrospector",
    "PragmaIntrospector",
    "SchemaIntrospector",
    "create_introspector",
    "detect_dialect",
]
