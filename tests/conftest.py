"""Pytest configuration and shared fixtures."""

import os
import sqlite3

import psycopg
import pytest
from psycopg import Connection

from fkload.models import Constraint, ConstraintKind

PG_TEST_URL = os.getenv("FKLOAD_TEST_DATABASE_URL", "postgresql://localhost/fkload_test")

ADDRESS_SCHEMA = """
    CREATE TABLE region (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        parent INTEGER REFERENCES region(id)
    );
    CREATE TABLE street (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL
    );
    CREATE TABLE address (
        id INTEGER PRIMARY KEY,
        street INTEGER NOT NULL REFERENCES street(id),
        region INTEGER NOT NULL REFERENCES region(id),
        house TEXT
    );
    CREATE VIEW region_names AS SELECT name FROM region;
    CREATE INDEX idx_address_region ON address(region);
"""


def _foreign_key(source: str, column: str, target: str, target_column: str = "id", name=None):
    """Build a foreign key Constraint for tests."""
    return Constraint(
        name=name or f"{source}_{column}_fkey",
        kind=ConstraintKind.FOREIGN_KEY,
        source_table=source,
        source_column=column,
        referenced_table=target,
        referenced_column=target_column,
    )


def _primary_key(table: str, column: str = "id", position: int = 1):
    """Build a primary key Constraint for tests."""
    return Constraint(
        name=f"{table}_pkey",
        kind=ConstraintKind.PRIMARY_KEY,
        source_table=table,
        source_column=column,
        position=position,
    )


@pytest.fixture
def fk():
    """Factory for foreign key Constraints."""
    return _foreign_key


@pytest.fixture
def pk():
    """Factory for primary key Constraints."""
    return _primary_key


@pytest.fixture
def address_schema() -> str:
    """DDL of the region/street/address schema."""
    return ADDRESS_SCHEMA


@pytest.fixture
def address_constraints() -> list[Constraint]:
    """Constraints of the region/street/address schema."""
    return [
        _primary_key("region"),
        _primary_key("street"),
        _primary_key("address"),
        _foreign_key("region", "parent", "region"),
        _foreign_key("address", "street", "street"),
        _foreign_key("address", "region", "region"),
    ]


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite database with foreign keys enforced."""
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")

    yield conn

    conn.close()


@pytest.fixture
def address_db(sqlite_conn):
    """SQLite database with the region/street/address schema."""
    sqlite_conn.executescript(ADDRESS_SCHEMA)
    return sqlite_conn


@pytest.fixture
def pg_conn() -> Connection:
    """
    Provide a PostgreSQL test connection.

    Uses FKLOAD_TEST_DATABASE_URL; tests are skipped when no server answers.
    """
    try:
        conn = psycopg.connect(PG_TEST_URL, autocommit=False, connect_timeout=3)
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    yield conn

    conn.rollback()
    conn.close()


@pytest.fixture
def pg_schema(pg_conn: Connection) -> str:
    """
    Create a test schema with the region/street/address tables.

    Returns the schema name.
    """
    schema_name = "test_fkload"

    with pg_conn.cursor() as cur:
        cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
        cur.execute(f"CREATE SCHEMA {schema_name}")
        cur.execute(f"""
            CREATE TABLE {schema_name}.region (
                id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
                name TEXT NOT NULL,
                parent INTEGER REFERENCES {schema_name}.region(id)
            )
        """)
        cur.execute(f"""
            CREATE TABLE {schema_name}.street (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL UNIQUE
            )
        """)
        cur.execute(f"""
            CREATE TABLE {schema_name}.address (
                id SERIAL PRIMARY KEY,
                street INTEGER NOT NULL REFERENCES {schema_name}.street(id),
                region INTEGER NOT NULL REFERENCES {schema_name}.region(id),
                house TEXT
            )
        """)
        cur.execute(
            f"CREATE VIEW {schema_name}.region_names AS SELECT name FROM {schema_name}.region"
        )
        pg_conn.commit()

    yield schema_name

    pg_conn.rollback()
    with pg_conn.cursor() as cur:
        cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
        pg_conn.commit()
