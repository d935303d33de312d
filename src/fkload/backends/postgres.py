"""PostgreSQL backend - INSERT ... RETURNING through psycopg."""

import logging
from collections.abc import Sequence
from typing import Any

import psycopg
from psycopg import Connection, sql
from psycopg.rows import dict_row

from fkload.models import TableStep

logger = logging.getLogger(__name__)


class PostgresBackend:
    """
    Write rows using direct INSERT statements.

    Uses PostgreSQL's RETURNING clause to capture auto-generated values
    (serial/identity keys, defaults) after insertion. Never commits: the
    caller owns the transaction.
    """

    errors: tuple[type[BaseException], ...] = (psycopg.Error,)

    def __init__(self, conn: Connection, schema: str = "public"):
        """
        Initialize backend.

        Args:
            conn: PostgreSQL connection
            schema: Schema name for qualified table names
        """
        self.conn = conn
        self.schema = schema

    def insert_row(self, step: TableStep, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert one row and return it as stored.

        Args:
            step: Table load step
            row: Column values (generated key columns omitted)

        Returns:
            Complete row including generated keys and defaults
        """
        table = sql.Identifier(self.schema, step.table)
        if row:
            query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
                table,
                sql.SQL(", ").join(sql.Identifier(col) for col in row),
                sql.SQL(", ").join(sql.Placeholder() for _ in row),
            )
        else:
            query = sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING *").format(table)

        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, list(row.values()))
            return cur.fetchone()

    def update_rows(
        self,
        step: TableStep,
        updates: Sequence[tuple[dict[str, Any], dict[str, Any]]],
    ) -> int:
        """
        Apply (key, values) updates, batched per set of updated columns.

        Returns:
            Number of updates executed
        """
        batches: dict[tuple[tuple[str, ...], tuple[str, ...]], list[list[Any]]] = {}
        for key, values in updates:
            shape = (tuple(values), tuple(key))
            batches.setdefault(shape, []).append(list(values.values()) + list(key.values()))

        table = sql.Identifier(self.schema, step.table)
        with self.conn.cursor() as cur:
            for (set_columns, key_columns), params in batches.items():
                query = sql.SQL("UPDATE {} SET {} WHERE {}").format(
                    table,
                    sql.SQL(", ").join(
                        sql.SQL("{} = %s").format(sql.Identifier(col)) for col in set_columns
                    ),
                    sql.SQL(" AND ").join(
                        sql.SQL("{} = %s").format(sql.Identifier(col)) for col in key_columns
                    ),
                )
                cur.executemany(query, params)
                logger.debug(f"Updated {len(params)} rows of '{step.table}'")

        return len(updates)

    def transaction(self):
        """
        Run the enclosed block in a transaction.

        On a non-autocommit connection that already has a transaction open
        (introspection queries open one) this is a savepoint: errors roll the
        load back, but committing stays with the caller.
        """
        return self.conn.transaction()
