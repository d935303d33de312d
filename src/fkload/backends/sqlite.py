"""SQLite backend - INSERT followed by a rowid lookup."""

import logging
import sqlite3
from collections.abc import Sequence
from contextlib import contextmanager
from typing import Any

from fkload.models import TableStep

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SqliteBackend:
    """
    Write rows into SQLite.

    The stored row is read back by rowid (or by key for WITHOUT ROWID
    tables whose key was supplied), which picks up INTEGER PRIMARY KEY
    values and column defaults.
    """

    errors: tuple[type[BaseException], ...] = (sqlite3.Error,)

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_row(self, step: TableStep, row: dict[str, Any]) -> dict[str, Any]:
        table = quote_identifier(step.table)
        if row:
            columns = ", ".join(quote_identifier(col) for col in row)
            placeholders = ", ".join("?" for _ in row)
            query = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
        else:
            query = f"INSERT INTO {table} DEFAULT VALUES"

        cur = self.conn.execute(query, list(row.values()))

        if step.key_columns and all(row.get(col) is not None for col in step.key_columns):
            where = " AND ".join(f"{quote_identifier(col)} = ?" for col in step.key_columns)
            params = [row[col] for col in step.key_columns]
        else:
            where = "rowid = ?"
            params = [cur.lastrowid]

        cur = self.conn.execute(f"SELECT * FROM {table} WHERE {where}", params)
        names = [description[0] for description in cur.description]
        return dict(zip(names, cur.fetchone()))

    def update_rows(
        self,
        step: TableStep,
        updates: Sequence[tuple[dict[str, Any], dict[str, Any]]],
    ) -> int:
        """Apply (key, values) updates, batched per set of updated columns."""
        batches: dict[tuple[tuple[str, ...], tuple[str, ...]], list[list[Any]]] = {}
        for key, values in updates:
            shape = (tuple(values), tuple(key))
            batches.setdefault(shape, []).append(list(values.values()) + list(key.values()))

        table = quote_identifier(step.table)
        for (set_columns, key_columns), params in batches.items():
            assignments = ", ".join(f"{quote_identifier(col)} = ?" for col in set_columns)
            where = " AND ".join(f"{quote_identifier(col)} = ?" for col in key_columns)
            self.conn.executemany(f"UPDATE {table} SET {assignments} WHERE {where}", params)
            logger.debug(f"Updated {len(params)} rows of '{step.table}'")

        return len(updates)

    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any exception."""
        try:
            yield
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()
