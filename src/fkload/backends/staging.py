"""Staging backend - in-memory backend for loading without a database."""

import copy
from contextlib import contextmanager
from typing import Any

from fkload.models import TableStep


class StagingIntegrityError(Exception):
    """Raised when a staged row violates a key or foreign key."""

    pass


class StagingBackend:
    """
    In-memory backend for running loads without a database.

    Simulates database behavior:
    - Generates missing key columns (sequential integers starting from 1)
    - Rejects duplicate keys
    - Checks foreign keys against staged rows of the referenced table

    Use case: Fast unit tests, dry runs of row files.
    """

    errors: tuple[type[BaseException], ...] = (StagingIntegrityError,)

    def __init__(self, enforce_foreign_keys: bool = True):
        """Initialize staging backend with empty state."""
        self.enforce_foreign_keys = enforce_foreign_keys
        self._data: dict[str, list[dict[str, Any]]] = {}
        self._sequences: dict[str, int] = {}

    def insert_row(self, step: TableStep, row: dict[str, Any]) -> dict[str, Any]:
        """Simulate an insert, generating missing key columns."""
        complete_row = dict(row)
        for col in step.key_columns:
            if complete_row.get(col) is None:
                self._sequences[step.table] = self._sequences.get(step.table, 0) + 1
                complete_row[col] = self._sequences[step.table]

        stored = self._data.setdefault(step.table, [])
        key = self._key(step, complete_row)
        if key and any(self._key(step, existing) == key for existing in stored):
            raise StagingIntegrityError(
                f"duplicate key {key!r} in '{step.table}'"
            )

        # A row may reference itself by its own supplied key
        self._check_foreign_keys(step, complete_row, pending=complete_row)
        stored.append(complete_row)
        return dict(complete_row)

    def update_rows(
        self,
        step: TableStep,
        updates: list[tuple[dict[str, Any], dict[str, Any]]],
    ) -> int:
        stored = self._data.get(step.table, [])
        for key, values in updates:
            matches = [r for r in stored if all(r.get(k) == v for k, v in key.items())]
            if not matches:
                raise StagingIntegrityError(f"no row of '{step.table}' with key {key!r}")
            for match in matches:
                match.update(values)
                self._check_foreign_keys(step, match)
        return len(updates)

    @contextmanager
    def transaction(self):
        """Restore the staged data if the block fails."""
        snapshot = copy.deepcopy(self._data), dict(self._sequences)
        try:
            yield
        except BaseException:
            self._data, self._sequences = snapshot
            raise

    def get_data(self, table_name: str) -> list[dict[str, Any]]:
        """
        Get in-memory data for inspection.

        Args:
            table_name: Table name

        Returns:
            List of row dicts for the table
        """
        return self._data.get(table_name, [])

    def clear(self):
        """Clear all in-memory data and sequences."""
        self._data.clear()
        self._sequences.clear()

    def _key(self, step: TableStep, row: dict[str, Any]) -> tuple:
        return tuple(row.get(col) for col in step.key_columns)

    def _check_foreign_keys(
        self, step: TableStep, row: dict[str, Any], pending: dict[str, Any] | None = None
    ) -> None:
        if not self.enforce_foreign_keys:
            return
        for fk in step.foreign_keys + step.self_references:
            value = row.get(fk.source_column)
            if value is None:
                continue
            candidates = list(self._data.get(fk.referenced_table, []))
            if pending is not None and fk.is_self_reference:
                candidates.append(pending)
            if not any(r.get(fk.referenced_column) == value for r in candidates):
                raise StagingIntegrityError(
                    f"'{step.table}.{fk.source_column}' = {value!r} has no match "
                    f"in '{fk.referenced_table}.{fk.referenced_column}'"
                )
