"""Load orchestration: insert tables in plan order, resolving temporary identifiers."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from fkload.exceptions import (
    InsertError,
    InvalidRowError,
    UnknownTableError,
    UnresolvedReferenceError,
)
from fkload.models import (
    Constraint,
    LoadedRow,
    LoadReport,
    TableLoadPlan,
    TableReport,
    TableStep,
    TempId,
)
from fkload.resolver import UNRESOLVED, TemporaryIdentifierResolver

logger = logging.getLogger(__name__)


@dataclass
class LoadContext:
    """
    State of one load operation.

    Created per LoadOrchestrator.load() call and cleared when it returns
    or fails, so no resolver state leaks into a retry.
    """

    resolver: TemporaryIdentifierResolver = field(default_factory=TemporaryIdentifierResolver)
    report: LoadReport = field(default_factory=LoadReport)

    def close(self) -> None:
        self.resolver.clear()


@dataclass
class _DeferredReference:
    """A self-reference written as NULL, to be set after the table is inserted."""

    row: dict[str, Any]
    temp_id: Any
    constraint: Constraint
    reference: TempId


class LoadOrchestrator:
    """
    Insert rows table by table following a TableLoadPlan.

    Cross-table references are substituted before each insert, since the
    referenced tables are already loaded. Self-references are written as
    NULL and set by one batch update after the table's rows are inserted.

    The orchestrator never commits or rolls back.
    """

    def __init__(self, backend):
        """
        Initialize orchestrator.

        Args:
            backend: Row writer (PostgresBackend, SqliteBackend, StagingBackend)
        """
        self.backend = backend

    def load(
        self,
        plan: TableLoadPlan,
        rows: Mapping[str, Sequence[Mapping[str, Any]]],
    ) -> LoadReport:
        """
        Load rows for every table in the plan.

        Args:
            plan: Load plan from build_load_order()
            rows: Table name -> rows, each row a mapping of column -> value

        Returns:
            LoadReport with generated keys and stored rows per table

        Raises:
            UnknownTableError: If rows are given for a table not in the plan
            UnresolvedReferenceError: If a temporary identifier has no row
            DuplicateTemporaryIdError: If a temporary identifier is reused
            InvalidRowError: If a temporary identifier is in a plain column
            InsertError: If the database rejects a row
        """
        for table in rows:
            if plan.step(table) is None:
                raise UnknownTableError(table, "load plan")

        context = LoadContext()
        try:
            for step in plan:
                table_report = self._load_table(context, step, rows.get(step.table, ()))
                context.report.add_table(table_report)
            logger.info(
                f"Loaded {context.report.total_inserted} rows into {len(plan)} tables"
            )
            return context.report
        finally:
            context.close()

    def _load_table(
        self,
        context: LoadContext,
        step: TableStep,
        rows: Sequence[Mapping[str, Any]],
    ) -> TableReport:
        report = TableReport(table=step.table)
        if not rows:
            logger.warning(f"No rows supplied for '{step.table}', skipping")
            return report

        stored_rows: list[dict[str, Any]] = []
        deferred: list[_DeferredReference] = []

        for row in rows:
            temp_id, values, pending = self._prepare_row(context, step, row)

            try:
                stored = self.backend.insert_row(step, values)
            except self.backend.errors as exc:
                raise InsertError(step.table, temp_id, values, exc) from exc

            if temp_id is not None:
                context.resolver.register_resolved(
                    step.table, temp_id, self._key_value(step, stored), stored
                )
            stored_rows.append(stored)
            deferred.extend(
                _DeferredReference(stored, temp_id, fk, ref) for fk, ref in pending
            )

        report.inserted = len(stored_rows)
        if deferred:
            report.updated = self._apply_deferred(context, step, deferred)

        report.keys = context.resolver.resolved_keys(step.table)
        report.rows = [LoadedRow(_data=row) for row in stored_rows]
        logger.info(
            f"Loaded '{step.table}': {report.inserted} inserted, {report.updated} updated"
        )
        return report

    def _prepare_row(
        self,
        context: LoadContext,
        step: TableStep,
        row: Mapping[str, Any],
    ) -> tuple[Any, dict[str, Any], list[tuple[Constraint, TempId]]]:
        """
        Split a row into its own identifier, insertable values and deferred references.

        Returns:
            (own temporary id or None, values to insert, [(self FK, TempId)])
        """
        temp_id = None
        values: dict[str, Any] = {}
        pending: list[tuple[Constraint, TempId]] = []

        for column, value in row.items():
            if not isinstance(value, TempId):
                values[column] = value
                continue

            fk = step.foreign_key_for(column)

            if fk is None:
                if column not in step.key_columns:
                    raise InvalidRowError(
                        step.table, column, f"{value!r} is not in a key or foreign key column"
                    )
                if temp_id is not None:
                    raise InvalidRowError(
                        step.table, column, "row has more than one temporary identifier"
                    )
                # The row's own identifier is never written
                temp_id = value.value
                continue

            if fk in step.self_references:
                values[column] = None
                pending.append((fk, value))
                continue

            if fk in step.external_references:
                raise UnresolvedReferenceError(
                    step.table, column, fk.referenced_table, value.value
                )

            real = context.resolver.substitute(
                fk.referenced_table, value, fk.referenced_column
            )
            if real is UNRESOLVED:
                raise UnresolvedReferenceError(
                    step.table, column, fk.referenced_table, value.value
                )
            values[column] = real

        return temp_id, values, pending

    def _apply_deferred(
        self,
        context: LoadContext,
        step: TableStep,
        deferred: list[_DeferredReference],
    ) -> int:
        """Set deferred self-references with one batch update."""
        # Merge several self-references of the same row into one update
        merged: dict[int, tuple[dict[str, Any], dict[str, Any]]] = {}
        for item in deferred:
            real = context.resolver.substitute(
                step.table, item.reference, item.constraint.referenced_column
            )
            if real is UNRESOLVED:
                raise UnresolvedReferenceError(
                    step.table,
                    item.constraint.source_column,
                    step.table,
                    item.reference.value,
                )

            _key, values = merged.setdefault(
                id(item.row), ({col: item.row[col] for col in step.key_columns}, {})
            )
            values[item.constraint.source_column] = real
            item.row[item.constraint.source_column] = real

        updates = list(merged.values())
        try:
            return self.backend.update_rows(step, updates)
        except self.backend.errors as exc:
            raise InsertError(
                step.table, deferred[0].temp_id, {"deferred_updates": len(updates)}, exc
            ) from exc

    def _key_value(self, step: TableStep, stored: dict[str, Any]) -> Any:
        """Get the generated key of a stored row (tuple for composite keys)."""
        if len(step.key_columns) == 1:
            return stored[step.key_columns[0]]
        return tuple(stored[col] for col in step.key_columns)
