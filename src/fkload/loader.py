"""BulkLoader API for loading related tables."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from fkload.backends import create_backend
from fkload.dependency import build_load_order
from fkload.exceptions import UnknownTableError
from fkload.introspection import create_introspector
from fkload.models import ConstraintKind, LoadReport, TableLoadPlan
from fkload.orchestrator import LoadOrchestrator

logger = logging.getLogger(__name__)


class BulkLoader:
    """
    Declarative API for loading rows with temporary identifiers.

    Example:
        >>> loader = BulkLoader(conn)
        >>> loader.add("region", [{"id": TempId("r1"), "parent": None}])
        >>> loader.add("address", [{"region": TempId("r1")}])
        >>> report = loader.execute()
        >>> report.resolve("region", "r1")
        1
    """

    def __init__(
        self,
        conn,
        schema: str = "public",
        dialect: str | None = None,
        backend=None,
        use_transaction: bool = True,
    ):
        """
        Initialize BulkLoader.

        Args:
            conn: psycopg or sqlite3 connection
            schema: PostgreSQL schema (ignored by SQLite)
            dialect: "postgresql" or "sqlite" (default: detected from conn)
            backend: Row writer override (default: matches the dialect)
            use_transaction: Run execute() inside backend.transaction()
        """
        self.conn = conn
        self.schema = schema
        self.introspector = create_introspector(conn, schema, dialect)
        self.backend = backend or create_backend(conn, schema, self.introspector.dialect)
        self.use_transaction = use_transaction
        self._rows: dict[str, list[Mapping[str, Any]]] = {}
        self._tables: set[str] | None = None

    def add(self, table: str, rows: Iterable[Mapping[str, Any]]) -> "BulkLoader":
        """
        Add rows for a table.

        Args:
            table: Table name
            rows: Rows, each a mapping of column -> value or TempId

        Returns:
            Self for chaining

        Raises:
            UnknownTableError: If table doesn't exist
        """
        if self._tables is None:
            self._tables = set(self.introspector.list_tables())
        if table not in self._tables:
            raise UnknownTableError(table)

        self._rows.setdefault(table, []).extend(rows)
        return self

    def add_all(self, tables: Mapping[str, Iterable[Mapping[str, Any]]]) -> "BulkLoader":
        """Add rows for several tables (e.g. from rowfile.load_rows())."""
        for table, rows in tables.items():
            self.add(table, rows)
        return self

    def plan(self) -> TableLoadPlan:
        """
        Introspect the schema and order the added tables.

        Raises:
            CyclicDependencyError: If the added tables form a cycle
        """
        constraints = self.introspector.list_all_constraints(
            [ConstraintKind.FOREIGN_KEY, ConstraintKind.PRIMARY_KEY]
        )
        return build_load_order(constraints, self._rows)

    def execute(self) -> LoadReport:
        """
        Load all added rows.

        Returns:
            LoadReport with generated keys per table

        Raises:
            CyclicDependencyError: If the added tables form a cycle
            UnresolvedReferenceError: If a temporary identifier has no row
            DuplicateTemporaryIdError: If a temporary identifier is reused
            InsertError: If the database rejects a row
        """
        plan = self.plan()
        orchestrator = LoadOrchestrator(self.backend)

        if not self.use_transaction:
            return orchestrator.load(plan, self._rows)

        with self.backend.transaction():
            return orchestrator.load(plan, self._rows)
