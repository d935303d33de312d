"""Backend-independent schema introspection interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from fkload.models import Constraint, ConstraintKind


class SchemaIntrospector(ABC):
    """
    Read constraint metadata from a live database.

    Subclasses implement the dialect-specific lookups. Every call queries
    the database again; results are never cached.
    """

    dialect: str = ""

    @abstractmethod
    def list_tables(self) -> list[str]:
        """Get base table names (no views, indexes or sequences)."""

    @abstractmethod
    def list_all_constraints(
        self, kinds: Iterable[ConstraintKind] | None = None
    ) -> list[Constraint]:
        """
        Get constraints of the given kinds, one entry per column pair.

        Args:
            kinds: Kinds to include (default: all kinds)

        Raises:
            IntrospectionError: If the metadata query fails
            SchemaInconsistencyError: If a table or column cannot be named
        """

    def list_foreign_key_constraints(self) -> list[Constraint]:
        """Get foreign key constraints only."""
        return self.list_all_constraints([ConstraintKind.FOREIGN_KEY])

    def get_primary_key(self, table: str) -> list[str]:
        """Get primary key columns of a table in key order."""
        return [
            c.source_column
            for c in sorted(
                self.list_all_constraints([ConstraintKind.PRIMARY_KEY]),
                key=lambda c: c.position,
            )
            if c.source_table == table
        ]

    def table_exists(self, table: str) -> bool:
        return table in self.list_tables()
