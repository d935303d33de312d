"""Data models and type definitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConstraintKind(str, Enum):
    """Kinds of table constraints reported by introspection."""

    FOREIGN_KEY = "foreign_key"
    PRIMARY_KEY = "primary_key"
    UNIQUE = "unique"
    CHECK = "check"
    EXCLUSION = "exclusion"


@dataclass(frozen=True)
class Constraint:
    """
    One column pair of a table constraint.

    Multi-column constraints expand to one Constraint per column pair,
    all sharing the same name.

    Attributes:
        name: Constraint name as reported by the backend (may be synthesized)
        kind: Constraint kind
        source_table: Table owning the constraint
        source_column: Constrained column
        referenced_table: Referenced table (foreign keys only)
        referenced_column: Referenced column (foreign keys only)
        position: 1-based position of this pair within the constraint
    """

    name: str
    kind: ConstraintKind
    source_table: str
    source_column: str
    referenced_table: str | None = None
    referenced_column: str | None = None
    position: int = 1

    def __post_init__(self):
        if self.kind is ConstraintKind.FOREIGN_KEY and not (
            self.source_table
            and self.source_column
            and self.referenced_table
            and self.referenced_column
        ):
            raise ValueError(
                f"Foreign key '{self.name}' needs source and referenced table/column"
            )

    @property
    def is_foreign_key(self) -> bool:
        return self.kind is ConstraintKind.FOREIGN_KEY

    @property
    def is_self_reference(self) -> bool:
        """Whether this foreign key references its own table."""
        return self.is_foreign_key and self.referenced_table == self.source_table


@dataclass(frozen=True)
class TempId:
    """
    Placeholder for a key the database has not generated yet.

    Producers put a TempId in a row's key column to name the row, and in
    foreign key columns to point at a row named that way:

        regions = [{"id": TempId("r1"), "parent": None},
                   {"id": TempId("r2"), "parent": TempId("r1")}]
    """

    value: Any

    def __repr__(self) -> str:
        return f"TempId({self.value!r})"


@dataclass(frozen=True)
class TableStep:
    """
    Load instructions for a single table.

    Attributes:
        table: Table name
        key_columns: Columns identifying a stored row (primary key)
        foreign_keys: References to other tables in the same load
        self_references: References to this table (filled in by a later update)
        external_references: References to tables outside the load
    """

    table: str
    key_columns: tuple[str, ...] = ()
    foreign_keys: tuple[Constraint, ...] = ()
    self_references: tuple[Constraint, ...] = ()
    external_references: tuple[Constraint, ...] = ()

    @property
    def resolvable_columns(self) -> set[str]:
        """Columns substituted at insert time."""
        return {fk.source_column for fk in self.foreign_keys}

    @property
    def deferred_columns(self) -> set[str]:
        """Self-referencing columns set by the post-insert update."""
        return {fk.source_column for fk in self.self_references}

    @property
    def external_columns(self) -> set[str]:
        """Columns whose values must already be real."""
        return {fk.source_column for fk in self.external_references}

    @property
    def depends_on(self) -> set[str]:
        return {fk.referenced_table for fk in self.foreign_keys}

    def foreign_key_for(self, column: str) -> Constraint | None:
        """Get the foreign key constraining a column, if any."""
        for fk in self.foreign_keys + self.self_references + self.external_references:
            if fk.source_column == column:
                return fk
        return None


@dataclass(frozen=True)
class TableLoadPlan:
    """Tables in dependency-safe load order."""

    steps: tuple[TableStep, ...] = ()

    @property
    def order(self) -> list[str]:
        return [step.table for step in self.steps]

    def step(self, table: str) -> TableStep | None:
        for step in self.steps:
            if step.table == table:
                return step
        return None

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


@dataclass
class LoadedRow:
    """
    A single stored row with attribute access.

    Allows accessing column values as attributes:
        row.id       # Generated key
        row.parent   # Resolved self reference

    Attributes:
        _data: Raw column data dict
    """

    _data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(f"No attribute '{name}'")
        if name in self._data:
            return self._data[name]
        raise AttributeError(f"No column '{name}' in loaded row")

    def __getitem__(self, column: str) -> Any:
        return self._data[column]

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


@dataclass
class TableReport:
    """
    Outcome of loading one table.

    Attributes:
        table: Table name
        inserted: Number of rows inserted
        updated: Number of rows touched by the self-reference update
        keys: Temporary identifier -> generated key
        rows: Rows as stored, in input order
    """

    table: str
    inserted: int = 0
    updated: int = 0
    keys: dict[Any, Any] = field(default_factory=dict)
    rows: list[LoadedRow] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __getitem__(self, index: int) -> LoadedRow:
        return self.rows[index]


class LoadReport:
    """
    Container for load results with attribute access.

    Allows accessing tables as attributes:
        report.region   # TableReport for region
        report.address  # TableReport for address

    Attribute access only reaches tables whose names do not clash with the
    report's own members (order, resolve, total_inserted, add_table), so
    report.order is always the load order. report[table] works for every
    table name.
    """

    def __init__(self):
        self._tables: dict[str, TableReport] = {}

    def add_table(self, table_report: TableReport) -> None:
        self._tables[table_report.table] = table_report

    @property
    def order(self) -> list[str]:
        """Tables in the order they were loaded."""
        return list(self._tables)

    @property
    def total_inserted(self) -> int:
        return sum(t.inserted for t in self._tables.values())

    def resolve(self, table: str, temp_id: Any) -> Any:
        """
        Get the generated key for a temporary identifier.

        Args:
            table: Table the identified row belongs to
            temp_id: TempId or its raw value

        Raises:
            KeyError: If the identifier was not loaded
        """
        if isinstance(temp_id, TempId):
            temp_id = temp_id.value
        return self._tables[table].keys[temp_id]

    def __getitem__(self, table: str) -> TableReport:
        return self._tables[table]

    def __contains__(self, table: str) -> bool:
        return table in self._tables

    def __iter__(self):
        return iter(self._tables.values())

    def __getattr__(self, name: str) -> TableReport:
        if name.startswith("_"):
            raise AttributeError(f"No attribute '{name}'")
        if name in self._tables:
            return self._tables[name]
        raise AttributeError(f"No table '{name}' in load report")
