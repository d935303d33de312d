"""Custom exceptions with helpful error messages."""

from typing import Any


class FkLoadError(Exception):
    """Base exception for fkload errors."""

    pass


class IntrospectionError(FkLoadError):
    """Schema metadata could not be read from the database."""

    def __init__(self, message: str):
        super().__init__(
            f"Schema introspection failed: {message}\n\n"
            f"Suggestions:\n"
            f"1. Check database connection settings\n"
            f"2. Ensure the connection is open and not inside an aborted transaction\n"
            f"3. Ensure the user can read the system catalog"
        )


class SchemaInconsistencyError(FkLoadError):
    """Introspection returned a reference that cannot be resolved to a name."""

    def __init__(self, constraint: str | None, detail: str):
        self.constraint = constraint
        label = f"'{constraint}'" if constraint else "(unnamed)"
        super().__init__(
            f"Constraint {label} is inconsistent: {detail}\n\n"
            f"Suggestions:\n"
            f"1. Check that the referenced table and column exist\n"
            f"2. On SQLite, foreign keys may reference tables that were never created\n"
            f"3. Recreate the constraint with explicit referenced columns"
        )


class UnknownTableError(FkLoadError):
    """Rows were supplied for a table that is not part of the load."""

    def __init__(self, table: str, where: str = "schema"):
        self.table = table
        super().__init__(
            f"Table '{table}' not found in {where}.\n\n"
            f"Suggestions:\n"
            f"1. Check table name spelling\n"
            f"2. Use SchemaIntrospector.list_tables() to see available tables\n"
            f"3. Views cannot be loaded, only base tables"
        )


class CyclicDependencyError(FkLoadError):
    """Foreign keys between distinct tables form a cycle."""

    def __init__(self, tables: set[str], cycles: list[list[str]] | None = None):
        self.tables = set(tables)
        self.cycles = cycles or []
        tables_str = ", ".join(sorted(self.tables))
        cycles_str = "".join(f"\n  {' -> '.join(cycle)}" for cycle in self.cycles)
        super().__init__(
            f"Circular dependency detected involving tables: {tables_str}"
            + (f"\nCycles:{cycles_str}" if cycles_str else "")
            + "\n\nSuggestions:\n"
            "1. Check foreign key relationships for cycles\n"
            "2. Self-referencing tables are supported, multi-table cycles are not\n"
            "3. Make one constraint DEFERRABLE and load it outside fkload"
        )


class DuplicateTemporaryIdError(FkLoadError):
    """The same temporary identifier was used for two rows of one table."""

    def __init__(self, table: str, temp_id: Any):
        self.table = table
        self.temp_id = temp_id
        super().__init__(
            f"Temporary identifier {temp_id!r} is used by more than one row "
            f"of table '{table}'.\n\n"
            f"Suggestions:\n"
            f"1. Temporary identifiers must be unique per table within one load\n"
            f"2. Check the producer that assigned the identifiers"
        )


class UnresolvedReferenceError(FkLoadError):
    """A temporary identifier had no row to resolve to."""

    def __init__(self, table: str, column: str, referenced_table: str, temp_id: Any):
        self.table = table
        self.column = column
        self.referenced_table = referenced_table
        self.temp_id = temp_id
        super().__init__(
            f"Could not resolve {temp_id!r} in '{table}.{column}': "
            f"no row of '{referenced_table}' carries that temporary identifier.\n\n"
            f"Suggestions:\n"
            f"1. Ensure a row of '{referenced_table}' uses {temp_id!r} as its key\n"
            f"2. Ensure '{referenced_table}' is part of the load\n"
            f"3. Use a real key value for rows that already exist in the database"
        )


class InvalidRowError(FkLoadError):
    """A row carries a temporary identifier where none is allowed."""

    def __init__(self, table: str, column: str, detail: str):
        self.table = table
        self.column = column
        super().__init__(
            f"Invalid row for '{table}' in column '{column}': {detail}\n\n"
            f"Suggestions:\n"
            f"1. Put a row's own temporary identifier in its primary key column\n"
            f"2. Only foreign key columns may reference other rows' identifiers"
        )


class InsertError(FkLoadError):
    """The database rejected a row."""

    def __init__(self, table: str, temp_id: Any, row: dict[str, Any], cause: BaseException):
        self.table = table
        self.temp_id = temp_id
        self.row = row
        label = f" (temporary id {temp_id!r})" if temp_id is not None else ""
        super().__init__(
            f"Insert into '{table}' failed{label}: {cause}\n"
            f"Row: {row!r}\n\n"
            f"Suggestions:\n"
            f"1. Check NOT NULL columns, self-references are inserted as NULL first\n"
            f"2. Check unique constraints against existing data\n"
            f"3. Roll back the transaction before retrying the load"
        )


class RowFileError(FkLoadError):
    """A row file does not have the expected shape."""

    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(
            f"Invalid row file '{path}': {detail}\n\n"
            f"Suggestions:\n"
            f"1. The top level must map table names to lists of rows\n"
            f"2. Each row must be a mapping of column names to values\n"
            f"3. Mark temporary identifiers with !tmp (YAML) or {{\"$tmp\": ...}} (JSON)"
        )
