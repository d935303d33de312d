"""SQLite constraint introspection via pragma table-valued functions."""

import logging
import sqlite3
from collections.abc import Iterable

from fkload.exceptions import IntrospectionError, SchemaInconsistencyError
from fkload.introspection.base import SchemaIntrospector
from fkload.models import Constraint, ConstraintKind

logger = logging.getLogger(__name__)

# First release with the pragma_table_list function
TABLE_LIST_VERSION = (3, 37, 0)

# Shadow tables created by the bundled FTS3/4, FTS5 and R*Tree modules
SHADOW_SUFFIXES = (
    "_config",
    "_content",
    "_data",
    "_docsize",
    "_idx",
    "_node",
    "_parent",
    "_rowid",
    "_segdir",
    "_segments",
    "_stat",
)


class PragmaIntrospector(SchemaIntrospector):
    """
    Introspect SQLite constraints table by table.

    SQLite has no global constraint catalog: tables are listed from
    pragma_table_list, then pragma_foreign_key_list, pragma_table_info and
    pragma_index_list are queried per table. Foreign key names are not
    stored by SQLite and are synthesized as <table>_<columns>_fkey.

    CHECK constraints are not exposed by any pragma and are never reported.
    """

    dialect = "sqlite"

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def list_tables(self) -> list[str]:
        """
        Get base table names.

        Virtual tables and their shadow tables (FTS, R*Tree) are excluded.
        pragma_table_list needs SQLite 3.37; older versions fall back to
        sqlite_master.
        """
        if sqlite3.sqlite_version_info < TABLE_LIST_VERSION:
            return self._list_tables_from_master()

        rows = self._fetch(
            """
            SELECT name
            FROM pragma_table_list
            WHERE schema = 'main'
              AND type = 'table'
              AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'
            ORDER BY name
            """
        )
        return [row[0] for row in rows]

    def _list_tables_from_master(self) -> list[str]:
        rows = self._fetch(
            """
            SELECT name, sql
            FROM sqlite_master
            WHERE type = 'table'
              AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'
            ORDER BY name
            """
        )
        virtual = [
            name
            for name, sql in rows
            if (sql or "").lstrip().upper().startswith("CREATE VIRTUAL TABLE")
        ]
        shadow = {f"{vtab}{suffix}" for vtab in virtual for suffix in SHADOW_SUFFIXES}
        return [name for name, _sql in rows if name not in virtual and name not in shadow]

    def list_all_constraints(
        self, kinds: Iterable[ConstraintKind] | None = None
    ) -> list[Constraint]:
        wanted = set(kinds) if kinds is not None else set(ConstraintKind)
        tables = self.list_tables()

        constraints: list[Constraint] = []
        for table in tables:
            if ConstraintKind.PRIMARY_KEY in wanted:
                constraints.extend(self._primary_key(table))
            if ConstraintKind.UNIQUE in wanted:
                constraints.extend(self._unique_constraints(table))
            if ConstraintKind.FOREIGN_KEY in wanted:
                constraints.extend(self._foreign_keys(table, tables))

        logger.debug(f"Found {len(constraints)} constraint columns in {len(tables)} tables")
        return constraints

    def _primary_key(self, table: str) -> list[Constraint]:
        rows = self._fetch(
            "SELECT name, pk FROM pragma_table_info(?) WHERE pk > 0 ORDER BY pk",
            (table,),
        )
        return [
            Constraint(
                name=f"{table}_pkey",
                kind=ConstraintKind.PRIMARY_KEY,
                source_table=table,
                source_column=column,
                position=position,
            )
            for column, position in rows
        ]

    def _unique_constraints(self, table: str) -> list[Constraint]:
        indexes = self._fetch(
            """
            SELECT name
            FROM pragma_index_list(?)
            WHERE "unique" = 1 AND origin = 'u'
            ORDER BY seq
            """,
            (table,),
        )

        constraints = []
        for (index_name,) in indexes:
            columns = self._fetch(
                "SELECT name FROM pragma_index_info(?) ORDER BY seqno", (index_name,)
            )
            for position, (column,) in enumerate(columns, start=1):
                if column is None:
                    raise SchemaInconsistencyError(
                        index_name, f"unique constraint on '{table}' has an unnamed column"
                    )
                constraints.append(
                    Constraint(
                        name=index_name,
                        kind=ConstraintKind.UNIQUE,
                        source_table=table,
                        source_column=column,
                        position=position,
                    )
                )
        return constraints

    def _foreign_keys(self, table: str, tables: list[str]) -> list[Constraint]:
        rows = self._fetch(
            """
            SELECT id, seq, "table", "from", "to"
            FROM pragma_foreign_key_list(?)
            ORDER BY id, seq
            """,
            (table,),
        )

        # Group column pairs by constraint id
        grouped: dict[int, list[tuple[str, str, str | None]]] = {}
        for fk_id, _seq, ref_table, from_col, to_col in rows:
            grouped.setdefault(fk_id, []).append((ref_table, from_col, to_col))

        # SQLite matches table names case-insensitively
        by_lower = {name.lower(): name for name in tables}

        constraints = []
        for pairs in grouped.values():
            local_columns = [from_col for _, from_col, _ in pairs]
            name = f"{table}_{'_'.join(local_columns)}_fkey"

            declared_table = pairs[0][0]
            ref_table = by_lower.get(declared_table.lower())
            if ref_table is None:
                raise SchemaInconsistencyError(
                    name, f"referenced table '{declared_table}' does not exist"
                )

            ref_columns = [to_col for _, _, to_col in pairs]
            if any(col is None for col in ref_columns):
                # REFERENCES parent without a column list targets the primary key
                logger.warning(
                    f"Foreign key '{name}' has no referenced columns, "
                    f"using primary key of '{ref_table}'"
                )
                ref_columns = [c.source_column for c in self._primary_key(ref_table)]
                if len(ref_columns) != len(local_columns):
                    raise SchemaInconsistencyError(
                        name,
                        f"'{ref_table}' has no primary key matching "
                        f"{len(local_columns)} column(s)",
                    )

            existing = self._column_names(ref_table)
            for position, (local, remote) in enumerate(
                zip(local_columns, ref_columns), start=1
            ):
                if remote.lower() not in existing:
                    raise SchemaInconsistencyError(
                        name, f"column '{remote}' not found in '{ref_table}'"
                    )
                constraints.append(
                    Constraint(
                        name=name,
                        kind=ConstraintKind.FOREIGN_KEY,
                        source_table=table,
                        source_column=local,
                        referenced_table=ref_table,
                        referenced_column=existing[remote.lower()],
                        position=position,
                    )
                )
        return constraints

    def _column_names(self, table: str) -> dict[str, str]:
        rows = self._fetch("SELECT name FROM pragma_table_info(?)", (table,))
        return {row[0].lower(): row[0] for row in rows}

    def _fetch(self, query: str, params: tuple = ()) -> list[tuple]:
        try:
            return self.conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise IntrospectionError(str(exc)) from exc
