"""PostgreSQL constraint introspection via pg_catalog."""

import logging
from collections.abc import Iterable

import psycopg
from psycopg import Connection

from fkload.exceptions import IntrospectionError, SchemaInconsistencyError
from fkload.introspection.base import SchemaIntrospector
from fkload.models import Constraint, ConstraintKind

logger = logging.getLogger(__name__)

KIND_CODES: dict[str, ConstraintKind] = {
    "f": ConstraintKind.FOREIGN_KEY,
    "p": ConstraintKind.PRIMARY_KEY,
    "u": ConstraintKind.UNIQUE,
    "c": ConstraintKind.CHECK,
    "x": ConstraintKind.EXCLUSION,
}
CODES_BY_KIND = {kind: code for code, kind in KIND_CODES.items()}

# conkey/confkey are expanded together so the Nth local column pairs with the
# Nth referenced column. Lookups are LEFT JOINs: a missing match must surface
# as NULL instead of dropping the row. Partitions and the constraints cloned
# for them (conparentid set) are left out, matching TABLES_QUERY.
CONSTRAINTS_QUERY = """
    SELECT
        con.conname,
        con.contype::text,
        src.relname,
        src_att.attname,
        ref.relname,
        ref_att.attname,
        cols.ord,
        cols.local_attnum,
        cols.ref_attnum
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_namespace nsp ON nsp.oid = con.connamespace
    CROSS JOIN LATERAL unnest(
        con.conkey, COALESCE(con.confkey, '{}'::smallint[])
    ) WITH ORDINALITY AS cols(local_attnum, ref_attnum, ord)
    LEFT JOIN pg_catalog.pg_class src ON src.oid = con.conrelid
    LEFT JOIN pg_catalog.pg_attribute src_att
      ON src_att.attrelid = con.conrelid
      AND src_att.attnum = cols.local_attnum
    LEFT JOIN pg_catalog.pg_class ref ON ref.oid = NULLIF(con.confrelid, 0)
    LEFT JOIN pg_catalog.pg_attribute ref_att
      ON ref_att.attrelid = con.confrelid
      AND ref_att.attnum = cols.ref_attnum
    WHERE nsp.nspname = %s
      AND con.conrelid <> 0
      AND con.conparentid = 0
      AND NOT COALESCE(src.relispartition, false)
      AND con.contype::text = ANY(%s)
    ORDER BY src.relname, con.conname, cols.ord
"""

TABLES_QUERY = """
    SELECT c.relname
    FROM pg_catalog.pg_class c
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = %s
      AND c.relkind IN ('r', 'p')
      AND NOT c.relispartition
    ORDER BY c.relname
"""


class CatalogIntrospector(SchemaIntrospector):
    """
    Introspect PostgreSQL constraints from the system catalog.

    Reads pg_constraint, pg_class and pg_attribute in a single query,
    so multi-column constraints come back position-paired.

    Usage:
        introspector = CatalogIntrospector(conn, schema="public")
        fks = introspector.list_foreign_key_constraints()
    """

    dialect = "postgresql"

    def __init__(self, conn: Connection, schema: str = "public"):
        self.conn = conn
        self.schema = schema

    def list_tables(self) -> list[str]:
        rows = self._fetch(TABLES_QUERY, (self.schema,))
        return [row[0] for row in rows]

    def list_all_constraints(
        self, kinds: Iterable[ConstraintKind] | None = None
    ) -> list[Constraint]:
        wanted = list(kinds) if kinds is not None else list(KIND_CODES.values())
        codes = [CODES_BY_KIND[kind] for kind in wanted]

        rows = self._fetch(CONSTRAINTS_QUERY, (self.schema, codes))
        constraints = [constraint_from_row(row) for row in rows]
        logger.debug(
            f"Found {len(constraints)} constraint columns in schema '{self.schema}'"
        )
        return constraints

    def _fetch(self, query: str, params: tuple) -> list[tuple]:
        try:
            with self.conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()
        except psycopg.Error as exc:
            raise IntrospectionError(str(exc)) from exc


def constraint_from_row(row: tuple) -> Constraint:
    """
    Build a Constraint from one row of CONSTRAINTS_QUERY.

    Raises:
        SchemaInconsistencyError: If a table or column did not resolve to a name
    """
    name, code, src_table, src_column, ref_table, ref_column, position, local_num, ref_num = row

    kind = KIND_CODES.get(code)
    if kind is None:
        raise SchemaInconsistencyError(name, f"unknown constraint type '{code}'")
    if src_table is None:
        raise SchemaInconsistencyError(name, "owning table not found in pg_class")
    if src_column is None:
        raise SchemaInconsistencyError(
            name, f"column #{local_num} of '{src_table}' not found in pg_attribute"
        )

    if kind is ConstraintKind.FOREIGN_KEY:
        if ref_table is None:
            raise SchemaInconsistencyError(name, "referenced table not found in pg_class")
        if ref_column is None:
            raise SchemaInconsistencyError(
                name, f"column #{ref_num} of '{ref_table}' not found in pg_attribute"
            )
        return Constraint(
            name=name,
            kind=kind,
            source_table=src_table,
            source_column=src_column,
            referenced_table=ref_table,
            referenced_column=ref_column,
            position=position,
        )

    return Constraint(
        name=name,
        kind=kind,
        source_table=src_table,
        source_column=src_column,
        position=position,
    )
