"""Dependency graph and load ordering."""

import logging
from collections.abc import Iterable

from fkload.exceptions import CyclicDependencyError
from fkload.models import Constraint, ConstraintKind, TableLoadPlan, TableStep

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Directed graph for table dependencies.

    An edge table -> depends_on means table has a foreign key referencing
    depends_on. Self-references are tracked per node and never become edges.
    """

    def __init__(self):
        self._tables: list[str] = []
        self._edges: dict[str, set[str]] = {}
        self._self_references: dict[str, set[str]] = {}

    @property
    def tables(self) -> list[str]:
        """Tables in insertion order."""
        return list(self._tables)

    def add_table(self, table: str) -> None:
        """Add a table to the graph."""
        if table not in self._edges:
            self._tables.append(table)
            self._edges[table] = set()
            self._self_references[table] = set()

    def add_dependency(self, table: str, depends_on: str, column: str | None = None) -> None:
        """
        Add a dependency: table depends on depends_on.

        Self-references are recorded against the node, not as edges.
        """
        self.add_table(table)
        self.add_table(depends_on)

        if table == depends_on:
            if column:
                self._self_references[table].add(column)
        else:
            self._edges[table].add(depends_on)

    def get_dependencies(self, table: str) -> set[str]:
        """Get distinct tables that this table depends on."""
        return set(self._edges.get(table, set()))

    def get_self_references(self, table: str) -> set[str]:
        """Get columns of table referencing the table itself."""
        return set(self._self_references.get(table, set()))

    def has_edge(self, table: str, depends_on: str) -> bool:
        return depends_on in self._edges.get(table, set())

    def topological_sort(self) -> list[str]:
        """
        Sort tables so that dependencies come before dependents.

        A table becomes eligible once every other table it references is
        placed. Among eligible tables the earliest added wins.

        Raises:
            CyclicDependencyError: If distinct tables depend on each other
        """
        placed: list[str] = []
        placed_set: set[str] = set()
        remaining = list(self._tables)

        while remaining:
            for table in remaining:
                if self._edges[table] <= placed_set:
                    break
            else:
                raise CyclicDependencyError(set(remaining), self.detect_cycles())

            remaining.remove(table)
            placed.append(table)
            placed_set.add(table)

        return placed

    def detect_cycles(self) -> list[list[str]]:
        """
        Detect circular dependencies (excluding self-references).

        Returns list of cycles, where each cycle is a list of table names
        ending with its first table.
        """
        cycles: list[list[str]] = []
        visited: set[str] = set()
        path: list[str] = []

        def dfs(node: str) -> None:
            if node in path:
                cycle = path[path.index(node) :] + [node]
                if cycle not in cycles:
                    cycles.append(cycle)
                return

            if node in visited:
                return

            visited.add(node)
            path.append(node)

            for dep in sorted(self._edges.get(node, set()), key=self._tables.index):
                dfs(dep)

            path.pop()

        for node in self._tables:
            if node not in visited:
                dfs(node)

        return cycles


def build_load_order(
    constraints: Iterable[Constraint], tables_to_load: Iterable[str]
) -> TableLoadPlan:
    """
    Compute a dependency-safe load plan.

    Args:
        constraints: Constraints from introspection (foreign and primary keys
            are used, other kinds are ignored)
        tables_to_load: Tables being loaded; order breaks ties

    Returns:
        TableLoadPlan with one step per table

    Raises:
        CyclicDependencyError: If distinct tables form a cycle
    """
    graph = DependencyGraph()
    for table in tables_to_load:
        graph.add_table(table)
    in_load = set(graph.tables)

    foreign_keys: dict[str, list[Constraint]] = {t: [] for t in in_load}
    self_references: dict[str, list[Constraint]] = {t: [] for t in in_load}
    external: dict[str, list[Constraint]] = {t: [] for t in in_load}
    primary_keys: dict[str, list[Constraint]] = {t: [] for t in in_load}

    for constraint in constraints:
        if constraint.source_table not in in_load:
            continue

        if constraint.kind is ConstraintKind.PRIMARY_KEY:
            primary_keys[constraint.source_table].append(constraint)
            continue
        if constraint.kind is not ConstraintKind.FOREIGN_KEY:
            continue

        source = constraint.source_table
        if constraint.referenced_table not in in_load:
            external[source].append(constraint)
        elif constraint.is_self_reference:
            self_references[source].append(constraint)
            graph.add_dependency(source, source, constraint.source_column)
        else:
            foreign_keys[source].append(constraint)
            graph.add_dependency(source, constraint.referenced_table)

    order = graph.topological_sort()
    logger.info(f"Load order: {' -> '.join(order) if order else '(empty)'}")

    steps = []
    for table in order:
        key_columns = [
            c.source_column for c in sorted(primary_keys[table], key=lambda c: c.position)
        ]
        if not key_columns:
            # Self-references must target a key; use it to locate rows
            for fk in self_references[table]:
                if fk.referenced_column not in key_columns:
                    key_columns.append(fk.referenced_column)

        steps.append(
            TableStep(
                table=table,
                key_columns=tuple(key_columns),
                foreign_keys=tuple(foreign_keys[table]),
                self_references=tuple(self_references[table]),
                external_references=tuple(external[table]),
            )
        )

    return TableLoadPlan(steps=tuple(steps))
