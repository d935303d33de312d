"""Tests for dependency graph and load ordering."""

import random

import pytest

from fkload.dependency import DependencyGraph, build_load_order
from fkload.exceptions import CyclicDependencyError
from fkload.models import Constraint, ConstraintKind


def test_referenced_tables_load_first(address_constraints):
    """Should place region and street before address."""
    plan = build_load_order(address_constraints, ["address", "street", "region"])

    order = plan.order
    assert sorted(order) == ["address", "region", "street"]
    assert order.index("region") < order.index("address")
    assert order.index("street") < order.index("address")


def test_siblings_keep_input_order(address_constraints):
    """Eligible tables are taken in input order."""
    assert build_load_order(address_constraints, ["region", "street", "address"]).order == [
        "region",
        "street",
        "address",
    ]
    assert build_load_order(address_constraints, ["street", "region", "address"]).order == [
        "street",
        "region",
        "address",
    ]


def test_self_reference_is_not_an_edge(address_constraints):
    """Self-references are annotated on the step, never ordered."""
    plan = build_load_order(address_constraints, ["region"])

    assert plan.order == ["region"]
    step = plan.step("region")
    assert step.deferred_columns == {"parent"}
    assert step.depends_on == set()
    assert step.key_columns == ("id",)


def test_self_reference_only_table(fk):
    """A lone self-referencing table orders without error."""
    plan = build_load_order([fk("node", "parent", "node")], ["node"])

    assert plan.order == ["node"]
    # No primary key reported: rows are located by the referenced column
    assert plan.step("node").key_columns == ("id",)


def test_external_references_are_recorded(fk):
    """References to tables outside the load are kept as external."""
    constraints = [fk("address", "street", "street"), fk("address", "region", "region")]
    plan = build_load_order(constraints, ["address", "region"])

    step = plan.step("address")
    assert step.resolvable_columns == {"region"}
    assert step.external_columns == {"street"}
    assert plan.order == ["region", "address"]


def test_constraints_of_unloaded_tables_ignored(fk):
    """Constraints owned by tables outside the load contribute nothing."""
    constraints = [fk("invoice", "customer", "customer"), fk("customer", "invoice", "invoice")]
    plan = build_load_order(constraints, ["customer"])

    assert plan.order == ["customer"]
    assert plan.step("customer").external_columns == {"invoice"}


def test_non_foreign_key_constraints_ignored():
    """Unique and check constraints never create edges."""
    constraints = [
        Constraint("street_name_key", ConstraintKind.UNIQUE, "street", "name"),
        Constraint("street_name_check", ConstraintKind.CHECK, "street", "name"),
    ]
    plan = build_load_order(constraints, ["street"])

    assert plan.order == ["street"]
    assert plan.step("street").foreign_keys == ()


def test_composite_primary_key_order(pk):
    """Key columns follow their position in the constraint."""
    constraints = [pk("line", "number", position=2), pk("line", "invoice", position=1)]
    plan = build_load_order(constraints, ["line"])

    assert plan.step("line").key_columns == ("invoice", "number")


def test_two_table_cycle_fails(fk):
    """A cycle between distinct tables raises CyclicDependencyError."""
    constraints = [fk("a", "b_id", "b"), fk("b", "a_id", "a")]

    with pytest.raises(CyclicDependencyError) as exc_info:
        build_load_order(constraints, ["a", "b"])

    assert exc_info.value.tables == {"a", "b"}
    assert exc_info.value.cycles == [["a", "b", "a"]]


def test_cycle_names_blocked_dependents(fk):
    """Tables stuck behind a cycle are part of the unresolved set."""
    constraints = [
        fk("a", "b_id", "b"),
        fk("b", "c_id", "c"),
        fk("c", "a_id", "a"),
        fk("d", "a_id", "a"),
        fk("e", "e_id", "e"),
    ]

    with pytest.raises(CyclicDependencyError) as exc_info:
        build_load_order(constraints, ["e", "a", "b", "c", "d"])

    assert exc_info.value.tables == {"a", "b", "c", "d"}
    assert "a -> b -> c -> a" in str(exc_info.value)


def test_duplicate_tables_ignored(address_constraints):
    """Listing a table twice yields one step."""
    plan = build_load_order(address_constraints, ["region", "region", "address", "street"])

    assert plan.order == ["region", "street", "address"]


def test_graph_detect_cycles_without_sorting():
    """DependencyGraph reports cycles but not self-references."""
    graph = DependencyGraph()
    graph.add_dependency("a", "a", "parent")
    graph.add_dependency("b", "c")
    graph.add_dependency("c", "b")

    assert graph.detect_cycles() == [["b", "c", "b"]]
    assert graph.get_self_references("a") == {"parent"}
    assert not graph.has_edge("a", "a")


@pytest.mark.parametrize("seed", range(20))
def test_random_acyclic_schemas_order(seed, fk):
    """Every referenced table precedes the table referencing it."""
    rng = random.Random(seed)
    tables = [f"t{i}" for i in range(rng.randint(2, 12))]

    constraints = []
    for i, table in enumerate(tables):
        # Only reference earlier tables so the schema is acyclic
        for target in rng.sample(tables[:i], rng.randint(0, i)):
            constraints.append(fk(table, f"{target}_id", target))
        if rng.random() < 0.3:
            constraints.append(fk(table, "parent", table))

    shuffled = tables[:]
    rng.shuffle(shuffled)
    order = build_load_order(constraints, shuffled).order

    assert sorted(order) == sorted(tables)
    for c in constraints:
        if c.source_table != c.referenced_table:
            assert order.index(c.referenced_table) < order.index(c.source_table)
