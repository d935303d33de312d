"""
fkload - Dependency-Safe Bulk Loading

Loads related tables whose rows reference autogenerated keys through
temporary identifiers, discovering foreign keys from the live schema.
"""

from fkload.dependency import DependencyGraph, build_load_order
from fkload.exceptions import (
    CyclicDependencyError,
    DuplicateTemporaryIdError,
    FkLoadError,
    InsertError,
    IntrospectionError,
    InvalidRowError,
    SchemaInconsistencyError,
    UnknownTableError,
    UnresolvedReferenceError,
)
from fkload.introspection import (
    CatalogIntrospector,
    PragmaIntrospector,
    SchemaIntrospector,
    create_introspector,
)
from fkload.loader import BulkLoader
from fkload.models import (
    Constraint,
    ConstraintKind,
    LoadReport,
    TableLoadPlan,
    TableStep,
    TempId,
)
from fkload.orchestrator import LoadOrchestrator
from fkload.resolver import UNRESOLVED, TemporaryIdentifierResolver

__version__ = "0.1.0"

__all__ = [
    "BulkLoader",
    "CatalogIntrospector",
    "Constraint",
    "ConstraintKind",
    "CyclicDependencyError",
    "DependencyGraph",
    "DuplicateTemporaryIdError",
    "FkLoadError",
    "InsertError",
    "IntrospectionError",
    "InvalidRowError",
    "LoadOrchestrator",
    "LoadReport",
    "PragmaIntrospector",
    "SchemaInconsistencyError",
    "SchemaIntrospector",
    "TableLoadPlan",
    "TableStep",
    "TempId",
    "TemporaryIdentifierResolver",
    "UNRESOLVED",
    "UnknownTableError",
    "UnresolvedReferenceError",
    "build_load_order",
    "create_introspector",
]
