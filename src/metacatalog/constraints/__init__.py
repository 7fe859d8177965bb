"""Constraint module - pluggable constraint persistence.

Constraint variants live in `metacatalog.constraints.types`; each is persisted
by a serializer registered under its kind tag. `ConstraintStore` allocates
constraint ids and manages collections and their scopes.
"""

from metacatalog.constraints.serializers import (
    ConstraintSerializer,
    SerializerRegistry,
    default_registry,
)
from metacatalog.constraints.store import ConstraintStore
from metacatalog.constraints.types import (
    ColumnType,
    Constraint,
    ConstraintCollection,
    ConstraintKind,
    DistinctValueCount,
    DistinctValueOverlap,
    FunctionalDependency,
    InclusionDependency,
    TupleCount,
    TypeConstraint,
    UniqueColumnCombination,
)

__all__ = [
    # Store
    "ConstraintStore",
    # Serialization
    "ConstraintSerializer",
    "SerializerRegistry",
    "default_registry",
    # Types
    "ColumnType",
    "Constraint",
    "ConstraintCollection",
    "ConstraintKind",
    "DistinctValueCount",
    "DistinctValueOverlap",
    "FunctionalDependency",
    "InclusionDependency",
    "TupleCount",
    "TypeConstraint",
    "UniqueColumnCombination",
]
