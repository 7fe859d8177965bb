"""Constraint variants and the collections that group them.

Every variant is a frozen value object tagged with a ``ConstraintKind``. The
tag is what the serializer registry dispatches on; adding a variant means
adding a kind, a dataclass here and a serializer.

Column-id sequences are normalized to tuples on construction, so variants
stay hashable and compare by value.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


class ConstraintKind(str, Enum):
    """Persisted tag of a constraint variant."""

    FUNCTIONAL_DEPENDENCY = "functional_dependency"
    INCLUSION_DEPENDENCY = "inclusion_dependency"
    UNIQUE_COLUMN_COMBINATION = "unique_column_combination"
    DISTINCT_VALUE_COUNT = "distinct_value_count"
    DISTINCT_VALUE_OVERLAP = "distinct_value_overlap"
    TYPE = "type"
    TUPLE_COUNT = "tuple_count"


class ColumnType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"


def _column_ids(values: Iterable[int], what: str) -> tuple[int, ...]:
    ids = tuple(int(v) for v in values)
    if not ids:
        raise ValueError(f"{what} must name at least one column")
    return ids


def _non_negative(value: int, what: str) -> None:
    if value < 0:
        raise ValueError(f"{what} must be >= 0, got {value}")


@dataclass(frozen=True)
class Constraint:
    """Base of all constraint variants."""

    kind: ClassVar[ConstraintKind]

    collection_id: int


@dataclass(frozen=True)
class FunctionalDependency(Constraint):
    """``lhs_column_ids -> rhs_column_id``."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.FUNCTIONAL_DEPENDENCY

    lhs_column_ids: tuple[int, ...]
    rhs_column_id: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "lhs_column_ids", _column_ids(self.lhs_column_ids, "Left-hand side")
        )


@dataclass(frozen=True)
class InclusionDependency(Constraint):
    """Values of ``dependent_column_ids`` are contained in ``referenced_column_ids``.

    The two sides pair up positionally.
    """

    kind: ClassVar[ConstraintKind] = ConstraintKind.INCLUSION_DEPENDENCY

    dependent_column_ids: tuple[int, ...]
    referenced_column_ids: tuple[int, ...]

    def __post_init__(self) -> None:
        dependent = _column_ids(self.dependent_column_ids, "Dependent side")
        referenced = _column_ids(self.referenced_column_ids, "Referenced side")
        if len(dependent) != len(referenced):
            raise ValueError(
                f"Sides differ in arity: {len(dependent)} dependent, "
                f"{len(referenced)} referenced"
            )
        object.__setattr__(self, "dependent_column_ids", dependent)
        object.__setattr__(self, "referenced_column_ids", referenced)


@dataclass(frozen=True)
class UniqueColumnCombination(Constraint):
    kind: ClassVar[ConstraintKind] = ConstraintKind.UNIQUE_COLUMN_COMBINATION

    column_ids: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "column_ids", _column_ids(self.column_ids, "Combination"))


@dataclass(frozen=True)
class DistinctValueCount(Constraint):
    kind: ClassVar[ConstraintKind] = ConstraintKind.DISTINCT_VALUE_COUNT

    column_id: int
    count: int

    def __post_init__(self) -> None:
        _non_negative(self.count, "Distinct value count")


@dataclass(frozen=True)
class DistinctValueOverlap(Constraint):
    """Number of distinct values shared by exactly two columns."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.DISTINCT_VALUE_OVERLAP

    column_ids: tuple[int, int]
    overlap: int

    def __post_init__(self) -> None:
        pair = tuple(int(v) for v in self.column_ids)
        if len(pair) != 2:
            raise ValueError(f"Overlap needs exactly two columns, got {len(pair)}")
        _non_negative(self.overlap, "Overlap")
        object.__setattr__(self, "column_ids", pair)


@dataclass(frozen=True)
class TypeConstraint(Constraint):
    kind: ClassVar[ConstraintKind] = ConstraintKind.TYPE

    column_id: int
    column_type: ColumnType

    def __post_init__(self) -> None:
        object.__setattr__(self, "column_type", ColumnType(self.column_type))


@dataclass(frozen=True)
class TupleCount(Constraint):
    kind: ClassVar[ConstraintKind] = ConstraintKind.TUPLE_COUNT

    table_id: int
    num_tuples: int

    def __post_init__(self) -> None:
        _non_negative(self.num_tuples, "Tuple count")


@dataclass(frozen=True, eq=False)
class ConstraintCollection:
    """Grouping of constraints over a fixed set of targets.

    Identity is the id alone; ``scope_ids`` is the snapshot taken when the
    collection was loaded.
    """

    id: int
    scope_ids: frozenset[int] = field(default_factory=frozenset)
    description: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConstraintCollection):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
