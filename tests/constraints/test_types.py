"""Tests for constraint variant construction."""

import dataclasses

import pytest

from metacatalog.constraints.types import (
    ColumnType,
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


class TestVariants:
    """Normalization and structural checks on construction."""

    def test_lists_become_tuples(self) -> None:
        fd = FunctionalDependency(1, [10, 11], 12)  # type: ignore[arg-type]

        assert fd.lhs_column_ids == (10, 11)
        assert hash(fd) == hash(FunctionalDependency(1, (10, 11), 12))

    def test_kind_tags(self) -> None:
        assert FunctionalDependency(1, (1,), 2).kind is ConstraintKind.FUNCTIONAL_DEPENDENCY
        assert TupleCount(1, 5, 0).kind is ConstraintKind.TUPLE_COUNT
        assert TypeConstraint(1, 5, ColumnType.STRING).kind is ConstraintKind.TYPE

    def test_frozen(self) -> None:
        count = DistinctValueCount(1, 5, 3)

        with pytest.raises(dataclasses.FrozenInstanceError):
            count.count = 4  # type: ignore[misc]

    def test_type_accepts_string_value(self) -> None:
        constraint = TypeConstraint(1, 5, "decimal")  # type: ignore[arg-type]

        assert constraint.column_type is ColumnType.DECIMAL

    @pytest.mark.parametrize(
        "build",
        [
            lambda: FunctionalDependency(1, (), 2),
            lambda: UniqueColumnCombination(1, ()),
            lambda: InclusionDependency(1, (1, 2), (3,)),
            lambda: InclusionDependency(1, (), ()),
            lambda: DistinctValueCount(1, 5, -1),
            lambda: DistinctValueOverlap(1, (1, 2, 3), 0),  # type: ignore[arg-type]
            lambda: DistinctValueOverlap(1, (1, 2), -5),
            lambda: TupleCount(1, 5, -1),
            lambda: TypeConstraint(1, 5, "blob"),  # type: ignore[arg-type]
        ],
    )
    def test_invalid_construction_rejected(self, build) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(ValueError):
            build()


class TestConstraintCollection:
    """Collections compare by id."""

    def test_identity_is_id(self) -> None:
        first = ConstraintCollection(id=1, scope_ids=frozenset({1, 2}))
        same = ConstraintCollection(id=1, scope_ids=frozenset(), description="other")

        assert first == same
        assert len({first, same}) == 1
        assert first != ConstraintCollection(id=2)
