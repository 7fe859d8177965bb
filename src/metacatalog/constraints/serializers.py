"""Constraint serializers and their registry.

This module provides:
- ConstraintSerializer: protocol every variant serializer implements
- One serializer per built-in constraint variant
- SerializerRegistry: kind tag -> serializer lookup
- default_registry: registry with every built-in serializer

Serializers write inside the session handed to them and never commit; the
constraint store owns the transaction. Reads select every payload row of a
collection with one join against ``constraints`` (plus one for part rows),
so the number of queries does not grow with the number of constraints.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from typing import Any, Protocol

from sqlmodel import Session, select

from metacatalog.catalog.models import ConstraintRecord
from metacatalog.constraints.models import (
    DistinctValueCountRecord,
    DistinctValueOverlapRecord,
    FunctionalDependencyLhsRecord,
    FunctionalDependencyRecord,
    InclusionDependencyPartRecord,
    InclusionDependencyRecord,
    TupleCountRecord,
    TypeConstraintRecord,
    UniqueColumnCombinationColumnRecord,
    UniqueColumnCombinationRecord,
)
from metacatalog.constraints.types import (
    ColumnType,
    Constraint,
    ConstraintKind,
    DistinctValueCount,
    DistinctValueOverlap,
    FunctionalDependency,
    InclusionDependency,
    TupleCount,
    TypeConstraint,
    UniqueColumnCombination,
)
from metacatalog.core.errors import UnsupportedConstraintError


class ConstraintSerializer(Protocol):
    """Protocol for per-variant persistence.

    Each serializer handles exactly one ``ConstraintKind`` and owns the
    relations holding that variant's payload.
    """

    @property
    def kind(self) -> ConstraintKind:
        """Kind tag this serializer is registered under."""
        ...

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        """Stage the payload rows of ``constraint`` in ``session``.

        The generic ``constraints`` row with ``constraint_id`` is already
        flushed when this is called.
        """
        ...

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        """All constraints of this kind in a collection, as ``(id, constraint)``."""
        ...


def _payload_rows(session: Session, record: Any, collection_id: int) -> list[tuple[int, Any]]:
    """``(collection_id, payload row)`` pairs for one variant's main relation."""
    stmt = (
        select(ConstraintRecord.collection_id, record)
        .join(record, record.constraint_id == ConstraintRecord.id)
        .where(ConstraintRecord.collection_id == collection_id)
        .order_by(ConstraintRecord.id)
    )
    return [(row[0], row[1]) for row in session.exec(stmt).all()]


def _part_rows(session: Session, record: Any, collection_id: int) -> dict[int, list[Any]]:
    """Part rows grouped by constraint id, in position order."""
    stmt = (
        select(record)
        .join(ConstraintRecord, ConstraintRecord.id == record.constraint_id)
        .where(ConstraintRecord.collection_id == collection_id)
        .order_by(record.constraint_id, record.position)
    )
    grouped: dict[int, list[Any]] = defaultdict(list)
    for part in session.exec(stmt).all():
        grouped[part.constraint_id].append(part)
    return grouped


# =============================================================================
# Serializers
# =============================================================================


class FunctionalDependencySerializer:
    kind = ConstraintKind.FUNCTIONAL_DEPENDENCY

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, FunctionalDependency)
        session.add(
            FunctionalDependencyRecord(
                constraint_id=constraint_id, rhs_column_id=constraint.rhs_column_id
            )
        )
        session.flush()
        for position, column_id in enumerate(constraint.lhs_column_ids):
            session.add(
                FunctionalDependencyLhsRecord(
                    constraint_id=constraint_id, position=position, column_id=column_id
                )
            )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        lhs = _part_rows(session, FunctionalDependencyLhsRecord, collection_id)
        return [
            (
                row.constraint_id,
                FunctionalDependency(
                    collection_id=cid,
                    lhs_column_ids=tuple(p.column_id for p in lhs[row.constraint_id]),
                    rhs_column_id=row.rhs_column_id,
                ),
            )
            for cid, row in _payload_rows(session, FunctionalDependencyRecord, collection_id)
        ]


class InclusionDependencySerializer:
    kind = ConstraintKind.INCLUSION_DEPENDENCY

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, InclusionDependency)
        session.add(
            InclusionDependencyRecord(
                constraint_id=constraint_id, arity=len(constraint.dependent_column_ids)
            )
        )
        session.flush()
        pairs = zip(constraint.dependent_column_ids, constraint.referenced_column_ids, strict=True)
        for position, (dependent, referenced) in enumerate(pairs):
            session.add(
                InclusionDependencyPartRecord(
                    constraint_id=constraint_id,
                    position=position,
                    dependent_column_id=dependent,
                    referenced_column_id=referenced,
                )
            )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        parts = _part_rows(session, InclusionDependencyPartRecord, collection_id)
        result: list[tuple[int, Constraint]] = []
        for cid, row in _payload_rows(session, InclusionDependencyRecord, collection_id):
            own = parts[row.constraint_id]
            result.append(
                (
                    row.constraint_id,
                    InclusionDependency(
                        collection_id=cid,
                        dependent_column_ids=tuple(p.dependent_column_id for p in own),
                        referenced_column_ids=tuple(p.referenced_column_id for p in own),
                    ),
                )
            )
        return result


class UniqueColumnCombinationSerializer:
    kind = ConstraintKind.UNIQUE_COLUMN_COMBINATION

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, UniqueColumnCombination)
        session.add(
            UniqueColumnCombinationRecord(
                constraint_id=constraint_id, arity=len(constraint.column_ids)
            )
        )
        session.flush()
        for position, column_id in enumerate(constraint.column_ids):
            session.add(
                UniqueColumnCombinationColumnRecord(
                    constraint_id=constraint_id, position=position, column_id=column_id
                )
            )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        columns = _part_rows(session, UniqueColumnCombinationColumnRecord, collection_id)
        return [
            (
                row.constraint_id,
                UniqueColumnCombination(
                    collection_id=cid,
                    column_ids=tuple(p.column_id for p in columns[row.constraint_id]),
                ),
            )
            for cid, row in _payload_rows(session, UniqueColumnCombinationRecord, collection_id)
        ]


class DistinctValueCountSerializer:
    kind = ConstraintKind.DISTINCT_VALUE_COUNT

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, DistinctValueCount)
        session.add(
            DistinctValueCountRecord(
                constraint_id=constraint_id,
                column_id=constraint.column_id,
                count=constraint.count,
            )
        )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        return [
            (
                row.constraint_id,
                DistinctValueCount(collection_id=cid, column_id=row.column_id, count=row.count),
            )
            for cid, row in _payload_rows(session, DistinctValueCountRecord, collection_id)
        ]


class DistinctValueOverlapSerializer:
    kind = ConstraintKind.DISTINCT_VALUE_OVERLAP

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, DistinctValueOverlap)
        first, second = constraint.column_ids
        session.add(
            DistinctValueOverlapRecord(
                constraint_id=constraint_id,
                first_column_id=first,
                second_column_id=second,
                overlap=constraint.overlap,
            )
        )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        return [
            (
                row.constraint_id,
                DistinctValueOverlap(
                    collection_id=cid,
                    column_ids=(row.first_column_id, row.second_column_id),
                    overlap=row.overlap,
                ),
            )
            for cid, row in _payload_rows(session, DistinctValueOverlapRecord, collection_id)
        ]


class TypeConstraintSerializer:
    kind = ConstraintKind.TYPE

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, TypeConstraint)
        session.add(
            TypeConstraintRecord(
                constraint_id=constraint_id,
                column_id=constraint.column_id,
                column_type=constraint.column_type.value,
            )
        )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        return [
            (
                row.constraint_id,
                TypeConstraint(
                    collection_id=cid,
                    column_id=row.column_id,
                    column_type=ColumnType(row.column_type),
                ),
            )
            for cid, row in _payload_rows(session, TypeConstraintRecord, collection_id)
        ]


class TupleCountSerializer:
    kind = ConstraintKind.TUPLE_COUNT

    def serialize(self, session: Session, constraint_id: int, constraint: Constraint) -> None:
        assert isinstance(constraint, TupleCount)
        session.add(
            TupleCountRecord(
                constraint_id=constraint_id,
                table_id=constraint.table_id,
                num_tuples=constraint.num_tuples,
            )
        )

    def deserialize_for_collection(
        self, session: Session, collection_id: int
    ) -> list[tuple[int, Constraint]]:
        return [
            (
                row.constraint_id,
                TupleCount(collection_id=cid, table_id=row.table_id, num_tuples=row.num_tuples),
            )
            for cid, row in _payload_rows(session, TupleCountRecord, collection_id)
        ]


# =============================================================================
# Registry
# =============================================================================


class SerializerRegistry:
    """Maps each constraint kind tag to the serializer persisting it."""

    def __init__(self) -> None:
        self._serializers: dict[ConstraintKind, ConstraintSerializer] = {}

    def register(self, serializer: ConstraintSerializer) -> None:
        """Register a serializer, replacing any previous one for its kind."""
        self._serializers[serializer.kind] = serializer

    def get(self, kind: ConstraintKind) -> ConstraintSerializer:
        """Serializer for ``kind``.

        Raises:
            UnsupportedConstraintError: If none is registered.
        """
        serializer = self._serializers.get(kind)
        if serializer is None:
            raise UnsupportedConstraintError.no_serializer(getattr(kind, "value", str(kind)))
        return serializer

    def all(self) -> list[ConstraintSerializer]:
        return list(self._serializers.values())

    def __contains__(self, kind: object) -> bool:
        return kind in self._serializers

    def __iter__(self) -> Iterator[ConstraintSerializer]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._serializers)


def default_registry() -> SerializerRegistry:
    """Registry with a serializer for every built-in constraint kind."""
    registry = SerializerRegistry()
    for serializer in (
        FunctionalDependencySerializer(),
        InclusionDependencySerializer(),
        UniqueColumnCombinationSerializer(),
        DistinctValueCountSerializer(),
        DistinctValueOverlapSerializer(),
        TypeConstraintSerializer(),
        TupleCountSerializer(),
    ):
        registry.register(serializer)
    return registry
