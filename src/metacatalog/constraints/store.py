"""Constraint and scope framework on top of the catalog store.

Constraint ids come from one store-wide counter. The counter is read from
the backing store once (the largest persisted id, 0 when there is none) and
afterwards advanced in memory. Allocation and persistence of constraints run
under ``_id_lock``, so concurrent writers get pairwise distinct ids that are
contiguous in acquisition order. The counter only advances once a write has
committed; a failed write leaves it where it was.

Everything else here follows the catalog store's threading model: one
logical writer, serialized by the caller.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterable

import structlog
from sqlalchemy import func
from sqlmodel import Session, select

from metacatalog.catalog.database import Database
from metacatalog.catalog.models import (
    ConstraintCollectionRecord,
    ConstraintRecord,
    ScopeRecord,
)
from metacatalog.catalog.store import CatalogStore
from metacatalog.catalog.targets import Target
from metacatalog.constraints.serializers import SerializerRegistry, default_registry
from metacatalog.constraints.types import Constraint, ConstraintCollection
from metacatalog.core.errors import NotFoundError, ScopeFrozenError

logger = structlog.get_logger()

CollectionRef = ConstraintCollection | int


def _collection_id(collection: CollectionRef) -> int:
    if isinstance(collection, ConstraintCollection):
        return collection.id
    return int(collection)


class ConstraintStore:
    """Persists constraint collections, their scopes and their constraints."""

    def __init__(self, catalog: CatalogStore, registry: SerializerRegistry | None = None) -> None:
        self.catalog = catalog
        self.registry = registry or default_registry()
        self._id_lock = threading.Lock()
        self._max_constraint_id: int | None = None

    @property
    def database(self) -> Database:
        return self.catalog.database

    # =========================================================================
    # Collections and scopes
    # =========================================================================

    def create_constraint_collection(
        self, scope: Iterable[Target], description: str | None = None
    ) -> ConstraintCollection:
        """Create a collection over ``scope``.

        Every scope target is resolved first; an unknown target raises
        NotFoundError and nothing is written.
        """
        scope_ids = self._resolve_scope(scope)

        with self.database.session("create_constraint_collection") as session:
            record = ConstraintCollectionRecord(description=description)
            session.add(record)
            session.flush()
            collection_id = record.id
            assert collection_id is not None
            for target_id in sorted(scope_ids):
                session.add(ScopeRecord(target_id=target_id, collection_id=collection_id))
            session.commit()

        logger.info(
            "constraint_collection_created",
            collection_id=collection_id,
            scope_size=len(scope_ids),
        )
        return ConstraintCollection(
            id=collection_id, scope_ids=frozenset(scope_ids), description=description
        )

    def get_constraint_collection(self, collection_id: int) -> ConstraintCollection:
        """Load a collection with its current scope.

        Raises:
            NotFoundError: If no such collection exists.
        """
        with self.database.session("get_constraint_collection") as session:
            record = session.get(ConstraintCollectionRecord, collection_id)
            if record is None:
                raise NotFoundError.collection(collection_id)
            description = record.description
            scope_ids = session.exec(
                select(ScopeRecord.target_id).where(ScopeRecord.collection_id == collection_id)
            ).all()
        return ConstraintCollection(
            id=collection_id, scope_ids=frozenset(scope_ids), description=description
        )

    def get_all_constraint_collections(self) -> list[ConstraintCollection]:
        with self.database.session("get_all_constraint_collections") as session:
            records = session.exec(
                select(ConstraintCollectionRecord).order_by(ConstraintCollectionRecord.id)
            ).all()
            scope_rows = session.exec(select(ScopeRecord)).all()
            collections = [(r.id, r.description) for r in records]

        scopes: dict[int, set[int]] = defaultdict(set)
        for row in scope_rows:
            scopes[row.collection_id].add(row.target_id)
        return [
            ConstraintCollection(
                id=cid, scope_ids=frozenset(scopes.get(cid, ())), description=description
            )
            for cid, description in collections
            if cid is not None
        ]

    def get_scope_for_collection(self, collection: CollectionRef) -> list[Target]:
        """Scope targets of a collection, resolved through the catalog.

        Resolution failures propagate; a scope row pointing at an id that no
        longer resolves surfaces as NotFoundError.
        """
        collection_id = _collection_id(collection)
        with self.database.session("get_scope_for_collection") as session:
            self._require_collection(session, collection_id)
            target_ids = session.exec(
                select(ScopeRecord.target_id)
                .where(ScopeRecord.collection_id == collection_id)
                .order_by(ScopeRecord.target_id)
            ).all()
        return [self.catalog.resolve_target(target_id) for target_id in target_ids]

    def extend_scope(
        self, collection: CollectionRef, targets: Iterable[Target]
    ) -> ConstraintCollection:
        """Add targets to the scope of a collection that holds no constraints yet.

        Raises:
            NotFoundError: If the collection or a target does not exist.
            ScopeFrozenError: If constraints already reference the collection.
        """
        collection_id = _collection_id(collection)
        new_ids = self._resolve_scope(targets)

        with self.database.session("extend_scope") as session:
            self._require_collection(session, collection_id)
            held = session.exec(
                select(ConstraintRecord.id)
                .where(ConstraintRecord.collection_id == collection_id)
                .limit(1)
            ).first()
            if held is not None:
                raise ScopeFrozenError.frozen(collection_id)

            existing = set(
                session.exec(
                    select(ScopeRecord.target_id).where(ScopeRecord.collection_id == collection_id)
                ).all()
            )
            for target_id in sorted(new_ids - existing):
                session.add(ScopeRecord(target_id=target_id, collection_id=collection_id))
            session.commit()

        logger.info(
            "constraint_scope_extended",
            collection_id=collection_id,
            added=len(new_ids - existing),
        )
        return self.get_constraint_collection(collection_id)

    def _resolve_scope(self, targets: Iterable[Target]) -> set[int]:
        return {self.catalog.resolve_target(target.id).id for target in targets}

    def _require_collection(self, session: Session, collection_id: int) -> None:
        if session.get(ConstraintCollectionRecord, collection_id) is None:
            raise NotFoundError.collection(collection_id)

    # =========================================================================
    # Constraints
    # =========================================================================

    def add_constraint(self, constraint: Constraint) -> int:
        """Persist one constraint and return its id.

        Raises:
            NotFoundError: If the constraint's collection does not exist.
            UnsupportedConstraintError: If no serializer handles its kind.
        """
        return self._write([constraint], "add_constraint")[0]

    def add_constraints(self, constraints: Iterable[Constraint]) -> list[int]:
        """Persist a batch in one transaction; ids are returned in input order."""
        batch = list(constraints)
        if not batch:
            return []
        return self._write(batch, "add_constraints")

    def _write(self, constraints: list[Constraint], operation: str) -> list[int]:
        with self._id_lock:
            with self.database.session(operation) as session:
                for collection_id in sorted({c.collection_id for c in constraints}):
                    self._require_collection(session, collection_id)
                serializers = [self.registry.get(c.kind) for c in constraints]

                base = self._current_max_id(session)
                ids = list(range(base + 1, base + 1 + len(constraints)))
                for constraint_id, constraint, serializer in zip(
                    ids, constraints, serializers, strict=True
                ):
                    session.add(
                        ConstraintRecord(
                            id=constraint_id,
                            collection_id=constraint.collection_id,
                            kind=constraint.kind.value,
                        )
                    )
                    session.flush()
                    serializer.serialize(session, constraint_id, constraint)
                session.commit()

            self._max_constraint_id = ids[-1]

        for constraint_id, constraint in zip(ids, constraints, strict=True):
            logger.debug(
                "constraint_added",
                constraint_id=constraint_id,
                kind=constraint.kind.value,
                collection_id=constraint.collection_id,
            )
        return ids

    def _current_max_id(self, session: Session) -> int:
        """Largest allocated constraint id; read from the store on first use."""
        if self._max_constraint_id is None:
            persisted = session.exec(select(func.max(ConstraintRecord.id))).one()
            self._max_constraint_id = int(persisted or 0)
            logger.info(
                "constraint_id_counter_initialized",
                max_constraint_id=self._max_constraint_id,
            )
        return self._max_constraint_id

    def get_constraints_for_collection(self, collection: CollectionRef) -> list[Constraint]:
        """Every constraint of a collection across all registered kinds, by id."""
        return [c for _, c in self.get_constraints_with_ids(collection)]

    def get_constraints_with_ids(self, collection: CollectionRef) -> list[tuple[int, Constraint]]:
        """Like ``get_constraints_for_collection`` but paired with constraint ids."""
        collection_id = _collection_id(collection)
        found: list[tuple[int, Constraint]] = []
        with self.database.session("get_constraints_for_collection") as session:
            self._require_collection(session, collection_id)
            for serializer in self.registry.all():
                found.extend(serializer.deserialize_for_collection(session, collection_id))
        found.sort(key=lambda pair: pair[0])
        return found
