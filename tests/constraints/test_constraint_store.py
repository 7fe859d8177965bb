"""Tests for constraint collections, scopes and constraint persistence."""

from __future__ import annotations

import threading

import pytest

from metacatalog.catalog import CatalogStore, Column, Schema, Table
from metacatalog.constraints import (
    ColumnType,
    ConstraintStore,
    DistinctValueCount,
    DistinctValueOverlap,
    FunctionalDependency,
    InclusionDependency,
    SerializerRegistry,
    TupleCount,
    TypeConstraint,
    UniqueColumnCombination,
    default_registry,
)
from metacatalog.constraints.types import ConstraintKind
from metacatalog.core.errors import (
    BackingStoreError,
    ErrorCode,
    NotFoundError,
    ScopeFrozenError,
    UnsupportedConstraintError,
)


@pytest.fixture
def table(catalog: CatalogStore) -> Table:
    """Table 0.0 with columns 0..3."""
    codec = catalog.codec
    schema = Schema(id=codec.encode(0), name="shop")
    catalog.add_schema(schema)
    table = Table(id=codec.encode(0, 0), name="orders", schema=schema)
    catalog.add_table_to_schema(table, schema)
    for number, name in enumerate(["id", "customer", "amount", "currency"]):
        column = Column(id=codec.encode(0, 0, number), name=name, table=table)
        catalog.add_column_to_table(column, table)
    return table


@pytest.fixture
def columns(catalog: CatalogStore, table: Table) -> list[Column]:
    return catalog.get_all_columns_for_table(table)


class TestCollections:
    """Collection creation and scope handling."""

    def test_create_and_load(self, constraint_store: ConstraintStore, table: Table) -> None:
        created = constraint_store.create_constraint_collection([table], description="run 1")

        loaded = constraint_store.get_constraint_collection(created.id)

        assert loaded == created
        assert loaded.scope_ids == frozenset({table.id})
        assert loaded.description == "run 1"

    def test_scope_resolves_targets(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        collection = constraint_store.create_constraint_collection([table, columns[0]])

        scope = constraint_store.get_scope_for_collection(collection)

        assert scope == [columns[0], table]

    def test_unknown_scope_target_rejected(
        self, catalog: CatalogStore, constraint_store: ConstraintStore
    ) -> None:
        ghost = Schema(id=catalog.codec.encode(42), name="ghost")

        with pytest.raises(NotFoundError):
            constraint_store.create_constraint_collection([ghost])

        assert constraint_store.get_all_constraint_collections() == []

    def test_unknown_collection(self, constraint_store: ConstraintStore) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            constraint_store.get_constraint_collection(99)

        assert exc_info.value.code == ErrorCode.COLLECTION_NOT_FOUND

    def test_scope_of_unknown_collection(self, constraint_store: ConstraintStore) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            constraint_store.get_scope_for_collection(99)

        assert exc_info.value.code == ErrorCode.COLLECTION_NOT_FOUND

    def test_constraints_of_unknown_collection(self, constraint_store: ConstraintStore) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            constraint_store.get_constraints_for_collection(99)

        assert exc_info.value.code == ErrorCode.COLLECTION_NOT_FOUND

    def test_extend_scope_of_unknown_collection(
        self, constraint_store: ConstraintStore, table: Table
    ) -> None:
        with pytest.raises(NotFoundError):
            constraint_store.extend_scope(99, [table])

    def test_all_collections(self, constraint_store: ConstraintStore, table: Table) -> None:
        first = constraint_store.create_constraint_collection([table])
        second = constraint_store.create_constraint_collection([], description="empty")

        collections = constraint_store.get_all_constraint_collections()

        assert collections == [first, second]
        assert collections[1].scope_ids == frozenset()

    def test_extend_scope_before_constraints(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])

        extended = constraint_store.extend_scope(collection, [columns[1], table])

        assert extended.scope_ids == frozenset({table.id, columns[1].id})

    def test_scope_frozen_once_constraints_exist(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        constraint_store.add_constraint(TupleCount(collection.id, table.id, 10))

        with pytest.raises(ScopeFrozenError) as exc_info:
            constraint_store.extend_scope(collection, [columns[0]])

        assert exc_info.value.code == ErrorCode.SCOPE_FROZEN
        assert constraint_store.get_constraint_collection(collection.id).scope_ids == {table.id}


class TestConstraints:
    """Writing and reading constraints."""

    def test_functional_dependency_and_type(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        fd = FunctionalDependency(collection.id, (columns[0].id, columns[1].id), columns[2].id)
        type_constraint = TypeConstraint(collection.id, columns[0].id, ColumnType.STRING)

        constraint_store.add_constraint(fd)
        constraint_store.add_constraint(type_constraint)

        assert constraint_store.get_constraints_for_collection(collection) == [fd, type_constraint]

    def test_every_kind_round_trips(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        c0, c1, c2, c3 = (c.id for c in columns)
        written = [
            TupleCount(collection.id, table.id, 1000),
            InclusionDependency(collection.id, (c1, c3), (c0, c2)),
            UniqueColumnCombination(collection.id, (c0, c3)),
            DistinctValueCount(collection.id, c1, 87),
            DistinctValueOverlap(collection.id, (c1, c2), 4),
            TypeConstraint(collection.id, c2, ColumnType.DECIMAL),
            FunctionalDependency(collection.id, (c0,), c3),
        ]

        ids = constraint_store.add_constraints(written)

        assert ids == list(range(ids[0], ids[0] + len(written)))
        assert constraint_store.get_constraints_for_collection(collection.id) == written
        assert [i for i, _ in constraint_store.get_constraints_with_ids(collection)] == ids

    def test_part_order_is_preserved(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        ucc = UniqueColumnCombination(collection.id, (columns[3].id, columns[0].id, columns[2].id))

        constraint_store.add_constraint(ucc)

        (loaded,) = constraint_store.get_constraints_for_collection(collection)
        assert isinstance(loaded, UniqueColumnCombination)
        assert loaded.column_ids == (columns[3].id, columns[0].id, columns[2].id)

    def test_collections_are_separate(
        self, constraint_store: ConstraintStore, table: Table, columns: list[Column]
    ) -> None:
        first = constraint_store.create_constraint_collection([table])
        second = constraint_store.create_constraint_collection([table])
        constraint_store.add_constraint(DistinctValueCount(first.id, columns[0].id, 1))
        constraint_store.add_constraint(DistinctValueCount(second.id, columns[0].id, 2))

        (only,) = constraint_store.get_constraints_for_collection(second)

        assert only == DistinctValueCount(second.id, columns[0].id, 2)

    def test_empty_batch(self, constraint_store: ConstraintStore) -> None:
        assert constraint_store.add_constraints([]) == []

    def test_unknown_collection_rejected(self, constraint_store: ConstraintStore, table: Table) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            constraint_store.add_constraint(TupleCount(123, table.id, 1))

        assert exc_info.value.code == ErrorCode.COLLECTION_NOT_FOUND


class TestConstraintIds:
    """The store-wide constraint id counter."""

    def test_first_id_is_one(self, constraint_store: ConstraintStore, table: Table) -> None:
        collection = constraint_store.create_constraint_collection([table])

        assert constraint_store.add_constraint(TupleCount(collection.id, table.id, 1)) == 1

    def test_counter_continues_from_persisted_max(
        self, catalog: CatalogStore, constraint_store: ConstraintStore, table: Table
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        constraint_store.add_constraints(TupleCount(collection.id, table.id, n) for n in range(3))

        reopened = ConstraintStore(catalog)

        assert reopened.add_constraint(TupleCount(collection.id, table.id, 9)) == 4

    def test_unsupported_kind_does_not_consume_id(
        self, catalog: CatalogStore, table: Table, columns: list[Column]
    ) -> None:
        registry = SerializerRegistry()
        for kind in ConstraintKind:
            if kind is not ConstraintKind.TYPE:
                registry.register(default_registry().get(kind))
        store = ConstraintStore(catalog, registry)
        collection = store.create_constraint_collection([table])

        with pytest.raises(UnsupportedConstraintError):
            store.add_constraint(TypeConstraint(collection.id, columns[0].id, ColumnType.STRING))

        assert store.add_constraint(TupleCount(collection.id, table.id, 1)) == 1
        assert store.get_constraints_for_collection(collection) == [
            TupleCount(collection.id, table.id, 1)
        ]

    def test_failed_write_returns_id(
        self, catalog: CatalogStore, constraint_store: ConstraintStore, table: Table
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        constraint_store.add_constraint(TupleCount(collection.id, table.id, 1))
        dangling_column = catalog.codec.encode(7, 7, 7)

        with pytest.raises(BackingStoreError):
            constraint_store.add_constraint(DistinctValueCount(collection.id, dangling_column, 3))

        assert constraint_store.add_constraint(TupleCount(collection.id, table.id, 2)) == 2
        assert len(constraint_store.get_constraints_for_collection(collection)) == 2

    def test_concurrent_writers_get_contiguous_ids(
        self, constraint_store: ConstraintStore, table: Table
    ) -> None:
        collection = constraint_store.create_constraint_collection([table])
        per_thread, num_threads = 10, 4
        allocated: list[int] = []
        allocated_lock = threading.Lock()
        errors: list[BaseException] = []

        def writer(offset: int) -> None:
            try:
                for n in range(per_thread):
                    new_id = constraint_store.add_constraint(
                        TupleCount(collection.id, table.id, offset * 100 + n)
                    )
                    with allocated_lock:
                        allocated.append(new_id)
            except BaseException as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        total = per_thread * num_threads
        assert sorted(allocated) == list(range(1, total + 1))
        assert len(constraint_store.get_constraints_for_collection(collection)) == total
