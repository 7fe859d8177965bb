"""MetadataStore - one handle over a catalog file.

Wires a Database, a CatalogStore and a ConstraintStore together, persists
the identifier layout a store was created with, and picks free local
numbers when targets are added by name.

Usage::

    with MetadataStore.create(Path("catalog.db")) as store:
        schema = store.add_schema("sales")
        orders = store.add_table(schema, "orders", location=CsvFileLocation.at("/data/orders.csv"))
        amount = store.add_column(orders, "amount")
        collection = store.create_constraint_collection(orders, description="profiling run")
        store.add_constraint(TypeConstraint(collection.id, amount.id, ColumnType.DECIMAL))
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from types import TracebackType

import structlog

from metacatalog.catalog.database import Database
from metacatalog.catalog.ids import IdCodec, TargetKind
from metacatalog.catalog.locations import Location
from metacatalog.catalog.models import CATALOG_TABLES
from metacatalog.catalog.store import CatalogStore
from metacatalog.catalog.targets import Column, Schema, Table, Target
from metacatalog.config.constants import (
    CONFIG_KEY_COLUMN_BITS,
    CONFIG_KEY_FORMAT_VERSION,
    CONFIG_KEY_TABLE_BITS,
    STORE_FORMAT_VERSION,
)
from metacatalog.config.models import CatalogConfig
from metacatalog.constraints.models import CONSTRAINT_TABLES
from metacatalog.constraints.store import CollectionRef, ConstraintStore
from metacatalog.constraints.types import Constraint, ConstraintCollection
from metacatalog.core.errors import (
    BackingStoreError,
    ConfigError,
    IdentifierCollisionError,
    NotFoundError,
)

logger = structlog.get_logger()

REQUIRED_TABLES = CATALOG_TABLES + CONSTRAINT_TABLES


class MetadataStore:
    """Catalog plus constraint framework over a single SQLite file."""

    def __init__(
        self,
        database: Database,
        config: CatalogConfig | None = None,
        codec: IdCodec | None = None,
    ) -> None:
        self.config = config or CatalogConfig()
        self.database = database
        if codec is None:
            codec = IdCodec(self.config.ids.num_table_bits, self.config.ids.num_column_bits)
        self.catalog = CatalogStore(database, codec, self.config.cache)
        self.constraints = ConstraintStore(self.catalog)

    @property
    def codec(self) -> IdCodec:
        return self.catalog.codec

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @classmethod
    def create(cls, path: Path | str, config: CatalogConfig | None = None) -> MetadataStore:
        """Create a fresh store at ``path``, dropping any relations already there.

        The identifier layout from ``config.ids`` is persisted and reused by
        every later ``open``.
        """
        config = config or CatalogConfig()
        database = Database(Path(path), config.database)
        database.drop_all()
        database.create_all()

        store = cls(database, config)
        store.catalog.save_configuration(
            {
                CONFIG_KEY_TABLE_BITS: str(store.codec.num_table_bits),
                CONFIG_KEY_COLUMN_BITS: str(store.codec.num_column_bits),
                CONFIG_KEY_FORMAT_VERSION: STORE_FORMAT_VERSION,
            }
        )
        logger.info("store_created", path=str(path), codec=repr(store.codec))
        return store

    @classmethod
    def open(cls, path: Path | str, config: CatalogConfig | None = None) -> MetadataStore:
        """Open an existing store with the identifier layout it was created with.

        Raises:
            NotFoundError: If the file or any required relation is missing.
            ConfigError: If the persisted store configuration is unusable.
            BackingStoreError: If the file cannot be read as a database.
        """
        config = config or CatalogConfig()
        path = Path(path)
        if not path.exists():
            raise NotFoundError.missing_relations(str(path), list(REQUIRED_TABLES))

        database = Database(path, config.database)
        try:
            present = database.table_names()
        except BackingStoreError:
            database.dispose()
            raise
        missing = [name for name in REQUIRED_TABLES if name not in present]
        if missing:
            database.dispose()
            raise NotFoundError.missing_relations(str(path), missing)

        store = cls(database, config)
        try:
            codec = _codec_from_configuration(store.catalog.load_configuration(), config)
        except ConfigError:
            database.dispose()
            raise
        store.catalog.codec = codec

        logger.info("store_opened", path=str(path), codec=repr(codec))
        return store

    def flush(self) -> None:
        """Checkpoint the write-ahead log into the main database file."""
        self.database.checkpoint("PASSIVE")

    def close(self) -> None:
        self.catalog.close()
        logger.debug("store_closed", path=str(self.database.db_path))

    def __enter__(self) -> MetadataStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # =========================================================================
    # Targets
    # =========================================================================

    def add_schema(
        self, name: str, location: Location | None = None, number: int | None = None
    ) -> Schema:
        """Add a schema, choosing the lowest unused schema number unless given.

        Raises:
            IdentifierCollisionError: If ``number`` is taken or none is left.
            ValueError: If ``number`` is out of range.
        """
        if number is None:
            schema_id = self._free_schema_id()
        else:
            schema_id = self._claim(self.codec.encode(number))

        schema = Schema(id=schema_id, name=name, location=location)
        self.catalog.add_schema(schema)
        return schema

    def add_table(
        self,
        schema: Schema,
        name: str,
        location: Location | None = None,
        number: int | None = None,
    ) -> Table:
        schema_local = self.codec.decode_schema_local(schema.id)
        if number is None:
            table_id = self._free_child_id(
                schema,
                (self.codec.encode(schema_local, n) for n in range(self.codec.max_table_number + 1)),
            )
        else:
            table_id = self._claim(self.codec.encode(schema_local, number))

        table = Table(id=table_id, name=name, location=location, schema=schema)
        self.catalog.add_table_to_schema(table, schema)
        return table

    def add_column(
        self,
        table: Table,
        name: str,
        location: Location | None = None,
        number: int | None = None,
    ) -> Column:
        schema_local = self.codec.decode_schema_local(table.id)
        table_local = self.codec.decode_table_local(table.id)
        if number is None:
            column_id = self._free_child_id(
                table,
                (
                    self.codec.encode(schema_local, table_local, n)
                    for n in range(self.codec.max_column_number + 1)
                ),
            )
        else:
            column_id = self._claim(self.codec.encode(schema_local, table_local, number))

        column = Column(id=column_id, name=name, location=location, table=table)
        self.catalog.add_column_to_table(column, table)
        return column

    def _claim(self, target_id: int) -> int:
        if self.catalog.is_identifier_in_use(target_id):
            raise IdentifierCollisionError.in_use(target_id)
        return target_id

    def _free_schema_id(self) -> int:
        for number in range(self.codec.max_schema_number + 1):
            schema_id = self.codec.encode(number)
            if not self.catalog.is_identifier_in_use(schema_id):
                return schema_id
        raise IdentifierCollisionError.exhausted(TargetKind.SCHEMA.value)

    def _free_child_id(self, parent: Schema | Table, candidates: Iterable[int]) -> int:
        used = self.catalog.get_child_ids(parent)
        for candidate in candidates:
            if candidate not in used:
                return candidate
        child_kind = TargetKind.TABLE if isinstance(parent, Schema) else TargetKind.COLUMN
        raise IdentifierCollisionError.exhausted(child_kind.value, parent.id)

    def get_target(self, target_id: int) -> Target:
        return self.catalog.resolve_target(target_id)

    def get_schema_by_name(self, name: str) -> Schema | None:
        """First schema called ``name`` (lowest id), or None."""
        return next((s for s in self.catalog.get_all_schemas() if s.name == name), None)

    def get_table_by_name(self, schema: Schema, name: str) -> Table | None:
        return next(
            (t for t in self.catalog.get_all_tables_for_schema(schema) if t.name == name), None
        )

    def get_column_by_name(self, table: Table, name: str) -> Column | None:
        return next(
            (c for c in self.catalog.get_all_columns_for_table(table) if c.name == name), None
        )

    def get_all_schemas(self) -> list[Schema]:
        return self.catalog.get_all_schemas()

    def get_all_targets(self) -> list[Target]:
        return self.catalog.get_all_targets()

    # =========================================================================
    # Constraints
    # =========================================================================

    def create_constraint_collection(
        self, *targets: Target, description: str | None = None
    ) -> ConstraintCollection:
        return self.constraints.create_constraint_collection(targets, description)

    def extend_scope(self, collection: CollectionRef, *targets: Target) -> ConstraintCollection:
        return self.constraints.extend_scope(collection, targets)

    def add_constraint(self, constraint: Constraint) -> int:
        return self.constraints.add_constraint(constraint)

    def add_constraints(self, constraints: Iterable[Constraint]) -> list[int]:
        return self.constraints.add_constraints(constraints)

    def get_constraint_collection(self, collection_id: int) -> ConstraintCollection:
        return self.constraints.get_constraint_collection(collection_id)

    def get_all_constraint_collections(self) -> list[ConstraintCollection]:
        return self.constraints.get_all_constraint_collections()

    def get_constraints_for_collection(self, collection: CollectionRef) -> list[Constraint]:
        return self.constraints.get_constraints_for_collection(collection)

    def get_scope_for_collection(self, collection: CollectionRef) -> list[Target]:
        return self.constraints.get_scope_for_collection(collection)


def _codec_from_configuration(stored: Mapping[str, str], config: CatalogConfig) -> IdCodec:
    """Rebuild the codec a store was created with.

    Keys absent from the stored map fall back to ``config.ids``.
    """
    version = stored.get(CONFIG_KEY_FORMAT_VERSION, STORE_FORMAT_VERSION)
    if version != STORE_FORMAT_VERSION:
        raise ConfigError.invalid_value(
            CONFIG_KEY_FORMAT_VERSION, version, f"expected {STORE_FORMAT_VERSION}"
        )

    widths = {
        CONFIG_KEY_TABLE_BITS: config.ids.num_table_bits,
        CONFIG_KEY_COLUMN_BITS: config.ids.num_column_bits,
    }
    for key in widths:
        if key not in stored:
            continue
        try:
            widths[key] = int(stored[key])
        except ValueError as e:
            raise ConfigError.invalid_value(key, stored[key], "not an integer") from e

    try:
        return IdCodec(widths[CONFIG_KEY_TABLE_BITS], widths[CONFIG_KEY_COLUMN_BITS])
    except ValueError as e:
        raise ConfigError.invalid_value("ids", widths, str(e)) from e
