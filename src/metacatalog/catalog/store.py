"""Catalog store: cached, lazily materialized view over the target relations.

The backing store is always the source of truth; every cache here holds
derived values. Mutations keep the caches consistent as postconditions:

- ``add_schema``: schema and location cached; ``all_schemas`` and
  ``all_targets`` dropped.
- ``add_table_to_schema``: table and location cached; the schema's table
  listing and ``all_targets`` dropped; table id added to the cached
  schema's loaded child-id cache.
- ``add_column_to_table``: column and location cached; the table's column
  listing and ``all_targets`` dropped; column id added to the cached
  table's loaded child-id cache.
- ``allocate_and_register_id(s)``: ``all_targets`` dropped; ids added to the
  cached parent's loaded child-id cache.

Child-id caches live only on the cached copy of a schema or table and go
away when it is evicted.

Aggregates are dropped wholesale rather than patched. Row changes made
outside this object are invisible to it; call ``invalidate()`` afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, cast

import structlog
from sqlmodel import Session, select

from metacatalog.catalog.cache import MISSING, LRUCache
from metacatalog.catalog.database import Database
from metacatalog.catalog.ids import IdCodec, TargetKind
from metacatalog.catalog.locations import Location, restore_location
from metacatalog.catalog.models import (
    ColumnRecord,
    ConfigRecord,
    LocationPropertyRecord,
    LocationRecord,
    SchemaRecord,
    TableRecord,
    TargetRecord,
)
from metacatalog.catalog.targets import Column, Schema, Table, Target
from metacatalog.config.models import CacheConfig
from metacatalog.core.errors import IdentifierCollisionError, NotFoundError

logger = structlog.get_logger()

_Fetched = tuple[str, Location | None, int | None]


class CatalogStore:
    """Owns the target caches and propagates target mutations to the database.

    Not thread-safe. Callers sharing one instance across threads must
    serialize access to it.
    """

    def __init__(
        self,
        database: Database,
        codec: IdCodec | None = None,
        cache_config: CacheConfig | None = None,
    ) -> None:
        self.database = database
        self.codec = codec or IdCodec()

        cfg = cache_config or CacheConfig()
        self._schema_cache: LRUCache[int, Schema] = LRUCache(cfg.target_cache_size)
        self._table_cache: LRUCache[int, Table] = LRUCache(cfg.target_cache_size)
        self._column_cache: LRUCache[int, Column] = LRUCache(cfg.target_cache_size)
        self._location_cache: LRUCache[int, Location | None] = LRUCache(cfg.location_cache_size)
        self._tables_for_schema: LRUCache[int, list[Table]] = LRUCache(cfg.aggregate_cache_size)
        self._columns_for_table: LRUCache[int, list[Column]] = LRUCache(cfg.aggregate_cache_size)
        self._all_targets: list[Target] | None = None
        self._all_schemas: list[Schema] | None = None

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve_target(self, target_id: int) -> Target:
        """Resolve any target id, dispatching on the kind encoded in it.

        Raises:
            NotFoundError: If no matching target row exists.
        """
        kind = self.codec.kind_of(target_id)
        if kind is TargetKind.SCHEMA:
            return self.get_schema_by_id(target_id)
        if kind is TargetKind.TABLE:
            return self.get_table_by_id(target_id)
        return self.get_column_by_id(target_id)

    def get_schema_by_id(self, schema_id: int) -> Schema:
        cached = self._schema_cache.get(schema_id)
        if cached is not MISSING:
            return cast(Schema, cached)

        fetched = self._fetch_target(SchemaRecord, schema_id, None, "get_schema_by_id")
        if fetched is None:
            raise NotFoundError.target(schema_id, TargetKind.SCHEMA.value)
        name, location, _ = fetched

        schema = Schema(id=schema_id, name=name, location=location)
        self._schema_cache.put(schema_id, schema)
        logger.debug("schema_loaded", schema_id=schema_id)
        return schema

    def get_table_by_id(self, table_id: int) -> Table:
        cached = self._table_cache.get(table_id)
        if cached is not MISSING:
            return cast(Table, cached)

        fetched = self._fetch_target(TableRecord, table_id, TableRecord.schema_id, "get_table_by_id")
        if fetched is None:
            raise NotFoundError.target(table_id, TargetKind.TABLE.value)
        name, location, schema_id = fetched

        table = Table(
            id=table_id,
            name=name,
            location=location,
            schema=self.get_schema_by_id(cast(int, schema_id)),
        )
        self._table_cache.put(table_id, table)
        logger.debug("table_loaded", table_id=table_id)
        return table

    def get_column_by_id(self, column_id: int) -> Column:
        cached = self._column_cache.get(column_id)
        if cached is not MISSING:
            return cast(Column, cached)

        fetched = self._fetch_target(
            ColumnRecord, column_id, ColumnRecord.table_id, "get_column_by_id"
        )
        if fetched is None:
            raise NotFoundError.target(column_id, TargetKind.COLUMN.value)
        name, location, table_id = fetched

        column = Column(
            id=column_id,
            name=name,
            location=location,
            table=self.get_table_by_id(cast(int, table_id)),
        )
        self._column_cache.put(column_id, column)
        logger.debug("column_loaded", column_id=column_id)
        return column

    def _fetch_target(
        self,
        record: Any,
        target_id: int,
        parent_column: Any | None,
        operation: str,
    ) -> _Fetched | None:
        """Load name, location and parent id of one target in a single query.

        The identity row is joined with the kind row and, outer-joined, with
        the location and its properties (one result row per property).
        """
        columns: list[Any] = [
            TargetRecord.name,
            LocationRecord.id.label("location_id"),  # type: ignore[union-attr]
            LocationRecord.kind.label("location_kind"),  # type: ignore[attr-defined]
            LocationPropertyRecord.key.label("property_key"),  # type: ignore[attr-defined]
            LocationPropertyRecord.value.label("property_value"),  # type: ignore[attr-defined]
        ]
        if parent_column is not None:
            columns.append(parent_column.label("parent_id"))

        stmt = (
            select(*columns)
            .select_from(TargetRecord)
            .join(record, record.id == TargetRecord.id)
            .outerjoin(LocationRecord, LocationRecord.id == TargetRecord.location_id)
            .outerjoin(
                LocationPropertyRecord,
                LocationPropertyRecord.location_id == LocationRecord.id,
            )
            .where(TargetRecord.id == target_id)
            .order_by(LocationPropertyRecord.id)
        )
        with self.database.session(operation) as session:
            rows = session.exec(stmt).all()
        if not rows:
            return None

        first = rows[0]
        location: Location | None = None
        if first.location_id is not None:
            location = restore_location(first.location_kind, _properties(rows))
        self._location_cache.put(target_id, location)

        parent_id = first.parent_id if parent_column is not None else None
        return first.name or "", location, parent_id

    def get_location_for(self, target_id: int) -> Location | None:
        """Location of a target, or None if it has none (also cached)."""
        cached = self._location_cache.get(target_id)
        if cached is not MISSING:
            return cast(Location | None, cached)

        stmt = (
            select(
                LocationRecord.kind,
                LocationPropertyRecord.key.label("property_key"),  # type: ignore[attr-defined]
                LocationPropertyRecord.value.label("property_value"),  # type: ignore[attr-defined]
            )
            .select_from(TargetRecord)
            .join(LocationRecord, LocationRecord.id == TargetRecord.location_id)
            .outerjoin(
                LocationPropertyRecord,
                LocationPropertyRecord.location_id == LocationRecord.id,
            )
            .where(TargetRecord.id == target_id)
            .order_by(LocationPropertyRecord.id)
        )
        with self.database.session("get_location_for") as session:
            rows = session.exec(stmt).all()

        location: Location | None = None
        if rows:
            location = restore_location(rows[0].kind, _properties(rows))
        self._location_cache.put(target_id, location)
        return location

    # =========================================================================
    # Aggregates
    # =========================================================================

    def get_all_schemas(self) -> list[Schema]:
        if self._all_schemas is None:
            with self.database.session("get_all_schemas") as session:
                ids = session.exec(select(SchemaRecord.id).order_by(SchemaRecord.id)).all()
            self._all_schemas = [self.get_schema_by_id(i) for i in ids]
        return list(self._all_schemas)

    def get_all_tables_for_schema(self, schema: Schema) -> list[Table]:
        cached = self._tables_for_schema.get(schema.id)
        if cached is not MISSING:
            return list(cast(list[Table], cached))

        with self.database.session("get_all_tables_for_schema") as session:
            ids = session.exec(
                select(TableRecord.id)
                .where(TableRecord.schema_id == schema.id)
                .order_by(TableRecord.id)
            ).all()
        tables = [self.get_table_by_id(i) for i in ids]
        self._tables_for_schema.put(schema.id, tables)
        return list(tables)

    def get_all_columns_for_table(self, table: Table) -> list[Column]:
        cached = self._columns_for_table.get(table.id)
        if cached is not MISSING:
            return list(cast(list[Column], cached))

        with self.database.session("get_all_columns_for_table") as session:
            ids = session.exec(
                select(ColumnRecord.id)
                .where(ColumnRecord.table_id == table.id)
                .order_by(ColumnRecord.id)
            ).all()
        columns = [self.get_column_by_id(i) for i in ids]
        self._columns_for_table.put(table.id, columns)
        return list(columns)

    def get_all_targets(self) -> list[Target]:
        """Every schema, table and column, parents before children."""
        if self._all_targets is None:
            with self.database.session("get_all_targets") as session:
                schema_ids = session.exec(select(SchemaRecord.id).order_by(SchemaRecord.id)).all()
                table_ids = session.exec(select(TableRecord.id).order_by(TableRecord.id)).all()
                column_ids = session.exec(select(ColumnRecord.id).order_by(ColumnRecord.id)).all()
            targets: list[Target] = [self.get_schema_by_id(i) for i in schema_ids]
            targets.extend(self.get_table_by_id(i) for i in table_ids)
            targets.extend(self.get_column_by_id(i) for i in column_ids)
            self._all_targets = targets
        return list(self._all_targets)

    def get_child_ids(self, parent: Schema | Table) -> set[int]:
        """Registered ids of the direct children of ``parent``.

        Covers raw id registrations as well as fully added targets. Only the
        cached copy of the parent holds a child-id cache; a parent object that
        is not (or no longer) cached is answered from the database.
        """
        resident = self._resident(parent.id)
        if resident is not None and resident.child_id_cache is not None:
            return set(resident.child_id_cache)

        low, high = self.codec.child_id_range(parent.id)
        with self.database.session("get_child_ids") as session:
            ids = session.exec(
                select(TargetRecord.id).where(TargetRecord.id >= low, TargetRecord.id <= high)
            ).all()
        child_ids = {i for i in ids if self.codec.parent_id_of(i) == parent.id}

        if resident is not None:
            resident.child_id_cache = set(child_ids)
        return child_ids

    # =========================================================================
    # Identifiers
    # =========================================================================

    def is_identifier_in_use(self, target_id: int) -> bool:
        """Whether the id is registered. Never under-reports.

        Checks the kind's point cache, then the resident parent's loaded
        child-id cache, then the database.
        """
        kind = self.codec.kind_of(target_id)
        if kind is TargetKind.SCHEMA:
            if target_id in self._schema_cache:
                return True
        else:
            point_cache: LRUCache[int, Any] = (
                self._table_cache if kind is TargetKind.TABLE else self._column_cache
            )
            if target_id in point_cache:
                return True
            parent = self._resident(cast(int, self.codec.parent_id_of(target_id)))
            if parent is not None and parent.child_id_cache is not None:
                return target_id in parent.child_id_cache

        with self.database.session("is_identifier_in_use") as session:
            found = session.exec(
                select(TargetRecord.id).where(TargetRecord.id == target_id).limit(1)
            ).first()
        return found is not None

    def allocate_and_register_id(self, target_id: int) -> bool:
        """Record ``target_id`` as in use.

        Raises:
            IdentifierCollisionError: If the id is already registered.
        """
        if self.is_identifier_in_use(target_id):
            raise IdentifierCollisionError.in_use(target_id)

        with self.database.session("allocate_and_register_id") as session:
            session.add(TargetRecord(id=target_id))
            session.commit()

        self._all_targets = None
        self._note_child_id(target_id)
        logger.debug("identifier_registered", target_id=target_id)
        return True

    def allocate_and_register_ids(self, target_ids: Iterable[int]) -> int:
        """Batch variant of ``allocate_and_register_id``; returns count written.

        Nothing is written if any id is already registered or repeated.
        """
        ids = list(target_ids)
        seen: set[int] = set()
        for target_id in ids:
            if target_id in seen or self.is_identifier_in_use(target_id):
                raise IdentifierCollisionError.in_use(target_id)
            seen.add(target_id)

        with self.database.bulk_writer("allocate_and_register_ids") as writer:
            count = writer.insert_many(TargetRecord, [{"id": i} for i in ids])

        self._all_targets = None
        for target_id in ids:
            self._note_child_id(target_id)
        logger.debug("identifiers_registered", count=count)
        return count

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_schema(self, schema: Schema) -> None:
        self._check_kind(schema, TargetKind.SCHEMA)

        with self.database.session("add_schema") as session:
            self._write_target(session, schema, SchemaRecord)
            session.add(SchemaRecord(id=schema.id))
            session.commit()

        self._schema_cache.put(schema.id, schema)
        self._location_cache.put(schema.id, schema.location)
        self._all_schemas = None
        self._all_targets = None
        logger.info("schema_added", schema_id=schema.id, name=schema.name)

    def add_table_to_schema(self, table: Table, schema: Schema) -> None:
        self._check_kind(table, TargetKind.TABLE)
        self._check_parent(table.id, schema.id, table.schema.id)

        with self.database.session("add_table_to_schema") as session:
            self._write_target(session, table, TableRecord)
            session.add(TableRecord(id=table.id, schema_id=schema.id))
            session.commit()

        self._table_cache.put(table.id, table)
        self._location_cache.put(table.id, table.location)
        self._tables_for_schema.pop(schema.id)
        self._all_targets = None
        self._note_child_id(table.id)
        logger.info("table_added", table_id=table.id, schema_id=schema.id, name=table.name)

    def add_column_to_table(self, column: Column, table: Table) -> None:
        self._check_kind(column, TargetKind.COLUMN)
        self._check_parent(column.id, table.id, column.table.id)

        with self.database.session("add_column_to_table") as session:
            self._write_target(session, column, ColumnRecord)
            session.add(ColumnRecord(id=column.id, table_id=table.id))
            session.commit()

        self._column_cache.put(column.id, column)
        self._location_cache.put(column.id, column.location)
        self._columns_for_table.pop(table.id)
        self._all_targets = None
        self._note_child_id(column.id)
        logger.info("column_added", column_id=column.id, table_id=table.id, name=column.name)

    def _write_target(self, session: Session, target: Target, kind_record: Any) -> None:
        """Insert the identity row, or fill in a pre-registered one.

        Raises:
            IdentifierCollisionError: If the target was already added.
        """
        if session.get(kind_record, target.id) is not None:
            raise IdentifierCollisionError.in_use(target.id)

        location_id = self._write_location(session, target.location)

        record = session.get(TargetRecord, target.id)
        if record is None:
            record = TargetRecord(id=target.id, name=target.name, location_id=location_id)
        else:
            record.name = target.name
            record.location_id = location_id
        session.add(record)
        session.flush()

    def _write_location(self, session: Session, location: Location | None) -> int | None:
        if location is None:
            return None

        record = LocationRecord(kind=location.kind_tag)
        session.add(record)
        session.flush()
        for key, value in location.properties.items():
            session.add(LocationPropertyRecord(location_id=record.id, key=key, value=value))
        session.flush()
        return record.id

    def _check_kind(self, target: Target, expected: TargetKind) -> None:
        actual = self.codec.kind_of(target.id)
        if actual is not expected:
            raise ValueError(f"Id {target.id} encodes a {actual.value}, not a {expected.value}")

    def _check_parent(self, child_id: int, parent_id: int, declared_parent_id: int) -> None:
        encoded_parent = self.codec.parent_id_of(child_id)
        if not encoded_parent == parent_id == declared_parent_id:
            raise ValueError(
                f"Id {child_id} belongs under {encoded_parent}, "
                f"but was added under {parent_id} (declared {declared_parent_id})"
            )

    def _resident(self, target_id: int) -> Schema | Table | None:
        """Cached schema or table for ``target_id``, without touching recency."""
        kind = self.codec.kind_of(target_id)
        if kind is TargetKind.SCHEMA:
            found = self._schema_cache.peek(target_id)
        elif kind is TargetKind.TABLE:
            found = self._table_cache.peek(target_id)
        else:
            return None
        return None if found is MISSING else cast(Schema | Table, found)

    def _note_child_id(self, child_id: int) -> None:
        parent_id = self.codec.parent_id_of(child_id)
        if parent_id is None:
            return
        parent = self._resident(parent_id)
        if parent is not None and parent.child_id_cache is not None:
            parent.child_id_cache.add(child_id)

    # =========================================================================
    # Store configuration
    # =========================================================================

    def load_configuration(self) -> dict[str, str]:
        with self.database.session("load_configuration") as session:
            records = session.exec(select(ConfigRecord)).all()
            return {record.key: record.value for record in records}

    def save_configuration(self, configuration: Mapping[str, str]) -> None:
        """Replace the persisted configuration map as a whole."""
        with self.database.bulk_writer("save_configuration") as writer:
            writer.delete_all(ConfigRecord)
            writer.insert_many(
                ConfigRecord,
                [{"key": key, "value": str(value)} for key, value in configuration.items()],
            )
        logger.debug("configuration_saved", keys=sorted(configuration))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def table_exists(self, name: str) -> bool:
        """Case-insensitive check for a backing-store relation."""
        return self.database.table_exists(name)

    def invalidate(self) -> None:
        """Drop every cached value, e.g. after rows changed behind this store."""
        for cache in (
            self._schema_cache,
            self._table_cache,
            self._column_cache,
            self._location_cache,
            self._tables_for_schema,
            self._columns_for_table,
        ):
            cache.clear()
        self._all_targets = None
        self._all_schemas = None

    def close(self) -> None:
        self.invalidate()
        self.database.dispose()


def _properties(rows: Iterable[Any]) -> dict[str, str]:
    return {row.property_key: row.property_value for row in rows if row.property_key is not None}
