"""Catalog targets: schemas, tables and columns.

Targets are plain value holders; persistence and lookup live in
``CatalogStore``. Ownership is a strict tree: a table has exactly one
schema, a column exactly one table. Identity is ``(kind, id)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from metacatalog.catalog.ids import TargetKind
from metacatalog.catalog.locations import Location


@dataclass(eq=False)
class Target:
    """Any catalogued entity."""

    kind: ClassVar[TargetKind]

    id: int
    name: str
    location: Location | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Target):
            return NotImplemented
        return self.kind is other.kind and self.id == other.id

    def __hash__(self) -> int:
        return hash((self.kind, self.id))


@dataclass(eq=False)
class _Parent(Target):
    # Ids of registered children, loaded lazily by the catalog.
    # None means "not loaded"; an empty set means "known to have none".
    child_id_cache: set[int] | None = field(default=None, repr=False, compare=False)


@dataclass(eq=False)
class Schema(_Parent):
    kind: ClassVar[TargetKind] = TargetKind.SCHEMA


@dataclass(eq=False, kw_only=True)
class Table(_Parent):
    kind: ClassVar[TargetKind] = TargetKind.TABLE

    schema: Schema


@dataclass(eq=False, kw_only=True)
class Column(Target):
    kind: ClassVar[TargetKind] = TargetKind.COLUMN

    table: Table

    @property
    def schema(self) -> Schema:
        return self.table.schema
