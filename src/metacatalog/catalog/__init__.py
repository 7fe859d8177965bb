"""Catalog module - hierarchical targets over a relational backing store.

This module provides:
- Identifier codec: 32-bit ids encoding schema, table and column numbers
- Targets: Schema, Table and Column value holders with optional locations
- CatalogStore: cached resolution and mutation of targets

Internal storage is in `metacatalog.catalog.models` and
`metacatalog.catalog.database`.
"""

from metacatalog.catalog.cache import MISSING, LRUCache
from metacatalog.catalog.database import BulkWriter, Database
from metacatalog.catalog.ids import IdCodec, TargetKind
from metacatalog.catalog.locations import (
    CsvFileLocation,
    DefaultLocation,
    FileLocation,
    Location,
    register_location_kind,
    restore_location,
)
from metacatalog.catalog.models import CATALOG_TABLES
from metacatalog.catalog.store import CatalogStore
from metacatalog.catalog.targets import Column, Schema, Table, Target

__all__ = [
    # Identifiers
    "IdCodec",
    "TargetKind",
    # Targets
    "Target",
    "Schema",
    "Table",
    "Column",
    # Locations
    "Location",
    "DefaultLocation",
    "FileLocation",
    "CsvFileLocation",
    "register_location_kind",
    "restore_location",
    # Storage
    "CatalogStore",
    "Database",
    "BulkWriter",
    "CATALOG_TABLES",
    "LRUCache",
    "MISSING",
]
