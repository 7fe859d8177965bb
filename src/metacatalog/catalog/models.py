"""SQLModel definitions for the shared catalog relations.

Single source of truth for the identity, hierarchy, location, collection,
scope and config tables. Per-variant constraint tables live next to their
serializers in ``metacatalog.constraints.models``.

Target ids are assigned by the client (they encode the hierarchy, see
``metacatalog.catalog.ids``), so their primary keys never autoincrement.
Location and collection ids are generated by the backing store.
"""

from sqlalchemy import BigInteger, Column, ForeignKey
from sqlmodel import Field, SQLModel

# ============================================================================
# TARGETS
# ============================================================================


class TargetRecord(SQLModel, table=True):
    """Identity row for every target and every raw "id in use" record."""

    __tablename__ = "targets"

    id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    name: str | None = None
    location_id: int | None = Field(default=None, foreign_key="locations.id")


class SchemaRecord(SQLModel, table=True):
    __tablename__ = "schemas"

    id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("targets.id"), primary_key=True, autoincrement=False
        )
    )


class TableRecord(SQLModel, table=True):
    __tablename__ = "tables"

    id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("targets.id"), primary_key=True, autoincrement=False
        )
    )
    schema_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("schemas.id"), nullable=False, index=True)
    )


class ColumnRecord(SQLModel, table=True):
    __tablename__ = "columns"

    id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("targets.id"), primary_key=True, autoincrement=False
        )
    )
    table_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("tables.id"), nullable=False, index=True)
    )


# ============================================================================
# LOCATIONS
# ============================================================================


class LocationRecord(SQLModel, table=True):
    __tablename__ = "locations"

    id: int | None = Field(default=None, primary_key=True)
    kind: str  # Tag selecting the Location class on read


class LocationPropertyRecord(SQLModel, table=True):
    __tablename__ = "location_properties"

    id: int | None = Field(default=None, primary_key=True)  # Preserves property order
    location_id: int = Field(foreign_key="locations.id", index=True)
    key: str
    value: str


# ============================================================================
# CONSTRAINT COLLECTIONS
# ============================================================================


class ConstraintCollectionRecord(SQLModel, table=True):
    __tablename__ = "constraint_collections"

    id: int | None = Field(default=None, primary_key=True)
    description: str | None = None


class ConstraintRecord(SQLModel, table=True):
    """Generic constraint row; the payload lives in a per-variant table."""

    __tablename__ = "constraints"

    id: int = Field(primary_key=True)  # Assigned by the store-wide counter
    collection_id: int = Field(foreign_key="constraint_collections.id", index=True)
    kind: str = Field(index=True)


class ScopeRecord(SQLModel, table=True):
    """Target included in a collection's scope."""

    __tablename__ = "scopes"

    target_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("targets.id"), primary_key=True)
    )
    collection_id: int = Field(
        foreign_key="constraint_collections.id", primary_key=True, index=True
    )


# ============================================================================
# STORE CONFIG
# ============================================================================


class ConfigRecord(SQLModel, table=True):
    __tablename__ = "config"

    key: str = Field(primary_key=True)
    value: str


CATALOG_TABLES = (
    "targets",
    "schemas",
    "tables",
    "columns",
    "locations",
    "location_properties",
    "constraint_collections",
    "constraints",
    "scopes",
    "config",
)
"""Relations every store must contain."""
