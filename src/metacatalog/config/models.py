"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (METACATALOG__SECTION__KEY)
3. Explicit YAML file passed to load_config()
4. Global YAML (~/.config/metacatalog/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    METACATALOG__<SECTION>__<KEY>=<VALUE>

Examples:
    METACATALOG__LOGGING__LEVEL=DEBUG
    METACATALOG__CACHE__TARGET_CACHE_SIZE=5000
    METACATALOG__IDS__NUM_TABLE_BITS=16
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from metacatalog.config.constants import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_COLUMN_BITS,
    DEFAULT_TABLE_BITS,
    ID_BITS,
    MIN_SCHEMA_BITS,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        METACATALOG__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every cache miss and store write.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Backing store connection configuration.

    Env vars:
        METACATALOG__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        METACATALOG__DATABASE__JOURNAL_MODE: SQLite journal mode
        METACATALOG__DATABASE__SYNCHRONOUS: SQLite synchronous pragma
    """

    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). A blocked call waits this long, then fails.",
    )
    journal_mode: Literal["WAL", "DELETE", "TRUNCATE", "MEMORY"] = Field(
        default="WAL",
        description="SQLite journal mode. WAL lets readers proceed during writes.",
    )
    synchronous: Literal["OFF", "NORMAL", "FULL"] = Field(
        default="NORMAL",
        description="SQLite synchronous pragma. NORMAL is safe with WAL.",
    )

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"busy_timeout_ms must be >= 0, got {v}")
        return v


class CacheConfig(BaseModel):
    """Catalog cache sizes.

    Env vars:
        METACATALOG__CACHE__TARGET_CACHE_SIZE: Entries per schema/table/column cache
        METACATALOG__CACHE__LOCATION_CACHE_SIZE: Location cache entries
        METACATALOG__CACHE__AGGREGATE_CACHE_SIZE: Tables-per-schema / columns-per-table entries
    """

    target_cache_size: int = Field(default=DEFAULT_CACHE_SIZE, ge=1)
    location_cache_size: int = Field(default=DEFAULT_CACHE_SIZE, ge=1)
    aggregate_cache_size: int = Field(
        default=DEFAULT_CACHE_SIZE,
        ge=1,
        description="Entries in the per-parent child listing caches.",
    )


class IdentifierConfig(BaseModel):
    """Identifier bit layout used when creating a new store.

    An existing store always reopens with the layout recorded in its
    config relation; these values only seed new stores.

    Env vars:
        METACATALOG__IDS__NUM_TABLE_BITS: Width of the table field
        METACATALOG__IDS__NUM_COLUMN_BITS: Width of the column field
    """

    num_table_bits: int = Field(default=DEFAULT_TABLE_BITS, ge=1)
    num_column_bits: int = Field(default=DEFAULT_COLUMN_BITS, ge=1)

    @model_validator(mode="after")
    def validate_layout(self) -> "IdentifierConfig":
        schema_bits = ID_BITS - self.num_table_bits - self.num_column_bits
        if schema_bits < MIN_SCHEMA_BITS:
            raise ValueError(
                f"Table ({self.num_table_bits}) and column ({self.num_column_bits}) bits "
                f"leave no room for the schema field in a {ID_BITS}-bit identifier"
            )
        return self


class CatalogConfig(BaseModel):
    """Root configuration for metacatalog.

    All settings can be configured via:
    1. Environment variables: METACATALOG__SECTION__KEY
    2. YAML config files (explicit or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    ids: IdentifierConfig = Field(default_factory=IdentifierConfig)
