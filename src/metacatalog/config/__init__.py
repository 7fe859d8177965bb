"""Config module exports."""

from metacatalog.config.loader import CatalogSettings, load_config
from metacatalog.config.models import (
    CacheConfig,
    CatalogConfig,
    DatabaseConfig,
    IdentifierConfig,
    LoggingConfig,
    LogOutputConfig,
)

__all__ = [
    "load_config",
    "CatalogConfig",
    "CatalogSettings",
    "CacheConfig",
    "DatabaseConfig",
    "IdentifierConfig",
    "LoggingConfig",
    "LogOutputConfig",
]
