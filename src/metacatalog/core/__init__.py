"""Core module exports."""

from metacatalog.core.errors import (
    BackingStoreError,
    CatalogError,
    ConfigError,
    ErrorCode,
    IdentifierCollisionError,
    NotFoundError,
    ScopeFrozenError,
    UnsupportedConstraintError,
)
from metacatalog.core.logging import configure_logging, get_logger

__all__ = [
    # Errors
    "BackingStoreError",
    "CatalogError",
    "ConfigError",
    "ErrorCode",
    "IdentifierCollisionError",
    "NotFoundError",
    "ScopeFrozenError",
    "UnsupportedConstraintError",
    # Logging
    "configure_logging",
    "get_logger",
]
