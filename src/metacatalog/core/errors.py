"""metacatalog error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Catalog (targets, identifiers)
- 4xxx: Constraint
- 5xxx: Backing store
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Catalog (3xxx)
    TARGET_NOT_FOUND = 3001
    COLLECTION_NOT_FOUND = 3002
    STORE_NOT_INITIALIZED = 3003
    IDENTIFIER_COLLISION = 3004
    IDENTIFIER_SPACE_EXHAUSTED = 3005

    # Constraint (4xxx)
    UNSUPPORTED_CONSTRAINT_VARIANT = 4001
    SCOPE_FROZEN = 4002

    # Backing store (5xxx)
    BACKING_STORE_FAILURE = 5001


@dataclass(frozen=True)
class CatalogError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'TARGET_NOT_FOUND')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CatalogError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class NotFoundError(CatalogError):
    """Resolution of an identifier, collection or relation that does not exist."""

    @classmethod
    def target(cls, target_id: int, kind: str) -> "NotFoundError":
        return cls(
            code=ErrorCode.TARGET_NOT_FOUND,
            message=f"No {kind} with id {target_id}",
            details={"target_id": target_id, "kind": kind},
        )

    @classmethod
    def collection(cls, collection_id: int) -> "NotFoundError":
        return cls(
            code=ErrorCode.COLLECTION_NOT_FOUND,
            message=f"No constraint collection with id {collection_id}",
            details={"collection_id": collection_id},
        )

    @classmethod
    def missing_relations(cls, path: str, relations: list[str]) -> "NotFoundError":
        return cls(
            code=ErrorCode.STORE_NOT_INITIALIZED,
            message=f"Store at {path} is missing relations: {', '.join(relations)}",
            details={"path": path, "relations": relations},
        )


class IdentifierCollisionError(CatalogError):
    """Allocation attempted for an identifier that is already in use."""

    @classmethod
    def in_use(cls, target_id: int) -> "IdentifierCollisionError":
        return cls(
            code=ErrorCode.IDENTIFIER_COLLISION,
            message=f"Identifier {target_id} is already in use",
            details={"target_id": target_id},
        )

    @classmethod
    def exhausted(cls, kind: str, parent_id: int | None = None) -> "IdentifierCollisionError":
        where = f" under {parent_id}" if parent_id is not None else ""
        return cls(
            code=ErrorCode.IDENTIFIER_SPACE_EXHAUSTED,
            message=f"No unused {kind} number left{where}",
            details={"kind": kind, "parent_id": parent_id},
        )


class UnsupportedConstraintError(CatalogError):
    """No serializer is registered for a constraint variant."""

    @classmethod
    def no_serializer(cls, kind: str) -> "UnsupportedConstraintError":
        return cls(
            code=ErrorCode.UNSUPPORTED_CONSTRAINT_VARIANT,
            message=f"No serializer registered for constraint kind '{kind}'",
            details={"kind": kind},
        )


class ScopeFrozenError(CatalogError):
    """Scope change attempted on a collection that already holds constraints."""

    @classmethod
    def frozen(cls, collection_id: int) -> "ScopeFrozenError":
        return cls(
            code=ErrorCode.SCOPE_FROZEN,
            message=f"Scope of constraint collection {collection_id} is fixed once "
            "constraints reference it",
            details={"collection_id": collection_id},
        )


class BackingStoreError(CatalogError):
    """Any failure of the backing row store."""

    @classmethod
    def from_exception(cls, operation: str, error: Exception) -> "BackingStoreError":
        return cls(
            code=ErrorCode.BACKING_STORE_FAILURE,
            message=f"Backing store failure during {operation}: {error}",
            details={"operation": operation, "error_type": type(error).__name__},
        )

