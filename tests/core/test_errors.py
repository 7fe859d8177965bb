"""Tests for error types and codes."""

from collections.abc import Generator
from contextlib import contextmanager

import pytest
from sqlalchemy.exc import OperationalError

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


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.TARGET_NOT_FOUND, 3000),
            (ErrorCode.IDENTIFIER_COLLISION, 3000),
            (ErrorCode.UNSUPPORTED_CONSTRAINT_VARIANT, 4000),
            (ErrorCode.SCOPE_FROZEN, 4000),
            (ErrorCode.BACKING_STORE_FAILURE, 5000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        # Given
        error_code = code

        # When
        value = error_code.value

        # Then
        assert expected_range <= value < expected_range + 1000


class TestCatalogError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = CatalogError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        # Given
        error = CatalogError(code=ErrorCode.TARGET_NOT_FOUND, message="No schema with id 1")

        # When
        result = str(error)

        # Then
        assert result == "[3001] TARGET_NOT_FOUND: No schema with id 1"

    def test_given_subclass_when_raised_then_caught_as_base(self) -> None:
        """Every specific error is a CatalogError."""
        # Given
        error = ScopeFrozenError.frozen(3)

        # When / Then
        with pytest.raises(CatalogError):
            raise error


class TestFactories:
    """Classmethod factory tests."""

    def test_given_parse_failure_when_created_then_has_path(self) -> None:
        """Parse error carries the offending path."""
        # When
        error = ConfigError.parse_error("/cfg.yaml", "bad indent")

        # Then
        assert error.code == ErrorCode.CONFIG_PARSE_ERROR
        assert error.details == {"path": "/cfg.yaml", "reason": "bad indent"}

    def test_given_invalid_value_when_created_then_stringifies_value(self) -> None:
        """Invalid value error stores the value as string."""
        # When
        error = ConfigError.invalid_value("cache.target_cache_size", 0, "must be >= 1")

        # Then
        assert error.code == ErrorCode.CONFIG_INVALID_VALUE
        assert error.details["value"] == "0"

    def test_given_missing_target_when_created_then_names_kind(self) -> None:
        """Target not found mentions kind and id."""
        # When
        error = NotFoundError.target(42, "column")

        # Then
        assert error.message == "No column with id 42"
        assert error.details == {"target_id": 42, "kind": "column"}

    def test_given_missing_relations_when_created_then_lists_them(self) -> None:
        """Store initialization error lists missing relations."""
        # When
        error = NotFoundError.missing_relations("/x.db", ["targets", "config"])

        # Then
        assert error.code == ErrorCode.STORE_NOT_INITIALIZED
        assert "targets, config" in error.message

    def test_given_exhausted_space_when_created_then_has_parent(self) -> None:
        """Exhaustion error records the parent."""
        # When
        error = IdentifierCollisionError.exhausted("table", parent_id=7)

        # Then
        assert error.code == ErrorCode.IDENTIFIER_SPACE_EXHAUSTED
        assert error.details == {"kind": "table", "parent_id": 7}

    def test_given_unknown_kind_when_created_then_names_kind(self) -> None:
        """Unsupported constraint error names the kind."""
        # When
        error = UnsupportedConstraintError.no_serializer("bloom_filter")

        # Then
        assert "bloom_filter" in error.message

    def test_given_driver_error_when_wrapped_then_records_operation(self) -> None:
        """Backing store error records operation and underlying type."""
        # Given
        cause = OperationalError("SELECT 1", {}, Exception("database is locked"))

        # When
        error = BackingStoreError.from_exception("add_schema", cause)

        # Then
        assert error.code == ErrorCode.BACKING_STORE_FAILURE
        assert error.details == {"operation": "add_schema", "error_type": "OperationalError"}


@contextmanager
def _passthrough() -> Generator[None, None, None]:
    yield


class TestRaisedThroughContextManager:
    """Errors keep their type when they unwind through a generator context manager."""

    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError.collection(7),
            NotFoundError.target(1, "schema"),
            UnsupportedConstraintError.no_serializer("type"),
            ScopeFrozenError.frozen(3),
            IdentifierCollisionError.in_use(42),
            ConfigError.invalid_value("ids", 0, "bad"),
        ],
    )
    def test_given_error_when_raised_in_with_block_then_type_preserved(
        self, error: CatalogError
    ) -> None:
        """The traceback is attached without tripping the frozen dataclass."""
        # When
        with pytest.raises(type(error)) as exc_info, _passthrough():
            raise error

        # Then
        assert exc_info.value is error
        assert exc_info.value.__traceback__ is not None
