"""Backing row store: SQLite engine, sessions and bulk writer.

This module provides:
- Database: Connection manager configured from DatabaseConfig
- BulkWriter: Batched inserts using Core SQL, bypassing ORM overhead

Every failure raised by SQLAlchemy while a session or writer is open is
re-raised as BackingStoreError. There is no retry: a failed operation is
rolled back and reported to the caller.

The hybrid pattern:
- Use ORM sessions for point reads and single-target writes
- Use BulkWriter for high-volume id registration and config replacement
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from metacatalog.config.models import DatabaseConfig
from metacatalog.core.errors import BackingStoreError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()


class Database:
    """SQLite connection manager.

    Usage::

        db = Database(Path("catalog.db"))
        db.create_all()
        with db.session() as session:
            ...
    """

    def __init__(self, db_path: Path, config: DatabaseConfig | None = None) -> None:
        self.db_path = db_path
        self.config = config or DatabaseConfig()
        self.engine = self._create_engine()

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        event.listen(engine, "connect", self._configure_pragmas)
        return engine

    def _configure_pragmas(self, dbapi_conn: Any, _connection_record: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute(f"PRAGMA journal_mode={self.config.journal_mode}")
        cursor.execute(f"PRAGMA busy_timeout={int(self.config.busy_timeout_ms)}")
        cursor.execute(f"PRAGMA synchronous={self.config.synchronous}")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @contextmanager
    def _translate_errors(self, operation: str) -> Generator[None, None, None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("backing_store_failure", operation=operation, error=str(e))
            raise BackingStoreError.from_exception(operation, e) from e

    def create_all(self) -> None:
        """Create all tables from SQLModel metadata."""
        with self._translate_errors("create_all"):
            SQLModel.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables. Use with caution."""
        with self._translate_errors("drop_all"):
            SQLModel.metadata.drop_all(self.engine)

    @contextmanager
    def session(self, operation: str = "session") -> Generator[Session, None, None]:
        """ORM session; commit explicitly. Uncommitted work is rolled back on exit."""
        with self._translate_errors(operation), Session(self.engine) as session:
            yield session

    @contextmanager
    def bulk_writer(self, operation: str = "bulk_write") -> Generator[BulkWriter, None, None]:
        """
        Bulk writer for high-volume inserts.

        Auto-commits on successful exit, rolls back on exception.
        """
        with self._translate_errors(operation):
            writer = BulkWriter(self.engine)
            try:
                yield writer
                writer.commit()
            except Exception:
                writer.rollback()
                raise
            finally:
                writer.close()

    def table_names(self) -> set[str]:
        """Names of existing tables, lower-cased (SQLite names are case-insensitive)."""
        with self._translate_errors("table_names"):
            return {name.lower() for name in inspect(self.engine).get_table_names()}

    def table_exists(self, name: str) -> bool:
        return name.lower() in self.table_names()

    def checkpoint(self, mode: str = "PASSIVE") -> None:
        """Run WAL checkpoint.

        Args:
            mode: PASSIVE (default), FULL, RESTART, or TRUNCATE
        """
        valid_modes = {"PASSIVE", "FULL", "RESTART", "TRUNCATE"}
        if mode.upper() not in valid_modes:
            raise ValueError(f"Invalid checkpoint mode: {mode}. Must be one of {valid_modes}")

        with self._translate_errors("checkpoint"), self.engine.connect() as conn:
            conn.execute(text(f"PRAGMA wal_checkpoint({mode.upper()})"))
            logger.debug("wal_checkpoint_completed", mode=mode)

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


class BulkWriter:
    """High-performance bulk insert using Core SQL, bypassing ORM overhead."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.conn = engine.connect()
        self.transaction = self.conn.begin()

    def insert_many(self, model_class: type[SQLModel], records: list[dict[str, Any]]) -> int:
        """Bulk insert records into table, returning count inserted."""
        if not records:
            return 0

        table = model_class.__table__  # type: ignore[attr-defined]
        self.conn.execute(table.insert(), records)
        return len(records)

    def delete_all(self, model_class: type[SQLModel]) -> int:
        """Delete every row of a table, returning count affected."""
        table = model_class.__table__  # type: ignore[attr-defined]
        result = self.conn.execute(table.delete())
        return int(result.rowcount)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.transaction.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.transaction.rollback()

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
