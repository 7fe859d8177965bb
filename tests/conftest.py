"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages, and
provides the database/catalog fixtures shared by the catalog and constraint
tests.
"""

from __future__ import annotations

import sys
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import event

# Insert local src directory at the beginning of sys.path
# This ensures that the local metacatalog package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of metacatalog modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("metacatalog"):
        del sys.modules[module_name]

if TYPE_CHECKING:
    from metacatalog.catalog import CatalogStore, Database
    from metacatalog.constraints import ConstraintStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def database(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary database with every catalog relation."""
    from metacatalog.catalog import Database

    db = Database(temp_dir / "catalog.db")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def catalog(database: Database) -> CatalogStore:
    from metacatalog.catalog import CatalogStore

    return CatalogStore(database)


@pytest.fixture
def constraint_store(catalog: CatalogStore) -> ConstraintStore:
    from metacatalog.constraints import ConstraintStore

    return ConstraintStore(catalog)


class QueryCounter:
    """Records SQL statements executed on an engine."""

    def __init__(self) -> None:
        self.statements: list[str] = []

    def __call__(self, conn: Any, cursor: Any, statement: str, *args: Any) -> None:  # noqa: ARG002
        self.statements.append(statement)

    def reset(self) -> None:
        self.statements.clear()

    def matching(self, fragment: str) -> list[str]:
        """Statements mentioning ``fragment`` (case-insensitive)."""
        return [s for s in self.statements if fragment.lower() in s.lower()]

    @property
    def selects(self) -> list[str]:
        return [s for s in self.statements if s.lstrip().upper().startswith("SELECT")]


@pytest.fixture
def query_counter(database: Database) -> Generator[QueryCounter, None, None]:
    """Count statements sent to the database while the test runs."""
    counter = QueryCounter()
    event.listen(database.engine, "before_cursor_execute", counter)
    yield counter
    event.remove(database.engine, "before_cursor_execute", counter)
