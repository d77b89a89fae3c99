"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def is_postgres_available() -> bool:
    """Check if PostgreSQL is available for testing."""
    dsn = os.environ.get("TABLELOAD_PG_DSN")
    if not dsn:
        return False

    try:
        import psycopg2

        conn = psycopg2.connect(dsn, connect_timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"PostgreSQL not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires PostgreSQL)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if PostgreSQL is not available."""
    if is_postgres_available():
        return

    skip_postgres = pytest.mark.skip(
        reason="PostgreSQL not available (set TABLELOAD_PG_DSN to a reachable database)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_postgres)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def sqlite_connection():
    """In-memory SQLite connection, closed after the test."""
    from tableload.connections.sqlite_connection import SqliteConnection

    connection = SqliteConnection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def sample_dump_yaml() -> str:
    """Two-document YAML dump covering a reserved-word column and a boolean column."""
    return """\
---
widgets:
  columns: [id, name, count, active]
  records:
    - [1, "sprocket", 10, "t"]
    - [2, "it's a gear", 3, "f"]
---
schema_migrations:
  columns: [version]
  records:
    - ["20240101000000"]
empty_table:
"""


@pytest.fixture(scope="session")
def postgres_dsn() -> str:
    """Session-scoped fixture providing the PostgreSQL DSN."""
    return os.environ.get("TABLELOAD_PG_DSN", "")
