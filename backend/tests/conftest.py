"""
Shared fixtures.

The services package creates its global db_service at import time, so the
database path is pointed at a throwaway file before anything imports it.
"""

import os
import tempfile

_SESSION_DB_DIR = tempfile.mkdtemp(prefix="scribeloop-tests-")
os.environ.setdefault(
    "SCRIBELOOP_DB_PATH", os.path.join(_SESSION_DB_DIR, "session.db")
)
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")

import pytest  # noqa: E402

from scribeloop.services.database_service import DatabaseService  # noqa: E402


@pytest.fixture
def temp_db_path():
    """Create temporary database path"""
    with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".db") as f:
        db_path = f.name

    yield db_path

    # Cleanup
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def db_service(temp_db_path):
    """Create DatabaseService instance with temp database"""
    return DatabaseService(db_path=temp_db_path)
