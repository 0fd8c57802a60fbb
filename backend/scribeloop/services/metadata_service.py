"""
Metadata Service Module

Key/value project settings (book title, planned number of chapters). Values
are stored JSON encoded; legacy plain-text values are read back as strings.
"""

import json
import logging
from typing import Any

from .base_database_service import BaseDatabaseService

logger = logging.getLogger(__name__)


class MetadataService(BaseDatabaseService):
    """SQLite key/value store for project metadata."""

    def __init__(self, db_path: str | None = None):
        super().__init__(db_path)
        self._init_table()

    def _init_table(self) -> None:
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            conn.commit()

    def get_all(self) -> dict[str, Any]:
        """
        All stored values; JSON values are decoded, anything else is returned as text.
        """
        rows = self.execute_query("SELECT key, value FROM metadata", fetch_all=True)
        metadata = {}
        for row in rows or []:
            try:
                metadata[row["key"]] = json.loads(row["value"])
            except (json.JSONDecodeError, TypeError):
                metadata[row["key"]] = row["value"]
        return metadata

    def set_value(self, key: str, value: Any) -> bool:
        value_str = json.dumps(value)
        query = """
            INSERT INTO metadata (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """
        saved = self.execute_update_delete(query, (key, value_str))
        if saved:
            logger.info(f"Set metadata {key}")
        return saved
