"""
Base Database Service Module

Connection handling shared by the chapter, annotation and metadata services.
Every statement runs through `run_in_transaction`, so single queries and the
multi-statement cascades (chapter deletion, reply subtree deletion) commit
or roll back the same way, with foreign keys enforced.
"""

import logging
import os
import sqlite3
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional, TypeVar

from .. import config

# Configure logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseDatabaseService:
    """
    Shared SQLite plumbing for the ScribeLoop services.

    Failures are logged and reported through the return value (None, False
    or an empty result); callers translate them into HTTP errors.
    """

    def __init__(self, db_path: str | None = None):
        """
        Args:
            db_path (str | None): SQLite file shared by all services. Defaults
                                  to config.DB_PATH; its directory is created
                                  on first use.
        """
        self.db_path = db_path or config.DB_PATH
        self._ensure_data_dir()

    def _ensure_data_dir(self):
        data_dir = os.path.dirname(self.db_path)
        if data_dir and not os.path.exists(data_dir):
            os.makedirs(data_dir)

    def get_connection(self) -> sqlite3.Connection:
        """
        Open a connection with foreign keys on.

        Annotations reference their chapter and their parent; SQLite only
        enforces those references when asked, per connection.
        """
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def run_in_transaction(
        self, work: Callable[[sqlite3.Connection], T], error_message: str
    ) -> Optional[T]:
        """
        Run `work` on one connection and commit everything it did at once.

        Args:
            work: Receives the open connection (rows come back as sqlite3.Row)
                  and returns the result to hand back
            error_message: Log prefix used when anything fails

        Returns:
            Optional[T]: What `work` returned, or None after a rollback
        """
        try:
            with self.get_connection() as conn:
                conn.row_factory = sqlite3.Row
                result = work(conn)
                conn.commit()
                return result
        except Exception as e:
            logger.error(f"{error_message}: {e}")
            return None

    def execute_query(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False,
        fetch_all: bool = False,
    ) -> Any:
        """
        Run one statement.

        Returns:
            Any: A sqlite3.Row (fetch_one), a list of rows (fetch_all), the
            last row id otherwise; None on error
        """

        def work(conn: sqlite3.Connection) -> Any:
            cursor = conn.execute(query, params)
            if fetch_one:
                return cursor.fetchone()
            if fetch_all:
                return cursor.fetchall()
            return cursor.lastrowid

        return self.run_in_transaction(work, "Database query error")

    def execute_insert(self, query: str, params: tuple) -> Optional[int]:
        """INSERT one row; returns its id, or None if the insert was rejected."""
        return self.run_in_transaction(
            lambda conn: conn.execute(query, params).lastrowid,
            "Database insert error",
        )

    def execute_update_delete(self, query: str, params: tuple) -> bool:
        """UPDATE / DELETE / UPSERT; True when at least one row changed."""
        changed = self.run_in_transaction(
            lambda conn: conn.execute(query, params).rowcount > 0,
            "Database update/delete error",
        )
        return bool(changed)

    def get_current_timestamp(self) -> str:
        """Creation timestamps are stored as SQLite "YYYY-MM-DD HH:MM:SS" text."""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
