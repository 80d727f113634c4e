"""
Base repository providing shared SQLite execution helpers.

Repositories receive a ``sqlite3.Connection`` opened and owned by the caller
(typically ``get_connection()``); they never commit themselves, so several
repository calls inside one ``with get_connection(...)`` block form a single
transaction.

  - No ORM; all SQL is explicit and lives in repository methods.
  - Repositories speak Pydantic models, not raw dicts.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement."""
        logger.debug("SQL: %s | params: %s", " ".join(sql.split()), params)
        return self.conn.execute(sql, params)

    def executemany(self, sql: str, params_list: Sequence[Params]) -> sqlite3.Cursor:
        """Execute ``sql`` once for each parameter set in ``params_list``."""
        logger.debug("SQL (many): %s | count: %d", " ".join(sql.split()), len(params_list))
        return self.conn.executemany(sql, params_list)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        """Execute a query and return the first row, or ``None``."""
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        """Execute a query and return all rows."""
        return self.execute(sql, params).fetchall()
