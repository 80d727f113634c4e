"""
SQLite connection management.

``get_connection()`` yields a connection that:
  - Sets a busy timeout so the API and the enrichment thread can wait out
    each other's write locks instead of failing.
  - Enables WAL journal mode so API reads never block on a running upsert.
  - Uses ``sqlite3.Row`` so repositories can read columns by name.
  - Commits on clean exit, rolls back on exception.

Every store operation opens its own short-lived connection; connections are
never shared between threads.

Usage::

    from stock_enricher.db.connection import get_connection

    with get_connection("data/db/stocks.db") as conn:
        conn.execute("SELECT COUNT(*) FROM stocks")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The parent directory of ``db_path`` is created if missing.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        wal_mode: Enable WAL journal mode (ignored for in-memory databases).
        busy_timeout_ms: Milliseconds to wait on a locked database before
            raising ``sqlite3.OperationalError``.

    Yields:
        An open, configured ``sqlite3.Connection``.
    """
    in_memory = db_path == ":memory:"
    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        if wal_mode and not in_memory:
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        logger.debug("Rolling back transaction on %s", db_path)
        conn.rollback()
        raise

    finally:
        conn.close()
