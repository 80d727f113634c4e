"""
SQLite schema DDL for the stock store.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent:
safe to call on every start-up and in tests.

Tables:
  stocks - one row per ticker; ``ticker`` is the natural key used for
           upserts, ``id`` is an opaque UUID exposed by the read API.

Nullable REAL columns hold "absent" as SQL NULL, never 0.  Timestamps are
ISO 8601 UTC strings written by the store.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_STOCKS = """
CREATE TABLE IF NOT EXISTS stocks (
    id                     TEXT    PRIMARY KEY,
    ticker                 TEXT    NOT NULL UNIQUE,
    company                TEXT    NOT NULL DEFAULT '',
    brokerage              TEXT    NOT NULL DEFAULT '',
    action                 TEXT    NOT NULL DEFAULT '',
    rating_from            TEXT    NOT NULL DEFAULT '',
    rating_to              TEXT    NOT NULL DEFAULT '',
    target_from            REAL,
    target_to              REAL,
    current_price          REAL    NOT NULL DEFAULT 0,
    pe_ratio               REAL,
    dividend_yield         REAL,
    market_capitalization  REAL,
    alpha                  REAL,
    latest_trading_day     TEXT,
    recommendation_score   REAL,
    created_at             TEXT    NOT NULL,
    updated_at             TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_stocks_score
    ON stocks (recommendation_score DESC);

CREATE INDEX IF NOT EXISTS idx_stocks_company
    ON stocks (company);
"""

_ALL_DDL: list[str] = [_DDL_STOCKS]

ALL_TABLE_NAMES = ["stocks"]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn`` and commit.

    Args:
        conn: An open ``sqlite3.Connection``.
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d table(s) created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return the named index names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name NOT LIKE 'sqlite_%' "
        "ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]
