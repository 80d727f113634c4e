"""Tests for SQLite schema - idempotency, table/index creation, column constraints."""

from __future__ import annotations

import sqlite3

import pytest

from stock_enricher.db.schema import (
    ALL_TABLE_NAMES,
    apply_schema,
    get_existing_indexes,
    get_existing_tables,
)


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found in database. "
                f"Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        assert get_existing_tables(in_memory_db) == ["stocks"]

    def test_key_indexes_created(self, in_memory_db):
        indexes = get_existing_indexes(in_memory_db)
        for idx in ("idx_stocks_score", "idx_stocks_company"):
            assert idx in indexes, f"Expected index '{idx}' not found. Found: {indexes}"


class TestStocksConstraints:
    def _insert(self, conn, ticker, stock_id):
        conn.execute(
            "INSERT INTO stocks (id, ticker, created_at, updated_at) VALUES (?, ?, 'x', 'x');",
            (stock_id, ticker),
        )

    def test_ticker_is_unique(self, in_memory_db):
        self._insert(in_memory_db, "AAPL", "id-1")
        with pytest.raises(sqlite3.IntegrityError):
            self._insert(in_memory_db, "AAPL", "id-2")

    def test_defaults(self, in_memory_db):
        self._insert(in_memory_db, "AAPL", "id-1")
        row = in_memory_db.execute("SELECT * FROM stocks WHERE id = 'id-1';").fetchone()
        assert row["company"] == ""
        assert row["current_price"] == 0
        assert row["pe_ratio"] is None
        assert row["recommendation_score"] is None
