"""
Shared pytest fixtures for the Stock Enricher test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the schema
    applied. Created anew for each test that requests it.
  - ``store``: A ``SQLiteStockStore`` on a temporary file, schema applied.
  - ``no_provider_keys``: Removes provider API keys from the environment.
  - Sample domain objects for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Generator

import pytest

from stock_enricher.db.schema import apply_schema
from stock_enricher.db.store import SQLiteStockStore
from stock_enricher.models.stock import EnrichedStock, RecommendationRecord

PROVIDER_KEY_ENVS = ("KARENAI_API_KEY", "FINNHUB_API_KEY", "ALPHA_VANTAGE_API_KEY")


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_path) -> SQLiteStockStore:
    """A file-backed store in a temp directory, schema applied."""
    s = SQLiteStockStore(str(tmp_path / "db" / "stocks.db"))
    s.initialize()
    return s


@pytest.fixture
def no_provider_keys(monkeypatch) -> None:
    for env_var in PROVIDER_KEY_ENVS:
        monkeypatch.delenv(env_var, raising=False)


# ── Sample domain objects ─────────────────────────────────────────────────────

@pytest.fixture
def sample_record() -> RecommendationRecord:
    """A valid Karenai rating record for testing."""
    return RecommendationRecord(
        ticker="AKBA",
        company="Akebia Therapeutics",
        brokerage="HC Wainwright",
        action="Buy",
        rating_from="Buy",
        rating_to="Buy",
        target_from="$4.20",
        target_to="$8.00",
    )


@pytest.fixture
def sample_stock() -> EnrichedStock:
    """A fully enriched, unpersisted stock for testing."""
    return EnrichedStock(
        ticker="AAPL",
        company="Apple Inc.",
        brokerage="Morgan Stanley",
        action="Buy",
        rating_from="Hold",
        rating_to="Buy",
        target_from=180.0,
        target_to=240.0,
        current_price=200.0,
        pe_ratio=31.2,
        dividend_yield=0.45,
        market_capitalization=3_000_000.0,
        alpha=None,
        latest_trading_day=datetime(2025, 1, 10, tzinfo=timezone.utc),
        recommendation_score=8.0,
    )
