"""
Tests for dashboard/data_loader.py.

What we test
------------
Formatters:
  - Absent values render as "N/A", never "0".
  - Market cap in millions switches to billions at 1000.
stocks_to_frame():
  - Indexed by id with human-readable columns; formatted and raw modes.
load_page() / load_recommended() / page_count():
  - Paging and totals over a real store file.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

pytest.importorskip("pandas")

from dashboard.data_loader import (  # noqa: E402
    NA,
    format_currency,
    format_date,
    format_market_cap,
    format_number,
    format_percentage,
    load_page,
    load_recommended,
    load_stock,
    page_count,
    stocks_to_frame,
)
from stock_enricher.models.stock import EnrichedStock  # noqa: E402


class TestFormatters:
    def test_absent_is_na(self):
        for fn in (format_currency, format_percentage, format_market_cap, format_date,
                   format_number):
            assert fn(None) == NA

    def test_zero_is_not_na(self):
        assert format_currency(0.0) == "$0.00"
        assert format_percentage(0.0) == "0.00%"

    def test_currency(self):
        assert format_currency(1234.5) == "$1,234.50"

    @pytest.mark.parametrize(
        "value, expected",
        [(450.0, "$450.00M"), (999.994, "$999.99M"), (1000.0, "$1.00B"), (12477.2, "$12.48B")],
    )
    def test_market_cap(self, value, expected):
        assert format_market_cap(value) == expected

    def test_date(self):
        assert format_date(datetime(2025, 1, 10, tzinfo=timezone.utc)) == "Jan 10, 2025"

    def test_number_digits(self):
        assert format_number(0.012345, 4) == "0.0123"


class TestStocksToFrame:
    def test_formatted(self, sample_stock):
        stock = sample_stock.model_copy(update={"id": "abc"})
        frame = stocks_to_frame([stock])
        assert list(frame.index) == ["abc"]
        row = frame.loc["abc"]
        assert row["Ticker"] == "AAPL"
        assert row["Price"] == "$200.00"
        assert row["Alpha"] == NA
        assert row["Market Cap"] == "$3000.00B"

    def test_raw(self, sample_stock):
        frame = stocks_to_frame([sample_stock], formatted=False)
        assert frame.iloc[0]["P/E"] == pytest.approx(31.2)
        assert frame.iloc[0]["Alpha"] is None

    def test_empty(self):
        frame = stocks_to_frame([])
        assert frame.empty
        assert "Ticker" in frame.columns


class TestLoaders:
    def _seed(self, store):
        store.upsert_batch([
            EnrichedStock(ticker=f"S{i}", company=f"Co {i}", recommendation_score=float(i))
            for i in range(7)
        ])

    def test_load_page(self, store):
        self._seed(store)
        frame, total = load_page(store.db_path, page=2, page_size=3)
        assert total == 7
        assert list(frame["Ticker"]) == ["S3", "S4", "S5"]

    def test_load_page_search(self, store):
        self._seed(store)
        frame, total = load_page(store.db_path, search="co 6")
        assert total == 1
        assert list(frame["Ticker"]) == ["S6"]

    def test_load_recommended(self, store):
        self._seed(store)
        frame = load_recommended(store.db_path, limit=2)
        assert list(frame["Ticker"]) == ["S6", "S5"]

    def test_load_stock(self, store):
        self._seed(store)
        frame = load_recommended(store.db_path, limit=1)
        stock = load_stock(store.db_path, frame.index[0])
        assert stock.ticker == "S6"

    @pytest.mark.parametrize("total, expected", [(0, 1), (10, 1), (11, 2), (25, 3)])
    def test_page_count(self, total, expected):
        assert page_count(total, 10) == expected
