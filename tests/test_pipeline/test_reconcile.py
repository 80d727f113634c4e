"""
Tests for stock_enricher/pipeline/reconcile.py.

What we test
------------
merge_stock():
  - Both sources OK: market fields copied, alpha copied, score set.
  - Finnhub failed: P/E, yield, market cap, trading day explicitly None;
    price 0.0; score still set (action part only).
  - Alpha failed: alpha explicitly None, market fields untouched.
  - Alpha Vantage's trading day is never used, even when Finnhub has none.
  - Absent fields serialise to null, never 0.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from stock_enricher.exceptions import SourceError
from stock_enricher.ingestion.alpha_vantage_client import AlphaMetrics
from stock_enricher.ingestion.finnhub_client import MarketMetrics
from stock_enricher.pipeline.reconcile import merge_stock

_DAY = datetime(2025, 1, 10, tzinfo=timezone.utc)


def _market(ticker: str = "AKBA", **overrides) -> MarketMetrics:
    values = dict(
        ticker=ticker,
        current_price=5.0,
        pe_ratio=12.0,
        dividend_yield=0.0,
        market_capitalization=450.0,
        latest_trading_day=_DAY,
        metrics_ok=True,
        quote_ok=True,
    )
    values.update(overrides)
    return MarketMetrics(**values)


def _alpha(ticker: str = "AKBA", alpha=0.8, day=date(2025, 1, 9)) -> AlphaMetrics:
    return AlphaMetrics(ticker=ticker, alpha=alpha, latest_trading_day=day)


class TestMergeStock:
    def test_all_sources_ok(self, sample_record):
        stock = merge_stock(sample_record, _market(), _alpha())
        assert stock.current_price == 5.0
        assert stock.pe_ratio == 12.0
        assert stock.dividend_yield == 0.0
        assert stock.market_capitalization == 450.0
        assert stock.latest_trading_day == _DAY
        assert stock.alpha == 0.8
        # Buy (+5) and target 8.0 > 5.0 * 1.1 (+3)
        assert stock.recommendation_score == 8.0
        assert stock.brokerage == sample_record.brokerage

    def test_market_failure_nulls_fields_and_zeroes_price(self, sample_record):
        err = SourceError("finnhub", "quote: unexpected status 500", partial=_market())
        stock = merge_stock(sample_record, err, _alpha())

        assert stock.current_price == 0.0
        for name in ("pe_ratio", "dividend_yield", "market_capitalization", "latest_trading_day"):
            assert getattr(stock, name) is None
            assert stock.field_state(name) == "absent"
        assert stock.alpha == 0.8
        assert stock.recommendation_score == 5.0

    def test_alpha_failure_nulls_alpha_only(self, sample_record):
        stock = merge_stock(sample_record, _market(), SourceError("alpha_vantage", "rate limited"))
        assert stock.alpha is None
        assert stock.field_state("alpha") == "absent"
        assert stock.pe_ratio == 12.0

    def test_alpha_trading_day_not_used_as_fallback(self, sample_record):
        stock = merge_stock(sample_record, _market(latest_trading_day=None), _alpha())
        assert stock.latest_trading_day is None

    def test_absent_fields_are_null_in_json(self, sample_record):
        stock = merge_stock(
            sample_record,
            SourceError("finnhub", "down"),
            SourceError("alpha_vantage", "down"),
        )
        payload = stock.model_dump(mode="json")
        for name in ("pe_ratio", "dividend_yield", "market_capitalization", "alpha",
                     "latest_trading_day"):
            assert payload[name] is None
        assert payload["current_price"] == 0.0
        assert payload["recommendation_score"] == 5.0

    def test_score_always_present(self, sample_record):
        record = sample_record.model_copy(update={"action": "reiterated by"})
        stock = merge_stock(record, SourceError("finnhub", "x"), SourceError("alpha_vantage", "y"))
        assert stock.recommendation_score == 0.0
        assert stock.field_state("recommendation_score") == "present"
