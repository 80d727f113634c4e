"""
Per-ticker reconciliation of the three upstream sources.

``merge_stock()`` is pure: given the rating record and the outcome of each
market-data fetch (a result object or the ``SourceError`` it raised) it
returns the ``EnrichedStock`` to persist.

Fallback rules
--------------
Finnhub failed (any sub-call):
    pe_ratio, dividend_yield, market_capitalization, latest_trading_day
    → explicitly ``None``;  current_price → ``0.0``.
Finnhub succeeded:
    fields take the fetched values; latest_trading_day is Finnhub's, or
    ``None``.  Alpha Vantage's trading day is never used as a fallback.
Alpha Vantage failed:
    alpha → explicitly ``None``.

The recommendation score is always computed and set.
"""

from __future__ import annotations

from typing import Union

from stock_enricher.exceptions import SourceError
from stock_enricher.ingestion.alpha_vantage_client import AlphaMetrics
from stock_enricher.ingestion.finnhub_client import MarketMetrics
from stock_enricher.models.stock import EnrichedStock, RecommendationRecord
from stock_enricher.recommendations.scorer import compute_recommendation_score

MarketOutcome = Union[MarketMetrics, SourceError]
AlphaOutcome = Union[AlphaMetrics, SourceError]


def merge_stock(
    base: RecommendationRecord,
    market: MarketOutcome,
    alpha: AlphaOutcome,
) -> EnrichedStock:
    """Merge one ticker's rating record with its market-data outcomes.

    Args:
        base: Rating record from Karenai.
        market: Finnhub result, or the error it raised.
        alpha: Alpha Vantage result, or the error it raised.

    Returns:
        Scored ``EnrichedStock`` (not yet persisted: ``id`` is ``None``).
    """
    if isinstance(market, MarketMetrics):
        market_fields = {
            "current_price": market.current_price,
            "pe_ratio": market.pe_ratio,
            "dividend_yield": market.dividend_yield,
            "market_capitalization": market.market_capitalization,
            "latest_trading_day": market.latest_trading_day,
        }
    else:
        market_fields = {
            "current_price": 0.0,
            "pe_ratio": None,
            "dividend_yield": None,
            "market_capitalization": None,
            "latest_trading_day": None,
        }

    alpha_value = alpha.alpha if isinstance(alpha, AlphaMetrics) else None

    unscored = EnrichedStock.from_record(base, alpha=alpha_value, **market_fields)
    score = compute_recommendation_score(unscored)
    return unscored.model_copy(update={"recommendation_score": score})
