"""
Finnhub client - fundamentals and latest quote.

API:   https://finnhub.io/api/v1
Docs:  https://finnhub.io/docs/api

Two calls per ticker:
  GET /stock/metric?symbol=<T>&metricType=all&token=<key>
      metric.peExclExtraTTM  (falls back to metric.peRatio)
      metric.dividendYieldAnnually  (falls back to metric.dividendYield)
      metric.marketCapitalization
  GET /quote?symbol=<T>&token=<key>
      c  current price
      t  unix timestamp of the quote (0 = unknown)

Both calls are always attempted.  If either fails the client raises a
``SourceError`` whose ``partial`` carries whatever was obtained, so callers
can log it; the enrichment step treats the ticker as unenriched either way.

Credential setup (.env, gitignored):
  FINNHUB_API_KEY=your_key_here
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Optional

import httpx

from stock_enricher.exceptions import SourceError
from stock_enricher.ingestion.http import build_http_client, get_json
from stock_enricher.models.stock import parse_nullable_float
from stock_enricher.utils.time_utils import from_unix_timestamp

logger = logging.getLogger(__name__)


# ── Response types ─────────────────────────────────────────────────────────────

@dataclass
class MarketMetrics:
    """Fundamentals + quote for one ticker."""

    ticker: str
    current_price: float = 0.0
    pe_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    market_capitalization: Optional[float] = None
    latest_trading_day: Optional[datetime] = None
    metrics_ok: bool = False
    quote_ok: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.metrics_ok and self.quote_ok


def _pick(metric: dict[str, Any], preferred: str, *fallbacks: str) -> Optional[float]:
    """Return ``metric[preferred]`` unless missing or exactly zero, else the first
    present fallback.

    Raises:
        ValueError: If a chosen value is not numeric.
    """
    value = parse_nullable_float(metric.get(preferred))
    if value is not None and value != 0:
        return value
    for key in fallbacks:
        alt = parse_nullable_float(metric.get(key))
        if alt is not None:
            return alt
    return value


# ── Client ─────────────────────────────────────────────────────────────────────

class FinnhubClient:
    """Fetches per-ticker fundamentals and quote from Finnhub.

    Usage::

        client = FinnhubClient()
        metrics = client.fetch("AAPL")

    Attributes:
        base_url: API root, without trailing slash.
        api_key: Token; ``None`` → read ``FINNHUB_API_KEY`` at fetch time.
    """

    SOURCE: ClassVar[str] = "finnhub"
    API_KEY_ENV: ClassVar[str] = "FINNHUB_API_KEY"
    BASE_URL: ClassVar[str] = "https://finnhub.io/api/v1"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._http = http_client or build_http_client(timeout)

    def fetch(self, ticker: str) -> MarketMetrics:
        """Fetch fundamentals and quote for ``ticker``.

        Returns:
            ``MarketMetrics`` with ``metrics_ok`` and ``quote_ok`` both ``True``.

        Raises:
            SourceError: Missing credential, or either sub-call failed.  When a
                sub-call failed, ``exc.partial`` is the partially filled
                ``MarketMetrics``.
        """
        key = self.api_key or os.environ.get(self.API_KEY_ENV)
        if not key:
            raise SourceError(self.SOURCE, f"{self.API_KEY_ENV} is not set")

        result = MarketMetrics(ticker=ticker)

        try:
            self._fetch_metrics(ticker, key, result)
            result.metrics_ok = True
        except SourceError as exc:
            result.errors.append(f"metrics: {exc.message}")

        try:
            self._fetch_quote(ticker, key, result)
            result.quote_ok = True
        except SourceError as exc:
            result.errors.append(f"quote: {exc.message}")

        if result.errors:
            raise SourceError(
                self.SOURCE,
                f"{ticker}: " + "; ".join(result.errors),
                partial=result,
            )
        return result

    # ── Sub-calls ──────────────────────────────────────────────────────────────

    def _fetch_metrics(self, ticker: str, key: str, result: MarketMetrics) -> None:
        payload = get_json(
            self._http,
            self.SOURCE,
            f"{self.base_url}/stock/metric",
            params={"symbol": ticker, "metricType": "all", "token": key},
        )
        if not isinstance(payload, dict):
            raise SourceError(self.SOURCE, "metric response is not an object")

        metric = payload.get("metric")
        if metric is None:
            # Unknown symbols come back as {"metric": {}} or without the key.
            metric = {}
        if not isinstance(metric, dict):
            raise SourceError(self.SOURCE, "'metric' is not an object")

        try:
            result.pe_ratio = _pick(metric, "peExclExtraTTM", "peRatio")
            result.dividend_yield = _pick(metric, "dividendYieldAnnually", "dividendYield")
            result.market_capitalization = parse_nullable_float(
                metric.get("marketCapitalization")
            )
        except ValueError as exc:
            raise SourceError(self.SOURCE, f"malformed metric value: {exc}") from exc

    def _fetch_quote(self, ticker: str, key: str, result: MarketMetrics) -> None:
        payload = get_json(
            self._http,
            self.SOURCE,
            f"{self.base_url}/quote",
            params={"symbol": ticker, "token": key},
        )
        if not isinstance(payload, dict):
            raise SourceError(self.SOURCE, "quote response is not an object")

        try:
            price = parse_nullable_float(payload.get("c"))
            timestamp = parse_nullable_float(payload.get("t"))
        except ValueError as exc:
            raise SourceError(self.SOURCE, f"malformed quote value: {exc}") from exc

        # Out-of-range epochs raise OverflowError or OSError depending on platform.
        try:
            trading_day = from_unix_timestamp(timestamp)
        except (ValueError, OverflowError, OSError) as exc:
            raise SourceError(
                self.SOURCE, f"malformed quote timestamp {timestamp!r}: {exc}"
            ) from exc

        result.current_price = price or 0.0
        result.latest_trading_day = trading_day

    def close(self) -> None:
        self._http.close()
