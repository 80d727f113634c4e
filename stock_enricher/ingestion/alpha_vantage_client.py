"""
Alpha Vantage client - global quote.

API:   GET https://www.alphavantage.co/query?function=GLOBAL_QUOTE&symbol=<T>&apikey=<key>
Quota: free tier is 5 calls / minute; every request goes through a
       ``RateLimiter`` (default: fixed 15 s delay before each call).

Response handling, in order:
  1. ``"Error Message"``          → provider error (bad symbol / bad call)
  2. ``"Note"`` / ``"Information"`` → rate limit or quota message
  3. ``"Global Quote"`` missing or empty → no data for the symbol
  4. ``"07. latest trading day"`` parsed as ``YYYY-MM-DD``

GLOBAL_QUOTE has no alpha figure of its own; an ``"alpha"`` key inside the
quote is read when present, otherwise ``alpha`` stays ``None``.

Credential setup (.env, gitignored):
  ALPHA_VANTAGE_API_KEY=your_key_here
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import ClassVar, Optional

import httpx

from stock_enricher.exceptions import SourceError
from stock_enricher.ingestion.http import MAX_BODY_CHARS, build_http_client, get_json
from stock_enricher.ingestion.rate_limit import FixedDelayRateLimiter, RateLimiter
from stock_enricher.models.stock import parse_nullable_float
from stock_enricher.utils.time_utils import parse_trading_day

logger = logging.getLogger(__name__)

TRADING_DAY_KEY = "07. latest trading day"


# ── Response types ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AlphaMetrics:
    """Alpha Vantage data for one ticker."""

    ticker: str
    alpha: Optional[float] = None
    latest_trading_day: Optional[date] = None


# ── Client ─────────────────────────────────────────────────────────────────────

class AlphaVantageClient:
    """Fetches the global quote for a ticker, honouring the provider quota.

    Usage::

        client = AlphaVantageClient(rate_limiter=FixedDelayRateLimiter(15))
        metrics = client.fetch("AAPL")

    Attributes:
        base_url: Query endpoint URL.
        api_key: Key; ``None`` → read ``ALPHA_VANTAGE_API_KEY`` at fetch time.
        rate_limiter: Called once before every request.
    """

    SOURCE: ClassVar[str] = "alpha_vantage"
    API_KEY_ENV: ClassVar[str] = "ALPHA_VANTAGE_API_KEY"
    BASE_URL: ClassVar[str] = "https://www.alphavantage.co/query"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.rate_limiter = rate_limiter or FixedDelayRateLimiter(15.0)
        self._http = http_client or build_http_client(timeout)

    def fetch(self, ticker: str) -> AlphaMetrics:
        """Fetch the global quote for ``ticker``.

        The credential is checked before the rate-limit wait, so a missing
        key fails immediately.

        Raises:
            SourceError: Missing credential, transport/status failure, a
                provider error or rate-limit message, missing quote data, or
                an unparseable trading day / alpha value.
        """
        key = self.api_key or os.environ.get(self.API_KEY_ENV)
        if not key:
            raise SourceError(self.SOURCE, f"{self.API_KEY_ENV} is not set")

        self.rate_limiter.wait()

        payload = get_json(
            self._http,
            self.SOURCE,
            self.base_url,
            params={"function": "GLOBAL_QUOTE", "symbol": ticker, "apikey": key},
        )
        if not isinstance(payload, dict):
            raise SourceError(self.SOURCE, "response is not an object")

        if "Error Message" in payload:
            raise SourceError(
                self.SOURCE, f"{ticker}: provider error: {payload['Error Message']}"
            )
        for notice_key in ("Note", "Information"):
            if notice_key in payload:
                raise SourceError(
                    self.SOURCE, f"{ticker}: rate limited: {payload[notice_key]}"
                )

        quote = payload.get("Global Quote")
        if not isinstance(quote, dict) or not quote:
            raise SourceError(
                self.SOURCE,
                f"{ticker}: no 'Global Quote' data in response",
                body=str(payload)[:MAX_BODY_CHARS],
            )

        trading_day: Optional[date] = None
        raw_day = quote.get(TRADING_DAY_KEY)
        if raw_day:
            try:
                trading_day = parse_trading_day(str(raw_day))
            except ValueError as exc:
                raise SourceError(
                    self.SOURCE, f"{ticker}: bad trading day {raw_day!r}"
                ) from exc

        try:
            alpha = parse_nullable_float(quote.get("alpha"))
        except ValueError as exc:
            raise SourceError(self.SOURCE, f"{ticker}: malformed alpha: {exc}") from exc

        return AlphaMetrics(ticker=ticker, alpha=alpha, latest_trading_day=trading_day)

    def close(self) -> None:
        self._http.close()
