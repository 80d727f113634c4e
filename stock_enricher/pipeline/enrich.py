"""
Enrichment cycle orchestration.

The ``EnrichmentOrchestrator`` runs one cycle in a deterministic sequence:

  Stage 1 - fetching_ratings:  One Karenai call.  Failure aborts the cycle;
                               no market-data calls, nothing persisted.
  Stage 2 - enriching:         For each record, in Karenai order: Finnhub,
                               then Alpha Vantage (rate limited), then
                               ``merge_stock()``.  Provider failures degrade
                               only that ticker.
  Stage 3 - persisting:        The whole batch goes to ``store.upsert_batch()``
                               in a single call (one transaction).  Failure is
                               logged and the batch discarded; no retry.

Cycle duration is dominated by the Alpha Vantage delay: expect roughly
``tickers × alpha_vantage_delay_seconds``.

``run_cycle()`` never raises ``SourceError`` or ``PersistenceError``; the
outcome is reported in the returned ``CycleResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from stock_enricher.config import AppConfig
from stock_enricher.db.store import StockStore
from stock_enricher.exceptions import PersistenceError, SourceError
from stock_enricher.ingestion.alpha_vantage_client import AlphaVantageClient
from stock_enricher.ingestion.finnhub_client import FinnhubClient
from stock_enricher.ingestion.karenai_client import KarenaiClient
from stock_enricher.ingestion.rate_limit import FixedDelayRateLimiter
from stock_enricher.models.stock import EnrichedStock, RecommendationRecord
from stock_enricher.pipeline.reconcile import AlphaOutcome, MarketOutcome, merge_stock
from stock_enricher.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

STAGE_FETCHING_RATINGS = "fetching_ratings"
STAGE_ENRICHING = "enriching"
STAGE_PERSISTING = "persisting"


# ── Result types ──────────────────────────────────────────────────────────────

@dataclass
class TickerOutcome:
    """Enrichment outcome for a single ticker.

    Attributes:
        ticker:       Symbol processed.
        market_error: Finnhub error message, ``None`` on success.
        alpha_error:  Alpha Vantage error message, ``None`` on success.
        score:        Recommendation score assigned.
    """

    ticker:       str
    market_error: Optional[str] = None
    alpha_error:  Optional[str] = None
    score:        float = 0.0

    @property
    def degraded(self) -> bool:
        return self.market_error is not None or self.alpha_error is not None


@dataclass
class CycleResult:
    """Complete result of one enrichment cycle.

    Attributes:
        cycle_id:       Random identifier used to correlate log lines.
        started_at:     UTC datetime when the cycle started.
        finished_at:    UTC datetime when the cycle finished.
        stage:          Last stage entered.
        failed_stage:   Stage that aborted the cycle, ``None`` if none did.
        tickers:        Per-ticker outcomes, in processing order.
        rows_persisted: Rows written by the store (0 on failure).
        errors:         Accumulated error messages.
        status:         "success", "partial", or "failed".
    """

    cycle_id:       str                 = field(default_factory=lambda: uuid4().hex[:12])
    started_at:     Optional[datetime]  = None
    finished_at:    Optional[datetime]  = None
    stage:          str                 = STAGE_FETCHING_RATINGS
    failed_stage:   Optional[str]       = None
    tickers:        list[TickerOutcome] = field(default_factory=list)
    rows_persisted: int                 = 0
    errors:         list[str]           = field(default_factory=list)
    status:         str                 = "started"

    @property
    def market_failures(self) -> int:
        return sum(1 for t in self.tickers if t.market_error is not None)

    @property
    def alpha_failures(self) -> int:
        return sum(1 for t in self.tickers if t.alpha_error is not None)


# ── Orchestrator ──────────────────────────────────────────────────────────────

class EnrichmentOrchestrator:
    """Coordinates one ratings → enrichment → persistence cycle.

    Args:
        store:          Storage port receiving the batch.
        ratings_client: Source of ``RecommendationRecord`` rows (``fetch()``).
        market_client:  Per-ticker fundamentals/quote (``fetch(ticker)``).
        alpha_client:   Per-ticker alpha / trading day (``fetch(ticker)``).
    """

    def __init__(
        self,
        store: StockStore,
        ratings_client: KarenaiClient,
        market_client: FinnhubClient,
        alpha_client: AlphaVantageClient,
    ) -> None:
        self.store = store
        self.ratings_client = ratings_client
        self.market_client = market_client
        self.alpha_client = alpha_client

    @classmethod
    def from_config(cls, config: AppConfig, store: StockStore) -> "EnrichmentOrchestrator":
        """Build an orchestrator with real HTTP clients from ``config.sources``."""
        sources = config.sources
        return cls(
            store=store,
            ratings_client=KarenaiClient(
                url=sources.karenai_url, timeout=sources.timeout_seconds
            ),
            market_client=FinnhubClient(
                base_url=sources.finnhub_base_url, timeout=sources.timeout_seconds
            ),
            alpha_client=AlphaVantageClient(
                base_url=sources.alpha_vantage_base_url,
                timeout=sources.timeout_seconds,
                rate_limiter=FixedDelayRateLimiter(sources.alpha_vantage_delay_seconds),
            ),
        )

    def run_cycle(self) -> CycleResult:
        """Execute one full enrichment cycle.

        Returns:
            CycleResult summarising all stages.
        """
        result = CycleResult(started_at=utcnow())
        logger.info("Enrichment cycle %s starting.", result.cycle_id)

        # ── Stage 1: Ratings ──────────────────────────────────────────────────
        try:
            records = self.ratings_client.fetch()
        except SourceError as exc:
            logger.error("Cycle %s aborted: could not fetch ratings: %s", result.cycle_id, exc)
            return self._finish(result, failed_stage=STAGE_FETCHING_RATINGS, error=str(exc))

        # ── Stage 2: Per-ticker enrichment ────────────────────────────────────
        result.stage = STAGE_ENRICHING
        logger.info("[1/2] Enriching %d ticker(s) ...", len(records))
        stocks: list[EnrichedStock] = []
        for idx, record in enumerate(records, start=1):
            stock, outcome = self._enrich_ticker(record)
            stocks.append(stock)
            result.tickers.append(outcome)
            logger.info(
                "(%d/%d) %s | price=%.2f pe=%s yield=%s cap=%s alpha=%s score=%.1f",
                idx, len(records), stock.ticker, stock.current_price,
                stock.pe_ratio, stock.dividend_yield, stock.market_capitalization,
                stock.alpha, outcome.score,
            )

        # ── Stage 3: Persist ──────────────────────────────────────────────────
        result.stage = STAGE_PERSISTING
        logger.info("[2/2] Persisting %d stock(s) ...", len(stocks))
        try:
            result.rows_persisted = self.store.upsert_batch(stocks)
        except PersistenceError as exc:
            logger.error("Cycle %s: persistence failed, batch discarded: %s", result.cycle_id, exc)
            return self._finish(result, failed_stage=STAGE_PERSISTING, error=str(exc))

        return self._finish(result)

    def close(self) -> None:
        """Close the HTTP clients."""
        for client in (self.ratings_client, self.market_client, self.alpha_client):
            client.close()

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _enrich_ticker(self, record: RecommendationRecord) -> tuple[EnrichedStock, TickerOutcome]:
        """Fetch both market sources for one ticker and merge them."""
        ticker = record.ticker
        outcome = TickerOutcome(ticker=ticker)

        market: MarketOutcome
        try:
            market = self.market_client.fetch(ticker)
        except SourceError as exc:
            logger.warning("Finnhub failed for %s: %s", ticker, exc)
            market = exc
            outcome.market_error = exc.message

        alpha: AlphaOutcome
        try:
            alpha = self.alpha_client.fetch(ticker)
        except SourceError as exc:
            logger.warning("Alpha Vantage failed for %s: %s", ticker, exc)
            alpha = exc
            outcome.alpha_error = exc.message

        stock = merge_stock(record, market, alpha)
        outcome.score = stock.recommendation_score or 0.0
        return stock, outcome

    def _finish(
        self,
        result: CycleResult,
        failed_stage: Optional[str] = None,
        error: Optional[str] = None,
    ) -> CycleResult:
        result.finished_at = utcnow()
        if error:
            result.errors.append(error)
        for outcome in result.tickers:
            if outcome.market_error:
                result.errors.append(f"{outcome.ticker}: {outcome.market_error}")
            if outcome.alpha_error:
                result.errors.append(f"{outcome.ticker}: {outcome.alpha_error}")

        if failed_stage is not None:
            result.failed_stage = failed_stage
            result.status = "failed"
        elif any(t.degraded for t in result.tickers):
            result.status = "partial"
        else:
            result.status = "success"

        logger.info(
            "Enrichment cycle %s finished | status=%s | tickers=%d | "
            "finnhub_failures=%d | alpha_failures=%d | rows=%d",
            result.cycle_id, result.status, len(result.tickers),
            result.market_failures, result.alpha_failures, result.rows_persisted,
        )
        return result
