"""
Repository for enriched stocks - upsert by ticker and the read-API queries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import uuid4

from stock_enricher.db.repositories.base import BaseRepository
from stock_enricher.models.stock import EnrichedStock
from stock_enricher.utils.time_utils import to_iso, utcnow

logger = logging.getLogger(__name__)

# Columns the read API may sort by; anything else falls back to ticker.
SORTABLE_COLUMNS: frozenset[str] = frozenset({
    "ticker",
    "company",
    "current_price",
    "action",
    "recommendation_score",
    "pe_ratio",
    "dividend_yield",
    "market_capitalization",
    "alpha",
})
DEFAULT_SORT = "ticker"

# Largest value SQLite can bind as an INTEGER.
SQLITE_MAX_INT = 2**63 - 1

_SELECT_COLUMNS = """
    id, ticker, company, brokerage, action, rating_from, rating_to,
    target_from, target_to, current_price, pe_ratio, dividend_yield,
    market_capitalization, alpha, latest_trading_day, recommendation_score,
    created_at, updated_at
"""


@dataclass(frozen=True)
class StockQueryOptions:
    """Filtering, sorting and paging for ``list_stocks``.

    Attributes:
        search: Case-insensitive substring matched against ticker or company.
        sort_by: Column name from ``SORTABLE_COLUMNS``; unknown → ``ticker``.
        order: ``"desc"`` for descending, anything else ascending.
        limit: Page size.
        offset: Rows to skip.
    """

    search: str = ""
    sort_by: str = DEFAULT_SORT
    order: str = "asc"
    limit: int = 10
    offset: int = 0

    @property
    def sort_column(self) -> str:
        return self.sort_by if self.sort_by in SORTABLE_COLUMNS else DEFAULT_SORT

    @property
    def sort_direction(self) -> str:
        return "DESC" if self.order.lower() == "desc" else "ASC"


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _search_clause(search: str) -> tuple[str, tuple[Any, ...]]:
    """Return a WHERE clause (possibly empty) and its parameters."""
    search = search.strip()
    if not search:
        return "", ()
    pattern = _like_pattern(search)
    return (
        "WHERE (ticker LIKE ? ESCAPE '\\' OR company LIKE ? ESCAPE '\\')",
        (pattern, pattern),
    )


class StockRepository(BaseRepository):
    """Read/write access to the ``stocks`` table."""

    _UPSERT_SQL = """
        INSERT INTO stocks (
            id, ticker, company, brokerage, action, rating_from, rating_to,
            target_from, target_to, current_price, pe_ratio, dividend_yield,
            market_capitalization, alpha, latest_trading_day,
            recommendation_score, created_at, updated_at
        ) VALUES (
            :id, :ticker, :company, :brokerage, :action, :rating_from, :rating_to,
            :target_from, :target_to, :current_price, :pe_ratio, :dividend_yield,
            :market_capitalization, :alpha, :latest_trading_day,
            :recommendation_score, :now, :now
        )
        ON CONFLICT(ticker) DO UPDATE SET
            company               = excluded.company,
            brokerage             = excluded.brokerage,
            action                = excluded.action,
            rating_from           = excluded.rating_from,
            rating_to             = excluded.rating_to,
            target_from           = excluded.target_from,
            target_to             = excluded.target_to,
            current_price         = excluded.current_price,
            pe_ratio              = excluded.pe_ratio,
            dividend_yield        = excluded.dividend_yield,
            market_capitalization = excluded.market_capitalization,
            alpha                 = excluded.alpha,
            latest_trading_day    = excluded.latest_trading_day,
            recommendation_score  = excluded.recommendation_score,
            updated_at            = excluded.updated_at;
    """

    def upsert_many(
        self,
        stocks: Sequence[EnrichedStock],
        now: Optional[datetime] = None,
    ) -> int:
        """Insert or update stocks by ticker.

        New tickers get a fresh UUID and ``created_at = now``; existing rows
        keep their ``id`` and ``created_at`` and get ``updated_at = now``.
        Does not commit.

        Args:
            stocks: Enriched stocks to write.
            now: Timestamp to stamp; defaults to the current UTC time.

        Returns:
            Number of stocks submitted.
        """
        stamp = to_iso(now or utcnow())
        params = [self._to_params(stock, stamp) for stock in stocks]
        self.executemany(self._UPSERT_SQL, params)
        return len(params)

    def get_by_id(self, stock_id: str) -> Optional[EnrichedStock]:
        row = self.fetchone(f"SELECT {_SELECT_COLUMNS} FROM stocks WHERE id = ?;", (stock_id,))
        return self._row_to_stock(row) if row else None

    def get_by_ticker(self, ticker: str) -> Optional[EnrichedStock]:
        row = self.fetchone(
            f"SELECT {_SELECT_COLUMNS} FROM stocks WHERE ticker = ?;", (ticker.upper(),)
        )
        return self._row_to_stock(row) if row else None

    def list_page(self, options: StockQueryOptions) -> list[EnrichedStock]:
        """Return one page of stocks matching ``options``.

        NULLs sort last in both directions; ties break on ticker so pages
        are stable.
        """
        where, params = _search_clause(options.search)
        column = options.sort_column
        sql = (
            f"SELECT {_SELECT_COLUMNS} FROM stocks {where} "
            f"ORDER BY {column} IS NULL, {column} {options.sort_direction}, ticker ASC "
            "LIMIT ? OFFSET ?;"
        )
        rows = self.fetchall(sql, params + (options.limit, options.offset))
        return [self._row_to_stock(r) for r in rows]

    def count(self, search: str = "") -> int:
        """Return the number of stocks matching ``search`` (all when empty)."""
        where, params = _search_clause(search)
        row = self.fetchone(f"SELECT COUNT(*) AS n FROM stocks {where};", params)
        return int(row["n"]) if row else 0

    def recommended(self, limit: int) -> list[EnrichedStock]:
        """Return the top ``limit`` stocks by score, unscored rows last."""
        rows = self.fetchall(
            f"""
            SELECT {_SELECT_COLUMNS} FROM stocks
            ORDER BY recommendation_score IS NULL, recommendation_score DESC, ticker ASC
            LIMIT ?;
            """,
            (limit,),
        )
        return [self._row_to_stock(r) for r in rows]

    # ── Mapping ────────────────────────────────────────────────────────────────

    @staticmethod
    def _to_params(stock: EnrichedStock, stamp: str) -> dict[str, Any]:
        return {
            "id": str(uuid4()),
            "ticker": stock.ticker,
            "company": stock.company,
            "brokerage": stock.brokerage,
            "action": stock.action,
            "rating_from": stock.rating_from,
            "rating_to": stock.rating_to,
            "target_from": stock.target_from,
            "target_to": stock.target_to,
            "current_price": stock.current_price,
            "pe_ratio": stock.pe_ratio,
            "dividend_yield": stock.dividend_yield,
            "market_capitalization": stock.market_capitalization,
            "alpha": stock.alpha,
            "latest_trading_day": to_iso(stock.latest_trading_day),
            "recommendation_score": stock.recommendation_score,
            "now": stamp,
        }

    @staticmethod
    def _row_to_stock(row: Any) -> EnrichedStock:
        return EnrichedStock(**dict(row))
