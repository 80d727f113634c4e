"""
Dashboard data loader.

Reads enriched stocks through ``SQLiteStockStore`` (the same store the API
serves from) and shapes them into pandas DataFrames for display.

Nothing here imports Streamlit; ``dashboard/app.py`` wraps these loaders in
``st.cache_data``.  This keeps the loaders testable without a Streamlit
runtime.

Display formatting mirrors the web UI:
  - prices in USD with two decimals
  - dividend yield given in percent (``1.5`` → ``1.50%``)
  - market capitalisation given in millions (``12477.2`` → ``$12.48B``)
  - absent values render as ``N/A``, never as zero
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import pandas as pd

from stock_enricher.db.repositories.stock_repo import StockQueryOptions
from stock_enricher.db.store import SQLiteStockStore
from stock_enricher.models.stock import EnrichedStock

NA = "N/A"

DISPLAY_COLUMNS: dict[str, str] = {
    "ticker": "Ticker",
    "company": "Company",
    "brokerage": "Brokerage",
    "action": "Action",
    "rating_from": "Rating From",
    "rating_to": "Rating To",
    "target_to": "Target",
    "current_price": "Price",
    "pe_ratio": "P/E",
    "dividend_yield": "Div. Yield",
    "market_capitalization": "Market Cap",
    "alpha": "Alpha",
    "latest_trading_day": "Trading Day",
    "recommendation_score": "Score",
}


# ── Formatting ───────────────────────────────────────────────────────────────

def format_currency(value: Optional[float]) -> str:
    return NA if value is None else f"${value:,.2f}"


def format_percentage(value: Optional[float]) -> str:
    return NA if value is None else f"{value:.2f}%"


def format_market_cap(value: Optional[float]) -> str:
    """Format a market cap given in millions as ``$X.XXM`` or ``$X.XXB``."""
    if value is None:
        return NA
    if abs(value) >= 1000:
        return f"${value / 1000:.2f}B"
    return f"${value:.2f}M"


def format_date(value: Optional[datetime]) -> str:
    return NA if value is None else value.strftime("%b %d, %Y")


def format_number(value: Optional[float], digits: int = 2) -> str:
    return NA if value is None else f"{value:.{digits}f}"


# ── Frames ───────────────────────────────────────────────────────────────────

def stocks_to_frame(stocks: Sequence[EnrichedStock], formatted: bool = True) -> pd.DataFrame:
    """Convert stocks to a DataFrame with human-readable column names.

    Args:
        stocks: Stocks to display, in display order.
        formatted: When ``True`` numeric columns are rendered as strings
            (``N/A`` for absent); otherwise raw values are kept with ``None``.

    Returns:
        DataFrame indexed by stock ``id`` with ``DISPLAY_COLUMNS`` columns.
    """
    rows = []
    for s in stocks:
        row = {key: getattr(s, key) for key in DISPLAY_COLUMNS}
        if formatted:
            row["target_to"] = format_currency(s.target_to)
            row["current_price"] = format_currency(s.current_price)
            row["pe_ratio"] = format_number(s.pe_ratio)
            row["dividend_yield"] = format_percentage(s.dividend_yield)
            row["market_capitalization"] = format_market_cap(s.market_capitalization)
            row["alpha"] = format_number(s.alpha, 4)
            row["latest_trading_day"] = format_date(s.latest_trading_day)
            row["recommendation_score"] = format_number(s.recommendation_score, 1)
        rows.append(row)

    frame = pd.DataFrame(rows, columns=list(DISPLAY_COLUMNS), index=[s.id for s in stocks])
    return frame.rename(columns=DISPLAY_COLUMNS)


# ── Loaders ──────────────────────────────────────────────────────────────────

def load_page(
    db_path: str,
    search: str = "",
    sort_by: str = "ticker",
    order: str = "asc",
    page: int = 1,
    page_size: int = 10,
) -> tuple[pd.DataFrame, int]:
    """Load one page of stocks plus the total number of matching rows."""
    store = SQLiteStockStore(db_path)
    options = StockQueryOptions(
        search=search,
        sort_by=sort_by,
        order=order,
        limit=page_size,
        offset=max(page - 1, 0) * page_size,
    )
    return stocks_to_frame(store.list_stocks(options)), store.count_stocks(search)


def load_recommended(db_path: str, limit: int = 5) -> pd.DataFrame:
    """Load the top ``limit`` stocks by recommendation score."""
    return stocks_to_frame(SQLiteStockStore(db_path).recommended_stocks(limit))


def load_stock(db_path: str, stock_id: str) -> Optional[EnrichedStock]:
    return SQLiteStockStore(db_path).get_stock(stock_id)


def page_count(total: int, page_size: int) -> int:
    """Number of pages needed for ``total`` rows (at least 1)."""
    return max(1, -(-total // page_size))
