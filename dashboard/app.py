"""
Stock Enricher - Streamlit Dashboard
====================================

Optional local UI over the enriched stock table.  Reads the SQLite store
only; it does NOT trigger enrichment cycles or call any provider.

App structure (3 tabs)
----------------------
  1. All Stocks   - searchable, sortable, paginated table (same options as
                    ``GET /api/v1/stocks``).
  2. Recommended  - top stocks by recommendation score.
  3. Details      - every field of one stock, selected by ticker.

Usage
-----
    pip install -e ".[dashboard]"
    streamlit run dashboard/app.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# ── Ensure project root is importable ────────────────────────────────────────
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st

# ── Must be the first Streamlit call ─────────────────────────────────────────
st.set_page_config(
    page_title="Stock Enricher",
    layout="wide",
    initial_sidebar_state="expanded",
)

from dashboard.data_loader import (
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
)
from stock_enricher.db.repositories.stock_repo import SORTABLE_COLUMNS
from stock_enricher.exceptions import PersistenceError

_DEFAULT_DB_PATH = str(_ROOT / "data" / "db" / "stocks.db")

cached_page = st.cache_data(ttl=60)(load_page)
cached_recommended = st.cache_data(ttl=60)(load_recommended)


# ── Sidebar ───────────────────────────────────────────────────────────────────

with st.sidebar:
    st.title("Stock Enricher")
    st.caption("Analyst ratings enriched with market data")
    st.divider()

    db_path = st.text_input("Database path", value=_DEFAULT_DB_PATH)
    page_size = st.selectbox("Rows per page", options=[10, 25, 50, 100], index=0)
    top_n = st.number_input("Recommended count", min_value=1, max_value=50, value=5)

    if st.button("Clear cache", help="Force re-read from the database."):
        st.cache_data.clear()
        st.rerun()

    st.divider()
    st.caption("Refresh data:")
    st.code("stock-enricher run-once")


if not Path(db_path).exists():
    st.error(
        f"No database at `{db_path}`. "
        "Run `stock-enricher init-db` and `stock-enricher run-once` first."
    )
    st.stop()


tab_all, tab_top, tab_detail = st.tabs(["All Stocks", "Recommended", "Details"])


# ══════════════════════════════════════════════════════════════════════════════
# Tab 1 - All Stocks
# ══════════════════════════════════════════════════════════════════════════════

with tab_all:
    col_search, col_sort, col_order = st.columns([3, 2, 1])
    search = col_search.text_input("Search ticker or company", value="")
    sort_options = sorted(SORTABLE_COLUMNS)
    sort_by = col_sort.selectbox("Sort by", options=sort_options, index=sort_options.index("ticker"))
    order = col_order.radio("Order", options=["asc", "desc"], horizontal=True)

    try:
        _, total = cached_page(db_path, search, sort_by, order, 1, page_size)
        pages = page_count(total, page_size)
        page = st.number_input("Page", min_value=1, max_value=pages, value=1)
        frame, total = cached_page(db_path, search, sort_by, order, int(page), page_size)
    except PersistenceError as exc:
        st.error(f"Could not read stocks: {exc}")
        st.stop()

    st.caption(f"{total} stock(s) match; page {page} of {pages}.")
    if frame.empty:
        st.info("No stocks found.")
    else:
        st.dataframe(frame, use_container_width=True, hide_index=True)


# ══════════════════════════════════════════════════════════════════════════════
# Tab 2 - Recommended
# ══════════════════════════════════════════════════════════════════════════════

with tab_top:
    st.header("Top Recommendations")
    st.caption("+5 for a Buy / Strong Buy action, +3 when the target is more than 10% above the price.")
    top = cached_recommended(db_path, int(top_n))
    if top.empty:
        st.info("No scored stocks yet.")
    else:
        st.dataframe(top, use_container_width=True, hide_index=True)


# ══════════════════════════════════════════════════════════════════════════════
# Tab 3 - Details
# ══════════════════════════════════════════════════════════════════════════════

with tab_detail:
    if frame.empty:
        st.info("Nothing to show on the current page.")
    else:
        choices = dict(zip(frame["Ticker"], frame.index))
        ticker = st.selectbox("Stock", options=list(choices))
        stock = load_stock(db_path, choices[ticker])
        if stock is None:
            st.warning("Stock no longer exists.")
        else:
            st.subheader(f"{stock.ticker} - {stock.company}")
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Price", format_currency(stock.current_price))
            c2.metric("Target", format_currency(stock.target_to))
            c3.metric("Score", format_number(stock.recommendation_score, 1))
            c4.metric("Market Cap", format_market_cap(stock.market_capitalization))

            st.write(
                {
                    "Brokerage": stock.brokerage,
                    "Action": stock.action,
                    "Rating": f"{stock.rating_from or NA} → {stock.rating_to or NA}",
                    "Target from": format_currency(stock.target_from),
                    "P/E": format_number(stock.pe_ratio),
                    "Dividend yield": format_percentage(stock.dividend_yield),
                    "Alpha": format_number(stock.alpha, 4),
                    "Latest trading day": format_date(stock.latest_trading_day),
                    "Last updated": format_date(stock.updated_at),
                }
            )
