"""
Stock Enricher - analyst ratings enriched with market data.

Pulls brokerage rating changes from Karenai, joins each ticker with
Finnhub fundamentals/quote and Alpha Vantage global-quote data, scores it
and upserts the result into SQLite.  A FastAPI read API and a Streamlit
dashboard serve the stored records.
"""

__version__ = "0.1.0"
