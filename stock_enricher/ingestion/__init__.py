"""
Upstream provider clients.

  karenai_client        - analyst rating changes (KARENAI_API_KEY)
  finnhub_client        - fundamentals + latest quote (FINNHUB_API_KEY)
  alpha_vantage_client  - global quote (ALPHA_VANTAGE_API_KEY), rate limited

Every client raises ``stock_enricher.exceptions.SourceError`` on failure.
"""
