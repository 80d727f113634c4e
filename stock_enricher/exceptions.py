"""
Error taxonomy for the enrichment pipeline.

Two kinds only:

  ``SourceError``       - anything that went wrong talking to an upstream
                          provider: missing credential, transport failure,
                          non-2xx status, malformed payload, or a
                          provider-reported error / rate-limit message.
  ``PersistenceError``  - the storage port failed; the batch was rolled back.

Malformed numbers inside upstream payloads are a ``SourceError``; there is
no separate validation error kind.
"""

from __future__ import annotations

from typing import Any, Optional


class SourceError(RuntimeError):
    """Raised by a provider client when a fetch fails.

    Attributes:
        source:      Provider identifier (``"karenai"``, ``"finnhub"``,
                     ``"alpha_vantage"``).
        message:     Human-readable description of the failure.
        status_code: HTTP status code, if a response was received.
        body:        Raw response body, kept for diagnostics.
        partial:     Whatever the client managed to fetch before failing
                     (e.g. Finnhub metrics when only the quote call failed).
    """

    def __init__(
        self,
        source: str,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        partial: Any = None,
    ) -> None:
        self.source = source
        self.message = message
        self.status_code = status_code
        self.body = body
        self.partial = partial
        super().__init__(f"[{source}] {message}")


class PersistenceError(RuntimeError):
    """Raised by the storage port when a batch could not be written.

    The whole batch is rolled back; no row of it is visible afterwards.
    """
