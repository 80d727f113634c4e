"""
Karenai client - analyst rating changes.

API:   GET https://api.karenai.click/swechallenge/list
Auth:  ``Authorization: Bearer <KARENAI_API_KEY>``

Response shape::

    {
      "items": [
        {"ticker": "AKBA", "company": "Akebia Therapeutics",
         "brokerage": "HC Wainwright", "action": "target raised by",
         "rating_from": "Buy", "rating_to": "Buy",
         "target_from": "$4.20", "target_to": "$8.00",
         "time": "2025-01-13T00:30:05Z"},
        ...
      ],
      "next_page": "AKBA"
    }

Only the first page is read; ``next_page`` is logged and otherwise ignored.

Credential setup (.env, gitignored):
  KARENAI_API_KEY=your_key_here
"""

from __future__ import annotations

import logging
import os
from typing import ClassVar, Optional

import httpx
from pydantic import ValidationError

from stock_enricher.exceptions import SourceError
from stock_enricher.ingestion.http import MAX_BODY_CHARS, build_http_client, get_json
from stock_enricher.models.stock import RecommendationRecord

logger = logging.getLogger(__name__)


# ── Client ─────────────────────────────────────────────────────────────────────

class KarenaiClient:
    """Fetches the analyst rating list.

    Usage::

        client = KarenaiClient()
        records = client.fetch()

    Attributes:
        url: Full list endpoint URL.
        api_key: Bearer token; ``None`` → read ``KARENAI_API_KEY`` at fetch time.
    """

    SOURCE: ClassVar[str] = "karenai"
    API_KEY_ENV: ClassVar[str] = "KARENAI_API_KEY"
    DEFAULT_URL: ClassVar[str] = "https://api.karenai.click/swechallenge/list"

    def __init__(
        self,
        url: str = DEFAULT_URL,
        timeout: float = 30.0,
        api_key: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self._http = http_client or build_http_client(timeout)

    def _resolve_key(self) -> str:
        key = self.api_key or os.environ.get(self.API_KEY_ENV)
        if not key:
            raise SourceError(self.SOURCE, f"{self.API_KEY_ENV} is not set")
        return key

    def fetch(self) -> list[RecommendationRecord]:
        """Fetch and decode the rating list.

        Returns:
            Records in upstream order.  An empty ``items`` list is valid.

        Raises:
            SourceError: Missing credential, transport/status failure, a body
                without an ``items`` list, or any item that fails to decode
                (e.g. a malformed price target).
        """
        key = self._resolve_key()
        payload = get_json(
            self._http,
            self.SOURCE,
            self.url,
            headers={"Authorization": f"Bearer {key}", "Accept": "application/json"},
        )

        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise SourceError(
                self.SOURCE,
                "response has no 'items' list",
                body=str(payload)[:MAX_BODY_CHARS],
            )

        if payload.get("next_page"):
            logger.info(
                "Karenai returned next_page=%r; only the first page is processed.",
                payload["next_page"],
            )

        records: list[RecommendationRecord] = []
        for idx, item in enumerate(payload["items"]):
            try:
                records.append(RecommendationRecord.model_validate(item))
            except ValidationError as exc:
                raise SourceError(
                    self.SOURCE,
                    f"item #{idx} failed to decode: {exc.errors()[0]['msg']}",
                    body=str(item)[:MAX_BODY_CHARS],
                ) from exc

        logger.info("Fetched %d rating record(s) from Karenai.", len(records))
        return records

    def close(self) -> None:
        self._http.close()
