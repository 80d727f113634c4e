"""
Tests for stock_enricher/ingestion/karenai_client.py.

HTTP is faked with ``httpx.MockTransport``; no network access.

What we test
------------
  - Bearer token sent; items decoded in upstream order.
  - next_page is ignored (single request).
  - Missing credential fails before any request.
  - Non-2xx, non-JSON, missing items and malformed items raise SourceError
    with diagnostics attached.
"""

from __future__ import annotations

import httpx
import pytest

from stock_enricher.exceptions import SourceError
from stock_enricher.ingestion.karenai_client import KarenaiClient

_URL = "https://ratings.test/list"

_ITEMS = [
    {
        "ticker": "BSBR",
        "company": "Banco Santander (Brasil)",
        "brokerage": "The Goldman Sachs Group",
        "action": "upgraded by",
        "rating_from": "Sell",
        "rating_to": "Neutral",
        "target_from": "$4.20",
        "target_to": "$4.70",
        "time": "2025-01-13T00:30:05.813548892Z",
    },
    {
        "ticker": "VYGR",
        "company": "Voyager Therapeutics",
        "brokerage": "Wedbush",
        "action": "reiterated by",
        "rating_from": "Outperform",
        "rating_to": "Outperform",
        "target_from": "$14.00",
        "target_to": "",
        "time": "2025-01-14T00:30:05Z",
    },
]


def _client(handler, api_key: str | None = "secret") -> KarenaiClient:
    return KarenaiClient(
        url=_URL,
        api_key=api_key,
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestKarenaiFetch:
    def test_decodes_items_in_order(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": _ITEMS, "next_page": "VYGR"})

        records = _client(handler).fetch()

        assert [r.ticker for r in records] == ["BSBR", "VYGR"]
        assert records[0].target_from == 4.2
        assert records[0].target_to == 4.7
        assert records[1].target_to is None
        assert len(seen) == 1
        assert seen[0].headers["Authorization"] == "Bearer secret"

    def test_empty_items_is_valid(self):
        records = _client(lambda r: httpx.Response(200, json={"items": []})).fetch()
        assert records == []

    def test_reads_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("KARENAI_API_KEY", "from-env")
        captured = {}

        def handler(request):
            captured["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"items": []})

        _client(handler, api_key=None).fetch()
        assert captured["auth"] == "Bearer from-env"

    def test_missing_key_fails_without_request(self, no_provider_keys):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"items": []})

        with pytest.raises(SourceError, match="KARENAI_API_KEY"):
            _client(handler, api_key=None).fetch()
        assert calls == []


class TestKarenaiErrors:
    def test_non_2xx_keeps_status_and_body(self):
        client = _client(lambda r: httpx.Response(401, text="unauthorized"))
        with pytest.raises(SourceError) as exc_info:
            client.fetch()
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == "unauthorized"
        assert exc_info.value.source == "karenai"

    def test_invalid_json(self):
        client = _client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(SourceError, match="not valid JSON"):
            client.fetch()

    def test_missing_items(self):
        client = _client(lambda r: httpx.Response(200, json={"data": []}))
        with pytest.raises(SourceError, match="items"):
            client.fetch()

    def test_malformed_target_is_source_error(self):
        bad = dict(_ITEMS[0], target_to="abc")
        client = _client(lambda r: httpx.Response(200, json={"items": [bad]}))
        with pytest.raises(SourceError, match="item #0"):
            client.fetch()

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        with pytest.raises(SourceError, match="failed"):
            _client(handler).fetch()
