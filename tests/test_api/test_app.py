"""
Tests for stock_enricher/api/app.py.

Uses FastAPI's ``TestClient`` against a real ``SQLiteStockStore`` on a temp
file, except for the storage-failure case which uses a ``MagicMock`` store.

What we test
------------
GET /api/v1/stocks:
  - Default page size 10; X-Total-Count is the unpaged match count.
  - Invalid, non-positive or oversized limit falls back to 10; invalid or
    oversized offset to 0.
  - search / sortBy / order pass through to the store.
GET /api/v1/stocks/recommended:
  - Default 5, highest score first; custom limit honoured; oversized limit
    falls back to 5.
GET /api/v1/stocks/{id}:
  - Known id → 200; unknown id → 404 with a message.
Cross-cutting:
  - Health route reports the version; CORS exposes X-Total-Count;
    PersistenceError → 500.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from stock_enricher import __version__
from stock_enricher.api.app import TOTAL_COUNT_HEADER, create_app
from stock_enricher.config import ApiConfig
from stock_enricher.exceptions import PersistenceError
from stock_enricher.models.stock import EnrichedStock

_ORIGIN = "http://localhost:5173"


def _seed(store, n: int = 12) -> None:
    store.upsert_batch([
        EnrichedStock(
            ticker=f"T{i:02d}",
            company=f"Company {i:02d}",
            action="Buy" if i % 2 else "Hold",
            current_price=float(i + 1),
            recommendation_score=float(i),
        )
        for i in range(n)
    ])


@pytest.fixture
def client(store) -> TestClient:
    _seed(store)
    app = create_app(store, ApiConfig(allowed_origins=[_ORIGIN]))
    return TestClient(app)


class TestListStocks:
    def test_default_page(self, client):
        resp = client.get("/api/v1/stocks")
        assert resp.status_code == 200
        body = resp.json()
        assert len(body) == 10
        assert body[0]["ticker"] == "T00"
        assert resp.headers[TOTAL_COUNT_HEADER] == "12"

    @pytest.mark.parametrize("limit", ["abc", "0", "-3", ""])
    def test_invalid_limit_falls_back(self, client, limit):
        resp = client.get("/api/v1/stocks", params={"limit": limit})
        assert resp.status_code == 200
        assert len(resp.json()) == 10

    @pytest.mark.parametrize("param", ["limit", "offset"])
    def test_oversized_values_fall_back(self, client, param):
        resp = client.get("/api/v1/stocks", params={param: str(10**30)})
        assert resp.status_code == 200
        assert len(resp.json()) == 10
        assert resp.json()[0]["ticker"] == "T00"

    def test_invalid_offset_falls_back(self, client):
        resp = client.get("/api/v1/stocks", params={"offset": "-1", "limit": "2"})
        assert [s["ticker"] for s in resp.json()] == ["T00", "T01"]

    def test_offset_and_limit(self, client):
        resp = client.get("/api/v1/stocks", params={"offset": "10", "limit": "5"})
        assert [s["ticker"] for s in resp.json()] == ["T10", "T11"]
        assert resp.headers[TOTAL_COUNT_HEADER] == "12"

    def test_search_sets_filtered_total(self, client):
        resp = client.get("/api/v1/stocks", params={"search": "company 1"})
        assert [s["ticker"] for s in resp.json()] == ["T10", "T11"]
        assert resp.headers[TOTAL_COUNT_HEADER] == "2"

    def test_sort_desc(self, client):
        resp = client.get(
            "/api/v1/stocks",
            params={"sortBy": "current_price", "order": "desc", "limit": "3"},
        )
        assert [s["ticker"] for s in resp.json()] == ["T11", "T10", "T09"]

    def test_absent_fields_are_null(self, client):
        stock = client.get("/api/v1/stocks", params={"limit": "1"}).json()[0]
        assert stock["pe_ratio"] is None
        assert stock["alpha"] is None
        assert stock["id"]


class TestRecommended:
    def test_default_limit(self, client):
        resp = client.get("/api/v1/stocks/recommended")
        assert resp.status_code == 200
        assert [s["ticker"] for s in resp.json()] == ["T11", "T10", "T09", "T08", "T07"]

    def test_custom_limit(self, client):
        resp = client.get("/api/v1/stocks/recommended", params={"limit": "2"})
        assert len(resp.json()) == 2

    def test_oversized_limit_falls_back(self, client):
        resp = client.get("/api/v1/stocks/recommended", params={"limit": str(10**30)})
        assert resp.status_code == 200
        assert len(resp.json()) == 5


class TestGetStock:
    def test_found(self, client):
        first = client.get("/api/v1/stocks", params={"limit": "1"}).json()[0]
        resp = client.get(f"/api/v1/stocks/{first['id']}")
        assert resp.status_code == 200
        assert resp.json()["ticker"] == first["ticker"]

    def test_not_found(self, client):
        resp = client.get("/api/v1/stocks/does-not-exist")
        assert resp.status_code == 404
        assert "does-not-exist" in resp.json()["detail"]


class TestCrossCutting:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.json() == {"status": "ok", "version": __version__}

    def test_cors_exposes_total_count(self, client):
        resp = client.get("/api/v1/stocks", headers={"Origin": _ORIGIN})
        assert resp.headers["access-control-allow-origin"] == _ORIGIN
        assert TOTAL_COUNT_HEADER.lower() in resp.headers["access-control-expose-headers"].lower()

    def test_persistence_error_is_500(self):
        store = MagicMock()
        store.list_stocks.side_effect = PersistenceError("database is locked")
        client = TestClient(create_app(store))
        resp = client.get("/api/v1/stocks")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Storage error."}
