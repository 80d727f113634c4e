"""
Tests for stock_enricher/cli.py using Typer's ``CliRunner``.

Logging setup is stubbed out so handlers never bind to the runner's
captured stdout.  ``run-once`` gets a fake orchestrator; no network.

What we test
------------
  - init-db creates the database file and is idempotent.
  - validate-config reports credential presence without printing values.
  - A missing --config path exits 1 with [ERROR].
  - list-stocks: empty store message; seeded store table and totals;
    --limit/--offset beyond the SQLite integer range are usage errors.
  - run-once: exit 0 on success/partial, exit 1 on a failed cycle.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from stock_enricher import cli
from stock_enricher.db.store import SQLiteStockStore
from stock_enricher.models.stock import EnrichedStock
from stock_enricher.pipeline.enrich import CycleResult, EnrichmentOrchestrator

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "_configure_logging", lambda config: None)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "cli" / "stocks.db")


def _result(status: str, failed_stage=None) -> CycleResult:
    now = datetime(2025, 1, 10, tzinfo=timezone.utc)
    return CycleResult(
        cycle_id="c-1",
        started_at=now,
        finished_at=now,
        failed_stage=failed_stage,
        errors=["karenai: 401"] if status == "failed" else [],
        status=status,
    )


def _fake_orchestrator(monkeypatch, result: CycleResult) -> MagicMock:
    fake = MagicMock()
    fake.run_cycle.return_value = result
    monkeypatch.setattr(EnrichmentOrchestrator, "from_config", classmethod(lambda cls, c, s: fake))
    return fake


class TestInitDb:
    def test_creates_database(self, db_path):
        result = runner.invoke(cli.app, ["init-db", "--db-path", db_path])
        assert result.exit_code == 0, result.output
        assert "[OK]" in result.output
        assert SQLiteStockStore(db_path).count_stocks() == 0

    def test_idempotent(self, db_path):
        runner.invoke(cli.app, ["init-db", "--db-path", db_path])
        result = runner.invoke(cli.app, ["init-db", "--db-path", db_path])
        assert result.exit_code == 0


class TestValidateConfig:
    def test_credentials_reported_not_printed(self, monkeypatch):
        monkeypatch.setenv("FINNHUB_API_KEY", "super-secret")
        monkeypatch.delenv("ALPHA_VANTAGE_API_KEY", raising=False)
        result = runner.invoke(cli.app, ["validate-config"])
        assert result.exit_code == 0, result.output
        assert "super-secret" not in result.output
        assert "MISSING" in result.output
        assert "[OK] Config valid." in result.output

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(cli.app, ["validate-config", "--config", str(tmp_path / "x.toml")])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


class TestListStocks:
    def test_empty(self, db_path):
        result = runner.invoke(cli.app, ["list-stocks", "--db-path", db_path])
        assert result.exit_code == 0
        assert "No stocks found." in result.output

    def test_seeded(self, db_path):
        store = SQLiteStockStore(db_path)
        store.initialize()
        store.upsert_batch([
            EnrichedStock(ticker="AAA", action="Buy", current_price=1.0, recommendation_score=5.0),
            EnrichedStock(ticker="BBB", action="Hold", current_price=2.0, recommendation_score=8.0),
        ])

        result = runner.invoke(
            cli.app, ["list-stocks", "--db-path", db_path, "--recommended", "--limit", "1"]
        )
        assert result.exit_code == 0, result.output
        assert "BBB" in result.output
        assert "AAA" not in result.output

        result = runner.invoke(cli.app, ["list-stocks", "--db-path", db_path, "--search", "a"])
        assert "Showing 1 of 1 stock(s)." in result.output
        assert "n/a" in result.output

    @pytest.mark.parametrize("option", ["--limit", "--offset"])
    def test_oversized_paging_rejected(self, db_path, option):
        result = runner.invoke(cli.app, ["list-stocks", "--db-path", db_path, option, str(10**30)])
        assert result.exit_code == 2


class TestRunOnce:
    @pytest.mark.parametrize("status", ["success", "partial"])
    def test_non_failed_exit_zero(self, monkeypatch, db_path, status):
        fake = _fake_orchestrator(monkeypatch, _result(status))
        result = runner.invoke(cli.app, ["run-once", "--db-path", db_path])
        assert result.exit_code == 0, result.output
        assert f"status '{status}'" in result.output
        fake.close.assert_called_once()

    def test_failed_exit_one(self, monkeypatch, db_path):
        _fake_orchestrator(monkeypatch, _result("failed", failed_stage="fetching_ratings"))
        result = runner.invoke(cli.app, ["run-once", "--db-path", db_path])
        assert result.exit_code == 1
        assert "karenai: 401" in result.output
