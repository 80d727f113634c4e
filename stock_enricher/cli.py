"""
Stock Enricher - CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Build the store (and the orchestrator where needed).
  4. Execute the action.
  5. Report the result to stdout.

Install and run::

    pip install -e .
    stock-enricher --help
    stock-enricher init-db
    stock-enricher validate-config
    stock-enricher run-once
    stock-enricher start-scheduler
    stock-enricher serve
    stock-enricher list-stocks --search appl --sort-by recommendation_score --order desc

Credential setup (.env, gitignored):
  KARENAI_API_KEY=...
  FINNHUB_API_KEY=...
  ALPHA_VANTAGE_API_KEY=...
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from stock_enricher.db.repositories.stock_repo import SQLITE_MAX_INT

app = typer.Typer(
    name="stock-enricher",
    help="Analyst rating enrichment pipeline and read API.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from stock_enricher.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from stock_enricher.utils.logging import configure_logging
    configure_logging(config.logging)


def _open_store_or_exit(config, db_path: Optional[str] = None):
    """Build the SQLite store and make sure its schema exists."""
    from stock_enricher.db.store import SQLiteStockStore
    from stock_enricher.exceptions import PersistenceError

    store = SQLiteStockStore.from_config(config.database, db_path=db_path)
    try:
        store.initialize()
    except PersistenceError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    return store


def _build_scheduler(config, orchestrator, skip_initial: bool):
    from stock_enricher.scheduler import EnrichmentScheduler

    return EnrichmentScheduler(
        orchestrator.run_cycle,
        interval_hours=config.scheduler.interval_hours,
        run_on_start=config.scheduler.run_on_start and not skip_initial,
    )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times; all DDL uses IF NOT EXISTS.
    """
    from stock_enricher.db.schema import ALL_TABLE_NAMES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")
    _open_store_or_exit(config, db_path=target_path)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print the full resolved config as JSON.",
    ),
) -> None:
    """Load and validate configuration, then print a summary."""
    import os

    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Cycle interval:   {config.scheduler.interval_hours}h")
    typer.echo(f"  HTTP timeout:     {config.sources.timeout_seconds}s")
    typer.echo(f"  Alpha delay:      {config.sources.alpha_vantage_delay_seconds}s")
    typer.echo(f"  API bind:         {config.api.host}:{config.api.port}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    typer.echo("")
    typer.echo("Credentials:")
    for env_var in ("KARENAI_API_KEY", "FINNHUB_API_KEY", "ALPHA_VANTAGE_API_KEY"):
        state = "set" if os.environ.get(env_var) else "MISSING"
        typer.echo(f"  {env_var:<22}{state}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("run-once")
def run_once(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run a single enrichment cycle and exit.

    \b
    Steps:
      1. Fetch analyst ratings from Karenai (abort on failure).
      2. Enrich each ticker with Finnhub, then Alpha Vantage (rate limited).
      3. Score and upsert the whole batch in one transaction.

    Exits with code 1 if the cycle failed.
    """
    from stock_enricher.pipeline.enrich import EnrichmentOrchestrator

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store_or_exit(config, db_path=db_path)

    orchestrator = EnrichmentOrchestrator.from_config(config, store)
    try:
        result = orchestrator.run_cycle()
    finally:
        orchestrator.close()

    typer.echo(
        f"run-once | cycle={result.cycle_id} | tickers={len(result.tickers)} "
        f"| finnhub_failures={result.market_failures} "
        f"| alpha_failures={result.alpha_failures} | rows={result.rows_persisted}"
    )
    for err in result.errors[:5]:
        typer.echo(f"  ! {err}")
    if len(result.errors) > 5:
        typer.echo(f"  ... and {len(result.errors) - 5} more.")

    if result.status == "failed":
        typer.echo(f"[FAILED] Cycle aborted at stage '{result.failed_stage}'.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"[OK] Cycle finished with status '{result.status}'.")


@app.command("start-scheduler")
def start_scheduler(
    skip_initial: bool = typer.Option(
        False,
        "--skip-initial",
        help="Wait for the first interval instead of running a cycle immediately.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Run enrichment cycles on the configured interval.  Blocks until Ctrl-C."""
    from stock_enricher.pipeline.enrich import EnrichmentOrchestrator

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store_or_exit(config, db_path=db_path)

    orchestrator = EnrichmentOrchestrator.from_config(config, store)
    scheduler = _build_scheduler(config, orchestrator, skip_initial)
    typer.echo(
        f"Scheduler running every {config.scheduler.interval_hours}h "
        f"| db={store.db_path}.  Press Ctrl-C to stop."
    )
    try:
        scheduler.start()
    finally:
        orchestrator.close()
    typer.echo("[OK] Scheduler stopped.")


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)."),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default from config)."),
    with_scheduler: bool = typer.Option(
        True,
        "--with-scheduler/--no-scheduler",
        help="Also run enrichment cycles in a background thread.",
    ),
    skip_initial: bool = typer.Option(
        False,
        "--skip-initial",
        help="With the scheduler: wait for the first interval before enriching.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Serve the read API (and, by default, the enrichment scheduler)."""
    import uvicorn

    from stock_enricher.api.app import create_app
    from stock_enricher.pipeline.enrich import EnrichmentOrchestrator

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store_or_exit(config, db_path=db_path)

    orchestrator = None
    scheduler = None
    if with_scheduler:
        orchestrator = EnrichmentOrchestrator.from_config(config, store)
        scheduler = _build_scheduler(config, orchestrator, skip_initial)
        scheduler.start_background()

    bind_host = host or config.api.host
    bind_port = port or config.api.port
    typer.echo(f"Serving API on http://{bind_host}:{bind_port}/api/v1")
    try:
        uvicorn.run(
            create_app(store, config.api),
            host=bind_host,
            port=bind_port,
            log_level=config.logging.level.lower(),
        )
    finally:
        if scheduler is not None:
            scheduler.stop()
        if orchestrator is not None:
            orchestrator.close()


@app.command("list-stocks")
def list_stocks(
    search: str = typer.Option("", "--search", help="Substring of ticker or company."),
    sort_by: str = typer.Option("ticker", "--sort-by", help="Column to sort by."),
    order: str = typer.Option("asc", "--order", help="asc or desc."),
    limit: int = typer.Option(10, "--limit", min=1, max=SQLITE_MAX_INT, help="Rows to show."),
    offset: int = typer.Option(0, "--offset", min=0, max=SQLITE_MAX_INT, help="Rows to skip."),
    recommended: bool = typer.Option(
        False,
        "--recommended",
        help="Show the top stocks by recommendation score instead.",
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Print stored stocks as a table."""
    from stock_enricher.db.repositories.stock_repo import StockQueryOptions

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    store = _open_store_or_exit(config, db_path=db_path)

    if recommended:
        stocks = store.recommended_stocks(limit)
        total = len(stocks)
    else:
        options = StockQueryOptions(
            search=search, sort_by=sort_by, order=order, limit=limit, offset=offset
        )
        stocks = store.list_stocks(options)
        total = store.count_stocks(search)

    if not stocks:
        typer.echo("No stocks found.")
        return

    def _fmt(value: Optional[float], spec: str = ".2f") -> str:
        return "n/a" if value is None else format(value, spec)

    typer.echo(
        f"{'TICKER':<8} {'ACTION':<22} {'PRICE':>10} {'TARGET':>10} "
        f"{'P/E':>8} {'YIELD%':>7} {'SCORE':>6}"
    )
    for s in stocks:
        typer.echo(
            f"{s.ticker:<8} {s.action[:22]:<22} {s.current_price:>10.2f} "
            f"{_fmt(s.target_to):>10} {_fmt(s.pe_ratio):>8} "
            f"{_fmt(s.dividend_yield):>7} {_fmt(s.recommendation_score, '.1f'):>6}"
        )
    typer.echo(f"\n  Showing {len(stocks)} of {total} stock(s).")


if __name__ == "__main__":
    app()
