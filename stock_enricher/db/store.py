"""
Storage port for enriched stocks.

``StockStore`` is the interface the enrichment pipeline and the read API
depend on; ``SQLiteStockStore`` is the production implementation.  Tests can
substitute any object with the same methods.

Each ``SQLiteStockStore`` call opens its own connection, so one instance is
safe to share between the scheduler thread and API worker threads.  Every
``sqlite3.Error`` (and any OS error opening the file) is re-raised as
``PersistenceError``.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional, Protocol, Sequence

from stock_enricher.config import DatabaseConfig
from stock_enricher.db.connection import get_connection
from stock_enricher.db.repositories.stock_repo import StockQueryOptions, StockRepository
from stock_enricher.db.schema import apply_schema
from stock_enricher.exceptions import PersistenceError
from stock_enricher.models.stock import EnrichedStock

logger = logging.getLogger(__name__)


class StockStore(Protocol):
    """Persistence operations used by the pipeline and the read API."""

    def upsert_batch(self, stocks: Sequence[EnrichedStock]) -> int: ...

    def list_stocks(self, options: StockQueryOptions) -> list[EnrichedStock]: ...

    def count_stocks(self, search: str = "") -> int: ...

    def get_stock(self, stock_id: str) -> Optional[EnrichedStock]: ...

    def recommended_stocks(self, limit: int) -> list[EnrichedStock]: ...


class SQLiteStockStore:
    """``StockStore`` backed by a SQLite file.

    Args:
        db_path: SQLite database file path.
        wal_mode: Enable WAL journal mode.
        busy_timeout_ms: Lock wait before giving up.
    """

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @classmethod
    def from_config(cls, config: DatabaseConfig, db_path: Optional[str] = None) -> "SQLiteStockStore":
        return cls(
            db_path=db_path or config.db_path,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )

    @contextmanager
    def _repo(self, action: str) -> Generator[StockRepository, None, None]:
        """Yield a repository inside one transaction, mapping SQLite errors."""
        try:
            with get_connection(self.db_path, self.wal_mode, self.busy_timeout_ms) as conn:
                yield StockRepository(conn)
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc

    def initialize(self) -> None:
        """Create the schema if it does not exist yet."""
        with self._repo("schema initialisation") as repo:
            apply_schema(repo.conn)

    def upsert_batch(self, stocks: Sequence[EnrichedStock]) -> int:
        """Upsert all ``stocks`` by ticker in a single transaction.

        Returns:
            Number of stocks written; ``0`` for an empty batch.

        Raises:
            PersistenceError: If any row fails; nothing from the batch is kept.
        """
        if not stocks:
            logger.info("Empty batch; nothing to persist.")
            return 0
        with self._repo(f"upsert of {len(stocks)} stock(s)") as repo:
            written = repo.upsert_many(stocks)
        logger.info("Upserted %d stock(s) into %s.", written, self.db_path)
        return written

    def list_stocks(self, options: StockQueryOptions) -> list[EnrichedStock]:
        with self._repo("stock listing") as repo:
            return repo.list_page(options)

    def count_stocks(self, search: str = "") -> int:
        with self._repo("stock count") as repo:
            return repo.count(search)

    def get_stock(self, stock_id: str) -> Optional[EnrichedStock]:
        with self._repo("stock lookup") as repo:
            return repo.get_by_id(stock_id)

    def get_stock_by_ticker(self, ticker: str) -> Optional[EnrichedStock]:
        with self._repo("stock lookup") as repo:
            return repo.get_by_ticker(ticker)

    def recommended_stocks(self, limit: int) -> list[EnrichedStock]:
        with self._repo("recommended stocks query") as repo:
            return repo.recommended(limit)
