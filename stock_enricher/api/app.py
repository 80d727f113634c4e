"""
FastAPI read API over the stock store.

Routes (prefix ``/api/v1``):
  GET /stocks               paginated, searchable, sortable list;
                            total matching rows in ``X-Total-Count``
  GET /stocks/recommended   top stocks by recommendation score
  GET /stocks/{stock_id}    one stock, 404 when unknown
  GET /health               liveness check

Query parameters are parsed leniently: a missing, malformed or out-of-range
``limit``/``offset`` falls back to its default instead of returning 422.

Handlers are plain ``def`` functions; FastAPI runs them in its threadpool,
which suits the blocking SQLite store.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stock_enricher import __version__
from stock_enricher.config import ApiConfig
from stock_enricher.db.repositories.stock_repo import (
    DEFAULT_SORT,
    SQLITE_MAX_INT,
    StockQueryOptions,
)
from stock_enricher.db.store import StockStore
from stock_enricher.exceptions import PersistenceError
from stock_enricher.models.stock import EnrichedStock

log = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
TOTAL_COUNT_HEADER = "X-Total-Count"


def _parse_int(
    raw: Optional[str],
    default: int,
    minimum: int,
    maximum: int = SQLITE_MAX_INT,
) -> int:
    """Return ``raw`` as an int, or ``default`` if missing, malformed or out of range."""
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if minimum <= value <= maximum else default


def get_store(request: Request) -> StockStore:
    return request.app.state.store


def get_api_config(request: Request) -> ApiConfig:
    return request.app.state.api_config


router = APIRouter(prefix=API_PREFIX)


@router.get("/health", tags=["Health"])
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


@router.get("/stocks", response_model=list[EnrichedStock], tags=["Stocks"])
def list_stocks(
    response: Response,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    search: str = "",
    sortBy: str = DEFAULT_SORT,  # noqa: N803
    order: str = "asc",
    store: StockStore = Depends(get_store),
    api_config: ApiConfig = Depends(get_api_config),
) -> list[EnrichedStock]:
    options = StockQueryOptions(
        search=search,
        sort_by=sortBy,
        order=order,
        limit=_parse_int(limit, api_config.default_page_size, minimum=1),
        offset=_parse_int(offset, 0, minimum=0),
    )
    log.debug("GET /stocks %s", options)

    stocks = store.list_stocks(options)
    response.headers[TOTAL_COUNT_HEADER] = str(store.count_stocks(options.search))
    return stocks


# Registered before /stocks/{stock_id} so "recommended" is not taken as an id.
@router.get("/stocks/recommended", response_model=list[EnrichedStock], tags=["Stocks"])
def recommended_stocks(
    limit: Optional[str] = None,
    store: StockStore = Depends(get_store),
    api_config: ApiConfig = Depends(get_api_config),
) -> list[EnrichedStock]:
    count = _parse_int(limit, api_config.default_recommended_limit, minimum=1)
    return store.recommended_stocks(count)


@router.get("/stocks/{stock_id}", response_model=EnrichedStock, tags=["Stocks"])
def get_stock(
    stock_id: str,
    store: StockStore = Depends(get_store),
) -> EnrichedStock:
    stock = store.get_stock(stock_id)
    if stock is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Stock '{stock_id}' not found.",
        )
    return stock


def _persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    log.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage error."},
    )


def create_app(store: StockStore, api_config: Optional[ApiConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        store: Storage port to serve from.
        api_config: CORS origins and default page sizes; defaults apply if ``None``.
    """
    api_config = api_config or ApiConfig()

    app = FastAPI(
        title="Stock Enricher API",
        description="Analyst ratings enriched with market data and a recommendation score.",
        version=__version__,
    )
    app.state.store = store
    app.state.api_config = api_config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=[TOTAL_COUNT_HEADER],
    )
    app.add_exception_handler(PersistenceError, _persistence_error_handler)
    app.include_router(router)
    return app
