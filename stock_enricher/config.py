"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      - committed static defaults
  2. ``config/local.toml``        - optional local overrides (gitignored)
  3. ``.env``                     - local secrets and env overrides (gitignored)
  4. Environment variables        - ``STOCK_ENRICHER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

Provider credentials are NOT part of ``AppConfig``.  They are read from the
environment by each client at call time so a missing key fails only the
call that needs it:

  KARENAI_API_KEY        - analyst ratings list (Bearer token)
  FINNHUB_API_KEY        - quote + fundamentals
  ALPHA_VANTAGE_API_KEY  - global quote
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/stocks.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class SourcesConfig(BaseModel):
    """Upstream provider endpoints and call budgets."""

    model_config = ConfigDict(frozen=True)

    karenai_url: str = "https://api.karenai.click/swechallenge/list"
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    alpha_vantage_base_url: str = "https://www.alphavantage.co/query"
    timeout_seconds: float = 30.0
    alpha_vantage_delay_seconds: float = 15.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {v}.")
        return v

    @field_validator("alpha_vantage_delay_seconds")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"alpha_vantage_delay_seconds must be >= 0, got {v}.")
        return v


class SchedulerConfig(BaseModel):
    """Enrichment cycle cadence."""

    model_config = ConfigDict(frozen=True)

    interval_hours: float = 24.0
    run_on_start: bool = True

    @field_validator("interval_hours")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"interval_hours must be positive, got {v}.")
        return v


class ApiConfig(BaseModel):
    """Read API server settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8081
    allowed_origins: list[str] = ["http://localhost:5173"]
    default_page_size: int = 10
    default_recommended_limit: int = 5


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/enricher.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration; the single source of truth.

    The scheduler, the API and every CLI command receive an ``AppConfig``
    instance. It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    sources: SourcesConfig = SourcesConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    api: ApiConfig = ApiConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply STOCK_ENRICHER_* environment variable overrides
    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply STOCK_ENRICHER_* env vars to the raw config dict.

    Supported overrides:
      STOCK_ENRICHER_DB_PATH         → raw["database"]["db_path"]
      STOCK_ENRICHER_LOG_LEVEL       → raw["logging"]["level"]
      STOCK_ENRICHER_INTERVAL_HOURS  → raw["scheduler"]["interval_hours"]
      STOCK_ENRICHER_PORT            → raw["api"]["port"]
      STOCK_ENRICHER_DEBUG           → raw["debug"]
    """
    if db_path := os.environ.get("STOCK_ENRICHER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("STOCK_ENRICHER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if interval := os.environ.get("STOCK_ENRICHER_INTERVAL_HOURS"):
        raw.setdefault("scheduler", {})["interval_hours"] = float(interval)

    if port := os.environ.get("STOCK_ENRICHER_PORT"):
        raw.setdefault("api", {})["port"] = int(port)

    if debug := os.environ.get("STOCK_ENRICHER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        sources=SourcesConfig(**raw.get("sources", {})),
        scheduler=SchedulerConfig(**raw.get("scheduler", {})),
        api=ApiConfig(**raw.get("api", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
