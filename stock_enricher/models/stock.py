"""
Stock recommendation models: upstream rating rows and enriched records.

Two-stage design:
  1. ``RecommendationRecord`` - an analyst rating change exactly as listed by
                                Karenai (ticker, brokerage, ratings, targets).
  2. ``EnrichedStock``        - the record after market-data enrichment and
                                scoring; this is what is stored and served.

Numeric and time fields that upstream may omit use ``NullableFloat`` /
``NullableDatetime``.  Both accept JSON ``null``, an empty string and (for
numbers) ``"n/a"`` as *absent*, which is kept as ``None`` and serialised back
to ``null``; an absent value is never coerced to ``0``.

Numeric strings may carry a leading ``$`` and ``,`` thousands separators,
because Karenai formats price targets as ``"$1,204.50"``.  Those two
characters are stripped before parsing; any other non-numeric string is a
decode failure (``ValueError``).

Fields that were never supplied at all are distinguishable from fields
explicitly set to ``None`` via ``model_fields_set``; see
``EnrichedStock.field_state``.

Both models are frozen (immutable) after construction.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, field_validator

from stock_enricher.utils.time_utils import parse_timestamp

_ABSENT_TOKENS = frozenset({"", "n/a"})
_TICKER_RE = re.compile(r"^[A-Z0-9][A-Z0-9.\-]*$")

TEXT_FIELDS = ("company", "brokerage", "action", "rating_from", "rating_to")


# ── Nullable scalar decoding ───────────────────────────────────────────────────


def parse_nullable_float(value: Any) -> Optional[float]:
    """Decode an upstream number that may be missing.

    Accepted:
      - ``None``, ``""`` and ``"n/a"`` (any case)  → ``None``
      - ints / floats                               → ``float``
      - numeric strings, optionally with a leading ``$`` and thousands
        separators (``"$1,234.50"``)                → ``float``

    ``0`` is a real zero, not absence.

    Raises:
        ValueError: For any other string, booleans, or non-finite numbers.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got boolean {value!r}")
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.lower() in _ABSENT_TOKENS:
            return None
        cleaned = text.removeprefix("$").replace(",", "")
        try:
            result = float(cleaned)
        except ValueError:
            raise ValueError(f"cannot decode {value!r} as a number") from None
    else:
        raise ValueError(f"expected a number or string, got {type(value).__name__}")

    if not math.isfinite(result):
        raise ValueError(f"non-finite number {value!r}")
    return result


def parse_nullable_datetime(value: Any) -> Optional[datetime]:
    """Decode an upstream timestamp that may be missing.

    ``None`` and ``""`` are absent.  Strings must be RFC 3339 or
    ``YYYY-MM-DD``; bare dates become midnight UTC.

    Raises:
        ValueError: If a non-empty string matches neither format.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        if not value.strip():
            return None
        return parse_timestamp(value)
    raise ValueError(f"expected a timestamp string, got {type(value).__name__}")


NullableFloat = Annotated[Optional[float], BeforeValidator(parse_nullable_float)]
NullableDatetime = Annotated[Optional[datetime], BeforeValidator(parse_nullable_datetime)]


# ── Models ─────────────────────────────────────────────────────────────────────


class RecommendationRecord(BaseModel):
    """One analyst rating change as listed by the ratings provider.

    Attributes:
        ticker: Upper-case symbol; the natural key of the whole system.
        company: Company display name.
        brokerage: Firm that issued the rating.
        action: Free-text change description (e.g. ``"target raised by"``).
        rating_from: Previous rating label.
        rating_to: New rating label (e.g. ``"Buy"``).
        target_from: Previous price target, or ``None`` if not given.
        target_to: New price target, or ``None`` if not given.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    company: str = ""
    brokerage: str = ""
    action: str = ""
    rating_from: str = ""
    rating_to: str = ""
    target_from: NullableFloat = None
    target_to: NullableFloat = None

    @field_validator("ticker", mode="before")
    @classmethod
    def normalize_ticker(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError(f"ticker must be a string, got {type(v).__name__}.")
        ticker = v.strip().upper()
        if not _TICKER_RE.match(ticker):
            raise ValueError(f"Invalid ticker '{v}'.")
        return ticker

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def null_text_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class EnrichedStock(RecommendationRecord):
    """A rating record joined with market data and a recommendation score.

    ``id``, ``created_at`` and ``updated_at`` are assigned by the store; they
    are ``None`` on records that have not been persisted yet.

    Attributes:
        current_price: Latest quote; ``0.0`` when no quote was obtained.
        pe_ratio: Price/earnings ratio, ``None`` when unavailable.
        dividend_yield: Annual dividend yield in percent, ``None`` when unavailable.
        market_capitalization: Market cap in millions, ``None`` when unavailable.
        alpha: Alpha Vantage alpha, ``None`` when unavailable.
        latest_trading_day: Last trading day of the quote, ``None`` when unknown.
        recommendation_score: Heuristic score (``0``, ``3``, ``5`` or ``8``).
    """

    id: Optional[str] = None
    current_price: float = 0.0
    pe_ratio: NullableFloat = None
    dividend_yield: NullableFloat = None
    market_capitalization: NullableFloat = None
    alpha: NullableFloat = None
    latest_trading_day: NullableDatetime = None
    recommendation_score: NullableFloat = None
    created_at: NullableDatetime = None
    updated_at: NullableDatetime = None

    @field_validator("current_price", mode="before")
    @classmethod
    def missing_price_is_zero(cls, v: Any) -> float:
        parsed = parse_nullable_float(v)
        return 0.0 if parsed is None else parsed

    @classmethod
    def from_record(cls, record: RecommendationRecord, **enrichment: Any) -> "EnrichedStock":
        """Build an enriched stock from a rating record plus enrichment fields.

        Fields the rating record never had set stay unset on the result.
        """
        data = record.model_dump(exclude_unset=True)
        data["ticker"] = record.ticker
        data.update(enrichment)
        return cls(**data)

    def field_state(self, name: str) -> str:
        """Return ``"unset"``, ``"absent"`` or ``"present"`` for a field.

        ``unset``   - never supplied (not in ``model_fields_set``).
        ``absent``  - explicitly supplied as null / empty / ``n/a``.
        ``present`` - holds a real value (including ``0``).
        """
        if name not in type(self).model_fields:
            raise KeyError(name)
        if name not in self.model_fields_set:
            return "unset"
        return "absent" if getattr(self, name) is None else "present"
