"""
Recommendation scoring: turns an enriched stock into a heuristic score.

Score formula (additive, possible totals 0 / 3 / 5 / 8)
-------------------------------------------------------
    total = action_boost + upside_boost

Component explanations
----------------------
action_boost (0 or 5):
    +5 when the analyst ``action`` is exactly ``"Buy"`` or ``"Strong Buy"``.
    Case-sensitive exact match; anything else contributes 0.

upside_boost (0 or 3):
    +3 when the new price target is more than 10% above the current price:
        current_price > 0  AND  target_to is present
        AND  target_to > current_price * 1.1
    A zero price means "no quote", so the target check is skipped.

The score is recomputed from scratch every cycle; it is not a financial model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stock_enricher.models.stock import EnrichedStock

BUY_ACTIONS: frozenset[str] = frozenset({"Buy", "Strong Buy"})

ACTION_BOOST = 5.0
UPSIDE_BOOST = 3.0
UPSIDE_THRESHOLD = 1.1


@dataclass
class ScoreComponents:
    """Breakdown of a recommendation score.

    Attributes:
        action_boost: 0 or 5, from the analyst action.
        upside_boost: 0 or 3, from target-vs-price upside.
    """

    action_boost: float
    upside_boost: float

    @property
    def total(self) -> float:
        return self.action_boost + self.upside_boost


def compute_score(
    action: str,
    current_price: float,
    target_to: Optional[float],
) -> ScoreComponents:
    """Compute score components from the raw inputs.

    Args:
        action: Analyst action text.
        current_price: Latest quote; ``0`` when unknown.
        target_to: New price target, or ``None`` when absent.

    Returns:
        ``ScoreComponents``; use ``.total`` for the final score.
    """
    action_boost = ACTION_BOOST if action in BUY_ACTIONS else 0.0

    upside_boost = 0.0
    if (
        current_price > 0
        and target_to is not None
        and target_to > current_price * UPSIDE_THRESHOLD
    ):
        upside_boost = UPSIDE_BOOST

    return ScoreComponents(action_boost=action_boost, upside_boost=upside_boost)


def compute_recommendation_score(stock: EnrichedStock) -> float:
    """Return the total recommendation score for an enriched stock."""
    return compute_score(stock.action, stock.current_price, stock.target_to).total
