"""Score-to-weight allocation.

Maps total factor scores to target portfolio weights through ordered score
bands, then scales the selected assets so the summed weight never exceeds
a cap.

Bands are scanned in the order given and the FIRST matching band wins.
Callers must order bands from highest to lowest min_score to get the
intuitive "best band" result; this ordering is not enforced here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from quantlens.core.logging import get_logger

from .scoring import FactorScores

logger = get_logger("factors.allocation")


@dataclass(frozen=True)
class WeightBand:
    """Score band: min_score <= total < max_score maps to target_weight."""

    min_score: float
    target_weight: float
    max_score: Optional[float] = None  # None = unbounded

    def matches(self, total_score: float) -> bool:
        if total_score < self.min_score:
            return False
        return self.max_score is None or total_score < self.max_score


@dataclass(frozen=True)
class ScoringRules:
    """Weight band configuration."""

    weight_thresholds: tuple[WeightBand, ...]
    allow_negative_weights: bool = False
    min_weight_threshold: float = 0.005  # weights below 0.5% are dropped


DEFAULT_SCORING_RULES = ScoringRules(
    weight_thresholds=(
        WeightBand(min_score=4.0, target_weight=0.04),
        WeightBand(min_score=3.5, max_score=4.0, target_weight=0.02),
        WeightBand(min_score=3.0, max_score=3.5, target_weight=0.01),
        WeightBand(min_score=0.0, max_score=3.0, target_weight=0.0),
    ),
    allow_negative_weights=False,
    min_weight_threshold=0.005,
)


@dataclass
class PortfolioAllocation:
    """Allocation of one asset on one evaluation date."""

    asset_id: str
    total_score: float
    target_weight: float
    adjusted_weight: float

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "total_score": round(self.total_score, 4),
            "target_weight": round(self.target_weight, 6),
            "adjusted_weight": round(self.adjusted_weight, 6),
        }


@dataclass
class WeightAllocationResult:
    """Target and cap-adjusted weights for the selected assets."""

    asset_weights: dict[str, float]
    total_weight: float
    adjusted_weights: dict[str, float]
    allocations: list[PortfolioAllocation] = field(default_factory=list)

    @property
    def adjusted_total_weight(self) -> float:
        return sum(self.adjusted_weights.values())


@dataclass
class PortfolioSuggestion:
    """Portfolio suggestion for one evaluation date with a selection summary."""

    as_of: date
    allocations: list[PortfolioAllocation]
    total_weight: float
    adjusted_total_weight: float
    total_assets: int
    selected_assets: int
    average_score: float

    def to_dict(self) -> dict:
        return {
            "as_of": self.as_of.isoformat(),
            "allocations": [a.to_dict() for a in self.allocations],
            "total_weight": round(self.total_weight, 6),
            "adjusted_total_weight": round(self.adjusted_total_weight, 6),
            "summary": {
                "total_assets": self.total_assets,
                "selected_assets": self.selected_assets,
                "average_score": round(self.average_score, 4),
            },
        }


def calculate_target_weight(
    scores: FactorScores,
    rules: ScoringRules = DEFAULT_SCORING_RULES,
) -> float:
    """
    Target weight for an asset's total score.

    The first band in rules.weight_thresholds that contains the score wins.
    Negative weights are floored at 0 unless allowed, and weights whose
    magnitude is below min_weight_threshold become 0.

    Returns:
        Target weight (0.04 = 4%), 0.0 when no band matches
    """
    total = scores.total_score
    if not math.isfinite(total):
        return 0.0

    for band in rules.weight_thresholds:
        if not band.matches(total):
            continue

        weight = band.target_weight
        if not rules.allow_negative_weights and weight < 0:
            weight = 0.0
        if abs(weight) < rules.min_weight_threshold:
            weight = 0.0
        return weight

    return 0.0


def normalize_weights(
    asset_weights: Mapping[str, float],
    max_total_weight: float = 1.0,
) -> WeightAllocationResult:
    """
    Scale weights down proportionally when their sum exceeds the cap.

    The gross (absolute) sum is compared against the cap; when it is within
    the cap, weights are returned unchanged.
    """
    weights = dict(asset_weights)
    total_weight = sum(weights.values())
    gross = sum(abs(w) for w in weights.values())

    if gross > max_total_weight:
        scale = max_total_weight / gross
        adjusted = {asset_id: w * scale for asset_id, w in weights.items()}
    else:
        adjusted = dict(weights)

    return WeightAllocationResult(
        asset_weights=weights,
        total_weight=total_weight,
        adjusted_weights=adjusted,
    )


def generate_weight_allocation(
    scores_by_asset: Mapping[str, FactorScores],
    rules: ScoringRules = DEFAULT_SCORING_RULES,
    max_total_weight: float = 1.0,
) -> WeightAllocationResult:
    """
    Build cap-respecting weights for every asset with a non-zero target.

    Returns:
        WeightAllocationResult whose allocations are sorted by total score
        (descending); sum of adjusted weights never exceeds max_total_weight
    """
    asset_weights: dict[str, float] = {}
    for asset_id, scores in scores_by_asset.items():
        weight = calculate_target_weight(scores, rules)
        if weight != 0:
            asset_weights[asset_id] = weight

    result = normalize_weights(asset_weights, max_total_weight)
    result.allocations = sorted(
        (
            PortfolioAllocation(
                asset_id=asset_id,
                total_score=scores_by_asset[asset_id].total_score,
                target_weight=weight,
                adjusted_weight=result.adjusted_weights[asset_id],
            )
            for asset_id, weight in asset_weights.items()
        ),
        key=lambda a: a.total_score,
        reverse=True,
    )
    return result


def build_portfolio_suggestion(
    as_of: date,
    scores_by_asset: Mapping[str, FactorScores],
    rules: ScoringRules = DEFAULT_SCORING_RULES,
    max_total_weight: float = 1.0,
) -> PortfolioSuggestion:
    """Allocate weights and summarize how many assets were selected."""
    result = generate_weight_allocation(scores_by_asset, rules, max_total_weight)
    selected = result.allocations
    average_score = (
        sum(a.total_score for a in selected) / len(selected) if selected else 0.0
    )

    logger.info(
        f"Portfolio {as_of.isoformat()}: selected {len(selected)}/{len(scores_by_asset)} "
        f"assets, adjusted weight {result.adjusted_total_weight:.1%}"
    )

    return PortfolioSuggestion(
        as_of=as_of,
        allocations=selected,
        total_weight=result.total_weight,
        adjusted_total_weight=result.adjusted_total_weight,
        total_assets=len(scores_by_asset),
        selected_assets=len(selected),
        average_score=average_score,
    )
