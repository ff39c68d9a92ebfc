"""Cross-sectional factor scoring.

Converts raw factors into comparable 0-5 sub-scores using percentile ranks
within the cross-section of all assets evaluated on the same date.

Percentile ranks (not z-scores) keep scores robust to outliers, at the cost
of being relative to the universe: scores from dates with different asset
sets are not comparable.

Sub-scores:
    valuation = 5 * (0.3*pct(log_mc) + 0.3*(1-pct(fdv_ratio)) + 0.4*pct(price_to_high))
    momentum  = 5 * (0.7*pct(return_365d) + 0.3*(1-pct(vol_180d)))
    liquidity = 5 * (0.5*pct(volume_ratio) + 0.5*pct(avg_volume_30d))
    risk      = 5 * (0.5*(1-pct(vol_365d)) + 0.5*(1-pct(max_dd_365d)))
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

import numpy as np

from .config import DEFAULT_FACTOR_CONFIG, FactorConfig
from .extractor import RawFactors
from .series import clamp

NEUTRAL_SCORE = 2.5  # cross-section too small to rank
MAX_SCORE = 5.0


@dataclass(frozen=True)
class FactorScores:
    """Normalized factor scores, each in [0, 5]."""

    valuation_score: float
    momentum_score: float
    liquidity_score: float
    risk_score: float  # lower risk scores higher
    total_score: float

    def to_dict(self) -> dict:
        return {
            "valuation_score": round(self.valuation_score, 4),
            "momentum_score": round(self.momentum_score, 4),
            "liquidity_score": round(self.liquidity_score, 4),
            "risk_score": round(self.risk_score, 4),
            "total_score": round(self.total_score, 4),
        }


def _finite(values: Iterable[float]) -> np.ndarray:
    arr = np.asarray(list(values), dtype=float)
    return arr[np.isfinite(arr)]


def get_percentile(value: float, values: Iterable[float]) -> float:
    """
    Percentile rank (0-1) of value within a comparison set.

    Non-finite entries are dropped from the set. A single remaining entry
    ranks any value at or above it 1 and below it 0. Otherwise values at
    or below the minimum rank 0, at or above the maximum rank 1; in between
    the rank is linearly interpolated between neighbouring sorted entries
    and normalized by the set size.

    Returns:
        Percentile in [0, 1]; 0.5 for an empty set or a non-finite value
    """
    arr = np.sort(_finite(values))
    n = len(arr)
    if n == 0 or not math.isfinite(value):
        return 0.5
    if n == 1:
        # Lone finite peer: matching it is the top of the set
        return 1.0 if value >= arr[0] else 0.0

    if value <= arr[0]:
        return 0.0
    if value >= arr[-1]:
        return 1.0

    # Smallest index with arr[i] >= value; guaranteed 1 <= i <= n-1 here
    index = int(np.searchsorted(arr, value, side="left"))
    lower = float(arr[index - 1])
    upper = float(arr[index])
    if upper == lower:
        return index / n

    ratio = (value - lower) / (upper - lower)
    return (index - 1 + ratio) / n


def _pct(factors: RawFactors, cross_section: Sequence[RawFactors], field: str) -> float:
    return get_percentile(getattr(factors, field), (getattr(f, field) for f in cross_section))


def calculate_valuation_score(factors: RawFactors, cross_section: Sequence[RawFactors]) -> float:
    """Larger caps, less dilution and prices near the yearly high score higher."""
    if len(cross_section) < 2:
        return NEUTRAL_SCORE

    log_mc = _pct(factors, cross_section, "log_market_cap")
    fdv = 1 - _pct(factors, cross_section, "fdv_to_market_cap_ratio")
    to_high = _pct(factors, cross_section, "price_to_high_365d")
    return (log_mc * 0.3 + fdv * 0.3 + to_high * 0.4) * 5


def calculate_momentum_score(factors: RawFactors, cross_section: Sequence[RawFactors]) -> float:
    """Strong yearly return with low medium-term volatility scores higher."""
    if len(cross_section) < 2:
        return NEUTRAL_SCORE

    ret = _pct(factors, cross_section, "return_365d")
    vol = 1 - _pct(factors, cross_section, "volatility_180d")
    return (ret * 0.7 + vol * 0.3) * 5


def calculate_liquidity_score(factors: RawFactors, cross_section: Sequence[RawFactors]) -> float:
    if len(cross_section) < 2:
        return NEUTRAL_SCORE

    turnover = _pct(factors, cross_section, "volume_to_market_cap_ratio")
    avg_volume = _pct(factors, cross_section, "avg_daily_volume_30d")
    return (turnover * 0.5 + avg_volume * 0.5) * 5


def calculate_risk_score(factors: RawFactors, cross_section: Sequence[RawFactors]) -> float:
    """Low yearly volatility and shallow drawdowns score higher."""
    if len(cross_section) < 2:
        return NEUTRAL_SCORE

    vol = 1 - _pct(factors, cross_section, "volatility_365d")
    drawdown = 1 - _pct(factors, cross_section, "max_drawdown_365d")
    return (vol * 0.5 + drawdown * 0.5) * 5


def normalize_factor_scores(
    factors: RawFactors,
    cross_section: Sequence[RawFactors],
    config: FactorConfig | None = None,
) -> FactorScores:
    """
    Score one asset's raw factors against the cross-section.

    Args:
        factors: The asset's raw factors
        cross_section: Raw factors of every asset on the same date
            (normally including the asset itself)
        config: Category weights for the total score

    Returns:
        FactorScores with every score clamped to [0, 5]
    """
    config = config or DEFAULT_FACTOR_CONFIG
    cross_section = list(cross_section)

    valuation = clamp(calculate_valuation_score(factors, cross_section), 0.0, MAX_SCORE)
    momentum = clamp(calculate_momentum_score(factors, cross_section), 0.0, MAX_SCORE)
    liquidity = clamp(calculate_liquidity_score(factors, cross_section), 0.0, MAX_SCORE)
    risk = clamp(calculate_risk_score(factors, cross_section), 0.0, MAX_SCORE)

    total = (
        valuation * config.weight_valuation
        + momentum * config.weight_momentum
        + liquidity * config.weight_liquidity
        + risk * config.weight_risk
    )

    return FactorScores(
        valuation_score=valuation,
        momentum_score=momentum,
        liquidity_score=liquidity,
        risk_score=risk,
        total_score=clamp(total, 0.0, MAX_SCORE),
    )


def score_cross_section(
    factors_by_asset: Mapping[str, RawFactors],
    config: FactorConfig | None = None,
) -> dict[str, FactorScores]:
    """Score every asset of one evaluation date against the others."""
    cross_section = list(factors_by_asset.values())
    return {
        asset_id: normalize_factor_scores(factors, cross_section, config)
        for asset_id, factors in factors_by_asset.items()
    }
