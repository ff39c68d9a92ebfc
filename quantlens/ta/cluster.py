"""Moving-average density clusters.

A cluster is the band spanned by the six moving averages at one bar. The
tighter (and flatter) the band, the higher its density score.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from quantlens.factors.series import clamp, slope_std_at

from .config import DEFAULT_TA_CONFIG, TAConfig
from .indicators import IndicatorSet


@dataclass(frozen=True)
class ClusterInfo:
    """Moving-average band at one bar."""

    index: int
    cluster_mean: float
    cluster_high: float
    cluster_low: float
    cluster_width: float  # high - low
    density_ratio: float  # width / mean
    density_score: float  # 0-1, 1 = all averages coincide
    tight_threshold: float = DEFAULT_TA_CONFIG.cluster_tight_threshold

    @property
    def is_tight(self) -> bool:
        return self.density_ratio <= self.tight_threshold

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "cluster_mean": round(self.cluster_mean, 8),
            "cluster_high": round(self.cluster_high, 8),
            "cluster_low": round(self.cluster_low, 8),
            "cluster_width": round(self.cluster_width, 8),
            "density_ratio": round(self.density_ratio, 6) if math.isfinite(self.density_ratio) else None,
            "density_score": round(self.density_score, 4),
        }


def _band(values: np.ndarray) -> tuple[float, float, float, float, float]:
    mean = float(values.mean())
    high = float(values.max())
    low = float(values.min())
    width = high - low
    ratio = width / mean if mean > 0 else math.inf
    return mean, high, low, width, ratio


def compute_density_score(values: Sequence[float], config: TAConfig | None = None) -> float:
    """
    Base density score of a set of moving-average values.

    Returns:
        1 - min(width/mean / density_max, 1); 0 when the mean is not positive
    """
    config = config or DEFAULT_TA_CONFIG
    arr = np.asarray(values, dtype=float)
    if len(arr) == 0 or np.isnan(arr).any():
        return 0.0

    _, _, _, _, ratio = _band(arr)
    if not math.isfinite(ratio):
        return 0.0
    return 1 - min(ratio / config.density_max, 1.0)


def flatness_factor(indicators: IndicatorSet, index: int, config: TAConfig | None = None) -> float:
    """
    1 - min(avg slope std / slope_std_max, 1) across the six averages.

    Averages without a slope std at index are skipped; when none has one
    the factor is 1.
    """
    config = config or DEFAULT_TA_CONFIG
    stds = [
        slope_std_at(ma, index, config.slope_lookback)
        for ma in indicators.moving_averages
    ]
    stds = [s for s in stds if not math.isnan(s)]
    if not stds:
        return 1.0

    avg_slope_std = sum(stds) / len(stds)
    return 1 - min(avg_slope_std / config.slope_std_max, 1.0)


def compute_cluster_info(
    indicators: IndicatorSet,
    index: int,
    config: TAConfig | None = None,
) -> Optional[ClusterInfo]:
    """
    Describe the moving-average band at a bar.

    Returns:
        ClusterInfo, or None when the index is out of range or any of the
        six averages is still NaN there
    """
    config = config or DEFAULT_TA_CONFIG
    if index < 0 or index >= len(indicators):
        return None

    values = indicators.values_at(index)
    if np.isnan(values).any():
        return None

    mean, high, low, width, ratio = _band(values)
    if not math.isfinite(ratio):
        score = 0.0
    else:
        score = 1 - min(ratio / config.density_max, 1.0)
        if config.use_flatness:
            score *= flatness_factor(indicators, index, config)

    return ClusterInfo(
        index=index,
        cluster_mean=mean,
        cluster_high=high,
        cluster_low=low,
        cluster_width=width,
        density_ratio=ratio,
        density_score=clamp(score, 0.0, 1.0),
        tight_threshold=config.cluster_tight_threshold,
    )
