"""
Moving-average and MACD indicators for the cluster breakout pipeline.

All series are numpy arrays aligned to the input bars (oldest first), with
NaN marking indices where an indicator is not yet defined.

The EMA here is NOT pandas' plain ewm(span=...): the first period-1 values
are the running simple mean of the prices seen so far, and the recursion
only starts at index period-1. Signal thresholds were tuned against this
warm-up, so it is kept as is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from .config import DEFAULT_TA_CONFIG, TAConfig
from .types import KlineBar


# =============================================================================
# Result Containers
# =============================================================================

@dataclass(frozen=True)
class MACDResult:
    """MACD lines aligned to the input prices."""

    dif: np.ndarray  # fast EMA - slow EMA
    dea: np.ndarray  # signal line, EMA of DIF
    histogram: np.ndarray  # DIF - DEA


@dataclass(frozen=True)
class IndicatorSet:
    """Every indicator the cluster scanners read, aligned to the bars."""

    closes: np.ndarray
    ma20: np.ndarray
    ma60: np.ndarray
    ma120: np.ndarray
    ema20: np.ndarray
    ema60: np.ndarray
    ema120: np.ndarray
    macd: MACDResult

    def __len__(self) -> int:
        return len(self.closes)

    @property
    def moving_averages(self) -> tuple[np.ndarray, ...]:
        """The six averages forming a cluster, SMAs first."""
        return (self.ma20, self.ma60, self.ma120, self.ema20, self.ema60, self.ema120)

    def values_at(self, index: int) -> np.ndarray:
        return np.array([ma[index] for ma in self.moving_averages], dtype=float)


# =============================================================================
# Moving Averages
# =============================================================================

def compute_sma(values: Sequence[float], period: int) -> np.ndarray:
    """Simple Moving Average; NaN for the first period-1 indices."""
    arr = np.asarray(values, dtype=float)
    if period <= 0:
        raise ValueError(f"SMA period must be positive, got {period}")
    return pd.Series(arr).rolling(period).mean().to_numpy()


def compute_ema(values: Sequence[float], period: int) -> np.ndarray:
    """
    Exponential Moving Average with running-mean warm-up.

    - index 0: the first value
    - 0 < i < period-1: mean of values[0..i]
    - i >= period-1: (v[i] - ema[i-1]) * 2/(period+1) + ema[i-1]

    Returns:
        Array aligned to values (never NaN for finite input)
    """
    arr = np.asarray(values, dtype=float)
    if period <= 0:
        raise ValueError(f"EMA period must be positive, got {period}")

    n = len(arr)
    if n == 0:
        return np.array([])

    warmup = min(max(period - 1, 1), n)
    ema = np.empty(n)
    ema[:warmup] = np.cumsum(arr[:warmup]) / np.arange(1, warmup + 1)

    if warmup < n:
        # Seed the recursion with the last warm-up value
        seeded = pd.Series(np.concatenate(([ema[warmup - 1]], arr[warmup:])))
        recursive = seeded.ewm(alpha=2 / (period + 1), adjust=False).mean().to_numpy()
        ema[warmup:] = recursive[1:]

    return ema


def compute_macd(
    values: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult:
    """
    MACD with DEA computed over the defined DIF values only.

    DEA is the EMA of DIF after NaN entries are removed, placed back onto
    the non-NaN DIF positions in order.
    """
    arr = np.asarray(values, dtype=float)
    fast_ema = compute_ema(arr, fast)
    slow_ema = compute_ema(arr, slow)

    dif = fast_ema - slow_ema  # NaN on either side propagates

    defined = ~np.isnan(dif)
    dea = np.full(len(dif), np.nan)
    if defined.any():
        dea[defined] = compute_ema(dif[defined], signal)

    histogram = dif - dea
    return MACDResult(dif=dif, dea=dea, histogram=histogram)


# =============================================================================
# Bar Helpers
# =============================================================================

def closes_of(bars: Sequence[KlineBar]) -> np.ndarray:
    return np.array([b.close for b in bars], dtype=float)


def compute_all_indicators(
    bars: Sequence[KlineBar],
    config: TAConfig | None = None,
) -> IndicatorSet:
    """Compute MA/EMA(20, 60, 120) and MACD(12, 26, 9) over bar closes."""
    config = config or DEFAULT_TA_CONFIG
    closes = closes_of(bars)
    short, medium, long = config.ma_periods

    return IndicatorSet(
        closes=closes,
        ma20=compute_sma(closes, short),
        ma60=compute_sma(closes, medium),
        ma120=compute_sma(closes, long),
        ema20=compute_ema(closes, short),
        ema60=compute_ema(closes, medium),
        ema120=compute_ema(closes, long),
        macd=compute_macd(closes, config.macd_fast, config.macd_slow, config.macd_signal),
    )
