"""Numeric series primitives shared by the factor and signal pipelines.

Computes trailing-window statistics over price arrays (oldest first):
- Simple returns over a lookback window
- Annualized realized volatility
- Maximum drawdown from running peak
- Rolling dispersion of period-over-period slopes
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def compute_return(prices: Sequence[float], window: int) -> float:
    """
    Compute the simple return over the trailing window.

    Args:
        prices: Array of prices (oldest first)
        window: Number of periods between start and end price

    Returns:
        (end - start) / start, or 0.0 if there are fewer than window + 1
        prices or the start price is not positive
    """
    arr = np.asarray(prices, dtype=float)
    if window <= 0 or len(arr) < window + 1:
        return 0.0

    start = float(arr[-window - 1])
    end = float(arr[-1])
    if not start > 0:
        return 0.0
    return (end - start) / start


def compute_daily_returns(prices: Sequence[float]) -> np.ndarray:
    """
    Compute period-over-period simple returns.

    Pairs whose base price is not positive are skipped.

    Returns:
        Array of returns (at most length n-1)
    """
    arr = np.asarray(prices, dtype=float)
    if len(arr) < 2:
        return np.array([])

    base = arr[:-1]
    valid = base > 0
    return (arr[1:][valid] - base[valid]) / base[valid]


def compute_volatility(
    prices: Sequence[float],
    window: int,
    periods_per_year: int = 365,
) -> float:
    """
    Compute annualized realized volatility over the trailing window.

    Uses the population standard deviation of the last `window` simple
    returns, annualized with sqrt(periods_per_year).

    Returns:
        Volatility as decimal (0.80 = 80%), 0.0 when fewer than window + 1
        prices or fewer than two usable returns
    """
    arr = np.asarray(prices, dtype=float)
    if window <= 0 or len(arr) < window + 1:
        return 0.0

    returns = compute_daily_returns(arr[-window - 1:])
    if len(returns) < 2:
        return 0.0

    return float(np.std(returns)) * math.sqrt(periods_per_year)


def compute_max_drawdown(prices: Sequence[float]) -> float:
    """
    Compute maximum drawdown from running peak to trough.

    Returns:
        Max drawdown as positive fraction (0.35 = 35% drawdown), 0.0 for
        fewer than two prices or a non-decreasing series
    """
    arr = np.asarray(prices, dtype=float)
    if len(arr) < 2:
        return 0.0

    running_max = np.maximum.accumulate(arr)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(running_max > 0, (running_max - arr) / running_max, 0.0)

    return float(max(np.nanmax(drawdowns), 0.0))


def slope_std_at(values: Sequence[float], index: int, lookback: int = 10) -> float:
    """
    Standard deviation of percentage slopes over the bars ending at index.

    Slopes are (v[j] - v[j-1]) / v[j-1] for j in (index-lookback, index];
    pairs with a NaN side or a zero base are skipped.

    Returns:
        Population std of the slopes, NaN if index < lookback or no slope
        could be computed
    """
    arr = np.asarray(values, dtype=float)
    if index < lookback or index >= len(arr):
        return float("nan")

    start = max(index - lookback + 1, 1)
    current = arr[start:index + 1]
    previous = arr[start - 1:index]
    valid = ~np.isnan(current) & ~np.isnan(previous) & (previous != 0)
    if not valid.any():
        return float("nan")

    slopes = (current[valid] - previous[valid]) / previous[valid]
    return float(np.std(slopes))


def compute_slope_std(values: Sequence[float], lookback: int = 10) -> np.ndarray:
    """
    Rolling slope dispersion for every index of a moving-average series.

    Returns:
        Array aligned to values; NaN where slope_std_at is undefined
    """
    arr = np.asarray(values, dtype=float)
    return np.array([slope_std_at(arr, i, lookback) for i in range(len(arr))])
