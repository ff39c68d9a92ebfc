"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
import pytest

from quantlens.factors.extractor import MarketDataPoint
from quantlens.ta.config import TAConfig
from quantlens.ta.types import KlineBar

HOUR_MS = 3_600_000
START_MS = 1_700_000_000_000


def build_bars(
    closes: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    step_ms: int = HOUR_MS,
) -> list[KlineBar]:
    """Bars whose open is the previous close and whose range hugs the body."""
    volumes = volumes if volumes is not None else [1000.0] * len(closes)
    bars = []
    prev = closes[0]
    for i, (close, volume) in enumerate(zip(closes, volumes)):
        open_time = START_MS + i * step_ms
        bars.append(
            KlineBar(
                open_time=open_time,
                open=prev,
                high=max(prev, close),
                low=min(prev, close),
                close=close,
                volume=volume,
                close_time=open_time + step_ms - 1,
            )
        )
        prev = close
    return bars


@pytest.fixture
def bar_factory() -> Callable[..., list[KlineBar]]:
    return build_bars


@pytest.fixture
def breakout_up_bars() -> list[KlineBar]:
    """Flat at 100, a small dip into the cluster, then a 5% jump on triple volume."""
    closes = [100.0] * 398 + [99.9, 105.0]
    volumes = [1000.0] * 399 + [3000.0]
    return build_bars(closes, volumes)


@pytest.fixture
def breakout_down_bars() -> list[KlineBar]:
    """Flat at 100, a small pop into the cluster, then a 5% drop on triple volume."""
    closes = [100.0] * 398 + [100.1, 95.0]
    volumes = [1000.0] * 399 + [3000.0]
    return build_bars(closes, volumes)


@pytest.fixture
def fast_ta_config() -> TAConfig:
    """Default thresholds without the pause between provider requests."""
    return TAConfig(scan_throttle_seconds=0.0)


def build_market_series(
    days: int,
    end: date,
    start_price: float = 100.0,
    daily_drift: float = 0.0,
    noise: float = 0.02,
    market_cap_multiple: float = 1e7,
    volume_multiple: float = 1e5,
    seed: int = 42,
) -> list[MarketDataPoint]:
    """Geometric random walk of daily points ending on `end`."""
    rng = np.random.default_rng(seed)
    returns = rng.normal(daily_drift, noise, days)
    prices = start_price * np.cumprod(1 + returns)
    dates = pd.date_range(end=pd.Timestamp(end), periods=days, freq="D")
    return [
        MarketDataPoint(
            date=ts.date(),
            price=float(p),
            market_cap=float(p) * market_cap_multiple,
            volume=float(p) * volume_multiple,
            fdv=float(p) * market_cap_multiple * 1.2,
            high=float(p) * 1.01,
            low=float(p) * 0.99,
            open=float(p),
        )
        for ts, p in zip(dates, prices)
    ]


@pytest.fixture
def as_of() -> date:
    return date(2025, 6, 30)


@pytest.fixture
def series_factory() -> Callable[..., list[MarketDataPoint]]:
    return build_market_series


@pytest.fixture
def short_series(as_of: date) -> list[MarketDataPoint]:
    """Only 100 days of history."""
    return build_market_series(100, as_of)

