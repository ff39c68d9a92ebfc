"""Raw factor extraction from one asset's daily market data.

Turns an ascending daily series into a fixed-shape RawFactors record
grouped into valuation, momentum, liquidity and risk factors.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from quantlens.core.exceptions import InsufficientDataError
from quantlens.core.logging import get_logger

from .config import DEFAULT_FACTOR_CONFIG, FactorConfig
from .series import compute_max_drawdown, compute_return, compute_volatility

logger = get_logger("factors.extractor")


@dataclass(frozen=True)
class MarketDataPoint:
    """One day of market data for an asset."""

    date: date
    price: float
    market_cap: Optional[float] = None
    volume: Optional[float] = None
    fdv: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "price": self.price,
            "market_cap": self.market_cap,
            "volume": self.volume,
            "fdv": self.fdv,
            "high": self.high,
            "low": self.low,
            "open": self.open,
        }


@dataclass(frozen=True)
class RawFactors:
    """Raw factor values for one asset on one evaluation date."""

    # Valuation
    log_market_cap: float
    fdv_to_market_cap_ratio: float  # dilution risk, lower is better
    price_to_high_365d: float  # discount to yearly high, higher is better

    # Momentum
    return_90d: float
    return_180d: float
    return_365d: float
    volatility_90d: float
    volatility_180d: float

    # Liquidity
    volume_to_market_cap_ratio: float
    avg_daily_volume_30d: float

    # Risk
    volatility_365d: float
    max_drawdown_365d: float

    def is_valid(self) -> bool:
        """True if every field is a finite number."""
        return all(math.isfinite(getattr(self, f.name)) for f in fields(self))

    def invalid_fields(self) -> list[str]:
        return [f.name for f in fields(self) if not math.isfinite(getattr(self, f.name))]

    def to_dict(self) -> dict:
        return {k: round(v, 8) if math.isfinite(v) else None for k, v in asdict(self).items()}


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


_OPTIONAL_FIELDS = ("market_cap", "volume", "fdv", "high", "low", "open")


def _drop_non_finite(point: MarketDataPoint) -> MarketDataPoint:
    missing = {
        name: None
        for name in _OPTIONAL_FIELDS
        if getattr(point, name) is not None and not math.isfinite(getattr(point, name))
    }
    return replace(point, **missing) if missing else point


def prepare_market_series(points: Iterable[MarketDataPoint]) -> list[MarketDataPoint]:
    """
    Sort ascending by date and keep the last point seen for each date.

    Non-finite optional fields become None so the missing-value fallbacks
    apply to them.
    """
    by_date: dict[date, MarketDataPoint] = {}
    for point in points:
        by_date[_as_date(point.date)] = _drop_non_finite(point)
    return [by_date[d] for d in sorted(by_date)]


def history_window(as_of: date, config: FactorConfig | None = None) -> tuple[date, date]:
    """Date range needed to compute factors as of a date (one year plus buffer)."""
    config = config or DEFAULT_FACTOR_CONFIG
    end = _as_date(as_of)
    start = end - timedelta(days=365 + config.history_buffer_days)
    return start, end


def extract_raw_factors(
    series: Sequence[MarketDataPoint],
    as_of: date,
    config: FactorConfig | None = None,
) -> RawFactors:
    """
    Compute raw factors, raising when the series is too short.

    Args:
        series: Daily market data (any order, duplicates allowed)
        as_of: Evaluation date; later points are ignored
        config: Factor windows

    Raises:
        InsufficientDataError: fewer points than the longest window
    """
    config = config or DEFAULT_FACTOR_CONFIG
    start, end = history_window(as_of, config)
    data = [p for p in prepare_market_series(series) if start <= _as_date(p.date) <= end]

    required = config.longest_window
    if len(data) < required:
        raise InsufficientDataError(
            details={"required": required, "available": len(data), "as_of": end.isoformat()}
        )

    short_r, medium_r, long_r = config.return_windows
    short_v, medium_v, long_v = config.volatility_windows

    latest = data[-1]
    current_price = latest.price
    market_cap = latest.market_cap or 0.0
    volume = latest.volume or 0.0

    # 1. Valuation
    log_market_cap = math.log(market_cap) if market_cap > 0 else 0.0
    fdv_ratio = latest.fdv / market_cap if market_cap > 0 and latest.fdv else 1.0

    highs = [p.high or p.price for p in data[-long_r:]]
    highs = [h for h in highs if h > 0]
    high_365d = max(highs) if highs else current_price
    price_to_high = current_price / high_365d if high_365d > 0 else 0.0

    # 2. Momentum
    prices = [p.price for p in data if p.price > 0]
    ppy = config.periods_per_year

    # 3. Liquidity
    volume_ratio = volume / market_cap if market_cap > 0 else 0.0
    recent_volumes = [p.volume for p in data[-config.liquidity_window:] if p.volume and p.volume > 0]
    avg_volume = sum(recent_volumes) / len(recent_volumes) if recent_volumes else 0.0

    return RawFactors(
        log_market_cap=log_market_cap,
        fdv_to_market_cap_ratio=fdv_ratio,
        price_to_high_365d=price_to_high,
        return_90d=compute_return(prices, short_r),
        return_180d=compute_return(prices, medium_r),
        return_365d=compute_return(prices, long_r),
        volatility_90d=compute_volatility(prices, short_v, ppy),
        volatility_180d=compute_volatility(prices, medium_v, ppy),
        volume_to_market_cap_ratio=volume_ratio,
        avg_daily_volume_30d=avg_volume,
        # 4. Risk
        volatility_365d=compute_volatility(prices, long_v, ppy),
        max_drawdown_365d=compute_max_drawdown(prices),
    )


def compute_raw_factors(
    series: Sequence[MarketDataPoint],
    as_of: date,
    config: FactorConfig | None = None,
    asset_id: str | None = None,
) -> Optional[RawFactors]:
    """
    Compute raw factors for one asset, or None on insufficient data.

    Callers must skip assets that return None rather than substitute zeros.
    """
    try:
        return extract_raw_factors(series, as_of, config)
    except InsufficientDataError as exc:
        logger.warning(
            f"Insufficient data for {asset_id or 'asset'}: "
            f"need {exc.details['required']} days, have {exc.details['available']}"
        )
        return None
