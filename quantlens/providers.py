"""
Market data collaborator interfaces.

The analysis core never fetches data itself. Services receive a provider
implementing one of these Protocols; HTTP clients for real data sources
live outside this package.

The in-memory adapters serve pandas DataFrames and are used for backfills
from files, notebooks and tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

import pandas as pd

from quantlens.core.exceptions import DataProviderError
from quantlens.factors.extractor import MarketDataPoint, prepare_market_series
from quantlens.ta.types import KlineBar, Timeframe
from quantlens.universe import AssetInfo, get_all_asset_infos


@dataclass(frozen=True)
class AssetMarketData:
    """Latest market snapshot of an asset."""

    price: float
    market_cap: Optional[float] = None
    volume_24h: Optional[float] = None
    fdv: Optional[float] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None


class MarketDataProvider(Protocol):
    """Protocol for daily market data providers."""

    async def fetch_universe(self) -> list[AssetInfo]:
        """List the assets this provider can serve."""
        ...

    async def fetch_historical_data(
        self,
        source_id: str,
        start: date,
        end: date,
    ) -> list[MarketDataPoint]:
        """Daily points in [start, end], ascending by date."""
        ...

    async def fetch_current_market_data(self, source_id: str) -> AssetMarketData:
        ...


class KlineProvider(Protocol):
    """Protocol for OHLCV kline providers."""

    async def fetch_klines(
        self,
        trading_pair: str,
        timeframe: Timeframe,
        limit: int,
    ) -> list[KlineBar]:
        """The newest `limit` bars, ascending by open time."""
        ...


# =============================================================================
# DataFrame Conversion
# =============================================================================

def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _epoch_ms(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return int(pd.Timestamp(value).value // 1_000_000)


def market_data_from_frame(df: pd.DataFrame) -> list[MarketDataPoint]:
    """
    Convert a daily market DataFrame into MarketDataPoints.

    The frame needs a `price` column and either a `date` column or a date
    index. Optional columns: market_cap, volume, fdv, high, low, open.
    Rows without a positive finite price are dropped.
    """
    frame = df.copy()
    frame.columns = [str(c).lower().replace(" ", "_") for c in frame.columns]
    if "date" not in frame.columns:
        frame = frame.reset_index().rename(columns={frame.index.name or "index": "date"})
    if "price" not in frame.columns:
        raise ValueError("DataFrame must have a 'price' column")

    points = []
    for row in frame.to_dict("records"):
        price = _optional_float(row.get("price"))
        if price is None or price <= 0:
            continue
        points.append(
            MarketDataPoint(
                date=pd.Timestamp(row["date"]).date(),
                price=price,
                market_cap=_optional_float(row.get("market_cap")),
                volume=_optional_float(row.get("volume")),
                fdv=_optional_float(row.get("fdv")),
                high=_optional_float(row.get("high")),
                low=_optional_float(row.get("low")),
                open=_optional_float(row.get("open")),
            )
        )
    return prepare_market_series(points)


def klines_from_frame(df: pd.DataFrame) -> list[KlineBar]:
    """
    Convert an OHLCV DataFrame into KlineBars sorted by open time.

    Required columns: open_time, open, high, low, close, volume.
    `close_time` defaults to open_time. Times may be epoch milliseconds or
    anything pandas parses as a timestamp.
    """
    frame = df.copy()
    frame.columns = [str(c).lower().replace(" ", "_") for c in frame.columns]
    missing = {"open_time", "open", "high", "low", "close", "volume"} - set(frame.columns)
    if missing:
        raise ValueError(f"DataFrame is missing kline columns: {sorted(missing)}")

    bars = []
    for row in frame.to_dict("records"):
        open_time = _epoch_ms(row["open_time"])
        close_time = row.get("close_time")
        bars.append(
            KlineBar(
                open_time=open_time,
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"]),
                close_time=_epoch_ms(close_time) if close_time is not None else open_time,
            )
        )
    return sorted(bars, key=lambda b: b.open_time)


# =============================================================================
# In-Memory Adapters
# =============================================================================

class InMemoryMarketDataProvider:
    """MarketDataProvider serving preloaded daily series keyed by source id."""

    def __init__(
        self,
        series: Mapping[str, pd.DataFrame | Sequence[MarketDataPoint]],
        universe: Optional[Iterable[AssetInfo]] = None,
    ):
        self._series: dict[str, list[MarketDataPoint]] = {
            source_id: (
                market_data_from_frame(data)
                if isinstance(data, pd.DataFrame)
                else prepare_market_series(data)
            )
            for source_id, data in series.items()
        }
        self._universe = list(universe) if universe is not None else [
            info for info in get_all_asset_infos() if info.data_source_id in self._series
        ]

    def _get(self, source_id: str) -> list[MarketDataPoint]:
        try:
            return self._series[source_id]
        except KeyError:
            raise DataProviderError(
                message=f"No market data for {source_id}",
                details={"source_id": source_id},
            ) from None

    async def fetch_universe(self) -> list[AssetInfo]:
        return list(self._universe)

    async def fetch_historical_data(
        self,
        source_id: str,
        start: date | datetime,
        end: date | datetime,
    ) -> list[MarketDataPoint]:
        start_d = start.date() if isinstance(start, datetime) else start
        end_d = end.date() if isinstance(end, datetime) else end
        return [p for p in self._get(source_id) if start_d <= p.date <= end_d]

    async def fetch_current_market_data(self, source_id: str) -> AssetMarketData:
        series = self._get(source_id)
        if not series:
            raise DataProviderError(
                message=f"Empty market data for {source_id}",
                details={"source_id": source_id},
            )
        latest = series[-1]
        return AssetMarketData(
            price=latest.price,
            market_cap=latest.market_cap,
            volume_24h=latest.volume,
            fdv=latest.fdv,
            high_24h=latest.high,
            low_24h=latest.low,
        )


class InMemoryKlineProvider:
    """KlineProvider serving preloaded bars keyed by (trading pair, timeframe)."""

    def __init__(
        self,
        klines: Mapping[tuple[str, Timeframe | str], pd.DataFrame | Sequence[KlineBar]],
    ):
        self._klines: dict[tuple[str, Timeframe], list[KlineBar]] = {}
        for (pair, timeframe), data in klines.items():
            bars = klines_from_frame(data) if isinstance(data, pd.DataFrame) else sorted(
                data, key=lambda b: b.open_time
            )
            self._klines[(pair, Timeframe(timeframe))] = bars
        self.requests: list[tuple[str, Timeframe, int]] = []

    async def fetch_klines(
        self,
        trading_pair: str,
        timeframe: Timeframe | str,
        limit: int,
    ) -> list[KlineBar]:
        key = (trading_pair, Timeframe(timeframe))
        self.requests.append((trading_pair, key[1], limit))
        if key not in self._klines:
            raise DataProviderError(
                message=f"No klines for {trading_pair} ({key[1].value})",
                details={"trading_pair": trading_pair, "timeframe": key[1].value},
            )
        bars = self._klines[key]
        return bars[-limit:] if limit > 0 else []
