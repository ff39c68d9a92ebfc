"""
Core type definitions for the technical signal pipeline.

Bars and signal enums shared by indicators, scanners and scoring.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class Timeframe(str, Enum):
    """Kline timeframe."""
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"


class Direction(str, Enum):
    """Trade direction of a signal."""
    LONG = "long"
    SHORT = "short"


class SignalType(str, Enum):
    """Detected setup type."""
    CLUSTER_BREAKOUT_UP = "cluster_breakout_up"
    CLUSTER_BREAKOUT_DOWN = "cluster_breakout_down"
    RETEST_LONG = "retest_long"
    RETEST_SHORT = "retest_short"


class SignalSource(str, Enum):
    """Which scanner produced the reported signal."""
    CLUSTER_BREAKOUT = "cluster_breakout"
    RETEST = "retest"


class SignalStrength(str, Enum):
    """Signal strength bucket derived from the combined score."""
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"
    NONE = "none"


ALL_TIMEFRAMES: tuple[Timeframe, ...] = (Timeframe.H1, Timeframe.H4, Timeframe.D1)


@dataclass(frozen=True)
class KlineBar:
    """One OHLCV bar. Times are Unix epoch milliseconds."""

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int

    @property
    def opened_at(self) -> datetime:
        return datetime.fromtimestamp(self.open_time / 1000, tz=timezone.utc)

    def to_dict(self) -> dict:
        return {
            "open_time": self.open_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "close_time": self.close_time,
        }
