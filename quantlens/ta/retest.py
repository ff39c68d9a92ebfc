"""Retest detection after a cluster breakout.

After a breakout, price often comes back to test the cluster it left. A
retest is the first bar within the retest window whose extreme touches the
cluster mean (within tolerance) while the close holds on the breakout side.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from .breakout import BreakoutSignal, calculate_stop_loss_and_take_profit
from .cluster import ClusterInfo
from .config import DEFAULT_TA_CONFIG, TAConfig
from .types import Direction, KlineBar, SignalType


@dataclass(frozen=True)
class RetestSignal:
    """Pullback to the cluster after a breakout."""

    signal_type: SignalType
    direction: Direction
    retest_bar_index: int
    retest_bar_time: datetime
    parent_breakout: BreakoutSignal
    retest_score: float
    entry_price: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float

    @property
    def cluster_info(self) -> ClusterInfo:
        return self.parent_breakout.cluster_info

    def to_dict(self) -> dict:
        return {
            "signal_type": self.signal_type.value,
            "direction": self.direction.value,
            "retest_bar_index": self.retest_bar_index,
            "retest_bar_time": self.retest_bar_time.isoformat(),
            "parent_breakout": self.parent_breakout.to_dict(),
            "retest_score": round(self.retest_score, 4),
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit_1": self.take_profit_1,
            "take_profit_2": self.take_profit_2,
        }


def retest_tolerance(cluster: ClusterInfo, config: TAConfig | None = None) -> float:
    """max(width * multiplier, mean * min_offset)."""
    config = config or DEFAULT_TA_CONFIG
    return max(
        cluster.cluster_width * config.retest_tolerance_multiplier,
        cluster.cluster_mean * config.retest_min_price_offset,
    )


def calculate_retest_score(touch: float, cluster: ClusterInfo) -> float:
    """Shallower touches (closer to the mean) score higher."""
    depth = abs(touch - cluster.cluster_mean)
    if cluster.cluster_width > 0:
        return 1 - min(depth / cluster.cluster_width, 1.0)
    return 1.0 if depth == 0 else 0.0


def _scan_retest(
    bars: Sequence[KlineBar],
    breakout: BreakoutSignal,
    direction: Direction,
    config: TAConfig,
) -> Optional[RetestSignal]:
    cluster = breakout.cluster_info
    tolerance = retest_tolerance(cluster, config)
    start = breakout.breakout_bar_index + 1
    end = min(start + config.retest_window_bars, len(bars))

    for i in range(start, end):
        bar = bars[i]
        if direction == Direction.LONG:
            touch = bar.low
            holds = bar.close >= cluster.cluster_low
        else:
            touch = bar.high
            holds = bar.close <= cluster.cluster_high

        if abs(touch - cluster.cluster_mean) > tolerance or not holds:
            continue

        levels = calculate_stop_loss_and_take_profit(bar.close, cluster, direction, config)
        return RetestSignal(
            signal_type=SignalType.RETEST_LONG if direction == Direction.LONG else SignalType.RETEST_SHORT,
            direction=direction,
            retest_bar_index=i,
            retest_bar_time=bar.opened_at,
            parent_breakout=breakout,
            retest_score=calculate_retest_score(touch, cluster),
            entry_price=bar.close,
            stop_loss=levels.stop_loss,
            take_profit_1=levels.take_profit_1,
            take_profit_2=levels.take_profit_2,
        )

    return None


def scan_retest_long(
    bars: Sequence[KlineBar],
    breakout: BreakoutSignal,
    config: TAConfig | None = None,
) -> Optional[RetestSignal]:
    """
    First bar after an upward breakout whose low revisits the cluster mean.

    The close must stay at or above cluster_low. Entry is the retest close;
    stops and targets are recomputed against the parent cluster.
    """
    return _scan_retest(bars, breakout, Direction.LONG, config or DEFAULT_TA_CONFIG)


def scan_retest_short(
    bars: Sequence[KlineBar],
    breakout: BreakoutSignal,
    config: TAConfig | None = None,
) -> Optional[RetestSignal]:
    """First bar after a downward breakout whose high revisits the cluster mean."""
    return _scan_retest(bars, breakout, Direction.SHORT, config or DEFAULT_TA_CONFIG)


def scan_retest(
    bars: Sequence[KlineBar],
    breakout: BreakoutSignal,
    config: TAConfig | None = None,
) -> Optional[RetestSignal]:
    """Dispatch to the long or short retest scan by breakout direction."""
    if breakout.direction == Direction.LONG:
        return scan_retest_long(bars, breakout, config)
    return scan_retest_short(bars, breakout, config)
