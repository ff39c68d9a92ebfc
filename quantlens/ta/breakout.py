"""
Cluster breakout detection.

Scans backward from the newest bar for the most recent bar t1 whose close
leaves a dense moving-average cluster formed at t0 = t1 - 1:

    up:   close[t0] <= cluster_high  and  close[t1] > cluster_high * (1 + buffer)
    down: close[t0] >= cluster_low   and  close[t1] < cluster_low  * (1 - buffer)

and whose move is confirmed by MACD within the last few bars.

Breakout strength combines three components, each in [0, 1]:
    distance  - how far the close sits from the cluster mean, in cluster widths
    move      - one-bar percentage move
    volume    - breakout volume relative to its trailing average
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

import numpy as np

from quantlens.factors.series import clamp

from .cluster import ClusterInfo, compute_cluster_info
from .config import DEFAULT_TA_CONFIG, TAConfig
from .indicators import IndicatorSet, MACDResult
from .types import Direction, KlineBar, SignalType


@dataclass(frozen=True)
class TradeLevels:
    """Stop loss and R-multiple targets for an entry."""

    stop_loss: float
    take_profit_1: float
    take_profit_2: float


@dataclass(frozen=True)
class BreakoutSignal:
    """A close leaving a dense cluster."""

    signal_type: SignalType
    direction: Direction
    breakout_bar_index: int
    breakout_bar_time: datetime
    cluster_info: ClusterInfo
    breakout_score: float
    entry_price: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float

    @property
    def density_score(self) -> float:
        return self.cluster_info.density_score

    def to_dict(self) -> dict:
        return {
            "signal_type": self.signal_type.value,
            "direction": self.direction.value,
            "breakout_bar_index": self.breakout_bar_index,
            "breakout_bar_time": self.breakout_bar_time.isoformat(),
            "cluster_info": self.cluster_info.to_dict(),
            "breakout_score": round(self.breakout_score, 4),
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit_1": self.take_profit_1,
            "take_profit_2": self.take_profit_2,
        }


# =============================================================================
# Shared Helpers
# =============================================================================

def calculate_stop_loss_and_take_profit(
    entry_price: float,
    cluster: ClusterInfo,
    direction: Direction,
    config: TAConfig | None = None,
) -> TradeLevels:
    """
    Stop beyond the far side of the cluster, targets at 1R and 2R.

    The stop offset is max(width * cluster_offset, mean * min_offset) below
    cluster_low (long) or above cluster_high (short).
    """
    config = config or DEFAULT_TA_CONFIG
    offset = max(
        cluster.cluster_width * config.stop_loss_cluster_offset,
        cluster.cluster_mean * config.stop_loss_min_offset,
    )

    if direction == Direction.LONG:
        stop_loss = cluster.cluster_low - offset
        sign = 1
    else:
        stop_loss = cluster.cluster_high + offset
        sign = -1

    risk = abs(entry_price - stop_loss)
    return TradeLevels(
        stop_loss=stop_loss,
        take_profit_1=entry_price + sign * risk * config.take_profit_r1,
        take_profit_2=entry_price + sign * risk * config.take_profit_r2,
    )


def _crossed(prev: float, curr: float, prev_ref: float, curr_ref: float, direction: Direction) -> bool:
    if any(math.isnan(v) for v in (prev, curr, prev_ref, curr_ref)):
        return False
    if direction == Direction.LONG:
        return prev <= prev_ref and curr > curr_ref
    return prev >= prev_ref and curr < curr_ref


def check_macd_confirmation(
    macd: MACDResult,
    index: int,
    direction: Direction,
    bars: int = DEFAULT_TA_CONFIG.macd_confirmation_bars,
) -> bool:
    """
    True if MACD turned in the breakout direction within the bars ending at index.

    Long: histogram goes from <= 0 to > 0, or DIF crosses above DEA.
    Short: histogram goes from >= 0 to < 0, or DIF crosses below DEA.
    """
    start = max(0, index - bars + 1)
    for i in range(max(start, 1), index + 1):
        hist_prev, hist_curr = float(macd.histogram[i - 1]), float(macd.histogram[i])
        if _crossed(hist_prev, hist_curr, 0.0, 0.0, direction):
            return True
        if _crossed(
            float(macd.dif[i - 1]), float(macd.dif[i]),
            float(macd.dea[i - 1]), float(macd.dea[i]),
            direction,
        ):
            return True
    return False


def calculate_breakout_score(
    bars: Sequence[KlineBar],
    cluster: ClusterInfo,
    index: int,
    config: TAConfig | None = None,
) -> float:
    """Weighted distance / move / volume strength of the bar at index, in [0, 1]."""
    config = config or DEFAULT_TA_CONFIG
    close = bars[index].close
    prev_close = bars[index - 1].close if index > 0 else close

    # 1. Distance from the cluster mean in widths
    distance = abs(close - cluster.cluster_mean)
    if cluster.cluster_width > 0:
        s_dist = min(distance / cluster.cluster_width / config.distance_ratio_max, 1.0)
    else:
        s_dist = 1.0 if distance > 0 else 0.0

    # 2. One-bar move
    move = abs(close - prev_close) / prev_close if prev_close > 0 else 0.0
    s_move = min(move / config.move_ratio_max, 1.0)

    # 3. Volume vs trailing average (includes the breakout bar)
    window = bars[max(0, index - config.volume_avg_bars):index + 1]
    avg_volume = float(np.mean([b.volume for b in window]))
    volume_ratio = bars[index].volume / avg_volume if avg_volume > 0 else 1.0
    s_vol = min(volume_ratio / config.volume_ratio_max, 1.0)

    score = (
        config.weight_distance * clamp(s_dist, 0.0, 1.0)
        + config.weight_move * clamp(s_move, 0.0, 1.0)
        + config.weight_volume * clamp(s_vol, 0.0, 1.0)
    )
    return clamp(score, 0.0, 1.0)


# =============================================================================
# Scanners
# =============================================================================

def _entry_price(bars: Sequence[KlineBar], index: int, config: TAConfig) -> float:
    if config.use_breakout_close_price or index >= len(bars) - 1:
        return bars[index].close
    return bars[index + 1].open


def _scan_breakout(
    bars: Sequence[KlineBar],
    indicators: IndicatorSet,
    lookback: int,
    direction: Direction,
    config: TAConfig,
) -> Optional[BreakoutSignal]:
    closes = indicators.closes
    floor = max(lookback, 1)

    for t1 in range(len(bars) - 1, floor - 1, -1):
        t0 = t1 - 1
        cluster = compute_cluster_info(indicators, t0, config)
        if cluster is None or cluster.density_score < config.min_density_score_for_breakout:
            continue

        close_t0, close_t1 = closes[t0], closes[t1]
        if direction == Direction.LONG:
            if close_t0 > cluster.cluster_high:
                continue
            if close_t1 <= cluster.cluster_high * (1 + config.breakout_buffer):
                continue
        else:
            if close_t0 < cluster.cluster_low:
                continue
            if close_t1 >= cluster.cluster_low * (1 - config.breakout_buffer):
                continue

        if not check_macd_confirmation(indicators.macd, t1, direction, config.macd_confirmation_bars):
            continue

        entry = _entry_price(bars, t1, config)
        levels = calculate_stop_loss_and_take_profit(entry, cluster, direction, config)

        return BreakoutSignal(
            signal_type=(
                SignalType.CLUSTER_BREAKOUT_UP if direction == Direction.LONG
                else SignalType.CLUSTER_BREAKOUT_DOWN
            ),
            direction=direction,
            breakout_bar_index=t1,
            breakout_bar_time=bars[t1].opened_at,
            cluster_info=cluster,
            breakout_score=calculate_breakout_score(bars, cluster, t1, config),
            entry_price=entry,
            stop_loss=levels.stop_loss,
            take_profit_1=levels.take_profit_1,
            take_profit_2=levels.take_profit_2,
        )

    return None


def scan_breakout_up(
    bars: Sequence[KlineBar],
    indicators: IndicatorSet,
    lookback: int,
    config: TAConfig | None = None,
) -> Optional[BreakoutSignal]:
    """
    Most recent upward cluster breakout at a bar index >= lookback.

    Args:
        bars: Bars the indicators were computed from (oldest first)
        indicators: compute_all_indicators(bars)
        lookback: Lowest breakout bar index considered

    Returns:
        BreakoutSignal, or None if no bar qualifies
    """
    return _scan_breakout(bars, indicators, lookback, Direction.LONG, config or DEFAULT_TA_CONFIG)


def scan_breakout_down(
    bars: Sequence[KlineBar],
    indicators: IndicatorSet,
    lookback: int,
    config: TAConfig | None = None,
) -> Optional[BreakoutSignal]:
    """Most recent downward cluster breakout at a bar index >= lookback."""
    return _scan_breakout(bars, indicators, lookback, Direction.SHORT, config or DEFAULT_TA_CONFIG)
