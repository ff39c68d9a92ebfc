"""
Combined signal scoring and per-(asset, timeframe) scanning.

Signal score:
    breakout: 0.4 * density + 0.6 * breakout
    retest:   0.3 * density + 0.4 * breakout + 0.3 * retest
(density and breakout taken from the parent breakout for retests)

A retest supersedes the breakout it belongs to, so each (asset, timeframe)
reports at most one TechnicalSignal: the retest when one exists, otherwise
the most recent breakout.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Union

from quantlens.core.logging import get_logger
from quantlens.factors.series import clamp

from .breakout import BreakoutSignal, scan_breakout_down, scan_breakout_up
from .config import DEFAULT_TA_CONFIG, TAConfig
from .indicators import compute_all_indicators
from .retest import RetestSignal, scan_retest
from .types import Direction, KlineBar, SignalSource, SignalStrength, SignalType, Timeframe

logger = get_logger("ta.signals")

Signal = Union[BreakoutSignal, RetestSignal]


def calculate_signal_score(signal: Signal, config: TAConfig | None = None) -> float:
    """Weighted combination of density, breakout and retest scores, in [0, 1]."""
    config = config or DEFAULT_TA_CONFIG

    if isinstance(signal, RetestSignal):
        parent = signal.parent_breakout
        score = (
            config.retest_weight_density * parent.cluster_info.density_score
            + config.retest_weight_breakout * parent.breakout_score
            + config.retest_weight_retest * signal.retest_score
        )
    else:
        score = (
            config.breakout_weight_density * signal.cluster_info.density_score
            + config.breakout_weight_breakout * signal.breakout_score
        )

    return clamp(score, 0.0, 1.0)


def classify_signal_strength(score: float, config: TAConfig | None = None) -> SignalStrength:
    config = config or DEFAULT_TA_CONFIG
    if not math.isfinite(score):
        return SignalStrength.NONE
    if score >= config.strength_strong:
        return SignalStrength.STRONG
    if score >= config.strength_medium:
        return SignalStrength.MEDIUM
    if score >= config.strength_weak:
        return SignalStrength.WEAK
    return SignalStrength.NONE


def select_latest_breakout(
    up: Optional[BreakoutSignal],
    down: Optional[BreakoutSignal],
) -> Optional[BreakoutSignal]:
    """The breakout on the more recent bar; down wins a tie."""
    if up is None:
        return down
    if down is None:
        return up
    return up if up.breakout_bar_index > down.breakout_bar_index else down


@dataclass
class TechnicalSignal:
    """Flattened signal record for one asset and timeframe."""

    asset_id: str
    timeframe: Timeframe
    signal_type: SignalType
    direction: Direction
    source: SignalSource
    density_score: float
    breakout_score: float
    retest_score: Optional[float]
    signal_score: float
    strength: SignalStrength
    bar_time: datetime  # retest bar for retests, breakout bar otherwise
    entry_price: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float
    cluster_mean: float
    cluster_high: float
    cluster_low: float
    cluster_width: float
    density_ratio: float

    @property
    def key(self) -> tuple[str, Timeframe]:
        return self.asset_id, self.timeframe

    def supersedes(self, other: Optional["TechnicalSignal"]) -> bool:
        """True if this signal should replace other (strictly later bar)."""
        if other is None:
            return True
        return self.bar_time > other.bar_time

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "timeframe": self.timeframe.value,
            "signal_type": self.signal_type.value,
            "direction": self.direction.value,
            "source": self.source.value,
            "density_score": round(self.density_score, 4),
            "breakout_score": round(self.breakout_score, 4),
            "retest_score": round(self.retest_score, 4) if self.retest_score is not None else None,
            "signal_score": round(self.signal_score, 4),
            "strength": self.strength.value,
            "bar_time": self.bar_time.isoformat(),
            "entry_price": self.entry_price,
            "stop_loss": self.stop_loss,
            "take_profit_1": self.take_profit_1,
            "take_profit_2": self.take_profit_2,
            "cluster_mean": self.cluster_mean,
            "cluster_high": self.cluster_high,
            "cluster_low": self.cluster_low,
            "cluster_width": self.cluster_width,
            "density_ratio": self.density_ratio if math.isfinite(self.density_ratio) else None,
        }


def build_technical_signal(
    asset_id: str,
    timeframe: Timeframe,
    breakout: BreakoutSignal,
    retest: Optional[RetestSignal] = None,
    config: TAConfig | None = None,
) -> TechnicalSignal:
    """Flatten a breakout (or its retest, when given) into one record."""
    signal: Signal = retest if retest is not None else breakout
    score = calculate_signal_score(signal, config)
    cluster = breakout.cluster_info

    return TechnicalSignal(
        asset_id=asset_id,
        timeframe=Timeframe(timeframe),
        signal_type=signal.signal_type,
        direction=signal.direction,
        source=SignalSource.RETEST if retest is not None else SignalSource.CLUSTER_BREAKOUT,
        density_score=cluster.density_score,
        breakout_score=breakout.breakout_score,
        retest_score=retest.retest_score if retest is not None else None,
        signal_score=score,
        strength=classify_signal_strength(score, config),
        bar_time=retest.retest_bar_time if retest is not None else breakout.breakout_bar_time,
        entry_price=signal.entry_price,
        stop_loss=signal.stop_loss,
        take_profit_1=signal.take_profit_1,
        take_profit_2=signal.take_profit_2,
        cluster_mean=cluster.cluster_mean,
        cluster_high=cluster.cluster_high,
        cluster_low=cluster.cluster_low,
        cluster_width=cluster.cluster_width,
        density_ratio=cluster.density_ratio,
    )


def scan_technical_signal(
    bars: Sequence[KlineBar],
    asset_id: str,
    timeframe: Timeframe,
    config: TAConfig | None = None,
) -> Optional[TechnicalSignal]:
    """
    Run the full indicator -> breakout -> retest pipeline over one bar series.

    Returns:
        TechnicalSignal, or None if there are fewer than min_bars bars or
        no breakout qualifies
    """
    config = config or DEFAULT_TA_CONFIG
    if len(bars) < config.min_bars:
        logger.warning(
            f"{asset_id} ({Timeframe(timeframe).value}): only {len(bars)} bars, "
            f"need {config.min_bars}"
        )
        return None

    indicators = compute_all_indicators(bars, config)
    lookback = config.scan_lookback_bars
    breakout = select_latest_breakout(
        scan_breakout_up(bars, indicators, lookback, config),
        scan_breakout_down(bars, indicators, lookback, config),
    )
    if breakout is None:
        logger.debug(f"{asset_id} ({Timeframe(timeframe).value}): no breakout")
        return None

    retest = scan_retest(bars, breakout, config)
    return build_technical_signal(asset_id, timeframe, breakout, retest, config)
