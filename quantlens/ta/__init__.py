"""Moving-average cluster breakout signals.

This module provides:
- MA / EMA / MACD indicators over kline closes
- Density clusters of the six moving averages
- Breakout and retest scanners with entry, stop and R-multiple targets
- Combined signal scoring and per-(asset, timeframe) scan orchestration
"""

from .breakout import (
    BreakoutSignal,
    calculate_stop_loss_and_take_profit,
    check_macd_confirmation,
    scan_breakout_down,
    scan_breakout_up,
)
from .cluster import ClusterInfo, compute_cluster_info, compute_density_score
from .config import DEFAULT_TA_CONFIG, TAConfig, TASettings, get_ta_config
from .indicators import IndicatorSet, MACDResult, compute_all_indicators, compute_ema, compute_macd, compute_sma
from .retest import RetestSignal, scan_retest, scan_retest_long, scan_retest_short
from .service import SignalScanService
from .signals import (
    TechnicalSignal,
    build_technical_signal,
    calculate_signal_score,
    classify_signal_strength,
    scan_technical_signal,
    select_latest_breakout,
)
from .types import Direction, KlineBar, SignalSource, SignalStrength, SignalType, Timeframe


__all__ = [
    "BreakoutSignal",
    "ClusterInfo",
    "DEFAULT_TA_CONFIG",
    "Direction",
    "IndicatorSet",
    "KlineBar",
    "MACDResult",
    "RetestSignal",
    "SignalScanService",
    "SignalSource",
    "SignalStrength",
    "SignalType",
    "TAConfig",
    "TASettings",
    "TechnicalSignal",
    "Timeframe",
    "build_technical_signal",
    "calculate_signal_score",
    "calculate_stop_loss_and_take_profit",
    "check_macd_confirmation",
    "classify_signal_strength",
    "compute_all_indicators",
    "compute_cluster_info",
    "compute_density_score",
    "compute_ema",
    "compute_macd",
    "compute_sma",
    "get_ta_config",
    "scan_breakout_down",
    "scan_breakout_up",
    "scan_retest",
    "scan_retest_long",
    "scan_retest_short",
    "scan_technical_signal",
    "select_latest_breakout",
]
