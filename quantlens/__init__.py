"""quantlens: factor-based portfolio weights and MA-cluster technical signals."""

from .factors import (
    FactorService,
    compute_raw_factors,
    generate_weight_allocation,
    normalize_factor_scores,
)
from .providers import (
    InMemoryKlineProvider,
    InMemoryMarketDataProvider,
    KlineProvider,
    MarketDataProvider,
    klines_from_frame,
    market_data_from_frame,
)
from .ta import (
    SignalScanService,
    calculate_signal_score,
    scan_breakout_down,
    scan_breakout_up,
    scan_retest_long,
    scan_retest_short,
)

__version__ = "0.1.0"

__all__ = [
    "FactorService",
    "InMemoryKlineProvider",
    "InMemoryMarketDataProvider",
    "KlineProvider",
    "MarketDataProvider",
    "SignalScanService",
    "calculate_signal_score",
    "compute_raw_factors",
    "generate_weight_allocation",
    "klines_from_frame",
    "market_data_from_frame",
    "normalize_factor_scores",
    "scan_breakout_down",
    "scan_breakout_up",
    "scan_retest_long",
    "scan_retest_short",
]
