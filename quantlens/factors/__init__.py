"""Cross-sectional factor pipeline.

This module provides:
- Raw factor extraction from daily market data (valuation, momentum,
  liquidity, risk)
- Percentile-based 0-5 scoring against the cross-section
- Banded target weights capped to a total portfolio weight
- Service orchestration over an injected market data provider
"""

from .allocation import (
    DEFAULT_SCORING_RULES,
    PortfolioAllocation,
    PortfolioSuggestion,
    ScoringRules,
    WeightAllocationResult,
    WeightBand,
    build_portfolio_suggestion,
    calculate_target_weight,
    generate_weight_allocation,
    normalize_weights,
)
from .config import DEFAULT_FACTOR_CONFIG, FactorConfig, FactorSettings, get_factor_config
from .extractor import MarketDataPoint, RawFactors, compute_raw_factors, extract_raw_factors
from .scoring import FactorScores, get_percentile, normalize_factor_scores, score_cross_section
from .service import FactorService, FactorSnapshot, SnapshotBatch


__all__ = [
    "DEFAULT_FACTOR_CONFIG",
    "DEFAULT_SCORING_RULES",
    "FactorConfig",
    "FactorScores",
    "FactorService",
    "FactorSettings",
    "FactorSnapshot",
    "MarketDataPoint",
    "PortfolioAllocation",
    "PortfolioSuggestion",
    "RawFactors",
    "ScoringRules",
    "SnapshotBatch",
    "WeightAllocationResult",
    "WeightBand",
    "build_portfolio_suggestion",
    "calculate_target_weight",
    "compute_raw_factors",
    "extract_raw_factors",
    "generate_weight_allocation",
    "get_factor_config",
    "get_percentile",
    "normalize_factor_scores",
    "normalize_weights",
    "score_cross_section",
]
