"""Technical signal configuration.

Every threshold and weight of the cluster / breakout / retest pipeline is
defined HERE, so tuning never touches the scanners.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TASettings(BaseSettings):
    """Technical analysis settings from environment (TA_* variables)."""

    model_config = SettingsConfigDict(env_prefix="TA_", extra="ignore")

    # Cluster density
    cluster_tight_threshold: float = Field(
        default=0.015, gt=0, le=0.5, description="Width/mean ratio of a tight cluster (1.5%)"
    )
    density_max: float = Field(
        default=0.03, gt=0, le=0.5, description="Width/mean ratio that scores 0 density (3%)"
    )
    slope_std_max: float = Field(
        default=0.02, gt=0, le=1, description="Slope std that scores 0 flatness"
    )
    use_flatness: bool = Field(default=True, description="Multiply density by MA flatness")

    # Breakout
    breakout_buffer: float = Field(
        default=0.002, ge=0, le=0.1, description="Close must clear the band by 0.2%"
    )
    min_density_score_for_breakout: float = Field(default=0.5, ge=0, le=1)
    macd_confirmation_bars: int = Field(default=3, ge=1, le=50)

    # Retest
    retest_tolerance_multiplier: float = Field(default=1.0, ge=0, le=10)
    retest_min_price_offset: float = Field(default=0.005, ge=0, le=0.2)
    retest_window_bars: int = Field(default=20, ge=1, le=500)

    # Stops / targets
    stop_loss_cluster_offset: float = Field(default=0.5, ge=0, le=10)
    stop_loss_min_offset: float = Field(default=0.005, ge=0, le=0.2)
    take_profit_r1: float = Field(default=1.0, gt=0, le=20)
    take_profit_r2: float = Field(default=2.0, gt=0, le=20)
    use_breakout_close_price: bool = Field(
        default=True, description="Enter at breakout close (true) or next bar open"
    )

    # Scanning
    scan_lookback_bars: int = Field(default=100, ge=1)
    kline_limit: int = Field(default=300, ge=1, le=1000)
    min_bars: int = Field(default=120, ge=1)
    scan_throttle_seconds: float = Field(
        default=0.5, ge=0, le=60, description="Pause between provider requests"
    )


@dataclass(frozen=True)
class TAConfig:
    """Complete technical signal configuration."""

    # Indicator periods
    ma_periods: tuple[int, int, int] = (20, 60, 120)
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    slope_lookback: int = 10

    # Cluster density
    cluster_tight_threshold: float = 0.015
    density_max: float = 0.03
    slope_std_max: float = 0.02
    use_flatness: bool = True

    # Breakout detection
    breakout_buffer: float = 0.002
    min_density_score_for_breakout: float = 0.5
    macd_confirmation_bars: int = 3

    # Breakout strength
    distance_ratio_max: float = 2.0  # distance / cluster width
    move_ratio_max: float = 0.02  # one-bar move of 2% scores full
    volume_ratio_max: float = 3.0  # volume / trailing average
    volume_avg_bars: int = 20
    weight_distance: float = 0.4
    weight_move: float = 0.3
    weight_volume: float = 0.3

    # Retest
    retest_tolerance_multiplier: float = 1.0
    retest_min_price_offset: float = 0.005
    retest_window_bars: int = 20

    # Stops / targets
    stop_loss_cluster_offset: float = 0.5
    stop_loss_min_offset: float = 0.005
    take_profit_r1: float = 1.0
    take_profit_r2: float = 2.0
    use_breakout_close_price: bool = True

    # Combined signal score weights
    breakout_weight_density: float = 0.4
    breakout_weight_breakout: float = 0.6
    retest_weight_density: float = 0.3
    retest_weight_breakout: float = 0.4
    retest_weight_retest: float = 0.3

    # Strength buckets
    strength_strong: float = 0.8
    strength_medium: float = 0.6
    strength_weak: float = 0.4

    # Scanning
    scan_lookback_bars: int = 100
    kline_limit: int = 300
    min_bars: int = 120
    scan_throttle_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings: TASettings | None = None) -> TAConfig:
        """Create config from settings."""
        if settings is None:
            settings = TASettings()

        return cls(
            cluster_tight_threshold=settings.cluster_tight_threshold,
            density_max=settings.density_max,
            slope_std_max=settings.slope_std_max,
            use_flatness=settings.use_flatness,
            breakout_buffer=settings.breakout_buffer,
            min_density_score_for_breakout=settings.min_density_score_for_breakout,
            macd_confirmation_bars=settings.macd_confirmation_bars,
            retest_tolerance_multiplier=settings.retest_tolerance_multiplier,
            retest_min_price_offset=settings.retest_min_price_offset,
            retest_window_bars=settings.retest_window_bars,
            stop_loss_cluster_offset=settings.stop_loss_cluster_offset,
            stop_loss_min_offset=settings.stop_loss_min_offset,
            take_profit_r1=settings.take_profit_r1,
            take_profit_r2=settings.take_profit_r2,
            use_breakout_close_price=settings.use_breakout_close_price,
            scan_lookback_bars=settings.scan_lookback_bars,
            kline_limit=settings.kline_limit,
            min_bars=settings.min_bars,
            scan_throttle_seconds=settings.scan_throttle_seconds,
        )

    def with_overrides(self, **overrides) -> TAConfig:
        """Return a new config with the given fields replaced."""
        return replace(self, **overrides) if overrides else self


DEFAULT_TA_CONFIG = TAConfig()


@lru_cache(maxsize=1)
def get_ta_config() -> TAConfig:
    """Get cached technical analysis configuration from settings."""
    return TAConfig.from_settings()
