"""Factor pipeline configuration with windows and score weights.

All values are loaded from environment or settings, with sensible defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FactorSettings(BaseSettings):
    """Factor settings from environment (FACTOR_* variables)."""

    model_config = SettingsConfigDict(env_prefix="FACTOR_", extra="ignore")

    # Return / volatility windows (days)
    return_window_short: int = Field(default=90, ge=2, le=730)
    return_window_medium: int = Field(default=180, ge=2, le=730)
    return_window_long: int = Field(default=365, ge=2, le=730)
    volatility_window_short: int = Field(default=90, ge=2, le=730)
    volatility_window_medium: int = Field(default=180, ge=2, le=730)
    volatility_window_long: int = Field(default=365, ge=2, le=730)

    liquidity_window: int = Field(
        default=30, ge=1, le=365, description="Days averaged for daily volume"
    )
    history_buffer_days: int = Field(
        default=30, ge=0, le=365, description="Extra days fetched beyond one year"
    )
    periods_per_year: int = Field(
        default=365, ge=1, description="Annualization periods (crypto trades daily)"
    )

    # Category weights for the total score (must sum to 1.0)
    weight_valuation: float = Field(default=0.25, ge=0, le=1)
    weight_momentum: float = Field(default=0.30, ge=0, le=1)
    weight_liquidity: float = Field(default=0.20, ge=0, le=1)
    weight_risk: float = Field(default=0.25, ge=0, le=1)

    # Portfolio cap on the sum of adjusted weights
    max_total_weight: float = Field(default=1.0, gt=0, le=1)


@dataclass(frozen=True)
class FactorConfig:
    """Complete factor pipeline configuration."""

    # Windows
    return_windows: tuple[int, int, int] = (90, 180, 365)
    volatility_windows: tuple[int, int, int] = (90, 180, 365)
    liquidity_window: int = 30
    history_buffer_days: int = 30
    periods_per_year: int = 365

    # Weights (must sum to 1.0)
    weight_valuation: float = 0.25
    weight_momentum: float = 0.30
    weight_liquidity: float = 0.20
    weight_risk: float = 0.25

    max_total_weight: float = 1.0

    @property
    def longest_window(self) -> int:
        """Minimum number of points needed to compute factors."""
        return max(max(self.return_windows), max(self.volatility_windows))

    @classmethod
    def from_settings(cls, settings: FactorSettings | None = None) -> FactorConfig:
        """Create config from settings."""
        if settings is None:
            settings = FactorSettings()

        return cls(
            return_windows=(
                settings.return_window_short,
                settings.return_window_medium,
                settings.return_window_long,
            ),
            volatility_windows=(
                settings.volatility_window_short,
                settings.volatility_window_medium,
                settings.volatility_window_long,
            ),
            liquidity_window=settings.liquidity_window,
            history_buffer_days=settings.history_buffer_days,
            periods_per_year=settings.periods_per_year,
            weight_valuation=settings.weight_valuation,
            weight_momentum=settings.weight_momentum,
            weight_liquidity=settings.weight_liquidity,
            weight_risk=settings.weight_risk,
            max_total_weight=settings.max_total_weight,
        )

    def with_overrides(self, **overrides) -> FactorConfig:
        """Return a new config with the given fields replaced."""
        return replace(self, **overrides) if overrides else self


DEFAULT_FACTOR_CONFIG = FactorConfig()


@lru_cache(maxsize=1)
def get_factor_config() -> FactorConfig:
    """Get cached factor configuration from settings."""
    return FactorConfig.from_settings()
