"""
Factor pipeline orchestration.

Fetches daily history per asset, extracts raw factors, scores the
cross-section and allocates portfolio weights for one evaluation date.
Assets without enough history are skipped and reported, never scored as
zeros.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional

from quantlens.core.exceptions import DataProviderError, NoFactorDataError
from quantlens.core.logging import get_logger
from quantlens.universe import AssetInfo

from .allocation import DEFAULT_SCORING_RULES, PortfolioSuggestion, ScoringRules, build_portfolio_suggestion
from .config import FactorConfig, get_factor_config
from .extractor import RawFactors, compute_raw_factors, history_window
from .scoring import FactorScores, score_cross_section

if TYPE_CHECKING:
    from quantlens.providers import MarketDataProvider

logger = get_logger("factors.service")


@dataclass
class FactorSnapshot:
    """Raw factors and scores of one asset on one evaluation date."""

    asset: AssetInfo
    as_of: date
    factors: RawFactors
    scores: FactorScores

    def to_dict(self) -> dict:
        return {
            "symbol": self.asset.symbol,
            "as_of": self.as_of.isoformat(),
            "factors": self.factors.to_dict(),
            "scores": self.scores.to_dict(),
        }


@dataclass
class SnapshotBatch:
    """Snapshots for one evaluation date plus the symbols that were skipped."""

    as_of: date
    snapshots: list[FactorSnapshot] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def scores_by_asset(self) -> dict[str, FactorScores]:
        return {s.asset.symbol: s.scores for s in self.snapshots}


class FactorService:
    """Runs the factor pipeline against an injected market data provider."""

    def __init__(
        self,
        provider: MarketDataProvider,
        factor_config: Optional[FactorConfig] = None,
        rules: ScoringRules = DEFAULT_SCORING_RULES,
    ):
        self.provider = provider
        self.config = factor_config or get_factor_config()
        self.rules = rules

    async def _raw_factors(self, asset: AssetInfo, as_of: date) -> Optional[RawFactors]:
        start, end = history_window(as_of, self.config)
        try:
            series = await self.provider.fetch_historical_data(asset.data_source_id, start, end)
        except DataProviderError as exc:
            logger.warning(f"Skipping {asset.symbol}: {exc.message}")
            return None

        return compute_raw_factors(series, as_of, self.config, asset_id=asset.symbol)

    async def compute_snapshots(
        self,
        assets: Optional[Iterable[AssetInfo]] = None,
        as_of: Optional[date] = None,
    ) -> SnapshotBatch:
        """
        Extract and score factors for every asset on one date.

        Args:
            assets: Assets to evaluate (default: the provider's universe)
            as_of: Evaluation date (default: today, UTC)

        Returns:
            SnapshotBatch; assets with insufficient data or provider errors
            are listed in `skipped`
        """
        as_of = as_of or datetime.now(timezone.utc).date()
        assets = list(assets) if assets is not None else await self.provider.fetch_universe()

        batch = SnapshotBatch(as_of=as_of)
        factors_by_asset: dict[str, RawFactors] = {}
        assets_by_symbol: dict[str, AssetInfo] = {}

        for asset in assets:
            factors = await self._raw_factors(asset, as_of)
            if factors is None:
                batch.skipped.append(asset.symbol)
                continue
            factors_by_asset[asset.symbol] = factors
            assets_by_symbol[asset.symbol] = asset

        scores = score_cross_section(factors_by_asset, self.config)
        batch.snapshots = [
            FactorSnapshot(
                asset=assets_by_symbol[symbol],
                as_of=as_of,
                factors=factors_by_asset[symbol],
                scores=scores[symbol],
            )
            for symbol in factors_by_asset
        ]

        logger.info(
            f"Factors {as_of.isoformat()}: scored {len(batch.snapshots)} assets, "
            f"skipped {len(batch.skipped)}"
        )
        return batch

    async def generate_portfolio(
        self,
        assets: Optional[Iterable[AssetInfo]] = None,
        as_of: Optional[date] = None,
    ) -> PortfolioSuggestion:
        """
        Score the universe and allocate weights.

        Raises:
            NoFactorDataError: no asset produced factors for the date
        """
        batch = await self.compute_snapshots(assets, as_of)
        if not batch.snapshots:
            raise NoFactorDataError(
                details={"as_of": batch.as_of.isoformat(), "skipped": batch.skipped}
            )

        return build_portfolio_suggestion(
            batch.as_of,
            batch.scores_by_asset,
            self.rules,
            self.config.max_total_weight,
        )
