"""Tests for the factor and signal orchestration services."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from quantlens.core.exceptions import NoFactorDataError
from quantlens.factors.allocation import PortfolioSuggestion, ScoringRules, WeightBand
from quantlens.factors.service import FactorService
from quantlens.providers import InMemoryKlineProvider, InMemoryMarketDataProvider
from quantlens.ta.service import SignalScanService
from quantlens.ta.signals import TechnicalSignal
from quantlens.ta.types import SignalSource, Timeframe
from quantlens.universe import get_asset_info


@pytest.fixture
def market_provider(series_factory, as_of, short_series):
    return InMemoryMarketDataProvider(
        {
            "bitcoin": series_factory(420, as_of, daily_drift=0.002, seed=1),
            "ethereum": series_factory(420, as_of, daily_drift=0.0, seed=2, market_cap_multiple=5e6),
            "solana": series_factory(420, as_of, daily_drift=-0.001, noise=0.04, seed=3),
            "sui": short_series,
        }
    )


class TestFactorService:
    """Tests for FactorService."""

    @pytest.mark.asyncio
    async def test_snapshots_skip_short_history(self, market_provider, as_of):
        service = FactorService(market_provider)
        batch = await service.compute_snapshots(as_of=as_of)

        assert {s.asset.symbol for s in batch.snapshots} == {"BTC", "ETH", "SOL"}
        assert batch.skipped == ["SUI"]
        for snapshot in batch.snapshots:
            assert snapshot.as_of == as_of
            assert 0.0 <= snapshot.scores.total_score <= 5.0
            assert snapshot.to_dict()["symbol"] == snapshot.asset.symbol

    @pytest.mark.asyncio
    async def test_unknown_source_is_skipped(self, market_provider, as_of):
        service = FactorService(market_provider)
        assets = [get_asset_info("BTC"), get_asset_info("LINK")]
        batch = await service.compute_snapshots(assets, as_of)

        assert batch.skipped == ["LINK"]
        # A single scored asset ranks neutral
        assert batch.snapshots[0].scores.total_score == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_generate_portfolio(self, market_provider, as_of):
        rules = ScoringRules(weight_thresholds=(WeightBand(min_score=0.0, target_weight=0.5),))
        service = FactorService(market_provider, rules=rules)
        suggestion = await service.generate_portfolio(as_of=as_of)

        assert isinstance(suggestion, PortfolioSuggestion)
        assert suggestion.total_assets == 3
        assert suggestion.selected_assets == 3
        assert suggestion.total_weight == pytest.approx(1.5)
        assert suggestion.adjusted_total_weight == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_no_factor_data(self, short_series, as_of):
        provider = InMemoryMarketDataProvider({"bitcoin": short_series})
        service = FactorService(provider)

        with pytest.raises(NoFactorDataError) as exc_info:
            await service.generate_portfolio(as_of=as_of)
        assert exc_info.value.details["skipped"] == ["BTC"]


class TestSignalScanService:
    """Tests for SignalScanService."""

    @pytest.fixture
    def kline_provider(self, breakout_up_bars, breakout_down_bars):
        return InMemoryKlineProvider(
            {
                ("BTCUSDT", Timeframe.H1): breakout_up_bars,
                ("ETHUSDT", "4h"): breakout_down_bars,
                ("SOLUSDT", Timeframe.D1): breakout_up_bars[:50],
            }
        )

    @pytest.mark.asyncio
    async def test_scan_asset_timeframe(self, kline_provider, fast_ta_config):
        service = SignalScanService(kline_provider, fast_ta_config)
        signal = await service.scan_asset_timeframe(get_asset_info("BTC"), Timeframe.H1)

        assert isinstance(signal, TechnicalSignal)
        assert signal.asset_id == "BTC"
        assert signal.source == SignalSource.CLUSTER_BREAKOUT
        assert kline_provider.requests == [("BTCUSDT", Timeframe.H1, 300)]

    @pytest.mark.asyncio
    async def test_unsupported_asset_not_requested(self, kline_provider, fast_ta_config):
        service = SignalScanService(kline_provider, fast_ta_config)
        assert await service.scan_asset_timeframe(get_asset_info("OKB"), Timeframe.H1) is None
        assert kline_provider.requests == []

    @pytest.mark.asyncio
    async def test_scan_all(self, kline_provider, fast_ta_config):
        service = SignalScanService(kline_provider, fast_ta_config)
        assets = [get_asset_info(s) for s in ("BTC", "ETH", "SOL", "HYPER")]
        results = await service.scan_all(assets)

        assert set(results) == {("BTC", Timeframe.H1), ("ETH", Timeframe.H4)}
        # HYPER has no pair; provider errors and short series are skipped
        assert len(kline_provider.requests) == 9

    @pytest.mark.asyncio
    async def test_keeps_newer_previous_signal(self, kline_provider, fast_ta_config):
        service = SignalScanService(kline_provider, fast_ta_config)
        first = await service.scan_all([get_asset_info("BTC")], [Timeframe.H1])
        stored = first[("BTC", Timeframe.H1)]

        newer = replace(stored, bar_time=stored.bar_time + timedelta(days=1))
        again = await service.scan_all([get_asset_info("BTC")], [Timeframe.H1], previous={stored.key: newer})
        assert again[stored.key] is newer

        older = replace(stored, bar_time=stored.bar_time - timedelta(days=1))
        replaced = await service.scan_all([get_asset_info("BTC")], [Timeframe.H1], previous={stored.key: older})
        assert replaced[stored.key].bar_time == stored.bar_time
