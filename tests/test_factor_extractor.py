"""Tests for raw factor extraction."""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date, timedelta

import pytest

from quantlens.core.exceptions import InsufficientDataError
from quantlens.factors.config import FactorConfig
from quantlens.factors.extractor import (
    MarketDataPoint,
    RawFactors,
    compute_raw_factors,
    extract_raw_factors,
    history_window,
    prepare_market_series,
)


def _flat_series(days: int, end: date, price: float = 10.0, **fields) -> list[MarketDataPoint]:
    return [
        MarketDataPoint(date=end - timedelta(days=days - 1 - i), price=price, **fields)
        for i in range(days)
    ]


class TestPrepareMarketSeries:
    def test_sorts_and_deduplicates(self):
        d = date(2025, 1, 1)
        points = [
            MarketDataPoint(date=d + timedelta(days=1), price=2.0),
            MarketDataPoint(date=d, price=1.0),
            MarketDataPoint(date=d + timedelta(days=1), price=3.0),
        ]
        series = prepare_market_series(points)
        assert [p.date for p in series] == [d, d + timedelta(days=1)]
        assert series[-1].price == 3.0  # last point for a date wins

    def test_non_finite_optional_fields_become_none(self):
        point = MarketDataPoint(
            date=date(2025, 1, 1),
            price=1.0,
            market_cap=float("nan"),
            volume=float("inf"),
            fdv=2e9,
        )
        (cleaned,) = prepare_market_series([point])
        assert cleaned.market_cap is None
        assert cleaned.volume is None
        assert cleaned.fdv == 2e9
        assert cleaned.price == 1.0


class TestHistoryWindow:
    def test_one_year_plus_buffer(self, as_of):
        start, end = history_window(as_of)
        assert end == as_of
        assert (end - start).days == 395


class TestInsufficientData:
    """Short series yield no factors rather than zeros."""

    def test_returns_none(self, short_series, as_of):
        assert compute_raw_factors(short_series, as_of) is None

    def test_raises_with_details(self, short_series, as_of):
        with pytest.raises(InsufficientDataError) as exc_info:
            extract_raw_factors(short_series, as_of)
        assert exc_info.value.details["required"] == 365
        assert exc_info.value.details["available"] == 100
        assert exc_info.value.error_code == "INSUFFICIENT_DATA"

    def test_points_after_as_of_are_ignored(self, series_factory, as_of):
        """History ending after as_of does not count toward the window."""
        series = series_factory(400, as_of + timedelta(days=200))
        assert compute_raw_factors(series, as_of) is None

    def test_shorter_windows_via_config(self, short_series, as_of):
        config = FactorConfig(return_windows=(10, 20, 30), volatility_windows=(10, 20, 30))
        factors = compute_raw_factors(short_series, as_of, config)
        assert factors is not None
        assert factors.is_valid()


class TestFactorValues:
    """Field rules of the raw factor record."""

    def test_flat_series(self, as_of):
        series = _flat_series(
            400, as_of, price=10.0, market_cap=1e9, volume=1e7, fdv=2e9, high=10.0
        )
        factors = compute_raw_factors(series, as_of)

        assert factors is not None
        assert factors.log_market_cap == pytest.approx(math.log(1e9))
        assert factors.fdv_to_market_cap_ratio == pytest.approx(2.0)
        assert factors.price_to_high_365d == pytest.approx(1.0)
        assert factors.return_365d == 0.0
        assert factors.volatility_365d == 0.0
        assert factors.max_drawdown_365d == 0.0
        assert factors.volume_to_market_cap_ratio == pytest.approx(0.01)
        assert factors.avg_daily_volume_30d == pytest.approx(1e7)

    def test_missing_market_fields_fall_back(self, as_of):
        series = _flat_series(370, as_of)
        factors = compute_raw_factors(series, as_of)

        assert factors.log_market_cap == 0.0
        assert factors.fdv_to_market_cap_ratio == 1.0
        assert factors.volume_to_market_cap_ratio == 0.0
        assert factors.avg_daily_volume_30d == 0.0
        # Missing highs fall back to the price itself
        assert factors.price_to_high_365d == pytest.approx(1.0)

    def test_nan_market_fields_use_missing_fallbacks(self, as_of):
        nan = float("nan")
        series = _flat_series(370, as_of, market_cap=nan, volume=nan, fdv=nan, high=nan)
        factors = compute_raw_factors(series, as_of)

        assert factors.is_valid()
        assert factors.log_market_cap == 0.0
        assert factors.fdv_to_market_cap_ratio == 1.0
        assert factors.volume_to_market_cap_ratio == 0.0
        assert factors.avg_daily_volume_30d == 0.0
        assert factors.price_to_high_365d == pytest.approx(1.0)

    def test_discount_to_high(self, as_of):
        series = _flat_series(370, as_of, price=10.0)
        series[-100] = replace(series[-100], high=20.0)
        factors = compute_raw_factors(series, as_of)
        assert factors.price_to_high_365d == pytest.approx(0.5)

    def test_yearly_return(self, as_of):
        series = _flat_series(370, as_of, price=10.0)
        series[-1] = replace(series[-1], price=15.0)
        factors = compute_raw_factors(series, as_of)

        assert factors.return_365d == pytest.approx(0.5)
        assert factors.return_90d == pytest.approx(0.5)

    def test_average_volume_skips_missing(self, as_of):
        series = _flat_series(370, as_of, volume=100.0)
        series[-1] = replace(series[-1], volume=None)
        series[-2] = replace(series[-2], volume=0.0)
        series[-3] = replace(series[-3], volume=400.0)
        factors = compute_raw_factors(series, as_of)

        # 27 points of 100 and one of 400 over the trailing 30
        assert factors.avg_daily_volume_30d == pytest.approx((27 * 100 + 400) / 28)

    def test_random_walk_is_valid(self, series_factory, as_of):
        factors = compute_raw_factors(series_factory(400, as_of), as_of)
        assert isinstance(factors, RawFactors)
        assert factors.is_valid()
        assert factors.invalid_fields() == []
        assert factors.volatility_90d > 0
        assert 0 <= factors.max_drawdown_365d < 1


class TestRawFactorsRecord:
    def test_non_finite_fields(self):
        factors = RawFactors(
            log_market_cap=float("nan"),
            fdv_to_market_cap_ratio=1.0,
            price_to_high_365d=1.0,
            return_90d=0.0,
            return_180d=0.0,
            return_365d=0.0,
            volatility_90d=0.0,
            volatility_180d=0.0,
            volume_to_market_cap_ratio=0.0,
            avg_daily_volume_30d=0.0,
            volatility_365d=float("inf"),
            max_drawdown_365d=0.0,
        )
        assert not factors.is_valid()
        assert factors.invalid_fields() == ["log_market_cap", "volatility_365d"]
        assert factors.to_dict()["log_market_cap"] is None
