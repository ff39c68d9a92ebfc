"""Tests for retest detection after a breakout."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from quantlens.ta.breakout import BreakoutSignal
from quantlens.ta.cluster import ClusterInfo
from quantlens.ta.config import TAConfig
from quantlens.ta.retest import (
    calculate_retest_score,
    retest_tolerance,
    scan_retest,
    scan_retest_long,
    scan_retest_short,
)
from quantlens.ta.types import Direction, KlineBar, SignalType

CLUSTER = ClusterInfo(
    index=9,
    cluster_mean=100.0,
    cluster_high=101.0,
    cluster_low=99.0,
    cluster_width=2.0,
    density_ratio=0.02,
    density_score=0.8,
)


def _breakout(direction: Direction, index: int = 10, cluster: ClusterInfo = CLUSTER) -> BreakoutSignal:
    return BreakoutSignal(
        signal_type=(
            SignalType.CLUSTER_BREAKOUT_UP if direction == Direction.LONG
            else SignalType.CLUSTER_BREAKOUT_DOWN
        ),
        direction=direction,
        breakout_bar_index=index,
        breakout_bar_time=datetime(2025, 1, 1, tzinfo=timezone.utc),
        cluster_info=cluster,
        breakout_score=0.7,
        entry_price=104.0 if direction == Direction.LONG else 96.0,
        stop_loss=98.0 if direction == Direction.LONG else 102.0,
        take_profit_1=110.0 if direction == Direction.LONG else 90.0,
        take_profit_2=116.0 if direction == Direction.LONG else 84.0,
    )


def _bar(i: int, low: float, high: float, close: float) -> KlineBar:
    return KlineBar(
        open_time=i * 3_600_000,
        open=close,
        high=high,
        low=low,
        close=close,
        volume=1000.0,
        close_time=(i + 1) * 3_600_000 - 1,
    )


def _series(after_breakout: list[tuple[float, float, float]], breakout_index: int = 10) -> list[KlineBar]:
    """Filler bars up to the breakout, then the given (low, high, close) bars."""
    bars = [_bar(i, 99.5, 100.5, 100.0) for i in range(breakout_index)]
    bars.append(_bar(breakout_index, 100.0, 104.5, 104.0))
    for offset, (low, high, close) in enumerate(after_breakout, start=1):
        bars.append(_bar(breakout_index + offset, low, high, close))
    return bars


class TestTolerance:
    def test_width_based(self):
        assert retest_tolerance(CLUSTER) == pytest.approx(2.0)

    def test_minimum_offset(self):
        narrow = ClusterInfo(0, 100.0, 100.1, 99.9, 0.2, 0.002, 0.9)
        assert retest_tolerance(narrow) == pytest.approx(0.5)


class TestRetestScore:
    def test_touch_at_mean(self):
        assert calculate_retest_score(100.0, CLUSTER) == 1.0

    def test_half_width_deep(self):
        assert calculate_retest_score(101.0, CLUSTER) == pytest.approx(0.5)

    def test_beyond_width(self):
        assert calculate_retest_score(103.0, CLUSTER) == 0.0

    def test_zero_width(self):
        flat = ClusterInfo(0, 100.0, 100.0, 100.0, 0.0, 0.0, 1.0)
        assert calculate_retest_score(100.0, flat) == 1.0
        assert calculate_retest_score(100.2, flat) == 0.0


class TestScanRetestLong:
    """Tests for scan_retest_long."""

    def test_first_touch_wins(self):
        bars = _series([
            (103.0, 105.0, 104.5),  # too far above the mean
            (101.0, 104.0, 103.0),  # touch within 2.0 of the mean
            (100.0, 103.0, 102.0),  # deeper, but later
        ])
        signal = scan_retest_long(bars, _breakout(Direction.LONG))

        assert signal is not None
        assert signal.signal_type == SignalType.RETEST_LONG
        assert signal.direction == Direction.LONG
        assert signal.retest_bar_index == 12
        assert signal.retest_bar_time == bars[12].opened_at
        assert signal.retest_score == pytest.approx(0.5)
        assert signal.entry_price == 103.0

    def test_levels_recomputed_from_parent_cluster(self):
        bars = _series([(101.0, 104.0, 103.0)])
        signal = scan_retest_long(bars, _breakout(Direction.LONG))
        # stop 99 - max(1.0, 0.5) = 98, risk 5
        assert signal.stop_loss == pytest.approx(98.0)
        assert signal.take_profit_1 == pytest.approx(108.0)
        assert signal.take_profit_2 == pytest.approx(113.0)
        assert signal.parent_breakout.breakout_bar_index == 10
        assert signal.cluster_info is CLUSTER

    def test_close_back_inside_rejected(self):
        bars = _series([(98.5, 101.0, 98.8)])  # closes below cluster_low
        assert scan_retest_long(bars, _breakout(Direction.LONG)) is None

    def test_window_limit(self):
        far = [(104.0, 106.0, 105.0)] * 20 + [(100.0, 103.0, 102.0)]
        bars = _series(far)
        assert scan_retest_long(bars, _breakout(Direction.LONG)) is None
        wider = TAConfig(retest_window_bars=21)
        assert scan_retest_long(bars, _breakout(Direction.LONG), wider).retest_bar_index == 31

    def test_no_bars_after_breakout(self):
        bars = _series([])
        assert scan_retest_long(bars, _breakout(Direction.LONG)) is None


class TestScanRetestShort:
    def test_high_revisits_mean(self):
        bars = _series([
            (95.0, 97.0, 96.0),
            (96.0, 100.5, 97.0),
        ])
        signal = scan_retest_short(bars, _breakout(Direction.SHORT))

        assert signal.signal_type == SignalType.RETEST_SHORT
        assert signal.retest_bar_index == 12
        assert signal.retest_score == pytest.approx(0.75)
        # stop 101 + 1 = 102, risk 5
        assert signal.stop_loss == pytest.approx(102.0)
        assert signal.take_profit_1 == pytest.approx(92.0)

    def test_close_back_above_rejected(self):
        bars = _series([(99.0, 101.5, 101.2)])
        assert scan_retest_short(bars, _breakout(Direction.SHORT)) is None


class TestScanRetestDispatch:
    def test_by_direction(self):
        bars = _series([(99.5, 100.5, 100.0)])
        assert scan_retest(bars, _breakout(Direction.LONG)).direction == Direction.LONG
        assert scan_retest(bars, _breakout(Direction.SHORT)).direction == Direction.SHORT
