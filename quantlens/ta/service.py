"""
Technical signal scan orchestration.

Walks assets x timeframes, fetches klines from an injected provider and
runs the pure signal pipeline. Results are keyed by (asset, timeframe) and
a new signal only replaces a stored one when its bar is strictly later.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from quantlens.core.exceptions import DataProviderError
from quantlens.core.logging import LoggerAdapter, get_logger
from quantlens.universe import AssetInfo, get_all_asset_infos, get_trading_pair_config

from .config import TAConfig, get_ta_config
from .signals import TechnicalSignal, scan_technical_signal
from .types import ALL_TIMEFRAMES, Timeframe

if TYPE_CHECKING:
    from quantlens.providers import KlineProvider

logger = get_logger("ta.service")

SignalKey = tuple[str, Timeframe]


class SignalScanService:
    """Scans the universe for cluster breakout and retest signals."""

    def __init__(
        self,
        provider: KlineProvider,
        ta_config: Optional[TAConfig] = None,
    ):
        self.provider = provider
        self.config = ta_config or get_ta_config()

    async def scan_asset_timeframe(
        self,
        asset: AssetInfo,
        timeframe: Timeframe,
    ) -> Optional[TechnicalSignal]:
        """
        Scan one asset on one timeframe.

        Returns:
            TechnicalSignal, or None when the asset has no trading pair, the
            provider fails, there are too few bars or nothing qualifies
        """
        timeframe = Timeframe(timeframe)
        log = LoggerAdapter(logger, {"symbol": asset.symbol, "timeframe": timeframe.value})
        pair = get_trading_pair_config(asset.symbol)
        if pair is None or not pair.is_supported:
            log.info(f"{asset.symbol} ({timeframe.value}): no trading pair, skipping")
            return None

        try:
            bars = await self.provider.fetch_klines(pair.trading_pair, timeframe, self.config.kline_limit)
        except DataProviderError as exc:
            log.error(f"{asset.symbol} ({timeframe.value}): {exc.message}")
            return None

        signal = scan_technical_signal(bars, asset.symbol, timeframe, self.config)
        if signal is None:
            log.info(f"{asset.symbol} ({timeframe.value}): no technical signal")
        else:
            log.info(
                f"{asset.symbol} ({timeframe.value}): {signal.signal_type.value} "
                f"score {signal.signal_score:.2f} ({signal.strength.value})"
            )
        return signal

    async def scan_all(
        self,
        assets: Optional[Iterable[AssetInfo]] = None,
        timeframes: Iterable[Timeframe] = ALL_TIMEFRAMES,
        previous: Optional[Mapping[SignalKey, TechnicalSignal]] = None,
    ) -> dict[SignalKey, TechnicalSignal]:
        """
        Scan every asset on every timeframe.

        Args:
            assets: Assets to scan (default: the whole whitelist)
            timeframes: Timeframes to scan
            previous: Signals from an earlier run; kept unless superseded

        Returns:
            Latest signal per (symbol, timeframe)
        """
        assets = list(assets) if assets is not None else get_all_asset_infos()
        timeframes = [Timeframe(tf) for tf in timeframes]
        results: dict[SignalKey, TechnicalSignal] = dict(previous or {})

        logger.info(f"Scanning {len(assets)} assets on {len(timeframes)} timeframes")
        first_request = True
        for asset in assets:
            for timeframe in timeframes:
                pair = get_trading_pair_config(asset.symbol)
                if pair is not None and pair.is_supported:
                    # Provider is rate limited
                    if not first_request and self.config.scan_throttle_seconds > 0:
                        await asyncio.sleep(self.config.scan_throttle_seconds)
                    first_request = False

                signal = await self.scan_asset_timeframe(asset, timeframe)
                if signal is None:
                    continue

                existing = results.get(signal.key)
                if signal.supersedes(existing):
                    results[signal.key] = signal
                else:
                    logger.info(f"{asset.symbol} ({timeframe.value}): stored signal is newer, keeping it")

        logger.info(f"Scan complete: {len(results)} signals")
        return results
