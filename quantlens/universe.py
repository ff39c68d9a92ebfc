"""Asset universe and trading-pair mapping.

The whitelist is fixed; every asset carries the id used by the daily market
data source, and the subset listed on a supported exchange carries a kline
trading pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AssetClass(str, Enum):
    CRYPTO = "crypto"
    US_EQUITY = "us_equity"
    CN_EQUITY = "cn_equity"


class Exchange(str, Enum):
    BINANCE = "binance"
    OKX = "okx"
    BITGET = "bitget"
    UNSUPPORTED = "unsupported"


WHITELIST_SYMBOLS: tuple[str, ...] = (
    "BTC",
    "ETH",
    "SOL",
    "LINK",
    "ANA",
    "ENA",
    "BNB",
    "OKB",
    "BGB",
    "UNI",
    "HYPER",
    "SUI",
)

# symbol -> (display name, market data source id)
_ASSET_TABLE: dict[str, tuple[str, str]] = {
    "BTC": ("Bitcoin", "bitcoin"),
    "ETH": ("Ethereum", "ethereum"),
    "SOL": ("Solana", "solana"),
    "LINK": ("Chainlink", "chainlink"),
    "ANA": ("ANA", "ana-protocol"),
    "ENA": ("Ethena", "ethena"),
    "BNB": ("Binance Coin", "binancecoin"),
    "OKB": ("OKB", "okb"),
    "BGB": ("Bitget Token", "bitget-token"),
    "UNI": ("Uniswap", "uniswap"),
    "HYPER": ("Hyperliquid", "hyperliquid"),
    "SUI": ("Sui", "sui"),
}

# Not listed on Binance spot; no kline source yet
_UNSUPPORTED_PAIRS = frozenset({"ANA", "OKB", "BGB", "HYPER"})


@dataclass(frozen=True)
class AssetInfo:
    """Static description of a whitelisted asset."""

    symbol: str
    name: str
    data_source_id: str
    asset_class: AssetClass = AssetClass.CRYPTO

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "data_source_id": self.data_source_id,
            "asset_class": self.asset_class.value,
        }


@dataclass(frozen=True)
class TradingPairConfig:
    symbol: str
    exchange: Exchange
    trading_pair: str  # e.g. "BTCUSDT", empty when unsupported

    @property
    def is_supported(self) -> bool:
        return self.exchange != Exchange.UNSUPPORTED and bool(self.trading_pair)


TRADING_PAIR_CONFIG: dict[str, TradingPairConfig] = {
    symbol: (
        TradingPairConfig(symbol=symbol, exchange=Exchange.UNSUPPORTED, trading_pair="")
        if symbol in _UNSUPPORTED_PAIRS
        else TradingPairConfig(symbol=symbol, exchange=Exchange.BINANCE, trading_pair=f"{symbol}USDT")
    )
    for symbol in WHITELIST_SYMBOLS
}


def get_asset_info(symbol: str) -> Optional[AssetInfo]:
    entry = _ASSET_TABLE.get(symbol.upper())
    if entry is None:
        return None
    name, source_id = entry
    return AssetInfo(symbol=symbol.upper(), name=name, data_source_id=source_id)


def get_all_asset_infos() -> list[AssetInfo]:
    """Every whitelisted asset, in whitelist order."""
    return [get_asset_info(symbol) for symbol in WHITELIST_SYMBOLS]


def get_trading_pair_config(symbol: str) -> Optional[TradingPairConfig]:
    return TRADING_PAIR_CONFIG.get(symbol.upper())


def is_technical_analysis_supported(symbol: str) -> bool:
    """True if the asset has a kline trading pair on a supported exchange."""
    config = get_trading_pair_config(symbol)
    return config is not None and config.is_supported
