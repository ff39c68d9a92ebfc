"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings, get_settings
from .exceptions import (
    DataProviderError,
    InsufficientDataError,
    NoFactorDataError,
    QuantLensError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "DataProviderError",
    "InsufficientDataError",
    "NoFactorDataError",
    "QuantLensError",
    "Settings",
    "get_logger",
    "get_settings",
    "setup_logging",
]
