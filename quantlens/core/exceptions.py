"""Custom exceptions with structured error payloads."""

from __future__ import annotations

from typing import Any


class QuantLensError(Exception):
    """Base exception with a structured error payload."""

    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a problem+json style payload."""
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class InsufficientDataError(QuantLensError):
    """Series is shorter than a required window."""

    error_code = "INSUFFICIENT_DATA"
    message = "Not enough data points for the requested window"


class DataProviderError(QuantLensError):
    """A market data or kline collaborator failed."""

    error_code = "DATA_PROVIDER_ERROR"
    message = "Market data provider temporarily unavailable"


class NoFactorDataError(QuantLensError):
    """No asset in the universe produced factors for the evaluation date."""

    error_code = "NO_FACTOR_DATA"
    message = "No factor data available for the evaluation date"
