"""
Error types shared across the tracker.

Only validation errors are meant to reach the user directly; the rest are
recovered by the component that owns the failing resource.
"""

from enum import Enum


class FailureKind(Enum):
    """Why a price query failed."""
    NETWORK = "network"          # connection refused, DNS, reset
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"  # non-2xx (after 429 retries)
    RATE_LIMITED = "rate_limited"
    DECODE = "decode"            # body was not the expected JSON shape


class TrackerError(Exception):
    """Base class for tracker errors."""


class PersistenceError(TrackerError):
    """Reading or writing the key/value store failed."""


class PriceSourceError(TrackerError):
    """A price API request failed."""

    def __init__(self, message: str, kind: FailureKind = FailureKind.NETWORK, status: int = None):
        super().__init__(message)
        self.kind = kind
        self.status = status


class CoinNotFoundError(PriceSourceError):
    """The price API does not know the requested coin id."""

    def __init__(self, coin_id: str):
        super().__init__(f"Coin not found: {coin_id}", FailureKind.HTTP_STATUS, 404)
        self.coin_id = coin_id


class AlertValidationError(TrackerError, ValueError):
    """Alert input rejected at the registration boundary."""


class HoldingValidationError(TrackerError, ValueError):
    """Portfolio input rejected at the add-coin boundary."""


class NotificationError(TrackerError):
    """A notification sink failed to deliver."""
