"""
Configuration for Crypto Tracker

All settings in one place for easy tuning.
Secrets and deployment switches come from the environment (or a .env file
in the working directory). Data and logs default to ~/.cryptotracker.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))

DEFAULT_DATA_DIR = Path.home() / ".cryptotracker"


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Config:
    """All configuration settings."""

    # -------------------------------------------------------------------------
    # Price API (CoinGecko)
    # -------------------------------------------------------------------------
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"

    # Per-request timeout (seconds)
    request_timeout_sec: float = 10.0

    # Retries only apply to 429 responses; every other failure is returned at once
    max_retries: int = 1
    rate_limit_backoff_sec: float = 2.0

    # -------------------------------------------------------------------------
    # Alert Monitor
    # -------------------------------------------------------------------------
    alert_poll_interval_sec: float = 60.0

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    alerts_key: str = "priceAlerts"
    portfolio_key: str = "portfolioData"
    permission_key: str = "notificationPermission"

    # Same budget a browser gives local storage
    storage_quota_bytes: int = 5 * 1024 * 1024

    data_dir: Path = field(default_factory=lambda: Path(
        os.environ.get("CRYPTOTRACKER_DATA_DIR", str(DEFAULT_DATA_DIR))
    ))

    @property
    def store_db_path(self) -> Path:
        return self.data_dir / "tracker.db"

    # -------------------------------------------------------------------------
    # Chart
    # -------------------------------------------------------------------------
    # timeframe -> (days, interval)
    chart_timeframes: Dict[str, Tuple[int, str]] = field(default_factory=lambda: {
        "24h": (1, "hourly"),
        "7d": (7, "hourly"),
        "30d": (30, "daily"),
        "1y": (365, "daily"),
    })
    default_timeframe: str = "7d"

    # -------------------------------------------------------------------------
    # Portfolio
    # -------------------------------------------------------------------------
    # Display-only fallback when the price API is unavailable
    mock_prices: Dict[str, float] = field(default_factory=lambda: {
        "bitcoin": 68000,
        "ethereum": 3600,
        "solana": 160,
        "binancecoin": 590,
        "cardano": 0.45,
    })

    # Used when nothing valid is stored yet
    default_portfolio: List[Tuple[str, float]] = field(default_factory=lambda: [
        ("bitcoin", 0.25),
        ("ethereum", 1.5),
    ])

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------
    notification_title: str = "Crypto Price Alert"
    app_name: str = "Crypto Tracker"
    desktop_timeout_sec: int = 10

    # Telegram rate limiting
    telegram_min_message_interval_sec: float = 1.0
    telegram_max_messages_per_minute: int = 20
    telegram_max_message_length: int = 4000

    # -------------------------------------------------------------------------
    # Environment
    # -------------------------------------------------------------------------
    @property
    def coingecko_api_key(self) -> Optional[str]:
        return os.environ.get("COINGECKO_API_KEY") or None

    @property
    def telegram_bot_token(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_BOT_TOKEN")

    @property
    def telegram_chat_id(self) -> Optional[str]:
        return os.environ.get("TELEGRAM_CHAT_ID")

    @property
    def notification_permission(self) -> Optional[str]:
        """Pre-set desktop permission ("granted" / "denied"), skips the prompt."""
        value = os.environ.get("CRYPTOTRACKER_NOTIFICATIONS", "").strip().lower()
        return value or None

    @property
    def log_level(self) -> str:
        return os.environ.get("LOG_LEVEL", "INFO")

    @property
    def log_file(self) -> str:
        return os.environ.get("LOG_FILE", str(self.data_dir / "logs" / "tracker.log"))

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    def resolve_timeframe(self, timeframe: Optional[str]) -> Tuple[str, int, str]:
        """
        Resolve a chart timeframe name to its query parameters.

        Unknown names fall back to the default timeframe.

        Returns:
            (timeframe, days, interval)
        """
        if timeframe not in self.chart_timeframes:
            timeframe = self.default_timeframe
        days, interval = self.chart_timeframes[timeframe]
        return timeframe, days, interval


# Global config instance
config = Config()
