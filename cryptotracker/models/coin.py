"""
Coin Models
===========

Dataclasses for market data returned by the price API and for portfolio rows.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


@dataclass
class CoinMarketData:
    """Current market data for a single coin (USD)."""
    coin_id: str
    symbol: str
    name: str
    price: float
    market_cap: Optional[float]
    total_volume: Optional[float]
    change_24h_pct: Optional[float]
    high_24h: Optional[float]
    low_24h: Optional[float]
    last_updated: Optional[datetime]

    @property
    def is_up(self) -> bool:
        return (self.change_24h_pct or 0) >= 0


@dataclass
class PricePoint:
    """One point of a historical price series."""
    timestamp: datetime
    price: float


@dataclass
class Holding:
    """A portfolio entry: coin id and quantity held."""
    coin_id: str
    quantity: float

    def to_dict(self) -> dict:
        """Convert to dict for storage (stored key names)."""
        return {"id": self.coin_id, "quantity": self.quantity}


@dataclass
class HoldingValue:
    """A valued portfolio row."""
    coin_id: str
    price: float
    quantity: float
    total_value: float
    from_fallback: bool = False


@dataclass
class PortfolioValuation:
    """Valued portfolio with grand total."""
    rows: List[HoldingValue]
    total_value: float
