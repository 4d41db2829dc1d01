"""
Shared Data Models
==================

This package contains dataclasses used across the project.
"""

from .alert import AlertEntry, TriggeredAlert, TickResult
from .coin import CoinMarketData, PricePoint, Holding, HoldingValue, PortfolioValuation

__all__ = [
    "AlertEntry",
    "TriggeredAlert",
    "TickResult",
    "CoinMarketData",
    "PricePoint",
    "Holding",
    "HoldingValue",
    "PortfolioValuation",
]
