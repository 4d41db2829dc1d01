"""
API Package
===========

External API clients for market data.

Components:
- coingecko.py: CoinGeckoClient, PriceResult
"""

from .coingecko import CoinGeckoClient, PriceResult

__all__ = [
    "CoinGeckoClient",
    "PriceResult",
]
