"""
Crypto Tracker
==============

Coin lookup, price history, portfolio valuation and one-shot price alerts.
"""

__version__ = "1.0.0"
