"""
Portfolio Valuation
===================

Live valuation of the stored holdings.

Prices come from one batched query; when the query fails or a coin is
missing from the response, valuation uses the configured mock price (or 0)
and marks the row. That fallback is for display only and never reaches the
Alert Monitor.
"""

import logging
from typing import Dict, Iterable, List, Mapping

from .config import config
from .models import Holding, HoldingValue, PortfolioValuation

logger = logging.getLogger(__name__)


def fallback_price(coin_id: str) -> float:
    return float(config.mock_prices.get(coin_id, 0))


async def fetch_portfolio_prices(price_source, holdings: Iterable[Holding]) -> Dict[str, float]:
    """
    Fetch live prices for all held coins.

    Returns:
        coin id -> live price; coins without one are absent ({} if the query failed)
    """
    coin_ids = list(dict.fromkeys(h.coin_id for h in holdings))
    if not coin_ids:
        return {}

    result = await price_source.get_prices(coin_ids)
    if not result.ok:
        logger.warning(f"Portfolio prices unavailable ({result.failure.value}), showing fallback prices")
        return {}

    missing = [c for c in coin_ids if c not in result.prices]
    if missing:
        logger.debug(f"No live price for {', '.join(missing)}, showing fallback prices")
    return {c: result.prices[c] for c in coin_ids if c in result.prices}


def value_portfolio(holdings: Iterable[Holding], prices: Mapping[str, float]) -> PortfolioValuation:
    """
    Value each holding and the grand total.

    Coins without a live price use the fallback price and are flagged
    with from_fallback.
    """
    rows: List[HoldingValue] = []
    for holding in holdings:
        from_fallback = holding.coin_id not in prices
        price = fallback_price(holding.coin_id) if from_fallback else prices[holding.coin_id]
        rows.append(HoldingValue(
            coin_id=holding.coin_id,
            price=price,
            quantity=holding.quantity,
            total_value=price * holding.quantity,
            from_fallback=from_fallback,
        ))

    return PortfolioValuation(rows=rows, total_value=sum(r.total_value for r in rows))
