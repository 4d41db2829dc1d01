"""
Chart State
===========

Historical price series for the selected coin. Rendering is left to the
caller; this holds the coin, timeframe, loaded points and error text.
"""

import logging
from typing import List, Optional

from .config import config
from .errors import PriceSourceError
from .models import PricePoint

logger = logging.getLogger(__name__)

LOAD_ERROR = "Could not load chart data."


class ChartState:
    """
    Price series for one coin and timeframe.

    Subscribe it to AppContext.selected_coin to follow the selection:
    a new coin clears the loaded series until load() runs again.
    """

    def __init__(self, coin_id: str = "bitcoin", timeframe: str = None):
        self.coin_id = coin_id
        self.timeframe, _, _ = config.resolve_timeframe(timeframe)
        self.points: List[PricePoint] = []
        self.error = ""
        self.loading = False

    def bind(self, selected_coin):
        """Follow an ObservableValue of coin ids. Returns the unsubscribe function."""
        if selected_coin.value:
            self.select(selected_coin.value)
        return selected_coin.subscribe(self.select)

    def select(self, coin_id: str):
        coin_id = str(coin_id).lower()
        if coin_id != self.coin_id:
            self.coin_id = coin_id
            self.points = []
            self.error = ""

    def set_timeframe(self, timeframe: str):
        resolved, _, _ = config.resolve_timeframe(timeframe)
        if resolved != self.timeframe:
            self.timeframe = resolved
            self.points = []

    async def load(self, price_source) -> bool:
        """
        Fetch the series for the current coin and timeframe.

        Returns:
            True on success; on failure `error` holds a display message
        """
        if not self.coin_id:
            return False

        self.loading = True
        self.error = ""
        try:
            self.points = await price_source.get_market_chart(self.coin_id, self.timeframe)
            return True
        except PriceSourceError as e:
            logger.warning(f"Chart load failed for {self.coin_id}: {e}")
            self.points = []
            self.error = LOAD_ERROR
            return False
        finally:
            self.loading = False

    @property
    def low(self) -> Optional[float]:
        return min((p.price for p in self.points), default=None)

    @property
    def high(self) -> Optional[float]:
        return max((p.price for p in self.points), default=None)

    @property
    def change_pct(self) -> Optional[float]:
        """Change from first to last point, in percent."""
        if len(self.points) < 2 or self.points[0].price == 0:
            return None
        first, last = self.points[0].price, self.points[-1].price
        return (last - first) / first * 100
