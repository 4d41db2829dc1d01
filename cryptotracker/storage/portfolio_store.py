"""
Portfolio Store

Coin holdings (id + quantity) persisted as a JSON list.
"""

import json
import logging
from typing import Any, List, Optional

from ..config import config
from ..errors import HoldingValidationError, PersistenceError
from ..models import Holding
from ..utils import to_finite_float, to_positive_float

logger = logging.getLogger(__name__)


def parse_holdings(raw: Optional[str]) -> List[Holding]:
    """
    Parse persisted holdings. Never raises.

    Rows need a string id and a finite numeric quantity; ids are lower-cased.
    """
    if not raw:
        return []

    try:
        parsed = json.loads(raw)
    except (ValueError, TypeError):
        logger.warning("Stored portfolio is not valid JSON, ignoring it")
        return []

    if not isinstance(parsed, list):
        return []

    holdings = []
    for row in parsed:
        if not isinstance(row, dict) or not isinstance(row.get("id"), str):
            continue
        quantity = to_finite_float(row.get("quantity"))
        if quantity is None:
            continue
        holdings.append(Holding(row["id"].lower(), quantity))
    return holdings


class PortfolioStore:
    """
    Ordered list of holdings.

    Falls back to the configured default portfolio when nothing valid is
    stored. Every mutation is persisted immediately.
    """

    def __init__(self, kv, key: str = None):
        self.kv = kv
        self.key = key or config.portfolio_key
        self._holdings: List[Holding] = self.load()

    def load(self) -> List[Holding]:
        try:
            raw = self.kv.get_item(self.key)
        except PersistenceError as e:
            logger.warning(f"Could not read portfolio: {e}")
            raw = None

        holdings = parse_holdings(raw)
        if not holdings:
            holdings = [Holding(coin_id, qty) for coin_id, qty in config.default_portfolio]
        return holdings

    def save(self) -> bool:
        try:
            self.kv.set_item(self.key, json.dumps([h.to_dict() for h in self._holdings]))
            return True
        except PersistenceError as e:
            logger.warning(f"Could not persist portfolio: {e}")
            return False

    @property
    def holdings(self) -> List[Holding]:
        return list(self._holdings)

    def add_holding(self, coin_id: Any, quantity: Any) -> Holding:
        """
        Add a quantity of a coin. Adding an existing coin sums the quantities.

        Raises:
            HoldingValidationError: empty id or non-positive/non-finite quantity
        """
        normalized = coin_id.strip().lower() if isinstance(coin_id, str) else ""
        if not normalized:
            raise HoldingValidationError("Coin id is required")

        qty = to_positive_float(quantity)
        if qty is None:
            raise HoldingValidationError(f"Quantity must be a positive number, got {quantity!r}")

        for holding in self._holdings:
            if holding.coin_id == normalized:
                holding.quantity += qty
                break
        else:
            holding = Holding(normalized, qty)
            self._holdings.append(holding)

        self.save()
        logger.info(f"Portfolio: {normalized} now {holding.quantity}")
        return holding

    def remove_holding(self, coin_id: Any) -> bool:
        normalized = coin_id.strip().lower() if isinstance(coin_id, str) else ""
        before = len(self._holdings)
        self._holdings = [h for h in self._holdings if h.coin_id != normalized]
        if len(self._holdings) == before:
            return False
        self.save()
        return True
