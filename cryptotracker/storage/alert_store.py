"""
Alert Store

Durable mapping of coin id -> target price.

The store is hydrated when constructed and written back synchronously after
every mutation. Several processes may share one database (a running monitor
and `alert set` from another shell), so every mutation and every monitor
tick re-reads the persisted mapping first. Persistence failures are logged
and absorbed: while a write is outstanding the in-memory mapping stays
authoritative.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..config import config
from ..errors import AlertValidationError, PersistenceError
from ..models import AlertEntry
from ..utils import to_positive_float
from .kv_store import KeyValueStore

logger = logging.getLogger(__name__)


def normalize(raw_id: Any) -> str:
    """
    Normalize a coin id.

    Strings are lower-cased; anything else becomes "" which callers treat
    as an absent/invalid id.
    """
    return raw_id.lower() if isinstance(raw_id, str) else ""


def parse_alerts(raw: Optional[str]) -> Dict[str, float]:
    """
    Parse persisted alert JSON into a clean mapping.

    Never raises. Keys that normalize to "" and values that are not finite
    numbers > 0 are dropped.
    """
    if not raw:
        return {}

    try:
        parsed = json.loads(raw)
    except (ValueError, TypeError):
        logger.warning("Stored alerts are not valid JSON, starting empty")
        return {}

    if not isinstance(parsed, dict):
        logger.warning(f"Stored alerts have unexpected type {type(parsed).__name__}, starting empty")
        return {}

    alerts = {}
    dropped = 0
    for key, value in parsed.items():
        coin_id = normalize(key)
        target = to_positive_float(value)
        if coin_id and target is not None:
            alerts[coin_id] = target
        else:
            dropped += 1

    if dropped:
        logger.debug(f"Dropped {dropped} invalid stored alert(s)")
    return alerts


class AlertStore:
    """
    Price alerts keyed by coin id.

    Mutations:
    - set_alert: register or overwrite an alert (UI boundary, validated)
    - remove_alert: explicit removal by the user
    - remove_triggered: compare-and-delete used by the Alert Monitor

    Reads (get, snapshot, entries) never touch storage.
    """

    def __init__(self, kv: KeyValueStore, key: str = None):
        self.kv = kv
        self.key = key or config.alerts_key
        self._alerts: Dict[str, float] = self.load()
        self._unsaved = False
        logger.debug(f"Alert store hydrated with {len(self._alerts)} alert(s)")

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> Dict[str, float]:
        """Read and parse the persisted mapping. Returns {} on any failure."""
        try:
            raw = self.kv.get_item(self.key)
        except PersistenceError as e:
            logger.warning(f"Could not read alerts: {e}")
            return {}
        return parse_alerts(raw)

    def save(self, alerts: Mapping[str, float]) -> bool:
        """
        Persist the full mapping, replacing previous contents.

        Returns:
            True if written, False if persistence failed (logged)
        """
        try:
            self.kv.set_item(self.key, json.dumps(dict(alerts)))
            return True
        except (PersistenceError, TypeError, ValueError) as e:
            logger.warning(f"Could not persist alerts: {e}")
            return False

    def refresh(self) -> Dict[str, float]:
        """
        Re-read the persisted mapping, picking up changes made through other
        store instances.

        The in-memory mapping is kept when the store cannot be read or when a
        local change still cannot be written.

        Returns:
            Copy of the current mapping
        """
        if self._unsaved:
            if not self.save(self._alerts):
                return self.snapshot()
            self._unsaved = False

        try:
            raw = self.kv.get_item(self.key)
        except PersistenceError as e:
            logger.warning(f"Could not re-read alerts, using in-memory copy: {e}")
            return self.snapshot()

        self._alerts = parse_alerts(raw)
        return self.snapshot()

    def _persist(self):
        self._unsaved = not self.save(self._alerts)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, coin_id: Any) -> Optional[float]:
        """Current target for a coin, or None."""
        return self._alerts.get(normalize(coin_id))

    def snapshot(self) -> Dict[str, float]:
        """Copy of the current mapping."""
        return dict(self._alerts)

    def entries(self) -> List[AlertEntry]:
        """Alerts as entries, sorted by coin id for display."""
        return [AlertEntry(coin_id, target) for coin_id, target in sorted(self._alerts.items())]

    def __len__(self) -> int:
        return len(self._alerts)

    def __contains__(self, coin_id: Any) -> bool:
        return normalize(coin_id) in self._alerts

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def set_alert(self, coin_id: Any, target_price: Any) -> float:
        """
        Register or overwrite the alert for a coin.

        Args:
            coin_id: Coin identifier (whitespace is stripped, case-folded)
            target_price: Positive finite target in USD (numeric strings accepted)

        Returns:
            The stored target

        Raises:
            AlertValidationError: empty id or non-positive/non-finite target
        """
        normalized = normalize(coin_id.strip() if isinstance(coin_id, str) else coin_id)
        if not normalized:
            raise AlertValidationError("Coin id is required")

        target = to_positive_float(target_price)
        if target is None:
            raise AlertValidationError(
                f"Target price must be a positive number, got {target_price!r}"
            )

        self.refresh()
        self._alerts[normalized] = target
        self._persist()
        logger.info(f"Alert set: {normalized} >= {target}")
        return target

    def remove_alert(self, coin_id: Any) -> bool:
        """
        Remove the alert for a coin.

        Returns:
            True if an alert existed
        """
        normalized = normalize(coin_id)
        self.refresh()
        if normalized not in self._alerts:
            return False

        del self._alerts[normalized]
        self._persist()
        logger.info(f"Alert removed: {normalized}")
        return True

    def remove_triggered(self, triggered: Mapping[str, float]) -> List[str]:
        """
        Remove alerts that fired, against the persisted mapping as it is now.

        An entry is removed only if its current target still equals the
        target that was evaluated; an alert re-registered with a new target
        while the price query was pending is kept. Persists once.

        Args:
            triggered: coin id -> target that was evaluated

        Returns:
            Coin ids actually removed
        """
        self.refresh()
        removed = []
        for coin_id, target in triggered.items():
            if self._alerts.get(coin_id) == target:
                del self._alerts[coin_id]
                removed.append(coin_id)
            elif coin_id in self._alerts:
                logger.info(
                    f"Alert for {coin_id} changed to {self._alerts[coin_id]} during check, keeping it"
                )

        if removed:
            self._persist()
        return removed
