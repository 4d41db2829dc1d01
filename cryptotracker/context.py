"""
Application Context
===================

Wires the shared services once per process and hands them to every view:
key/value store, alert store, portfolio store, price client, notifier,
the single AlertMonitor, and the currently selected coin.
"""

import logging
from typing import Callable, Generic, List, Optional, TypeVar

from .alerts import NotificationSink, create_notifier
from .api import CoinGeckoClient
from .monitor import AlertMonitor
from .storage import AlertStore, KeyValueStore, PortfolioStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObservableValue(Generic[T]):
    """A value that notifies subscribers when it changes."""

    def __init__(self, value: Optional[T] = None):
        self._value = value
        self._subscribers: List[Callable[[T], None]] = []

    @property
    def value(self) -> Optional[T]:
        return self._value

    def set(self, value: T):
        """Set the value; subscribers are called only on an actual change."""
        if value == self._value:
            return
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.exception(f"Subscriber failed: {e}")

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe


class AppContext:
    """Shared services for the CLI views."""

    def __init__(
        self,
        kv: KeyValueStore,
        price_source,
        notifier: NotificationSink,
        interval_sec: float = None,
    ):
        self.kv = kv
        self.alerts = AlertStore(kv)
        self.portfolio = PortfolioStore(kv)
        self.price_source = price_source
        self.notifier = notifier
        self.monitor = AlertMonitor(self.alerts, price_source, notifier, interval_sec=interval_sec)
        self.selected_coin: ObservableValue[str] = ObservableValue()

    @classmethod
    def create(
        cls,
        dry_run: bool = False,
        prompt: Optional[Callable[[], bool]] = None,
        interval_sec: float = None,
        db_path=None,
    ) -> "AppContext":
        """Build the production context."""
        kv = KeyValueStore(db_path)
        notifier = create_notifier(kv=kv, dry_run=dry_run, prompt=prompt)
        return cls(kv, CoinGeckoClient(), notifier, interval_sec=interval_sec)

    def register_alert(self, coin_id, target_price) -> float:
        """
        Register or update an alert, then ask for notification permission.

        Raises:
            AlertValidationError: invalid id or target (nothing is stored)
        """
        target = self.alerts.set_alert(coin_id, target_price)
        self.notifier.request_permission()
        return target

    async def close(self):
        await self.monitor.stop()
        close = getattr(self.price_source, "close", None)
        if close is not None:
            await close()
