"""
Alert Monitor

Periodic price-alert check:
1. Re-read all stored alerts (other processes may have changed them)
2. Fetch prices for every alerted coin in one batched query
3. Compare each price against its target (price >= target fires)
4. Notify once per fired alert
5. Remove fired alerts from the store (they fire at most once)

One instance is shared by the whole application.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, List, Mapping, Optional

from ..config import config
from ..alerts import alert_body, alert_title
from ..errors import FailureKind
from ..models import TickResult, TriggeredAlert
from ..storage import AlertStore, normalize
from ..utils import is_price

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    IDLE = "idle"            # not started, or stopped
    SCHEDULED = "scheduled"  # waiting for the next tick
    POLLING = "polling"      # a tick is in flight


def evaluate_alerts(targets: Mapping[str, Any], prices: Mapping[str, Any]) -> List[TriggeredAlert]:
    """
    Find alerts whose target is met.

    Args:
        targets: coin id -> target price
        prices: coin id -> current price (missing ids never fire)

    Returns:
        Triggered alerts; order is not meaningful
    """
    triggered = []
    for raw_id, target in targets.items():
        coin_id = normalize(raw_id)
        price = prices.get(coin_id)

        # NaN/inf/non-numeric on either side never fires
        if not coin_id or not is_price(price) or not is_price(target):
            continue

        if price >= target:
            triggered.append(TriggeredAlert(
                coin_id=coin_id,
                price=float(price),
                target=float(target),
                message=alert_body(coin_id, price, target),
            ))
    return triggered


class AlertMonitor:
    """
    Polls prices for stored alerts on a fixed schedule.

    States: IDLE -> SCHEDULED -> POLLING -> SCHEDULED ... -> IDLE (stop)

    The recurring tick is an asyncio task; nothing runs in parallel with the
    event loop except blocking notification calls, which are awaited in an
    executor before fired alerts are removed. At most one tick is in flight
    at a time: a tick requested while another is polling is skipped.

    A generation counter ties each tick to the start() that created it, so
    results of a query still pending when stop() is called are discarded.
    """

    def __init__(
        self,
        store: AlertStore,
        price_source,
        notifier,
        interval_sec: float = None,
    ):
        """
        Initialize the monitor.

        Args:
            store: Alert store (read each tick, fired alerts removed)
            price_source: Object with async get_prices(ids) -> PriceResult
            notifier: NotificationSink for fired alerts
            interval_sec: Seconds between ticks (default from config)
        """
        self.store = store
        self.price_source = price_source
        self.notifier = notifier
        self.interval = interval_sec if interval_sec is not None else config.alert_poll_interval_sec

        self._task: Optional[asyncio.Task] = None
        self._state = MonitorState.IDLE
        self._polling = False
        self._generation = 0
        self.ticks = 0

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start checking: one tick now, then one every interval.

        Must be called from inside a running event loop. Calling it while
        already running does nothing.

        Returns:
            True if started, False if already running
        """
        if self.running:
            logger.debug("Alert monitor already running")
            return False

        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(self._run(self._generation))
        self._state = MonitorState.SCHEDULED
        logger.info(f"Alert monitor started (every {self.interval:g}s)")
        return True

    async def stop(self):
        """Cancel the schedule and ignore any check still in flight."""
        self._generation += 1
        task, self._task = self._task, None

        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.info("Alert monitor stopped")

        self._state = MonitorState.IDLE

    async def _run(self, generation: int):
        """Tick loop on a fixed cadence."""
        loop = asyncio.get_running_loop()
        next_run = loop.time()

        while generation == self._generation:
            try:
                await self._tick(generation)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Error in alert check: {e}")

            # Skip slots missed by a slow tick rather than bursting
            next_run += self.interval
            now = loop.time()
            while next_run <= now:
                next_run += self.interval

            await asyncio.sleep(next_run - now)

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    async def check_once(self) -> TickResult:
        """Run one check now (same overlap guard as scheduled ticks)."""
        return await self._tick(self._generation)

    async def _tick(self, generation: int) -> TickResult:
        if self._polling:
            logger.debug("Previous alert check still running, skipping tick")
            return TickResult(skipped=True)

        self._polling = True
        self._state = MonitorState.POLLING
        try:
            self.ticks += 1
            return await self._poll(generation)
        finally:
            self._polling = False
            self._state = MonitorState.SCHEDULED if self.running else MonitorState.IDLE

    async def _poll(self, generation: int) -> TickResult:
        targets = self.store.refresh()
        coin_ids = {normalize(k) for k in targets} - {""}
        result = TickResult(checked=coin_ids)

        if not coin_ids:
            return result

        try:
            prices = await self.price_source.get_prices(coin_ids)
        except Exception as e:
            logger.warning(f"Price query raised, skipping this check: {e}")
            result.failure = FailureKind.NETWORK
            return result

        if generation != self._generation:
            logger.info("Alert monitor stopped during price query, discarding results")
            result.discarded = True
            return result

        if not prices.ok:
            logger.warning(f"Price query failed ({prices.failure.value}), alerts unchanged")
            result.failure = prices.failure
            return result

        result.triggered = evaluate_alerts(targets, prices.prices)
        if not result.triggered:
            logger.debug(f"Checked {len(coin_ids)} alert(s), none triggered")
            return result

        for alert in result.triggered:
            await self._notify(alert)

        result.removed = self.store.remove_triggered(
            {alert.coin_id: alert.target for alert in result.triggered}
        )
        logger.info(
            f"{len(result.triggered)} alert(s) triggered: "
            + ", ".join(a.coin_id for a in result.triggered)
        )
        return result

    async def _notify(self, alert: TriggeredAlert):
        """Deliver one notification. Failures are logged, never raised."""
        loop = asyncio.get_running_loop()
        try:
            delivered = await loop.run_in_executor(
                None, self.notifier.notify, alert_title(), alert.message
            )
        except Exception as e:
            logger.warning(f"Notification for {alert.coin_id} failed: {e}")
            return

        if not delivered:
            logger.info(f"Alert for {alert.coin_id} fired but no notification channel is permitted")
