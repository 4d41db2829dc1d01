import asyncio
import math

import pytest

from conftest import FakePriceSource, RecordingNotifier
from cryptotracker.alerts import NotificationPermission
from cryptotracker.api import PriceResult
from cryptotracker.errors import FailureKind
from cryptotracker.monitor import AlertMonitor, MonitorState, evaluate_alerts
from cryptotracker.storage import AlertStore


def make_monitor(store, source, notifier, interval=3600):
    return AlertMonitor(store, source, notifier, interval_sec=interval)


# ============================================================================
# evaluate_alerts
# ============================================================================

def test_evaluate_is_inclusive():
    triggered = evaluate_alerts({"bitcoin": 50000.0}, {"bitcoin": 50000.0})
    assert [t.coin_id for t in triggered] == ["bitcoin"]


def test_evaluate_below_target_does_not_fire():
    assert evaluate_alerts({"bitcoin": 50000.0}, {"bitcoin": 49999.99}) == []


def test_evaluate_missing_price_does_not_fire():
    assert evaluate_alerts({"bitcoin": 1.0}, {}) == []


@pytest.mark.parametrize("price", [math.nan, math.inf, "51000", None, True])
def test_evaluate_non_numeric_or_non_finite_price_does_not_fire(price):
    assert evaluate_alerts({"bitcoin": 1.0}, {"bitcoin": price}) == []


def test_evaluate_non_finite_target_does_not_fire():
    assert evaluate_alerts({"bitcoin": math.nan}, {"bitcoin": 10.0}) == []


def test_evaluate_message_has_coin_price_and_target():
    [alert] = evaluate_alerts({"bitcoin": 50000.0}, {"bitcoin": 51000.0})
    assert alert.message == "bitcoin reached $51,000.00 (target $50,000.00)"


# ============================================================================
# Single tick scenarios
# ============================================================================

@pytest.mark.asyncio
async def test_triggered_alert_notifies_and_is_removed(kv, alert_store, notifier):
    alert_store.set_alert("bitcoin", 50000)
    source = FakePriceSource({"bitcoin": 51000.0})
    monitor = make_monitor(alert_store, source, notifier)

    result = await monitor.check_once()

    assert [t.coin_id for t in result.triggered] == ["bitcoin"]
    assert result.removed == ["bitcoin"]
    assert len(notifier.sent) == 1
    title, body = notifier.sent[0]
    assert title == "Crypto Price Alert"
    assert "51,000.00" in body and "50,000.00" in body
    assert alert_store.snapshot() == {}
    # Removal was persisted
    assert AlertStore(kv).snapshot() == {}


@pytest.mark.asyncio
async def test_untriggered_alert_is_kept(alert_store, notifier):
    alert_store.set_alert("ethereum", 4000)
    source = FakePriceSource({"ethereum": 3000.0})

    result = await make_monitor(alert_store, source, notifier).check_once()

    assert result.triggered == []
    assert notifier.sent == []
    assert alert_store.snapshot() == {"ethereum": 4000.0}


@pytest.mark.asyncio
async def test_failed_query_leaves_store_untouched(alert_store, notifier):
    alert_store.set_alert("bitcoin", 100)
    source = FakePriceSource(result=PriceResult.failed(FailureKind.NETWORK, "down"))

    result = await make_monitor(alert_store, source, notifier).check_once()

    assert result.failure is FailureKind.NETWORK
    assert notifier.sent == []
    assert alert_store.snapshot() == {"bitcoin": 100.0}


@pytest.mark.asyncio
async def test_raising_price_source_does_not_propagate(alert_store, notifier):
    alert_store.set_alert("bitcoin", 100)
    source = FakePriceSource(exc=RuntimeError("boom"))

    result = await make_monitor(alert_store, source, notifier).check_once()

    assert result.failure is FailureKind.NETWORK
    assert notifier.sent == []
    assert alert_store.snapshot() == {"bitcoin": 100.0}


@pytest.mark.asyncio
async def test_only_triggered_alert_is_removed(alert_store, notifier):
    alert_store.set_alert("bitcoin", 100)
    alert_store.set_alert("ethereum", 100000)
    source = FakePriceSource({"bitcoin": 60000.0, "ethereum": 3000.0})

    await make_monitor(alert_store, source, notifier).check_once()

    assert len(notifier.sent) == 1
    assert notifier.sent[0][1].startswith("bitcoin reached")
    assert alert_store.snapshot() == {"ethereum": 100000.0}


@pytest.mark.asyncio
async def test_empty_store_makes_no_query(alert_store, notifier):
    source = FakePriceSource({"bitcoin": 1.0})

    result = await make_monitor(alert_store, source, notifier).check_once()

    assert source.calls == []
    assert not result.queried


@pytest.mark.asyncio
async def test_one_batched_query_for_all_alerts(alert_store, notifier):
    for coin in ("bitcoin", "ethereum", "solana"):
        alert_store.set_alert(coin, 1_000_000)
    source = FakePriceSource({})

    await make_monitor(alert_store, source, notifier).check_once()

    assert source.calls == [{"bitcoin", "ethereum", "solana"}]


@pytest.mark.asyncio
async def test_alert_fires_at_most_once(alert_store, notifier):
    alert_store.set_alert("bitcoin", 50000)
    source = FakePriceSource({"bitcoin": 51000.0})
    monitor = make_monitor(alert_store, source, notifier)

    await monitor.check_once()
    second = await monitor.check_once()

    assert len(notifier.sent) == 1
    assert second.triggered == []
    # Store emptied, so the second tick never queried
    assert len(source.calls) == 1


@pytest.mark.asyncio
async def test_notification_failure_still_consumes_alert(alert_store):
    alert_store.set_alert("bitcoin", 50000)
    notifier = RecordingNotifier(fail=True)
    source = FakePriceSource({"bitcoin": 51000.0})

    result = await make_monitor(alert_store, source, notifier).check_once()

    assert result.removed == ["bitcoin"]
    assert alert_store.snapshot() == {}


@pytest.mark.asyncio
async def test_denied_permission_still_consumes_alert(alert_store):
    alert_store.set_alert("bitcoin", 50000)
    notifier = RecordingNotifier(permission=NotificationPermission.DENIED)
    source = FakePriceSource({"bitcoin": 51000.0})

    await make_monitor(alert_store, source, notifier).check_once()

    assert notifier.sent == []
    assert alert_store.snapshot() == {}


# ============================================================================
# Concurrency
# ============================================================================

@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(alert_store, notifier):
    alert_store.set_alert("bitcoin", 50000)
    source = FakePriceSource({"bitcoin": 51000.0})
    source.gate = asyncio.Event()
    monitor = make_monitor(alert_store, source, notifier)

    first = asyncio.create_task(monitor.check_once())
    await source.called.wait()
    assert monitor.state is MonitorState.POLLING

    second = await monitor.check_once()
    assert second.skipped

    source.gate.set()
    await first
    assert len(source.calls) == 1
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_mutations_during_query_are_not_lost(alert_store, notifier):
    alert_store.set_alert("bitcoin", 50000)
    alert_store.set_alert("solana", 100)
    source = FakePriceSource({"bitcoin": 51000.0, "solana": 150.0})
    source.gate = asyncio.Event()
    monitor = make_monitor(alert_store, source, notifier)

    tick = asyncio.create_task(monitor.check_once())
    await source.called.wait()

    # UI changes while the query is pending
    alert_store.set_alert("ethereum", 4000)   # new coin
    alert_store.set_alert("bitcoin", 60000)   # re-registered with a new target

    source.gate.set()
    result = await tick

    assert sorted(result.removed) == ["solana"]
    assert alert_store.snapshot() == {"bitcoin": 60000.0, "ethereum": 4000.0}


@pytest.mark.asyncio
async def test_stop_discards_in_flight_result(alert_store, notifier):
    alert_store.set_alert("bitcoin", 50000)
    source = FakePriceSource({"bitcoin": 51000.0})
    source.gate = asyncio.Event()
    monitor = make_monitor(alert_store, source, notifier)

    tick = asyncio.create_task(monitor.check_once())
    await source.called.wait()
    await monitor.stop()
    source.gate.set()
    result = await tick

    assert result.discarded
    assert notifier.sent == []
    assert alert_store.snapshot() == {"bitcoin": 50000.0}


# ============================================================================
# Scheduling
# ============================================================================

@pytest.mark.asyncio
async def test_start_ticks_immediately(alert_store, notifier):
    alert_store.set_alert("bitcoin", 1_000_000)
    source = FakePriceSource({"bitcoin": 51000.0})
    monitor = make_monitor(alert_store, source, notifier, interval=3600)

    assert monitor.state is MonitorState.IDLE
    assert monitor.start() is True
    await asyncio.wait_for(source.called.wait(), timeout=1)
    await asyncio.sleep(0)

    assert len(source.calls) == 1
    assert monitor.state is MonitorState.SCHEDULED
    await monitor.stop()
    assert monitor.state is MonitorState.IDLE


@pytest.mark.asyncio
async def test_start_is_idempotent(alert_store, notifier):
    alert_store.set_alert("bitcoin", 1_000_000)
    source = FakePriceSource({"bitcoin": 1.0})
    monitor = make_monitor(alert_store, source, notifier, interval=3600)

    assert monitor.start() is True
    task = monitor._task
    assert monitor.start() is False
    assert monitor._task is task

    await asyncio.wait_for(source.called.wait(), timeout=1)
    await asyncio.sleep(0.05)
    assert len(source.calls) == 1
    await monitor.stop()


@pytest.mark.asyncio
async def test_ticks_repeat_on_interval(alert_store, notifier):
    alert_store.set_alert("bitcoin", 1_000_000)
    source = FakePriceSource({"bitcoin": 1.0})
    monitor = make_monitor(alert_store, source, notifier, interval=0.01)

    monitor.start()
    await asyncio.sleep(0.1)
    await monitor.stop()

    assert len(source.calls) >= 3


@pytest.mark.asyncio
async def test_stop_cancels_schedule_and_can_restart(alert_store, notifier):
    alert_store.set_alert("bitcoin", 1_000_000)
    source = FakePriceSource({"bitcoin": 1.0})
    monitor = make_monitor(alert_store, source, notifier, interval=0.01)

    monitor.start()
    await asyncio.sleep(0.05)
    await monitor.stop()
    calls_at_stop = len(source.calls)
    await asyncio.sleep(0.05)
    assert len(source.calls) == calls_at_stop
    assert not monitor.running

    assert monitor.start() is True
    await asyncio.sleep(0.02)
    assert len(source.calls) > calls_at_stop
    await monitor.stop()


@pytest.mark.asyncio
async def test_loop_survives_failing_ticks(alert_store, notifier):
    alert_store.set_alert("bitcoin", 100)
    source = FakePriceSource(exc=RuntimeError("boom"))
    monitor = make_monitor(alert_store, source, notifier, interval=0.01)

    monitor.start()
    await asyncio.sleep(0.05)
    assert monitor.running
    await monitor.stop()

    assert len(source.calls) >= 2
    assert alert_store.snapshot() == {"bitcoin": 100.0}


# ============================================================================
# Alerts registered by another process
# ============================================================================

@pytest.mark.asyncio
async def test_tick_checks_alert_registered_through_another_store(kv, alert_store, notifier):
    alert_store.set_alert("ethereum", 100)
    AlertStore(kv).set_alert("bitcoin", 50000)
    source = FakePriceSource({"ethereum": 200.0, "bitcoin": 40000.0})

    result = await make_monitor(alert_store, source, notifier).check_once()

    assert result.checked == {"ethereum", "bitcoin"}
    assert source.calls == [{"ethereum", "bitcoin"}]
    assert result.removed == ["ethereum"]
    assert AlertStore(kv).snapshot() == {"bitcoin": 50000.0}


@pytest.mark.asyncio
async def test_alert_registered_elsewhere_during_query_survives(kv, alert_store, notifier):
    alert_store.set_alert("ethereum", 100)
    source = FakePriceSource({"ethereum": 200.0})
    source.gate = asyncio.Event()
    monitor = make_monitor(alert_store, source, notifier)

    tick = asyncio.create_task(monitor.check_once())
    await source.called.wait()
    AlertStore(kv).set_alert("bitcoin", 50000)
    source.gate.set()
    await tick

    assert AlertStore(kv).snapshot() == {"bitcoin": 50000.0}
    assert alert_store.get("bitcoin") == 50000.0
