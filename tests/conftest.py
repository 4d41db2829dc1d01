"""
Shared pytest fixtures for the tracker tests.
"""

import asyncio

import pytest

from cryptotracker.alerts import NotificationPermission, NotificationSink
from cryptotracker.api import PriceResult
from cryptotracker.errors import NotificationError
from cryptotracker.storage import AlertStore, KeyValueStore


# ============================================================================
# Fakes
# ============================================================================

class FakePriceSource:
    """
    Stand-in for CoinGeckoClient.

    Returns `result` (or raises `exc`) from get_prices, recording every call.
    If `gate` is set, each call waits on it, which lets tests hold a query
    in flight.
    """

    def __init__(self, prices=None, result=None, exc=None):
        self.result = result if result is not None else PriceResult(prices=dict(prices or {}))
        self.exc = exc
        self.calls = []
        self.gate = None
        self.called = asyncio.Event()

    async def get_prices(self, coin_ids):
        self.calls.append(set(coin_ids))
        self.called.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.exc is not None:
            raise self.exc
        return self.result


class RecordingNotifier(NotificationSink):
    """Sink that records deliveries; can be told to fail or be denied."""

    name = "recording"

    def __init__(self, permission=NotificationPermission.GRANTED, fail=False):
        self._permission = permission
        self.fail = fail
        self.sent = []
        self.permission_requests = 0

    def is_available(self):
        return True

    @property
    def permission(self):
        return self._permission

    def request_permission(self):
        self.permission_requests += 1

    def _deliver(self, title, body):
        if self.fail:
            raise NotificationError("delivery failed")
        self.sent.append((title, body))


class FakeResponse:
    """Minimal aiohttp response for `async with session.get(...)`."""

    INVALID_JSON = object()

    def __init__(self, status=200, payload=None):
        self.status = status
        self._payload = payload

    async def json(self, content_type="application/json"):
        if self._payload is FakeResponse.INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    async def text(self):
        return str(self._payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Minimal aiohttp session. `responses` are served in order; an exception
    instance in the list is raised instead.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None):
        self.requests.append((url, params))
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def no_permission_override(monkeypatch):
    """Keep the desktop permission env switch out of tests."""
    monkeypatch.delenv("CRYPTOTRACKER_NOTIFICATIONS", raising=False)


@pytest.fixture
def kv(tmp_path):
    return KeyValueStore(tmp_path / "tracker.db")


@pytest.fixture
def alert_store(kv):
    return AlertStore(kv)


@pytest.fixture
def notifier():
    return RecordingNotifier()
