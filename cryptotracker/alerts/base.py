"""
Notification sink interface.

A sink is a capability-gated side channel: it may be unavailable on this
host, and even when available it only delivers once permission is granted.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List

from ..errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationPermission(Enum):
    """Tri-state permission, as a browser reports it."""
    DEFAULT = "default"   # not asked yet
    GRANTED = "granted"
    DENIED = "denied"

    @classmethod
    def parse(cls, value) -> "NotificationPermission":
        """Parse a stored/configured value; anything unknown is DEFAULT."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DEFAULT


class NotificationSink(ABC):
    """
    Base class for notification channels.

    Subclasses implement is_available, permission and _deliver. notify()
    returns False without side effects unless the sink is available and
    permission is GRANTED; delivery failures raise NotificationError.
    """

    name = "sink"

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the host supports this channel at all."""

    @property
    @abstractmethod
    def permission(self) -> NotificationPermission:
        """Current permission state."""

    def request_permission(self):
        """Ask for permission. Only meaningful while permission is DEFAULT."""

    @abstractmethod
    def _deliver(self, title: str, body: str):
        """Send the notification. Raise NotificationError on failure."""

    def notify(self, title: str, body: str) -> bool:
        """
        Show a notification.

        Returns:
            True if delivered, False if unavailable or not permitted

        Raises:
            NotificationError: the channel accepted the request but failed
        """
        if not self.is_available():
            logger.debug(f"{self.name}: unavailable, dropping '{title}'")
            return False
        if self.permission is not NotificationPermission.GRANTED:
            logger.debug(f"{self.name}: permission {self.permission.value}, dropping '{title}'")
            return False

        self._deliver(title, body)
        return True


class MultiNotifier(NotificationSink):
    """Fan one notification out to several sinks."""

    name = "multi"

    def __init__(self, sinks: List[NotificationSink]):
        self.sinks = list(sinks)

    def is_available(self) -> bool:
        return any(s.is_available() for s in self.sinks)

    @property
    def permission(self) -> NotificationPermission:
        states = [s.permission for s in self.sinks if s.is_available()]
        if NotificationPermission.GRANTED in states:
            return NotificationPermission.GRANTED
        if NotificationPermission.DEFAULT in states:
            return NotificationPermission.DEFAULT
        return NotificationPermission.DENIED

    def request_permission(self):
        for sink in self.sinks:
            if sink.is_available() and sink.permission is NotificationPermission.DEFAULT:
                sink.request_permission()

    def _deliver(self, title: str, body: str):
        # Delivery goes through each sink's notify()
        raise NotImplementedError("MultiNotifier delivers through notify()")

    def notify(self, title: str, body: str) -> bool:
        """
        Deliver through every permitted sink.

        Returns:
            True if at least one sink delivered

        Raises:
            NotificationError: every attempted sink failed
        """
        delivered = False
        errors = []
        for sink in self.sinks:
            try:
                delivered = sink.notify(title, body) or delivered
            except NotificationError as e:
                logger.warning(f"{sink.name}: {e}")
                errors.append(e)

        if not delivered and errors:
            raise NotificationError(f"All {len(errors)} notification channel(s) failed")
        return delivered
