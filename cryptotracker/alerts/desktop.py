"""
Desktop Notifications
=====================

Native desktop notifications through plyer.

Permission is asked at most once: the answer is persisted in the key/value
store and reused by later sessions.
"""

import logging
from typing import Callable, Optional

from plyer import notification

from ..config import config
from ..errors import NotificationError, PersistenceError
from .base import NotificationPermission, NotificationSink

logger = logging.getLogger(__name__)


def _clean(text: str, limit: int) -> str:
    return str(text).strip()[:limit]


class DesktopNotifier(NotificationSink):
    """
    Desktop notification sink.

    Args:
        kv: Key/value store used to remember the permission answer (optional)
        prompt: Callable returning True/False when asked for permission;
                without one, permission stays DEFAULT until configured
        permission: Initial state, overrides stored/configured values
    """

    name = "desktop"

    def __init__(
        self,
        kv=None,
        prompt: Optional[Callable[[], bool]] = None,
        permission: Optional[NotificationPermission] = None,
    ):
        self.kv = kv
        self.prompt = prompt
        self._available = True
        self._permission = permission or self._initial_permission()

    def _initial_permission(self) -> NotificationPermission:
        if config.notification_permission:
            return NotificationPermission.parse(config.notification_permission)

        if self.kv is not None:
            try:
                stored = self.kv.get_item(config.permission_key)
            except PersistenceError as e:
                logger.warning(f"Could not read notification permission: {e}")
                stored = None
            if stored:
                return NotificationPermission.parse(stored)

        return NotificationPermission.DEFAULT

    def is_available(self) -> bool:
        return self._available

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    def request_permission(self):
        """Ask once. Never asks again after an answer has been recorded."""
        if self._permission is not NotificationPermission.DEFAULT or self.prompt is None:
            return

        try:
            granted = bool(self.prompt())
        except (EOFError, KeyboardInterrupt):
            logger.info("Notification permission prompt dismissed")
            return

        self._permission = NotificationPermission.GRANTED if granted else NotificationPermission.DENIED
        logger.info(f"Desktop notifications {self._permission.value}")

        if self.kv is not None:
            try:
                self.kv.set_item(config.permission_key, self._permission.value)
            except PersistenceError as e:
                logger.warning(f"Could not persist notification permission: {e}")

    def _deliver(self, title: str, body: str):
        try:
            notification.notify(
                title=_clean(title, 100),
                message=_clean(body, 500),
                app_name=config.app_name,
                timeout=config.desktop_timeout_sec,
            )
        except NotImplementedError as e:
            # plyer has no backend for this platform
            self._available = False
            raise NotificationError("Desktop notifications are not supported on this platform") from e
        except Exception as e:
            raise NotificationError(f"Desktop notification failed: {e}") from e

        logger.info(f"Desktop notification shown: {title}")
