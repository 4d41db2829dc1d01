"""
Alerts Package
==============

Notification sinks for triggered price alerts.

Components:
- base.py: NotificationSink interface, NotificationPermission, MultiNotifier
- desktop.py: Desktop notifications (plyer)
- telegram.py: Telegram Bot API
- console.py: Dry-run console output
- messages.py: Alert text
"""

from typing import Callable, Optional

from .base import MultiNotifier, NotificationPermission, NotificationSink
from .console import ConsoleNotifier
from .desktop import DesktopNotifier
from .messages import alert_body, alert_title
from .telegram import TelegramConfig, TelegramNotifier


def create_notifier(
    kv=None,
    dry_run: bool = False,
    prompt: Optional[Callable[[], bool]] = None,
) -> NotificationSink:
    """
    Build the notification sink for this process.

    Dry runs print to the console only. Otherwise desktop notifications are
    always wired; Telegram is added when credentials are configured.
    """
    if dry_run:
        return ConsoleNotifier()

    sinks = [DesktopNotifier(kv=kv, prompt=prompt)]
    telegram = TelegramNotifier.from_env()
    if telegram.permission is NotificationPermission.GRANTED:
        sinks.append(telegram)

    if len(sinks) == 1:
        return sinks[0]
    return MultiNotifier(sinks)


__all__ = [
    "NotificationSink",
    "NotificationPermission",
    "MultiNotifier",
    "ConsoleNotifier",
    "DesktopNotifier",
    "TelegramConfig",
    "TelegramNotifier",
    "alert_title",
    "alert_body",
    "create_notifier",
]
