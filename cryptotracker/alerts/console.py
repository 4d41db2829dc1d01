"""Console sink for dry runs."""

import logging

from .base import NotificationPermission, NotificationSink

logger = logging.getLogger(__name__)


class ConsoleNotifier(NotificationSink):
    """Prints alerts instead of sending them. Always available and granted."""

    name = "console"

    def __init__(self, echo: bool = True):
        self.echo = echo
        self.sent = []

    def is_available(self) -> bool:
        return True

    @property
    def permission(self) -> NotificationPermission:
        return NotificationPermission.GRANTED

    def _deliver(self, title: str, body: str):
        self.sent.append((title, body))
        logger.info(f"[DRY RUN] {title}: {body}")
        if self.echo:
            print(f"\n{'=' * 60}")
            print(f"[DRY RUN] {title}")
            print("=" * 60)
            print(body)
            print("=" * 60 + "\n")
