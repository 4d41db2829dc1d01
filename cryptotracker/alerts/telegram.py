"""
Telegram Alerts
===============

Telegram notification sink for triggered price alerts.

Permission is derived from configuration: GRANTED when a bot token and chat
id are set, DENIED otherwise.
"""

import html
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import requests

from ..config import config
from ..errors import NotificationError
from .base import NotificationPermission, NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class TelegramConfig:
    """Configuration for Telegram sending."""
    bot_token: str
    chat_id: str
    max_message_length: int = config.telegram_max_message_length
    # Rate limiting settings
    min_message_interval: float = config.telegram_min_message_interval_sec
    max_messages_per_minute: int = config.telegram_max_messages_per_minute


class TelegramNotifier(NotificationSink):
    """
    Telegram sender for price alerts.

    Includes rate limiting to prevent Telegram API abuse.
    """

    name = "telegram"

    def __init__(self, telegram_config: Optional[TelegramConfig]):
        """
        Initialize Telegram alerts.

        Args:
            telegram_config: Bot token and chat ID, or None when not configured
        """
        self.config = telegram_config

        # Rate limiting state
        self._last_message_time: float = 0
        self._messages_this_minute: List[float] = []  # timestamps of recent messages

    @classmethod
    def from_env(cls) -> "TelegramNotifier":
        """
        Create TelegramNotifier from environment variables.

        Returns an instance either way; without credentials its permission
        is DENIED.
        """
        bot_token = config.telegram_bot_token
        chat_id = config.telegram_chat_id

        if not bot_token or not chat_id:
            logger.debug("Telegram not configured (set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID)")
            return cls(None)

        return cls(TelegramConfig(bot_token=bot_token, chat_id=chat_id))

    def is_available(self) -> bool:
        return True

    @property
    def permission(self) -> NotificationPermission:
        if self.config and self.config.bot_token and self.config.chat_id:
            return NotificationPermission.GRANTED
        return NotificationPermission.DENIED

    def _check_rate_limit(self) -> bool:
        """
        Check if we're within rate limits.

        Returns:
            True if we can send, False if rate limited
        """
        now = time.time()

        # Clean up old timestamps (older than 1 minute)
        self._messages_this_minute = [t for t in self._messages_this_minute if now - t < 60]

        if len(self._messages_this_minute) >= self.config.max_messages_per_minute:
            logger.warning(f"Rate limited: {len(self._messages_this_minute)} messages in last minute")
            return False

        return True

    def _enforce_message_interval(self):
        """Enforce minimum interval between messages."""
        elapsed = time.time() - self._last_message_time

        if elapsed < self.config.min_message_interval:
            time.sleep(self.config.min_message_interval - elapsed)

    def _truncate_message(self, text: str) -> str:
        """Truncate message to Telegram's character limit."""
        if len(text) > self.config.max_message_length:
            return text[:self.config.max_message_length - 20] + "\n... (truncated)"
        return text

    def _send_message(self, text: str) -> Optional[int]:
        """
        Send a message via Telegram Bot API.

        Args:
            text: Message text (HTML formatted)

        Returns:
            message_id if successful, None otherwise
        """
        if not self._check_rate_limit():
            logger.warning("Message dropped due to rate limiting")
            return None

        self._enforce_message_interval()

        url = f"https://api.telegram.org/bot{self.config.bot_token}/sendMessage"
        payload = {
            "chat_id": self.config.chat_id,
            "text": self._truncate_message(text),
            "parse_mode": "HTML",
        }

        try:
            response = requests.post(url, json=payload, timeout=10)
            response.raise_for_status()

            # Record successful send for rate limiting
            now = time.time()
            self._last_message_time = now
            self._messages_this_minute.append(now)

            message_id = response.json().get("result", {}).get("message_id")
            logger.info(f"Telegram alert sent successfully (message_id: {message_id})")
            return message_id

        except requests.exceptions.Timeout:
            logger.error("Telegram request timed out")
            return None
        except requests.exceptions.HTTPError as e:
            # Log status code without exposing token in URL
            status_code = e.response.status_code if e.response is not None else "unknown"
            logger.error(f"Telegram HTTP error: {status_code}")
            return None
        except requests.exceptions.ConnectionError:
            logger.error("Telegram connection error - network issue")
            return None
        except requests.exceptions.RequestException:
            # Generic request error - don't log exception details which may contain URL/token
            logger.error("Telegram request failed")
            return None
        except ValueError:
            logger.error("Telegram returned an unreadable response")
            return None

    def _deliver(self, title: str, body: str):
        text = f"<b>{html.escape(title)}</b>\n{html.escape(body)}"
        if self._send_message(text) is None:
            raise NotificationError("Telegram message was not delivered")
