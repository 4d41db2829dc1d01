"""Alert message text."""

from ..config import config
from ..utils import format_usd


def alert_title() -> str:
    return config.notification_title


def alert_body(coin_id: str, price: float, target: float) -> str:
    """e.g. "bitcoin reached $51,000.00 (target $50,000.00)" """
    return f"{coin_id} reached {format_usd(price)} (target {format_usd(target)})"
