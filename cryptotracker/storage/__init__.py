from .kv_store import KeyValueStore
from .alert_store import AlertStore, normalize, parse_alerts
from .portfolio_store import PortfolioStore, parse_holdings

__all__ = [
    "KeyValueStore",
    "AlertStore",
    "normalize",
    "parse_alerts",
    "PortfolioStore",
    "parse_holdings",
]
