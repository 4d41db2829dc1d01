"""
Alert Models
============

Dataclasses for price alerts and the outcome of a monitor tick.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..errors import FailureKind


@dataclass
class AlertEntry:
    """A stored alert: fire when the coin's price reaches target_price."""
    coin_id: str
    target_price: float


@dataclass
class TriggeredAlert:
    """An alert whose target was met during a tick."""
    coin_id: str
    price: float
    target: float
    message: str = ""


@dataclass
class TickResult:
    """
    Outcome of one Alert Monitor tick.

    A tick is either skipped (another tick in flight), discarded (monitor
    stopped while the query was pending), failed (price query failed), or
    completed with zero or more triggered alerts.
    """
    checked: Set[str] = field(default_factory=set)
    triggered: List[TriggeredAlert] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failure: Optional[FailureKind] = None
    skipped: bool = False
    discarded: bool = False

    @property
    def queried(self) -> bool:
        """Whether a price query was issued."""
        return bool(self.checked) and not self.skipped
