"""
Monitor Package
===============

Price alert monitoring.

Components:
- alert_monitor.py: AlertMonitor (scheduled alert checks), evaluate_alerts
"""

from .alert_monitor import AlertMonitor, MonitorState, evaluate_alerts

__all__ = [
    "AlertMonitor",
    "MonitorState",
    "evaluate_alerts",
]
