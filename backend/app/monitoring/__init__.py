"""Process-local metrics exposed on ``/metrics``."""

from .metrics import realtime_connections, realtime_events_total, realtime_send_failures_total
from .registry import registry

__all__ = [
    "registry",
    "realtime_connections",
    "realtime_events_total",
    "realtime_send_failures_total",
]
