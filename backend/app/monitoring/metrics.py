"""Metric definitions for the realtime fan-out layer."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of websocket connections registered on this process.",
    label_names=("scope",),
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime frames handled by the fan-out layer.",
    label_names=("topic", "direction", "action"),
)

realtime_send_failures_total = registry.counter(
    "realtime_send_failures_total",
    "Broadcast deliveries skipped because the peer was closed or the write failed.",
    label_names=("reason",),
)
