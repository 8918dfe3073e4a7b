"""Metric definitions for the realtime presence and call layer."""

from __future__ import annotations

from .registry import registry


realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime frames processed by the websocket hub.",
    label_names=("topic", "direction", "action"),
)

realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of active websocket connections handled locally.",
    label_names=("scope",),
)

realtime_dropped_frames_total = registry.counter(
    "realtime_dropped_frames_total",
    "Inbound frames discarded without processing.",
    label_names=("reason",),
)

call_sessions_active = registry.gauge(
    "call_sessions_active",
    "Users currently holding a non-idle call session.",
)

call_outcomes_total = registry.counter(
    "call_outcomes_total",
    "Call attempts by how they ended.",
    label_names=("outcome",),
)


def reset_call_gauges() -> None:
    """Zero the call gauges; used when the hub starts or stops."""

    call_sessions_active.set(0)
