"""Relay Telemetry - OpenTelemetry-based observability."""

from .instrumentation import (
    instrument_tool_call,
    instrument_turn,
    record_catalog_size,
    record_connected_servers,
    record_dropped_tool_call,
    record_tool_result,
)
from .metrics import METRIC_PREFIX, MetricLabels, RelayMetrics
from .setup import get_telemetry, reset_telemetry, setup_telemetry

__all__ = [
    # Metrics
    "RelayMetrics",
    "MetricLabels",
    "METRIC_PREFIX",
    # Setup
    "setup_telemetry",
    "get_telemetry",
    "reset_telemetry",
    # Instrumentation
    "instrument_tool_call",
    "instrument_turn",
    "record_tool_result",
    "record_connected_servers",
    "record_catalog_size",
    "record_dropped_tool_call",
]
