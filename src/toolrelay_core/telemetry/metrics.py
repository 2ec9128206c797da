"""Relay metrics schema - OpenTelemetry conventions.

Metrics:
- Counters: tool invocations, turns, stream-level drops
- Histograms: tool and turn durations
- Gauges: connected servers, catalogued tools

Labels/Attributes:
- tool_name: Canonical tool id (@mcp-<server>:<tool>)
- tool_server: Server the tool belongs to
- status: Execution status (success, error, cancelled)
- error_code: Error code when status=error

All metrics use the 'toolrelay_' prefix.
"""

from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, UpDownCounter

METRIC_PREFIX = "toolrelay"


@dataclass
class MetricLabels:
    """Standard metric labels/attributes."""

    TOOL_NAME = "tool_name"
    TOOL_SERVER = "tool_server"
    STATUS = "status"
    ERROR_CODE = "error_code"
    REASON = "reason"

    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"
    STATUS_CANCELLED = "cancelled"


class RelayMetrics:
    """Relay metrics collection."""

    def __init__(self, meter: metrics.Meter):
        """Initialize metrics.

        Args:
            meter: OpenTelemetry Meter instance
        """
        self._meter = meter
        self._setup_counters()
        self._setup_histograms()
        self._setup_gauges()

        # Current gauge values, for delta updates
        self._current_connected_servers = 0
        self._current_catalog_tools = 0

    def _setup_counters(self) -> None:
        self.tool_invocations_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_tool_invocations_total",
            description="Total number of tool invocations",
            unit="1",
        )
        self.turns_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_turns_total",
            description="Total number of conversational turns",
            unit="1",
        )
        self.dropped_tool_calls_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_dropped_tool_calls_total",
            description="Tool calls dropped while reassembling a generation stream",
            unit="1",
        )

    def _setup_histograms(self) -> None:
        self.tool_invocation_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_tool_invocation_duration_seconds",
            description="Tool invocation duration in seconds",
            unit="s",
        )
        self.turn_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_turn_duration_seconds",
            description="Conversational turn duration in seconds",
            unit="s",
        )

    def _setup_gauges(self) -> None:
        """Set up gauge metrics (using UpDownCounter for gauges)."""
        self.connected_servers: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_connected_servers",
            description="Number of connected MCP servers",
            unit="1",
        )
        self.catalog_tools: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_catalog_tools",
            description="Number of tools in the catalog",
            unit="1",
        )

    def record_tool_invocation(
        self,
        tool_name: str,
        duration_seconds: float,
        status: str,
        error_code: str | None = None,
        server_name: str | None = None,
    ) -> None:
        """Record tool invocation.

        Args:
            tool_name: Canonical tool id
            duration_seconds: Invocation duration
            status: Execution status
            error_code: Error code if status is error
            server_name: Server that owns the tool
        """
        labels: dict[str, Any] = {
            MetricLabels.TOOL_NAME: tool_name,
            MetricLabels.STATUS: status,
        }
        if error_code:
            labels[MetricLabels.ERROR_CODE] = error_code
        if server_name:
            labels[MetricLabels.TOOL_SERVER] = server_name

        self.tool_invocations_total.add(1, labels)
        self.tool_invocation_duration_seconds.record(duration_seconds, labels)

    def record_turn(self, duration_seconds: float, status: str) -> None:
        """Record a finished turn."""
        labels = {MetricLabels.STATUS: status}
        self.turns_total.add(1, labels)
        self.turn_duration_seconds.record(duration_seconds, labels)

    def record_dropped_tool_call(self, reason: str) -> None:
        """Record a tool call dropped during stream reassembly."""
        self.dropped_tool_calls_total.add(1, {MetricLabels.REASON: reason})

    def update_connected_servers(self, count: int) -> None:
        """Update the number of connected servers (calculates delta).

        Args:
            count: New count of connected servers
        """
        delta = count - self._current_connected_servers
        if delta != 0:
            self.connected_servers.add(delta)
        self._current_connected_servers = count

    def update_catalog_tools(self, count: int) -> None:
        """Update the number of catalogued tools (calculates delta)."""
        delta = count - self._current_catalog_tools
        if delta != 0:
            self.catalog_tools.add(delta)
        self._current_catalog_tools = count
