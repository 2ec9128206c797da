"""Relay configuration data models."""

from dataclasses import dataclass, field

from toolrelay_core.types import LogFormat, LogLevel, MCPTransport


@dataclass
class MCPServerDefinition:
    """Definition of an MCP server to connect to.

    Exactly one of ``url`` or ``command`` identifies the endpoint. When
    ``transport`` is omitted it is inferred from which one is set.
    """

    name: str = ""
    url: str | None = None  # For sse/http: server URL
    command: str | None = None  # For stdio: command to spawn
    args: list[str] = field(default_factory=list)
    transport: MCPTransport | None = None
    api_key: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    timeout: int = 30

    def resolved_transport(self) -> MCPTransport:
        """Return the explicit transport or the one implied by url/command."""
        if self.transport is not None:
            return self.transport
        if self.command:
            return MCPTransport.STDIO
        if self.url and self.url.rstrip("/").endswith("/sse"):
            return MCPTransport.SSE
        return MCPTransport.HTTP


@dataclass
class ToolsConfig:
    """Tools configuration."""

    mcp_servers: dict[str, MCPServerDefinition] = field(default_factory=dict)
    disabled_tools: list[str] = field(default_factory=list)


@dataclass
class LoggingComponentsConfig:
    """Logging components configuration."""

    registry: bool = True
    catalog: bool = True
    resolver: bool = True
    executor: bool = True
    stream: bool = True
    turn: bool = True
    tool: bool = True
    mcp: bool = True


@dataclass
class LoggingOptionsConfig:
    """Logging options configuration."""

    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    components: LoggingComponentsConfig = field(default_factory=LoggingComponentsConfig)
    options: LoggingOptionsConfig = field(default_factory=LoggingOptionsConfig)


@dataclass
class TelemetryMetricsConfig:
    """Telemetry metrics configuration (OpenTelemetry)."""

    enabled: bool = True
    prometheus_enabled: bool = True


@dataclass
class TelemetryTracingConfig:
    """Telemetry tracing configuration (OpenTelemetry).

    Attributes:
        enabled: Whether tracing is enabled
        sample_rate: Sampling rate (0.0 to 1.0, 1.0 = sample all)
    """

    enabled: bool = False
    sample_rate: float = 1.0


@dataclass
class TelemetryConfig:
    """Telemetry configuration."""

    enabled: bool = True
    service_name: str = "toolrelay"
    service_version: str = "0.1.0"
    metrics: TelemetryMetricsConfig = field(default_factory=TelemetryMetricsConfig)
    tracing: TelemetryTracingConfig = field(default_factory=TelemetryTracingConfig)


@dataclass
class GenerationConfig:
    """Generation loop configuration."""

    max_continuation_rounds: int = 1
    tool_call_timeout: float | None = None  # seconds, None = provider default


@dataclass
class RelayConfig:
    """Root configuration object."""

    tools: ToolsConfig = field(default_factory=ToolsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
