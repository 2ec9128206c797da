"""Relay Configuration - Config loading and management."""

from .loader import (
    CONFIG_ENV_VAR,
    ConfigLoader,
    load_config,
    resolve_env_vars,
    validate_server_name,
)
from .models import (
    GenerationConfig,
    LoggingComponentsConfig,
    LoggingConfig,
    LoggingOptionsConfig,
    MCPServerDefinition,
    RelayConfig,
    TelemetryConfig,
    TelemetryMetricsConfig,
    TelemetryTracingConfig,
    ToolsConfig,
)

__all__ = [
    # Config models
    "RelayConfig",
    "MCPServerDefinition",
    "ToolsConfig",
    "LoggingConfig",
    "LoggingComponentsConfig",
    "LoggingOptionsConfig",
    "TelemetryConfig",
    "TelemetryMetricsConfig",
    "TelemetryTracingConfig",
    "GenerationConfig",
    # Loader
    "ConfigLoader",
    "load_config",
    "CONFIG_ENV_VAR",
    # Utilities
    "resolve_env_vars",
    "validate_server_name",
]
