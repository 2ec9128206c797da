"""Relay Telemetry Setup - OpenTelemetry initialization.

Configures OpenTelemetry SDK with:
- MeterProvider with PrometheusMetricReader
- TracerProvider with ratio-based sampling
"""

from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from toolrelay_core.config.models import TelemetryConfig

from .metrics import RelayMetrics

# Global telemetry state
_telemetry: dict[str, Any] | None = None


def setup_telemetry(config: TelemetryConfig | None = None) -> dict[str, Any]:
    """Set up OpenTelemetry instrumentation.

    Subsequent calls return the already initialized state.

    Args:
        config: Telemetry configuration (uses defaults if None)

    Returns:
        Dictionary with meter, tracer, and metrics instances
    """
    global _telemetry

    if _telemetry is not None:
        return _telemetry

    config = config or TelemetryConfig()

    if not config.enabled:
        _telemetry = {
            "meter": None,
            "tracer": None,
            "metrics": None,
            "config": config,
        }
        return _telemetry

    resource = Resource.create(
        {
            SERVICE_NAME: config.service_name,
            SERVICE_VERSION: config.service_version,
        }
    )

    relay_metrics = None
    meter = None
    if config.metrics.enabled:
        readers = [PrometheusMetricReader()] if config.metrics.prometheus_enabled else []
        meter_provider = MeterProvider(metric_readers=readers, resource=resource)
        metrics.set_meter_provider(meter_provider)
        meter = metrics.get_meter(name=config.service_name, version=config.service_version)
        relay_metrics = RelayMetrics(meter)
        # OTEL metrics only show up after their first recording
        relay_metrics.connected_servers.add(0)
        relay_metrics.catalog_tools.add(0)

    tracer = None
    tracer_provider = None
    if config.tracing.enabled:
        tracer_provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(config.tracing.sample_rate),
        )
        trace.set_tracer_provider(tracer_provider)
        tracer = trace.get_tracer(
            instrumenting_module_name=config.service_name,
            instrumenting_library_version=config.service_version,
        )

    _telemetry = {
        "meter": meter,
        "tracer": tracer,
        "metrics": relay_metrics,
        "config": config,
        "tracer_provider": tracer_provider,
    }

    return _telemetry


def get_telemetry() -> dict[str, Any] | None:
    """Get the current telemetry instance.

    Returns:
        Telemetry dictionary or None if not initialized
    """
    return _telemetry


def reset_telemetry() -> None:
    """Reset telemetry state (for testing)."""
    global _telemetry
    _telemetry = None
