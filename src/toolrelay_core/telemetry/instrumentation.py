"""Relay Telemetry Instrumentation - context managers and helpers.

Every helper is a no-op when telemetry has not been set up.
"""

import time
from contextlib import asynccontextmanager
from typing import Any

from opentelemetry.trace import Status, StatusCode

from .metrics import MetricLabels
from .setup import get_telemetry


def _instruments() -> tuple[Any, Any]:
    telemetry = get_telemetry()
    if not telemetry:
        return None, None
    return telemetry["tracer"], telemetry["metrics"]


@asynccontextmanager
async def instrument_tool_call(tool_name: str, server_name: str | None = None):
    """Context manager for instrumenting tool invocations.

    Records:
    - Tool invocation counter
    - Tool duration histogram
    - Trace span for tool call

    Args:
        tool_name: Canonical tool id
        server_name: Server that owns the tool

    Yields:
        Dictionary to store execution status
    """
    start_time = time.time()
    result: dict[str, Any] = {"status": MetricLabels.STATUS_SUCCESS, "error_code": None}
    tracer, relay_metrics = _instruments()

    span = None
    if tracer:
        span = tracer.start_span(f"tool:{tool_name}")
        span.set_attribute("tool.name", tool_name)
        if server_name:
            span.set_attribute("tool.server", server_name)

    try:
        yield result
    except Exception as e:
        result["status"] = MetricLabels.STATUS_ERROR
        result["error_code"] = getattr(e, "code", None) or type(e).__name__
        if span:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
        raise
    finally:
        duration = time.time() - start_time

        if relay_metrics:
            relay_metrics.record_tool_invocation(
                tool_name=tool_name,
                duration_seconds=duration,
                status=result["status"],
                error_code=result.get("error_code"),
                server_name=server_name,
            )

        if span:
            if result["status"] == MetricLabels.STATUS_SUCCESS:
                span.set_status(Status(StatusCode.OK))
            span.end()


@asynccontextmanager
async def instrument_turn(turn_id: str):
    """Context manager for instrumenting a whole conversational turn.

    Args:
        turn_id: Turn identifier

    Yields:
        Dictionary to store turn status
    """
    start_time = time.time()
    result: dict[str, Any] = {"status": MetricLabels.STATUS_SUCCESS}
    tracer, relay_metrics = _instruments()

    span = None
    if tracer:
        span = tracer.start_span(f"turn:{turn_id}")
        span.set_attribute("turn.id", turn_id)

    try:
        yield result
    except Exception as e:
        result["status"] = MetricLabels.STATUS_ERROR
        if span:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
        raise
    finally:
        if relay_metrics:
            relay_metrics.record_turn(time.time() - start_time, result["status"])
        if span:
            if result["status"] == MetricLabels.STATUS_SUCCESS:
                span.set_status(Status(StatusCode.OK))
            span.end()


def record_tool_result(
    result: dict[str, Any], success: bool, error_code: str | None = None
) -> None:
    """Update result dictionary with execution status.

    Args:
        result: Result dictionary from context manager
        success: Whether execution succeeded
        error_code: Error code if failed
    """
    if success:
        result["status"] = MetricLabels.STATUS_SUCCESS
    else:
        result["status"] = MetricLabels.STATUS_ERROR
        result["error_code"] = error_code


def record_connected_servers(count: int) -> None:
    """Publish the current number of connected servers."""
    _, relay_metrics = _instruments()
    if relay_metrics:
        relay_metrics.update_connected_servers(count)


def record_catalog_size(count: int) -> None:
    """Publish the current number of catalogued tools."""
    _, relay_metrics = _instruments()
    if relay_metrics:
        relay_metrics.update_catalog_tools(count)


def record_dropped_tool_call(reason: str) -> None:
    """Count a tool call dropped during stream reassembly."""
    _, relay_metrics = _instruments()
    if relay_metrics:
        relay_metrics.record_dropped_tool_call(reason)
