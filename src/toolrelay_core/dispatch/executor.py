"""Tool Executor - single remote tool call with policy enforcement."""

import asyncio
import time
from typing import TYPE_CHECKING, Any

import mcp.types

from toolrelay_core.errors import RelayError, create_error, get_error_factory
from toolrelay_core.telemetry import instrument_tool_call, record_tool_result
from toolrelay_core.types import LogLevel

from .naming import decode_tool_id
from .policy import ToolPolicy

if TYPE_CHECKING:
    from toolrelay_core.logging import RelayLogger
    from toolrelay_core.mcp.registry import ConnectionRegistry


class ToolExecutor:
    """Calls tools on connected servers.

    Checks run in a fixed order: disabled, malformed id, server not
    connected. Only then is a single call-tool request sent. There is no
    retry; errors propagate to the caller.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        policy: ToolPolicy | None = None,
        logger: "RelayLogger | None" = None,
        timeout: float | None = None,
    ):
        """Initialize tool executor.

        Args:
            registry: Connection registry holding live sessions
            policy: Enable/disable policy (defaults to everything enabled)
            logger: Optional logger
            timeout: Optional per-call timeout in seconds
        """
        self._registry = registry
        self.policy = policy or ToolPolicy()
        self._logger = logger
        self._timeout = timeout

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "executor", message, context)

    async def execute(self, tool_id: str, arguments: dict[str, Any]) -> mcp.types.CallToolResult:
        """Call a tool by canonical id.

        Args:
            tool_id: Canonical tool id
            arguments: Tool arguments, sent as-is

        Returns:
            The provider's raw CallToolResult (``isError`` may be set)

        Raises:
            RelayError(TOOL_DISABLED) if the policy disables the tool
            RelayError(MALFORMED_TOOL_ID) if the id does not parse
            RelayError(SERVER_NOT_CONNECTED) if the server has no session
            RelayError(TOOL_TIMEOUT) if a configured timeout elapses
        """
        if not self.policy.is_enabled(tool_id):
            self._log(LogLevel.WARN, f"Refused disabled tool '{tool_id}'")
            raise create_error("TOOL_DISABLED", tool_name=tool_id)

        server_name, tool_name = decode_tool_id(tool_id)

        conn = self._registry.get_connection(server_name)
        if conn is None:
            raise create_error("SERVER_NOT_CONNECTED", server_name=server_name, tool_name=tool_id)

        start_time = time.time()
        async with instrument_tool_call(tool_id, server_name) as telemetry_result:
            try:
                call = conn.call_tool(tool_name, arguments)
                if self._timeout:
                    result = await asyncio.wait_for(call, timeout=self._timeout)
                else:
                    result = await call
            except TimeoutError as e:
                self._log_failure(tool_id, server_name, "timed out", start_time)
                raise create_error(
                    "TOOL_TIMEOUT", tool_name=tool_id, timeout_seconds=self._timeout
                ) from e
            except RelayError as e:
                self._log_failure(tool_id, server_name, str(e), start_time)
                raise
            except Exception as e:
                self._log_failure(tool_id, server_name, str(e), start_time)
                raise get_error_factory().from_exception(
                    e, server_name=server_name, tool_name=tool_id
                ) from e

            duration_ms = int((time.time() - start_time) * 1000)
            if result.isError:
                record_tool_result(telemetry_result, success=False, error_code="TOOL_FAILED")
                self._log(
                    LogLevel.WARN,
                    f"Tool '{tool_name}' on '{server_name}' reported an error",
                    {"tool": tool_name, "server": server_name, "duration_ms": duration_ms},
                )
            else:
                record_tool_result(telemetry_result, success=True)
                self._log(
                    LogLevel.INFO,
                    f"Executed tool '{tool_name}' on '{server_name}'",
                    {"tool": tool_name, "server": server_name, "duration_ms": duration_ms},
                )
            return result

    def _log_failure(self, tool_id: str, server_name: str, reason: str, start_time: float) -> None:
        self._log(
            LogLevel.ERROR,
            f"Failed to execute tool '{tool_id}': {reason}",
            {
                "tool": tool_id,
                "server": server_name,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
