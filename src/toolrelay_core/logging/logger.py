"""Relay Logger - component-scoped colored logging."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from toolrelay_core.logging.colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from toolrelay_core.types import LogFormat, LogLevel


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO = field(default=sys.stdout)

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {
                "registry": True,
                "catalog": True,
                "executor": True,
                "stream": True,
                "turn": True,
                "tool": True,
            }


class RelayLogger:
    """Main logger facade. Creates scoped loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def turn(self, turn_id: str) -> "TurnLogger":
        """Get a logger scoped to one conversational turn.

        Args:
            turn_id: Turn identifier

        Returns:
            TurnLogger instance
        """
        return TurnLogger(self, turn_id)

    def configure(self, config: LogConfig) -> None:
        """Update configuration.

        Args:
            config: New logger configuration
        """
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name (registry, catalog, mcp.<server>, ...)
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        # "mcp.alpha" is switched by "mcp"
        root = component.split(".", 1)[0]
        if not self.config.components.get(component, self.config.components.get(root, True)):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        component_color = {
            "turn": MAGENTA,
            "stream": ORANGE,
            "tool": GREEN,
            "executor": GREEN,
        }.get(component.split(".", 1)[0], RESET)

        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_params:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class TurnLogger:
    """Logger for turn-level events."""

    def __init__(self, parent: RelayLogger, turn_id: str):
        self.parent = parent
        self.turn_id = turn_id

    def started(self, mentioned_tools: list[str]) -> None:
        """Log turn start.

        Args:
            mentioned_tools: Canonical tool ids mentioned in the user message
        """
        context = {
            "turn_id": self.turn_id,
            "event": "turn_started",
            "mentioned_tools": mentioned_tools,
        }
        message = f"Turn '{self.turn_id}' started"
        if mentioned_tools:
            message += f" ({len(mentioned_tools)} tools mentioned)"

        self.parent._log(LogLevel.INFO, "turn", message, context)

    def pass_started(self, pass_number: int, bound_tools: int) -> None:
        """Log the start of a generation pass."""
        context = {
            "turn_id": self.turn_id,
            "event": "pass_started",
            "pass": pass_number,
            "bound_tools": bound_tools,
        }
        message = f"Generation pass {pass_number} started ({bound_tools} tools bound)"
        self.parent._log(LogLevel.DEBUG, "turn", message, context)

    def completed(self, duration_ms: int, tool_calls: int) -> None:
        """Log turn completion.

        Args:
            duration_ms: Turn duration in milliseconds
            tool_calls: Number of tool calls executed
        """
        context = {
            "turn_id": self.turn_id,
            "event": "turn_completed",
            "duration_ms": duration_ms,
            "tool_calls": tool_calls,
        }
        duration_s = duration_ms / 1000
        message = (
            f"Turn '{self.turn_id}' completed ({tool_calls} tool calls, {duration_s:.2f}s) ✓"
        )
        self.parent._log(LogLevel.INFO, "turn", message, context)

    def cancelled(self, reason: str | None) -> None:
        """Log turn cancellation."""
        context = {"turn_id": self.turn_id, "event": "turn_cancelled", "reason": reason}
        self.parent._log(LogLevel.INFO, "turn", f"Turn '{self.turn_id}' cancelled", context)

    def failed(self, error: Exception, duration_ms: int) -> None:
        """Log turn failure.

        Args:
            error: Exception that caused failure
            duration_ms: Turn duration in milliseconds
        """
        context = {
            "turn_id": self.turn_id,
            "event": "turn_failed",
            "duration_ms": duration_ms,
            "error": str(error),
            "error_type": type(error).__name__,
        }
        message = f"Turn '{self.turn_id}' failed: {error}"
        self.parent._log(LogLevel.ERROR, "turn", message, context)

    def tool(self) -> "ToolLogger":
        """Get a logger for tool calls within this turn."""
        return ToolLogger(self)


class ToolLogger:
    """Logger for tool call events."""

    def __init__(self, parent: TurnLogger):
        self.parent = parent

    @property
    def _root(self) -> RelayLogger:
        return self.parent.parent

    def calling(self, tool_id: str, arguments: dict[str, Any] | None = None) -> None:
        """Log tool call start.

        Args:
            tool_id: Canonical id of the tool being called
            arguments: Optional tool arguments
        """
        context: dict[str, Any] = {
            "turn_id": self.parent.turn_id,
            "event": "tool_calling",
            "tool_id": tool_id,
        }
        if arguments:
            context["arguments"] = arguments

        self._root._log(LogLevel.INFO, "tool", f"Calling tool '{tool_id}'", context)

    def result(self, tool_id: str, output: Any, duration_ms: int) -> None:
        """Log tool call result.

        Args:
            tool_id: Canonical tool id
            output: Tool output
            duration_ms: Execution duration in milliseconds
        """
        context: dict[str, Any] = {
            "turn_id": self.parent.turn_id,
            "event": "tool_result",
            "tool_id": tool_id,
            "duration_ms": duration_ms,
        }

        if self._root.config.show_results:
            result_str = str(output)
            if len(result_str) > self._root.config.truncate_at:
                result_str = result_str[: self._root.config.truncate_at] + "..."
            context["result"] = result_str

        duration_s = duration_ms / 1000
        message = f"Tool '{tool_id}' completed ({duration_s:.2f}s) ✓"
        self._root._log(LogLevel.INFO, "tool", message, context)

    def error(self, tool_id: str, error: str, duration_ms: int) -> None:
        """Log tool call error.

        Args:
            tool_id: Canonical tool id
            error: Error message
            duration_ms: Execution duration in milliseconds
        """
        context = {
            "turn_id": self.parent.turn_id,
            "event": "tool_error",
            "tool_id": tool_id,
            "duration_ms": duration_ms,
            "error": error,
        }
        duration_s = duration_ms / 1000
        message = f"Tool '{tool_id}' failed ({duration_s:.2f}s): {error}"
        self._root._log(LogLevel.ERROR, "tool", message, context)
