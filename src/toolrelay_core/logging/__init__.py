"""Relay Logging - component-scoped colored logging."""

from .colors import CYAN, GREEN, LIGHT_BLUE, MAGENTA, ORANGE, RED, RESET, YELLOW
from .logger import LogConfig, RelayLogger, ToolLogger, TurnLogger

__all__ = [
    # Logger classes
    "RelayLogger",
    "TurnLogger",
    "ToolLogger",
    "LogConfig",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
