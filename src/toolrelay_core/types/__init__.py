"""Shared types for toolrelay.

Import from here rather than submodules:
    from toolrelay_core.types import ConnectionStatus, LogLevel
"""

from .enums import ConnectionStatus, LogFormat, LogLevel, MCPTransport, MessageRole
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "MCPTransport",
    "ConnectionStatus",
    "MessageRole",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
