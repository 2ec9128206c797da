"""Turn orchestration - mentions, tool binding, execution and continuation."""

from .mentions import find_mentions, strip_mentions
from .orchestrator import TOOL_NOT_FOUND, ContinuationOrchestrator
from .types import (
    ChatMessage,
    GenerationTransport,
    MemoryWriter,
    ToolDefinition,
    ToolExecutionResult,
    TurnResult,
)

__all__ = [
    "ContinuationOrchestrator",
    "TOOL_NOT_FOUND",
    "ChatMessage",
    "ToolDefinition",
    "ToolExecutionResult",
    "TurnResult",
    "GenerationTransport",
    "MemoryWriter",
    "find_mentions",
    "strip_mentions",
]
