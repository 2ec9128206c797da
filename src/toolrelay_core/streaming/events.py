"""Generation stream events.

The generation transport yields one ``GenerationEvent`` per chunk. An event
may carry narrative text, partial tool-call fragments, whole tool calls, or
any mix of them.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ContentSegment:
    """One block of structured content (answer text, thinking, ...)."""

    type: str
    text: str | None = None


@dataclass
class ToolCallChunk:
    """Partial tool call, keyed by its position in the current pass."""

    index: int
    id: str | None = None
    name: str | None = None
    args: str | None = None  # substring of the eventual JSON document


@dataclass
class ToolCall:
    """A complete tool call with parsed arguments."""

    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "args": self.args}


@dataclass
class GenerationEvent:
    """A single chunk from the generation transport."""

    content: str | list[ContentSegment] | None = None
    tool_call_chunks: list[ToolCallChunk] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)

    def text(self) -> str:
        """Text carried by this event; every textual segment, in arrival order."""
        if not self.content:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(segment.text for segment in self.content if segment.text)
