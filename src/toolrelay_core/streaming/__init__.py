"""Streaming generation events, cancellation and tool-call reassembly."""

from .accumulator import PassResult, StreamAccumulator, TextCallback, consume
from .cancellation import CancellationToken
from .events import ContentSegment, GenerationEvent, ToolCall, ToolCallChunk

__all__ = [
    "GenerationEvent",
    "ContentSegment",
    "ToolCallChunk",
    "ToolCall",
    "CancellationToken",
    "StreamAccumulator",
    "PassResult",
    "TextCallback",
    "consume",
]
