"""Test mocks for toolrelay-core.

Provides fake implementations for testing:
- FakeConnection: In-memory stand-in for MCPConnection
- FakeTransport: Scripted generation transport
- FakeMemory: Records saved conversation turns
"""

from .fake_mcp import FakeConnection, FakeConnectionFactory, method_not_found, text_result
from .fake_transport import FakeMemory, FakeTransport, call_chunk, text

__all__ = [
    "FakeConnection",
    "FakeConnectionFactory",
    "FakeMemory",
    "FakeTransport",
    "method_not_found",
    "text_result",
    "call_chunk",
    "text",
]
