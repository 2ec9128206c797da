"""toolrelay-core - MCP tool providers wired into streamed conversational turns.

Connects to MCP tool servers, catalogs what they expose, and runs
conversational turns that reassemble streamed tool calls, execute them and
continue generation with the results.
"""

from toolrelay_core.application import ToolRelay

__version__ = "0.1.0"
__all__ = ["__version__", "ToolRelay"]
