"""Dispatch Resolver - canonical tool id to server, tool and schema."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from toolrelay_core.errors import create_error

from .naming import decode_tool_id, is_tool_id

if TYPE_CHECKING:
    from toolrelay_core.mcp.catalog import CatalogService
    from toolrelay_core.mcp.registry import ConnectionRegistry
    from toolrelay_core.mcp.types import ToolSchema


@dataclass
class ResolvedTool:
    """A canonical id bound to a catalogued tool."""

    tool_id: str
    server_name: str
    tool_name: str
    schema: "ToolSchema"


class ToolResolver:
    """Resolves canonical tool ids against live connections and the catalog."""

    def __init__(self, registry: "ConnectionRegistry", catalog: "CatalogService"):
        self._registry = registry
        self._catalog = catalog

    def resolve(self, tool_id: str) -> ResolvedTool:
        """Resolve a canonical id.

        Raises:
            RelayError(MALFORMED_TOOL_ID) if the id does not parse
            RelayError(UNKNOWN_SERVER) if its server is not connected
            RelayError(UNKNOWN_TOOL) if the server does not list the tool
        """
        server_name, tool_name = decode_tool_id(tool_id)

        if not self._registry.is_connected(server_name):
            raise create_error("UNKNOWN_SERVER", server_name=server_name, tool_name=tool_id)

        schema = self._catalog.find_tool(server_name, tool_name)
        if schema is None:
            raise create_error("UNKNOWN_TOOL", server_name=server_name, tool_name=tool_name)

        return ResolvedTool(
            tool_id=tool_id,
            server_name=server_name,
            tool_name=tool_name,
            schema=schema,
        )

    def is_tool_id(self, token: str) -> bool:
        return is_tool_id(token)

    def tool_schema(self, tool_id: str) -> dict[str, Any] | None:
        """Input schema of a tool, or None when it cannot be resolved."""
        if not is_tool_id(tool_id):
            return None
        server_name, tool_name = decode_tool_id(tool_id)
        schema = self._catalog.find_tool(server_name, tool_name)
        return schema.input_schema if schema else None
