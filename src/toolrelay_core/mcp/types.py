"""MCP connection and catalog types."""

from dataclasses import dataclass, field
from typing import Any

from toolrelay_core.types import ConnectionStatus


@dataclass
class ToolSchema:
    """MCP tool schema.

    Represents a tool available from an MCP server, under the name the
    server reports for it.
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    server_name: str = ""


@dataclass
class ResourceSchema:
    """MCP resource descriptor."""

    uri: str
    name: str
    description: str = ""
    mime_type: str | None = None


@dataclass
class CatalogEntry:
    """A tool as surfaced to callers: canonical id plus its descriptor."""

    tool_id: str
    server_name: str
    tool: ToolSchema

    @property
    def description(self) -> str:
        """Description prefixed with the owning server, for display."""
        return f"[{self.server_name}] {self.tool.description}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.tool_id,
            "name": self.tool.name,
            "server": self.server_name,
            "description": self.description,
            "input_schema": self.tool.input_schema,
        }


@dataclass
class ServerStatus:
    """Status of an MCP server connection.

    Used for monitoring and diagnostics.
    """

    name: str
    status: ConnectionStatus
    tools: list[str] = field(default_factory=list)
    last_connected: str | None = None
    last_error: str | None = None
