"""MCP client layer - connections, registry and catalog."""

from .catalog import CatalogService
from .connection import MCPConnection
from .registry import ConnectionFactory, ConnectionListener, ConnectionRegistry
from .types import CatalogEntry, ResourceSchema, ServerStatus, ToolSchema

__all__ = [
    "MCPConnection",
    "ConnectionRegistry",
    "ConnectionFactory",
    "ConnectionListener",
    "CatalogService",
    "ToolSchema",
    "ResourceSchema",
    "CatalogEntry",
    "ServerStatus",
]
