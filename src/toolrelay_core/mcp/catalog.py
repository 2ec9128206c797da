"""Catalog Service - tool and resource metadata per connected server."""

import asyncio
from typing import Any

import mcp.types

from toolrelay_core.dispatch.naming import encode_tool_id
from toolrelay_core.errors import create_error, is_method_not_found
from toolrelay_core.logging.logger import RelayLogger
from toolrelay_core.telemetry import record_catalog_size
from toolrelay_core.types import LogLevel

from .registry import ConnectionRegistry
from .types import CatalogEntry, ResourceSchema, ToolSchema


class CatalogService:
    """Caches what each connected server exposes.

    Entries are rebuilt when a server connects and dropped when it
    disconnects; the service subscribes itself to the registry for both.
    """

    def __init__(self, registry: ConnectionRegistry, logger: RelayLogger | None = None):
        """Initialize catalog service.

        Args:
            registry: Connection registry to read sessions from
            logger: Optional logger
        """
        self._registry = registry
        self._logger = logger
        self._tools: dict[str, list[ToolSchema]] = {}
        self._resources: dict[str, list[ResourceSchema]] = {}

        registry.on_connect(self.refresh)
        registry.on_disconnect(self._on_disconnect)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "catalog", message, context)

    async def _on_disconnect(self, name: str) -> None:
        self.clear(name)

    async def refresh(self, name: str) -> list[ToolSchema]:
        """Re-read the tool and resource lists of one connected server.

        A server that answers "method not found" for a capability gets an
        empty list for it. Any other failure is logged and the previous
        entry for that capability is kept.

        Returns:
            The server's tools after the refresh
        """
        conn = self._registry.get_connection(name)
        if conn is None:
            self._log(LogLevel.DEBUG, f"Skipping refresh of '{name}': not connected")
            return self.tools_for(name)

        try:
            self._tools[name] = await conn.list_tools()
        except Exception as e:
            if is_method_not_found(e):
                self._log(LogLevel.INFO, f"Server '{name}' does not support tools/list")
                self._tools[name] = []
            else:
                self._log(LogLevel.ERROR, f"Failed to list tools from '{name}': {e}")

        try:
            self._resources[name] = await conn.list_resources()
        except Exception as e:
            if is_method_not_found(e):
                self._log(LogLevel.INFO, f"Server '{name}' does not support resources/list")
                self._resources[name] = []
            else:
                self._log(LogLevel.ERROR, f"Failed to list resources from '{name}': {e}")

        tools = self.tools_for(name)
        self._log(
            LogLevel.INFO,
            f"Catalogued {len(tools)} tools and {len(self.resources_for(name))} resources "
            f"from '{name}'",
        )
        record_catalog_size(sum(len(t) for t in self._tools.values()))
        return tools

    async def refresh_all(self) -> dict[str, list[ToolSchema]]:
        """Refresh every connected server concurrently.

        One server failing does not stop the others.

        Returns:
            Dict of server name to tool list
        """
        names = self._registry.connected_servers()
        self._log(LogLevel.INFO, f"Refreshing tools from {len(names)} servers")

        results = await asyncio.gather(*(self.refresh(n) for n in names), return_exceptions=True)

        tools_dict: dict[str, list[ToolSchema]] = {}
        for name, result in zip(names, results, strict=True):
            if isinstance(result, Exception):
                self._log(LogLevel.ERROR, f"Failed to refresh '{name}': {result}")
                tools_dict[name] = self.tools_for(name)
            else:
                tools_dict[name] = result
        return tools_dict

    def all_tools(self) -> list[CatalogEntry]:
        """Every catalogued tool under its canonical id."""
        entries = []
        for server_name, tools in self._tools.items():
            for tool in tools:
                entries.append(
                    CatalogEntry(
                        tool_id=encode_tool_id(server_name, tool.name),
                        server_name=server_name,
                        tool=tool,
                    )
                )
        return entries

    def tools_for(self, name: str) -> list[ToolSchema]:
        return list(self._tools.get(name, []))

    def resources_for(self, name: str) -> list[ResourceSchema]:
        return list(self._resources.get(name, []))

    def find_tool(self, server_name: str, tool_name: str) -> ToolSchema | None:
        """Look up one tool by server and local name."""
        for tool in self._tools.get(server_name, []):
            if tool.name == tool_name:
                return tool
        return None

    def clear(self, name: str) -> None:
        """Drop everything catalogued for one server."""
        self._tools.pop(name, None)
        self._resources.pop(name, None)
        record_catalog_size(sum(len(t) for t in self._tools.values()))

    def clear_all(self) -> None:
        self._tools.clear()
        self._resources.clear()
        record_catalog_size(0)

    async def read_resource(self, server_name: str, uri: str) -> mcp.types.ReadResourceResult:
        """Read one resource from a connected server.

        Raises:
            RelayError(SERVER_NOT_CONNECTED) if the server has no live session
            RelayError(CAPABILITY_UNSUPPORTED) if the server cannot read resources
        """
        conn = self._registry.get_connection(server_name)
        if conn is None:
            raise create_error("SERVER_NOT_CONNECTED", server_name=server_name)
        try:
            return await conn.read_resource(uri)
        except Exception as e:
            if is_method_not_found(e):
                raise create_error(
                    "CAPABILITY_UNSUPPORTED",
                    server_name=server_name,
                    method="resources/read",
                ) from e
            raise
