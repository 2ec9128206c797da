"""MCP Connection - manages a single MCP server session.

Uses the FastMCP client library for the MCP protocol. The session and the
transport underneath it are closed separately so that a failure closing one
does not leak the other.
"""

import asyncio
import shlex
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Any

import mcp.types
from fastmcp.client import Client
from fastmcp.client.transports import (
    ClientTransport,
    SSETransport,
    StdioTransport,
    StreamableHttpTransport,
)

from toolrelay_core.config.models import MCPServerDefinition
from toolrelay_core.errors import create_error
from toolrelay_core.logging.logger import RelayLogger
from toolrelay_core.types import ConnectionStatus, LogLevel, MCPTransport

from .types import ResourceSchema, ServerStatus, ToolSchema


class MCPConnection:
    """Single MCP server connection.

    Lifecycle: DISCONNECTED -> CONNECTING -> CONNECTED, back to DISCONNECTED
    on close, ERROR when the handshake fails.
    """

    def __init__(
        self,
        config: MCPServerDefinition,
        logger: RelayLogger | None = None,
        transport: Any = None,
    ):
        """Initialize MCP connection.

        Args:
            config: Server configuration
            logger: Optional logger
            transport: Optional transport override (anything fastmcp's Client
                accepts, e.g. an in-process FastMCP server)
        """
        self.config = config
        self.name = config.name
        self._logger = logger
        self._transport_override = transport
        self._status = ConnectionStatus.DISCONNECTED
        self._last_connected: datetime | None = None
        self._last_error: str | None = None

        self._client: Client | None = None
        self._exit_stack: AsyncExitStack | None = None

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, f"mcp.{self.name}", message, context)

    @property
    def status(self) -> ConnectionStatus:
        """Current connection status."""
        return self._status

    @property
    def is_open(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED and self._client is not None

    def get_status(self, tools: list[str] | None = None) -> ServerStatus:
        """Get detailed status.

        Args:
            tools: Tool names currently catalogued for this server

        Returns:
            ServerStatus with current state
        """
        return ServerStatus(
            name=self.name,
            status=self._status,
            tools=tools or [],
            last_connected=self._last_connected.isoformat() if self._last_connected else None,
            last_error=self._last_error,
        )

    async def open(self) -> None:
        """Create the transport and session and perform the MCP handshake.

        Raises:
            RelayError(MCP_CONNECTION_FAILED) if the handshake fails
        """
        if self._status == ConnectionStatus.CONNECTED:
            self._log(LogLevel.DEBUG, "Already connected")
            return

        self._status = ConnectionStatus.CONNECTING
        self._log(
            LogLevel.INFO,
            f"Connecting to MCP server (transport={self.config.resolved_transport().value})",
        )

        try:
            self._client = Client(
                transport=self._get_transport_source(),
                timeout=self.config.timeout,
                name=f"toolrelay-{self.name}",
            )
            self._exit_stack = AsyncExitStack()
            # Entering the client context runs the initialize handshake
            await self._exit_stack.enter_async_context(self._client)
        except Exception as e:
            self._status = ConnectionStatus.ERROR
            self._last_error = str(e)
            self._log(LogLevel.ERROR, f"Handshake failed: {e}")
            await self._release()
            raise create_error(
                "MCP_CONNECTION_FAILED",
                server_name=self.name,
                detail=str(e),
            ) from e

        self._status = ConnectionStatus.CONNECTED
        self._last_connected = datetime.now()
        self._last_error = None
        self._log(LogLevel.INFO, "Connected successfully")

    async def close(self, timeout: float = 5.0) -> list[Exception]:
        """Close the session, then the transport.

        Both closes are attempted even if the first one fails.

        Args:
            timeout: Maximum time to wait for each close, in seconds

        Returns:
            Errors raised while closing (empty on a clean close)
        """
        if self._client is None and self._exit_stack is None:
            self._status = ConnectionStatus.DISCONNECTED
            return []

        self._log(LogLevel.INFO, "Disconnecting from MCP server")
        errors = await self._release(timeout)
        self._status = ConnectionStatus.DISCONNECTED
        self._log(LogLevel.INFO, "Disconnected")
        return errors

    async def _release(self, timeout: float = 5.0) -> list[Exception]:
        errors: list[Exception] = []
        client = self._client

        if self._exit_stack:
            try:
                await asyncio.wait_for(self._exit_stack.aclose(), timeout=timeout)
            except Exception as e:
                errors.append(e)
                self._log(LogLevel.WARN, f"Error closing session: {e}")
            self._exit_stack = None

        if client is not None:
            try:
                await asyncio.wait_for(client.transport.close(), timeout=timeout)
            except Exception as e:
                errors.append(e)
                self._log(LogLevel.WARN, f"Error closing transport: {e}")

        self._client = None
        return errors

    def _get_transport_source(self) -> Any:
        """Build the fastmcp transport for this server.

        Raises:
            RelayError if transport configuration is invalid
        """
        if self._transport_override is not None:
            return self._transport_override

        transport = self.config.resolved_transport()
        headers = None
        if self.config.api_key:
            headers = {"Authorization": f"Bearer {self.config.api_key}"}

        if transport == MCPTransport.STDIO:
            return self._create_stdio_transport()

        if not self.config.url:
            raise create_error(
                "MCP_CONNECTION_FAILED",
                server_name=self.name,
                detail=f"No URL specified for {transport.value} server '{self.name}'",
            )
        url = self.config.url.rstrip("/")
        if transport == MCPTransport.SSE:
            return SSETransport(url=url, headers=headers)
        return StreamableHttpTransport(url=url, headers=headers)

    def _create_stdio_transport(self) -> ClientTransport:
        if not self.config.command:
            raise create_error(
                "MCP_CONNECTION_FAILED",
                server_name=self.name,
                detail=f"No command specified for stdio server '{self.name}'",
            )

        # Quoted arguments survive the split
        try:
            cmd_parts = shlex.split(self.config.command)
        except ValueError as e:
            raise create_error(
                "MCP_CONNECTION_FAILED",
                server_name=self.name,
                detail=f"Invalid command for stdio server '{self.name}': {e}",
            ) from e

        if not cmd_parts:
            raise create_error(
                "MCP_CONNECTION_FAILED",
                server_name=self.name,
                detail=f"Empty command for stdio server '{self.name}'",
            )

        return StdioTransport(
            command=cmd_parts[0],
            args=cmd_parts[1:] + list(self.config.args),
            env=self.config.env or None,
        )

    def _require_client(self) -> Client:
        if not self.is_open or self._client is None:
            raise create_error("SERVER_NOT_CONNECTED", server_name=self.name)
        return self._client

    async def list_tools(self) -> list[ToolSchema]:
        """Fetch the tool list from the server.

        Raises:
            McpError when the server rejects the request (method-not-found
            included; callers decide how tolerant to be)
        """
        client = self._require_client()
        tools = await client.list_tools()
        return [
            ToolSchema(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema or {},
                server_name=self.name,
            )
            for tool in tools
        ]

    async def list_resources(self) -> list[ResourceSchema]:
        """Fetch the resource list from the server."""
        client = self._require_client()
        resources = await client.list_resources()
        return [
            ResourceSchema(
                uri=str(resource.uri),
                name=resource.name,
                description=resource.description or "",
                mime_type=resource.mimeType,
            )
            for resource in resources
        ]

    async def call_tool(
        self, tool_name: str, arguments: dict[str, Any]
    ) -> mcp.types.CallToolResult:
        """Send one call-tool request and return the raw protocol result.

        Tool-level failures come back as a result with ``isError`` set;
        protocol and transport failures raise.
        """
        client = self._require_client()
        return await client.call_tool_mcp(tool_name, arguments)

    async def read_resource(self, uri: str) -> mcp.types.ReadResourceResult:
        """Read a single resource by URI."""
        client = self._require_client()
        return await client.read_resource_mcp(uri)
