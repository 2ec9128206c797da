"""Connection Registry - named server configurations and live sessions.

The registry only tracks state and lifecycle. Whatever must happen when a
server comes up or goes down (catalog population, catalog clearing) is
registered as a listener, so the registry never depends on the catalog.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from toolrelay_core.config.models import MCPServerDefinition
from toolrelay_core.errors import RelayError, create_error, is_method_not_found
from toolrelay_core.logging.logger import RelayLogger
from toolrelay_core.telemetry import record_connected_servers
from toolrelay_core.types import ConnectionStatus, LogLevel

from .connection import MCPConnection
from .types import ServerStatus

# Listener receives the server name
ConnectionListener = Callable[[str], Awaitable[None]]
ConnectionFactory = Callable[[MCPServerDefinition], MCPConnection]


class ConnectionRegistry:
    """Holds server configurations and at most one live connection per name."""

    def __init__(
        self,
        logger: RelayLogger | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        """Initialize connection registry.

        Args:
            logger: Optional logger
            connection_factory: Builds an MCPConnection for a config
                (defaults to a plain MCPConnection)
        """
        self._configs: dict[str, MCPServerDefinition] = {}
        self._connections: dict[str, MCPConnection] = {}
        self._last_errors: dict[str, str] = {}
        self._logger = logger
        self._connection_factory = connection_factory or self._default_connection
        self._on_connect: list[ConnectionListener] = []
        self._on_disconnect: list[ConnectionListener] = []

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "registry", message, context)

    def _default_connection(self, config: MCPServerDefinition) -> MCPConnection:
        return MCPConnection(config, logger=self._logger)

    def on_connect(self, listener: ConnectionListener) -> None:
        """Register a coroutine run after every successful connect."""
        self._on_connect.append(listener)

    def on_disconnect(self, listener: ConnectionListener) -> None:
        """Register a coroutine run after every disconnect."""
        self._on_disconnect.append(listener)

    # Configuration

    def add_server(self, config: MCPServerDefinition) -> None:
        """Store or overwrite a server configuration. Does not connect."""
        self._configs[config.name] = config
        self._log(LogLevel.DEBUG, f"Server '{config.name}' configured")

    def get_config(self, name: str) -> MCPServerDefinition | None:
        return self._configs.get(name)

    def list_configs(self) -> list[MCPServerDefinition]:
        return list(self._configs.values())

    # Connection state

    def is_connected(self, name: str) -> bool:
        """True when a live connection is held for ``name``."""
        return name in self._connections

    def get_connection(self, name: str) -> MCPConnection | None:
        return self._connections.get(name)

    def connected_servers(self) -> list[str]:
        return list(self._connections.keys())

    def get_status(self, name: str) -> ServerStatus:
        """Get status for one configured server."""
        conn = self._connections.get(name)
        if conn is not None:
            return conn.get_status()
        last_error = self._last_errors.get(name)
        return ServerStatus(
            name=name,
            status=ConnectionStatus.ERROR if last_error else ConnectionStatus.DISCONNECTED,
            last_error=last_error,
        )

    def get_all_status(self) -> dict[str, ServerStatus]:
        """Get status of every configured server."""
        names = list(self._configs) + [n for n in self._connections if n not in self._configs]
        return {name: self.get_status(name) for name in names}

    # Lifecycle

    async def connect(self, name: str) -> MCPConnection:
        """Open a session for a configured server.

        An existing connection for the same name is closed first, so there is
        never more than one handle per server.

        Args:
            name: Server name

        Returns:
            The live connection

        Raises:
            RelayError(CONFIG_NOT_FOUND) if no config is registered
            RelayError(MCP_CONNECTION_FAILED) if the handshake fails
        """
        config = self._configs.get(name)
        if config is None:
            raise create_error("CONFIG_NOT_FOUND", server_name=name)

        if name in self._connections:
            self._log(LogLevel.INFO, f"Reconnecting '{name}'")
            await self.disconnect(name)

        conn = self._connection_factory(config)
        try:
            await conn.open()
        except RelayError as e:
            self._last_errors[name] = e.detail or str(e)
            self._log(LogLevel.ERROR, f"Failed to connect to '{name}': {e}")
            raise
        except Exception as e:
            self._last_errors[name] = str(e)
            self._log(LogLevel.ERROR, f"Failed to connect to '{name}': {e}")
            raise create_error("MCP_CONNECTION_FAILED", server_name=name, detail=str(e)) from e

        self._connections[name] = conn
        self._last_errors.pop(name, None)
        record_connected_servers(len(self._connections))
        self._log(LogLevel.INFO, f"Connected to '{name}'")

        await self._notify(self._on_connect, name, "connect")
        return conn

    async def connect_all(self) -> dict[str, ServerStatus]:
        """Connect every enabled configured server in parallel.

        Failures are logged and do not stop the others.

        Returns:
            Dict of server name to status
        """
        names = [cfg.name for cfg in self._configs.values() if cfg.enabled]
        if not names:
            self._log(LogLevel.INFO, "No MCP servers configured")
            return {}

        self._log(LogLevel.INFO, f"Connecting to {len(names)} MCP servers")
        await asyncio.gather(*(self._connect_one(name) for name in names))

        status = {name: self.get_status(name) for name in names}
        connected = sum(1 for s in status.values() if s.status == ConnectionStatus.CONNECTED)
        self._log(LogLevel.INFO, f"Connected to {connected}/{len(status)} servers")
        return status

    async def _connect_one(self, name: str) -> None:
        try:
            await self.connect(name)
        except RelayError:
            # Already logged and recorded in status by connect()
            pass

    async def disconnect(self, name: str) -> None:
        """Close a server's session and transport and drop its handle.

        Close failures are logged. On-disconnect listeners always run.
        """
        conn = self._connections.pop(name, None)
        if conn is not None:
            errors = await conn.close()
            if errors:
                self._log(
                    LogLevel.WARN,
                    f"Disconnected '{name}' with {len(errors)} close error(s)",
                    {"errors": [str(e) for e in errors]},
                )
            else:
                self._log(LogLevel.INFO, f"Disconnected '{name}'")
            record_connected_servers(len(self._connections))

        await self._notify(self._on_disconnect, name, "disconnect")

    async def remove_server(self, name: str) -> None:
        """Disconnect then forget a server. Unknown names are ignored."""
        if name not in self._configs and name not in self._connections:
            return
        await self.disconnect(name)
        self._configs.pop(name, None)
        self._last_errors.pop(name, None)
        self._log(LogLevel.INFO, f"Server '{name}' removed")

    async def disconnect_all(self) -> None:
        """Best-effort disconnect of every server, then clear all state."""
        self._log(LogLevel.INFO, "Disconnecting from all MCP servers")
        names = list(self._connections)
        results = await asyncio.gather(
            *(self.disconnect(name) for name in names), return_exceptions=True
        )
        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                self._log(LogLevel.WARN, f"Error disconnecting '{name}': {result}")

        self._connections.clear()
        self._configs.clear()
        self._last_errors.clear()
        record_connected_servers(0)
        self._log(LogLevel.INFO, "Disconnected from all servers")

    async def verify_connection(self, config: MCPServerDefinition) -> None:
        """Check that a server can be reached, without registering it.

        Opens a throwaway session, probes the tool list (a server that does
        not implement it still passes), then closes the session.

        Raises:
            RelayError(MCP_CONNECTION_FAILED) with the underlying reason
        """
        conn = self._connection_factory(config)
        try:
            await conn.open()
            try:
                await conn.list_tools()
            except Exception as e:
                if not is_method_not_found(e):
                    raise create_error(
                        "MCP_CONNECTION_FAILED", server_name=config.name, detail=str(e)
                    ) from e
                self._log(
                    LogLevel.INFO,
                    f"Server '{config.name}' does not list tools, but the connection works",
                )
        finally:
            await conn.close()

    async def test_connection(self, config: MCPServerDefinition) -> bool:
        """Like ``verify_connection``, but reports the outcome as a bool."""
        try:
            await self.verify_connection(config)
        except RelayError as e:
            self._log(LogLevel.ERROR, f"Test connection failed for '{config.name}': {e.detail}")
            return False
        return True

    async def _notify(self, listeners: list[ConnectionListener], name: str, event: str) -> None:
        for listener in listeners:
            try:
                await listener(name)
            except Exception as e:
                self._log(LogLevel.ERROR, f"{event} listener failed for '{name}': {e}")
