"""Relay Application - wires all components together.

``ToolRelay`` is the single object callers construct. It owns the
configuration, logger, connection registry, catalog, resolver and executor,
and hands out turn orchestrators bound to a generation transport.
"""

import os
import sys
from dataclasses import asdict
from typing import Any, TextIO

import mcp.types

from toolrelay_core.config import ConfigLoader, MCPServerDefinition, RelayConfig
from toolrelay_core.config.loader import validate_server_name
from toolrelay_core.dispatch import ToolExecutor, ToolPolicy, ToolResolver, is_tool_id
from toolrelay_core.errors import create_error
from toolrelay_core.logging import LogConfig, RelayLogger
from toolrelay_core.mcp import CatalogEntry, CatalogService, ConnectionRegistry, ServerStatus
from toolrelay_core.mcp.registry import ConnectionFactory
from toolrelay_core.mcp.types import ToolSchema
from toolrelay_core.orchestrator import ContinuationOrchestrator, GenerationTransport, MemoryWriter
from toolrelay_core.telemetry import setup_telemetry
from toolrelay_core.types import LogLevel


class ToolRelay:
    """Tool relay application.

    Initialization sequence:

    1. Config loading
    2. Logger setup
    3. Telemetry setup
    4. Connection registry and catalog
    5. Tool policy, resolver and executor
    6. Connect configured servers (catalog fills as each one connects)
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        config_path: str | None = None,
        log_output: TextIO | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        """Initialize application.

        Args:
            config: Ready-made configuration (skips loading from disk)
            config_path: Path to config file (optional)
            log_output: Output stream for logs (default: sys.stdout)
            connection_factory: Optional override for building connections
        """
        self._config_path = config_path
        self._log_output = log_output or sys.stdout
        self._connection_factory = connection_factory
        self._initialized = False

        self.config: RelayConfig | None = config
        self.logger: RelayLogger | None = None
        self.registry: ConnectionRegistry | None = None
        self.catalog: CatalogService | None = None
        self.policy: ToolPolicy | None = None
        self.resolver: ToolResolver | None = None
        self.executor: ToolExecutor | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> dict[str, ServerStatus]:
        """Initialize all components and connect configured servers.

        Returns:
            Status of every configured server after connecting
        """
        if self._initialized:
            return self.connection_status()

        # 1. Config
        if self.config is None:
            self.config = ConfigLoader().load(self._config_path)

        # 2. Logger
        logging_config = self.config.logging
        self.logger = RelayLogger(
            LogConfig(
                level=logging_config.level,
                format=logging_config.format,
                show_params=logging_config.options.show_params,
                show_results=logging_config.options.show_results,
                truncate_at=logging_config.options.truncate_at,
                components=asdict(logging_config.components),
                output=self._log_output,
            )
        )

        # 3. Telemetry
        telemetry_config = self.config.telemetry
        service_name = os.environ.get("OTEL_SERVICE_NAME")
        if service_name:
            telemetry_config.service_name = service_name
        setup_telemetry(telemetry_config)

        # 4. Registry & catalog
        self.registry = ConnectionRegistry(
            logger=self.logger,
            connection_factory=self._connection_factory,
        )
        self.catalog = CatalogService(self.registry, logger=self.logger)

        # 5. Dispatch
        self.policy = ToolPolicy(self.config.tools.disabled_tools)
        self.resolver = ToolResolver(self.registry, self.catalog)
        self.executor = ToolExecutor(
            self.registry,
            self.policy,
            logger=self.logger,
            timeout=self.config.generation.tool_call_timeout,
        )

        # 6. Servers
        for name, server in self.config.tools.mcp_servers.items():
            server.name = server.name or name
            self.registry.add_server(server)
        status = await self.registry.connect_all()

        self._initialized = True
        self.logger._log(LogLevel.INFO, "registry", "Tool relay initialized")
        return status

    async def shutdown(self) -> None:
        """Disconnect every server and drop catalog state."""
        if not self._initialized:
            return
        await self._registry().disconnect_all()
        self._catalog().clear_all()
        self._initialized = False

    def _registry(self) -> ConnectionRegistry:
        if self.registry is None:
            raise create_error("INTERNAL_ERROR", detail="Tool relay not initialized")
        return self.registry

    def _catalog(self) -> CatalogService:
        if self.catalog is None:
            raise create_error("INTERNAL_ERROR", detail="Tool relay not initialized")
        return self.catalog

    # Tools

    def list_all_tools(self) -> list[CatalogEntry]:
        return self._catalog().all_tools()

    def list_enabled_tools(self) -> list[CatalogEntry]:
        """Catalogued tools the policy has not disabled."""
        policy = self.policy or ToolPolicy()
        return [entry for entry in self.list_all_tools() if policy.is_enabled(entry.tool_id)]

    def tool_schema(self, tool_id: str) -> dict[str, Any] | None:
        if self.resolver is None:
            return None
        return self.resolver.tool_schema(tool_id)

    def tool_descriptions(self) -> str:
        """One line per enabled tool: canonical id and description."""
        return "\n".join(
            f"{entry.tool_id}: {entry.description}" for entry in self.list_enabled_tools()
        )

    def is_tool_id(self, token: str) -> bool:
        return is_tool_id(token)

    def disable_tool(self, tool_id: str) -> None:
        if self.policy is not None:
            self.policy.disable(tool_id)

    def enable_tool(self, tool_id: str) -> None:
        if self.policy is not None:
            self.policy.enable(tool_id)

    async def execute_tool(
        self, tool_id: str, arguments: dict[str, Any]
    ) -> mcp.types.CallToolResult:
        if self.executor is None:
            raise create_error("INTERNAL_ERROR", detail="Tool relay not initialized")
        return await self.executor.execute(tool_id, arguments)

    # Servers

    async def test_connection(self, config: MCPServerDefinition) -> bool:
        return await self._registry().test_connection(config)

    async def add_server(self, config: MCPServerDefinition) -> None:
        """Add and connect a server after a successful test connection.

        Nothing is registered when the test connection fails.

        Raises:
            RelayError(CONFIG_INVALID) if the server name is unusable
            RelayError(MCP_CONNECTION_FAILED) if the server cannot be reached
        """
        problem = validate_server_name(config.name)
        if problem:
            raise create_error("CONFIG_INVALID", detail=problem)

        registry = self._registry()
        await registry.verify_connection(config)

        registry.add_server(config)
        await registry.connect(config.name)

    async def remove_server(self, name: str) -> None:
        await self._registry().remove_server(name)

    async def refresh_all(self) -> dict[str, list[ToolSchema]]:
        return await self._catalog().refresh_all()

    def connection_status(self) -> dict[str, ServerStatus]:
        """Status per server, with the catalogued tool names filled in."""
        statuses = self._registry().get_all_status()
        for name, status in statuses.items():
            status.tools = [tool.name for tool in self._catalog().tools_for(name)]
        return statuses

    async def read_resource(self, server_name: str, uri: str) -> mcp.types.ReadResourceResult:
        return await self._catalog().read_resource(server_name, uri)

    # Turns

    def create_orchestrator(
        self,
        transport: GenerationTransport,
        memory: MemoryWriter | None = None,
    ) -> ContinuationOrchestrator:
        """Build an orchestrator that runs turns through ``transport``."""
        if self.resolver is None or self.executor is None:
            raise create_error("INTERNAL_ERROR", detail="Tool relay not initialized")
        return ContinuationOrchestrator(
            transport,
            self.resolver,
            self.executor,
            logger=self.logger,
            memory=memory,
        )
