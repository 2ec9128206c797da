"""Unit tests for ToolExecutor."""

import asyncio
from unittest.mock import MagicMock

import pytest

from tests.mocks import FakeConnectionFactory, text_result
from toolrelay_core.dispatch import ToolExecutor, ToolPolicy
from toolrelay_core.errors import RelayError
from toolrelay_core.mcp import ConnectionRegistry
from toolrelay_core.telemetry import MetricLabels, setup_telemetry


async def _registry(factory: FakeConnectionFactory, *configs) -> ConnectionRegistry:
    registry = ConnectionRegistry(connection_factory=factory)
    for config in configs:
        registry.add_server(config)
        await registry.connect(config.name)
    return registry


class TestExecutorChecks:
    """Checks that run before any request is sent."""

    @pytest.mark.asyncio
    async def test_disabled_wins_over_disconnected(self):
        registry = ConnectionRegistry(connection_factory=FakeConnectionFactory())
        executor = ToolExecutor(registry, ToolPolicy(["@mcp-alpha:echo"]))

        with pytest.raises(RelayError) as exc_info:
            await executor.execute("@mcp-alpha:echo", {})
        assert exc_info.value.code == "TOOL_DISABLED"

    @pytest.mark.asyncio
    async def test_disabled_wins_over_malformed(self):
        registry = ConnectionRegistry(connection_factory=FakeConnectionFactory())
        executor = ToolExecutor(registry, ToolPolicy(["not-an-id"]))

        with pytest.raises(RelayError) as exc_info:
            await executor.execute("not-an-id", {})
        assert exc_info.value.code == "TOOL_DISABLED"

    @pytest.mark.asyncio
    async def test_disabled_connected_tool_sends_nothing(self, alpha_config):
        factory = FakeConnectionFactory()
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry, ToolPolicy(["@mcp-alpha:echo"]))

        with pytest.raises(RelayError):
            await executor.execute("@mcp-alpha:echo", {"text": "hi"})
        assert factory.latest("alpha").calls == []

    @pytest.mark.asyncio
    async def test_malformed_rejected_before_any_request(self, alpha_config):
        factory = FakeConnectionFactory()
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)

        with pytest.raises(RelayError) as exc_info:
            await executor.execute("alpha:echo", {})
        assert exc_info.value.code == "MALFORMED_TOOL_ID"
        assert factory.latest("alpha").calls == []

    @pytest.mark.asyncio
    async def test_server_not_connected(self, alpha_config):
        registry = ConnectionRegistry(connection_factory=FakeConnectionFactory())
        registry.add_server(alpha_config)
        executor = ToolExecutor(registry)

        with pytest.raises(RelayError) as exc_info:
            await executor.execute("@mcp-alpha:echo", {})
        assert exc_info.value.code == "SERVER_NOT_CONNECTED"
        assert exc_info.value.server_name == "alpha"

    @pytest.mark.asyncio
    async def test_re_enabled_tool_runs(self, alpha_config):
        factory = FakeConnectionFactory()
        registry = await _registry(factory, alpha_config)
        policy = ToolPolicy(["@mcp-alpha:echo"])
        executor = ToolExecutor(registry, policy)

        policy.enable("@mcp-alpha:echo")
        await executor.execute("@mcp-alpha:echo", {"text": "hi"})

        assert factory.latest("alpha").calls == [("echo", {"text": "hi"})]


class TestExecutorCalls:
    """Tests for the call itself."""

    @pytest.mark.asyncio
    async def test_returns_raw_result(self, alpha_config):
        factory = FakeConnectionFactory(alpha={"handler": lambda name, args: text_result("pong")})
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)

        result = await executor.execute("@mcp-alpha:ping", {})

        assert result.content[0].text == "pong"
        assert result.isError is False

    @pytest.mark.asyncio
    async def test_arguments_sent_verbatim(self, alpha_config):
        factory = FakeConnectionFactory()
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)
        args = {"text": "hi", "nested": {"n": [1, 2]}}

        await executor.execute("@mcp-alpha:ns:echo", args)

        assert factory.latest("alpha").calls == [("ns:echo", args)]

    @pytest.mark.asyncio
    async def test_tool_error_result_is_returned(self, alpha_config):
        factory = FakeConnectionFactory(
            alpha={"handler": lambda name, args: text_result("boom", is_error=True)}
        )
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)

        result = await executor.execute("@mcp-alpha:echo", {})

        assert result.isError is True

    @pytest.mark.asyncio
    async def test_timeout(self, alpha_config):
        async def slow(name, args):
            await asyncio.sleep(1)
            return text_result("late")

        factory = FakeConnectionFactory(alpha={"handler": slow})
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry, timeout=0.01)

        with pytest.raises(RelayError) as exc_info:
            await executor.execute("@mcp-alpha:echo", {})
        assert exc_info.value.code == "TOOL_TIMEOUT"

    @pytest.mark.asyncio
    async def test_transport_error_is_converted(self, alpha_config):
        def broken(name, args):
            raise ConnectionError("connection reset")

        factory = FakeConnectionFactory(alpha={"handler": broken})
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)

        with pytest.raises(RelayError) as exc_info:
            await executor.execute("@mcp-alpha:echo", {})
        assert exc_info.value.code == "MCP_CONNECTION_FAILED"
        assert exc_info.value.server_name == "alpha"

    @pytest.mark.asyncio
    async def test_no_retry(self, alpha_config):
        def broken(name, args):
            raise RuntimeError("bad")

        factory = FakeConnectionFactory(alpha={"handler": broken})
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)

        with pytest.raises(RelayError):
            await executor.execute("@mcp-alpha:echo", {})
        assert len(factory.latest("alpha").calls) == 1


class TestExecutorTelemetry:
    """Tests for telemetry recorded by the executor."""

    @pytest.fixture(autouse=True)
    def metrics(self, clean_telemetry):
        self.telemetry = setup_telemetry()
        self.telemetry["metrics"] = MagicMock()

    @pytest.mark.asyncio
    async def test_success_recorded(self, alpha_config):
        registry = await _registry(FakeConnectionFactory(), alpha_config)
        executor = ToolExecutor(registry)

        await executor.execute("@mcp-alpha:echo", {})

        kwargs = self.telemetry["metrics"].record_tool_invocation.call_args.kwargs
        assert kwargs["tool_name"] == "@mcp-alpha:echo"
        assert kwargs["server_name"] == "alpha"
        assert kwargs["status"] == MetricLabels.STATUS_SUCCESS

    @pytest.mark.asyncio
    async def test_error_result_recorded_as_failure(self, alpha_config):
        factory = FakeConnectionFactory(
            alpha={"handler": lambda name, args: text_result("boom", is_error=True)}
        )
        registry = await _registry(factory, alpha_config)
        executor = ToolExecutor(registry)

        await executor.execute("@mcp-alpha:echo", {})

        kwargs = self.telemetry["metrics"].record_tool_invocation.call_args.kwargs
        assert kwargs["status"] == MetricLabels.STATUS_ERROR
        assert kwargs["error_code"] == "TOOL_FAILED"
