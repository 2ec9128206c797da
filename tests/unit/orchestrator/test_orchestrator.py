"""Unit tests for ContinuationOrchestrator."""

import asyncio
import json

import pytest

from tests.mocks import (
    FakeConnectionFactory,
    FakeMemory,
    FakeTransport,
    call_chunk,
    text,
    text_result,
)
from toolrelay_core.config import MCPServerDefinition
from toolrelay_core.dispatch import ToolExecutor, ToolResolver
from toolrelay_core.mcp import CatalogService, ConnectionRegistry
from toolrelay_core.orchestrator import TOOL_NOT_FOUND, ChatMessage, ContinuationOrchestrator
from toolrelay_core.streaming import CancellationToken
from toolrelay_core.types import MessageRole

ECHO_SCHEMA = {
    "type": "object",
    "properties": {"text": {"type": "string"}},
    "required": ["text"],
}


def _echo(name, args):
    return text_result(args.get("text", ""))


class RelayHarness:
    """Registry, catalog, resolver and executor over fake servers."""

    def __init__(self, **servers):
        self.factory = FakeConnectionFactory(**servers)
        self.registry = ConnectionRegistry(connection_factory=self.factory)
        self.catalog = CatalogService(self.registry)
        self.resolver = ToolResolver(self.registry, self.catalog)
        self.executor = ToolExecutor(self.registry)

    async def connect(self, *names: str) -> "RelayHarness":
        for name in names:
            self.registry.add_server(
                MCPServerDefinition(name=name, url=f"http://localhost/{name}/mcp")
            )
            await self.registry.connect(name)
        return self

    def orchestrator(self, transport, **kwargs) -> ContinuationOrchestrator:
        return ContinuationOrchestrator(transport, self.resolver, self.executor, **kwargs)


async def _alpha(**overrides) -> RelayHarness:
    alpha = {"tools": {"echo": ECHO_SCHEMA}, "handler": _echo, **overrides}
    return await RelayHarness(alpha=alpha).connect("alpha")


class TestSinglePass:
    """Turns that never call a tool."""

    @pytest.mark.asyncio
    async def test_plain_answer(self):
        harness = await _alpha()
        transport = FakeTransport([text("Hello"), text(" there")])

        result = await harness.orchestrator(transport).run_turn("hi")

        assert result.text == "Hello there"
        assert result.tool_results == []
        assert result.error is None
        assert len(transport.requests) == 1
        messages, tools = transport.requests[0]
        assert tools is None
        assert messages[-1].content == "hi"

    @pytest.mark.asyncio
    async def test_history_comes_first_and_is_not_mutated(self):
        harness = await _alpha()
        transport = FakeTransport([text("ok")])
        history = [ChatMessage(role=MessageRole.SYSTEM, content="be brief")]

        await harness.orchestrator(transport).run_turn("hi", history=history)

        messages, _ = transport.requests[0]
        assert [m.role for m in messages] == [MessageRole.SYSTEM, MessageRole.USER]
        assert len(history) == 1


class TestToolBinding:
    """Mentions become bound tools."""

    @pytest.mark.asyncio
    async def test_mention_is_stripped_and_bound(self):
        harness = await _alpha()
        transport = FakeTransport([text("ok")])

        await harness.orchestrator(transport).run_turn("@mcp-alpha:echo say hi")

        messages, tools = transport.requests[0]
        assert messages[-1].content == "say hi"
        assert [(t.name, t.tool_id) for t in tools] == [("echo", "@mcp-alpha:echo")]
        assert tools[0].parameters == ECHO_SCHEMA

    @pytest.mark.asyncio
    async def test_mention_followed_by_punctuation_is_bound(self):
        harness = await _alpha()
        transport = FakeTransport([text("ok")])

        await harness.orchestrator(transport).run_turn("please use @mcp-alpha:echo, thanks")

        messages, tools = transport.requests[0]
        assert messages[-1].content == "please use, thanks"
        assert [t.tool_id for t in tools] == ["@mcp-alpha:echo"]

    @pytest.mark.asyncio
    async def test_mentions_taken_from_original_message(self):
        harness = await _alpha()
        transport = FakeTransport([text("ok")])

        await harness.orchestrator(transport).run_turn(
            "say hi", original_message="@mcp-alpha:echo say hi"
        )

        _, tools = transport.requests[0]
        assert [t.name for t in tools] == ["echo"]

    @pytest.mark.asyncio
    async def test_same_tool_name_on_two_servers(self):
        harness = await RelayHarness(
            alpha={"tools": {"echo": ECHO_SCHEMA}}, beta={"tools": {"echo": ECHO_SCHEMA}}
        ).connect("alpha", "beta")
        transport = FakeTransport([text("ok")])

        await harness.orchestrator(transport).run_turn("@mcp-alpha:echo @mcp-beta:echo go")

        _, tools = transport.requests[0]
        assert sorted(t.name for t in tools) == ["alpha_echo", "beta_echo"]

    @pytest.mark.asyncio
    async def test_unresolvable_mention_not_bound(self):
        harness = await _alpha()
        transport = FakeTransport([text("ok")])

        await harness.orchestrator(transport).run_turn("@mcp-gamma:echo go")

        messages, tools = transport.requests[0]
        assert tools is None
        assert messages[-1].content == "go"


class TestContinuation:
    """Turns that call tools and continue."""

    @pytest.mark.asyncio
    async def test_tool_call_then_second_pass(self):
        harness = await _alpha()
        transport = FakeTransport(
            [text("Checking. "), call_chunk(0, name="echo", id="call_1", args='{"text": "pong"}')],
            [text("Got pong.")],
        )

        result = await harness.orchestrator(transport).run_turn("@mcp-alpha:echo ping")

        assert result.text == "Checking. Got pong."
        assert [r.output["content"][0]["text"] for r in result.tool_results] == ["pong"]

        messages, tools = transport.requests[1]
        assert tools is None
        assistant, tool_message = messages[-2:]
        assert assistant.role == MessageRole.ASSISTANT
        assert assistant.content == "Checking. "
        assert [c.id for c in assistant.tool_calls] == ["call_1"]
        assert tool_message.role == MessageRole.TOOL
        assert tool_message.tool_call_id == "call_1"
        assert json.loads(tool_message.content)["content"][0]["text"] == "pong"

    @pytest.mark.asyncio
    async def test_results_keep_call_order(self):
        async def staggered(name, args):
            # First call finishes last
            await asyncio.sleep(0.05 if args["text"] == "a" else 0)
            return text_result(args["text"])

        harness = await _alpha(handler=staggered)
        transport = FakeTransport(
            [
                call_chunk(0, name="echo", id="c_a", args='{"text": "a"}'),
                call_chunk(1, name="echo", id="c_b", args='{"text": "b"}'),
            ],
            [text("done")],
        )

        result = await harness.orchestrator(transport).run_turn("@mcp-alpha:echo both")

        assert [r.call_id for r in result.tool_results] == ["c_a", "c_b"]
        messages, _ = transport.requests[1]
        assert [m.tool_call_id for m in messages[-2:]] == ["c_a", "c_b"]

    @pytest.mark.asyncio
    async def test_calls_run_concurrently(self):
        running = []
        peak = []

        async def tracked(name, args):
            running.append(args["text"])
            peak.append(len(running))
            await asyncio.sleep(0.01)
            running.remove(args["text"])
            return text_result(args["text"])

        harness = await _alpha(handler=tracked)
        transport = FakeTransport(
            [
                call_chunk(0, name="echo", args='{"text": "a"}'),
                call_chunk(1, name="echo", args='{"text": "b"}'),
            ],
            [text("done")],
        )

        await harness.orchestrator(transport).run_turn("@mcp-alpha:echo both")

        assert max(peak) == 2

    @pytest.mark.asyncio
    async def test_unknown_function_name(self):
        harness = await _alpha()
        transport = FakeTransport(
            [
                call_chunk(0, name="missing", id="c1", args="{}"),
                call_chunk(1, name="echo", id="c2", args='{"text": "hi"}'),
            ],
            [text("done")],
        )

        result = await harness.orchestrator(transport).run_turn("@mcp-alpha:echo go")

        missing, echo = result.tool_results
        assert missing.error == TOOL_NOT_FOUND
        assert echo.success
        messages, _ = transport.requests[1]
        assert json.loads(messages[-2].content) == {"error": TOOL_NOT_FOUND}

    @pytest.mark.asyncio
    async def test_invalid_arguments_not_sent(self):
        harness = await _alpha()
        transport = FakeTransport(
            [call_chunk(0, name="echo", args='{"text": 5}')],
            [text("done")],
        )

        result = await harness.orchestrator(transport).run_turn("@mcp-alpha:echo go")

        assert "Invalid arguments" in result.tool_results[0].error
        assert harness.factory.latest("alpha").calls == []

    @pytest.mark.asyncio
    async def test_executor_error_becomes_result(self):
        harness = await _alpha()
        harness.executor.policy.disable("@mcp-alpha:echo")
        transport = FakeTransport(
            [call_chunk(0, name="echo", args='{"text": "hi"}')],
            [text("It is disabled.")],
        )

        result = await harness.orchestrator(transport).run_turn("@mcp-alpha:echo go")

        assert result.text == "It is disabled."
        assert result.tool_results[0].error == "MCP tool @mcp-alpha:echo is disabled"

    @pytest.mark.asyncio
    async def test_second_pass_tool_calls_ignored(self):
        harness = await _alpha()
        transport = FakeTransport(
            [call_chunk(0, name="echo", args='{"text": "hi"}')],
            [text("done"), call_chunk(0, name="echo", args='{"text": "again"}')],
        )

        result = await harness.orchestrator(transport).run_turn("@mcp-alpha:echo go")

        assert len(result.tool_results) == 1
        assert len(transport.requests) == 2
        assert harness.factory.latest("alpha").calls == [("echo", {"text": "hi"})]

    @pytest.mark.asyncio
    async def test_on_text_sees_both_passes(self):
        harness = await _alpha()
        seen = []
        transport = FakeTransport(
            [text("One. "), call_chunk(0, name="echo", args='{"text": "hi"}')],
            [text("Two.")],
        )

        await harness.orchestrator(transport).run_turn("@mcp-alpha:echo go", on_text=seen.append)

        assert seen == ["One. ", "One. Two."]


class TestCancellation:
    """Cancelling a turn."""

    @pytest.mark.asyncio
    async def test_cancel_during_first_pass(self):
        harness = await _alpha()
        cancel = CancellationToken()
        transport = FakeTransport(
            [
                text("partial"),
                call_chunk(0, name="echo", args='{"text": "hi"}'),
                lambda: cancel.cancel("user stopped"),
                text(" more"),
            ]
        )

        result = await harness.orchestrator(transport).run_turn(
            "@mcp-alpha:echo go", cancel=cancel
        )

        assert result.cancelled
        assert result.text == "partial"
        assert result.tool_results == []
        assert len(transport.requests) == 1
        assert transport.aborted == 1
        assert harness.factory.latest("alpha").calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_tool_execution(self):
        cancel = CancellationToken()
        release = asyncio.Event()

        async def handler(name, args):
            if args["text"] == "slow":
                await release.wait()
            else:
                cancel.cancel()
            return text_result(args["text"])

        harness = await _alpha(handler=handler)
        transport = FakeTransport(
            [
                call_chunk(0, name="echo", id="c_slow", args='{"text": "slow"}'),
                call_chunk(1, name="echo", id="c_fast", args='{"text": "fast"}'),
            ],
            [text("never")],
        )

        result = await harness.orchestrator(transport).run_turn(
            "@mcp-alpha:echo go", cancel=cancel
        )

        assert result.cancelled
        assert [r.call_id for r in result.tool_results] == ["c_fast"]
        assert len(transport.requests) == 1

        release.set()
        await asyncio.sleep(0.01)


class TestFailuresAndMemory:
    """Generation failures and conversation memory."""

    @pytest.mark.asyncio
    async def test_generation_failure_reported_as_text(self):
        harness = await _alpha()
        memory = FakeMemory()
        transport = FakeTransport(RuntimeError("rate limited"))

        result = await harness.orchestrator(transport, memory=memory).run_turn("hi")

        assert result.error == "Generation failed: rate limited"
        assert result.text == "Error: Generation failed: rate limited"
        assert memory.saved == []

    @pytest.mark.asyncio
    async def test_memory_saved_once_with_tool_results(self):
        harness = await _alpha()
        memory = FakeMemory()
        transport = FakeTransport(
            [call_chunk(0, name="echo", args='{"text": "pong"}')],
            [text("Got pong.")],
        )

        await harness.orchestrator(transport, memory=memory).run_turn("@mcp-alpha:echo ping")

        assert len(memory.saved) == 1
        user_message, context = memory.saved[0]
        assert user_message == "@mcp-alpha:echo ping"
        assert context.startswith("[Tool echo Result: ")
        assert context.endswith("\n\nGot pong.")

    @pytest.mark.asyncio
    async def test_empty_answer_not_saved(self):
        harness = await _alpha()
        memory = FakeMemory()

        await harness.orchestrator(FakeTransport([]), memory=memory).run_turn("hi")

        assert memory.saved == []

    @pytest.mark.asyncio
    async def test_memory_failure_does_not_fail_turn(self, relay_logger, log_output):
        harness = await _alpha()
        memory = FakeMemory(error=RuntimeError("disk full"))

        result = await harness.orchestrator(
            FakeTransport([text("ok")]), memory=memory, logger=relay_logger
        ).run_turn("hi")

        assert result.text == "ok"
        assert result.error is None
        assert "Failed to save turn to memory" in log_output.getvalue()
