"""Continuation Orchestrator - one conversational turn with tool calls.

A turn is at most two generation passes. The first pass runs with the tools
the user mentioned bound to it. If it ends with tool calls, they are executed
concurrently, their results appended to the conversation, and a second pass
runs with no tools bound to produce the final answer.
"""

import asyncio
import time
import uuid
from collections import Counter
from typing import TYPE_CHECKING, Any

from toolrelay_core.dispatch.schema import json_schema_to_model, validate_arguments
from toolrelay_core.errors import RelayError, create_error, describe_error
from toolrelay_core.streaming import CancellationToken, PassResult, TextCallback, ToolCall, consume
from toolrelay_core.telemetry import instrument_turn
from toolrelay_core.telemetry.metrics import MetricLabels
from toolrelay_core.types import LogLevel, MessageRole

from .mentions import find_mentions, strip_mentions
from .types import (
    ChatMessage,
    GenerationTransport,
    MemoryWriter,
    ToolDefinition,
    ToolExecutionResult,
    TurnResult,
)

if TYPE_CHECKING:
    from toolrelay_core.dispatch import ToolExecutor, ToolResolver
    from toolrelay_core.logging import RelayLogger, ToolLogger

TOOL_NOT_FOUND = "Tool not found"


def _to_payload(raw: Any) -> Any:
    if hasattr(raw, "model_dump"):
        return raw.model_dump(mode="json", exclude_none=True)
    return raw


def _retrieve_exception(task: asyncio.Task) -> None:
    # Abandoned after cancellation; keep asyncio from reporting it as unretrieved
    if not task.cancelled():
        task.exception()


class ContinuationOrchestrator:
    """Runs conversational turns against a generation transport."""

    def __init__(
        self,
        transport: GenerationTransport,
        resolver: "ToolResolver",
        executor: "ToolExecutor",
        logger: "RelayLogger | None" = None,
        memory: MemoryWriter | None = None,
    ):
        """Initialize orchestrator.

        Args:
            transport: Generation transport producing event streams
            resolver: Resolves mentioned tool ids to catalogued tools
            executor: Executes tool calls
            logger: Optional logger
            memory: Optional conversation memory, written once per turn
        """
        self._transport = transport
        self._resolver = resolver
        self._executor = executor
        self._logger = logger
        self._memory = memory

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "turn", message, context)

    async def run_turn(
        self,
        user_message: str,
        history: list[ChatMessage] | None = None,
        original_message: str | None = None,
        cancel: CancellationToken | None = None,
        on_text: TextCallback | None = None,
    ) -> TurnResult:
        """Run one turn.

        Args:
            user_message: Text to send to the model (mentions are stripped)
            history: Earlier conversation messages, oldest first
            original_message: The message as the user typed it, scanned for
                tool mentions (defaults to ``user_message``)
            cancel: Optional cancellation token spanning the whole turn
            on_text: Called with the full answer text whenever it grows

        Returns:
            TurnResult; failures are reported in it rather than raised
        """
        turn_id = uuid.uuid4().hex[:8]
        cancel = cancel or CancellationToken()
        turn_logger = self._logger.turn(turn_id) if self._logger else None
        start_time = time.time()

        mentions = find_mentions(original_message if original_message is not None else user_message)
        if turn_logger:
            turn_logger.started(mentions)

        model_text = strip_mentions(user_message, mentions) if mentions else user_message
        messages = list(history or [])
        messages.append(ChatMessage(role=MessageRole.USER, content=model_text))

        try:
            async with instrument_turn(turn_id) as telemetry_result:
                result = await self._run(turn_id, messages, mentions, cancel, on_text)
                if result.cancelled:
                    telemetry_result["status"] = MetricLabels.STATUS_CANCELLED
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            if turn_logger:
                turn_logger.failed(e, duration_ms)
            message = describe_error(e)
            return TurnResult(text=f"Error: {message}", error=message)

        duration_ms = int((time.time() - start_time) * 1000)
        if turn_logger:
            if result.cancelled:
                turn_logger.cancelled(cancel.reason)
            else:
                turn_logger.completed(duration_ms, len(result.tool_results))

        await self._remember(user_message, result)
        return result

    async def _run(
        self,
        turn_id: str,
        messages: list[ChatMessage],
        mentions: list[str],
        cancel: CancellationToken,
        on_text: TextCallback | None,
    ) -> TurnResult:
        bindings = self._bind_tools(mentions)
        tools = list(bindings.values())

        first = await self._generate(1, turn_id, messages, tools or None, cancel, on_text)
        if first.cancelled or not first.tool_calls:
            return TurnResult(text=first.text, cancelled=first.cancelled)

        results, cancelled = await self._execute_calls(turn_id, first.tool_calls, bindings, cancel)
        if cancelled:
            return TurnResult(text=first.text, tool_results=results, cancelled=True)

        messages.append(
            ChatMessage(role=MessageRole.ASSISTANT, content=first.text, tool_calls=first.tool_calls)
        )
        messages.extend(result.to_message() for result in results)

        second = await self._generate(
            2,
            turn_id,
            messages,
            None,
            cancel,
            on_text,
            initial_text=first.text,
            resolve_tool_calls=False,
        )
        return TurnResult(text=second.text, tool_results=results, cancelled=second.cancelled)

    async def _generate(
        self,
        pass_number: int,
        turn_id: str,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None,
        cancel: CancellationToken,
        on_text: TextCallback | None,
        initial_text: str = "",
        resolve_tool_calls: bool = True,
    ) -> PassResult:
        if self._logger:
            self._logger.turn(turn_id).pass_started(pass_number, len(tools or []))
        try:
            return await consume(
                self._transport.stream(messages, tools),
                cancel=cancel,
                on_text=on_text,
                initial_text=initial_text,
                resolve_tool_calls=resolve_tool_calls,
                logger=self._logger,
            )
        except RelayError:
            raise
        except Exception as e:
            raise create_error("GENERATION_FAILED", detail=str(e) or type(e).__name__) from e

    def _bind_tools(self, mentions: list[str]) -> dict[str, ToolDefinition]:
        """Tool definitions for the mentioned tools that resolve.

        Function names are the tools' own names, prefixed with the server
        name when two mentioned servers expose the same name.
        """
        resolved = []
        for tool_id in mentions:
            try:
                resolved.append(self._resolver.resolve(tool_id))
            except RelayError as e:
                self._log(LogLevel.WARN, f"Not binding '{tool_id}': {e}")

        counts = Counter(tool.tool_name for tool in resolved)
        bindings: dict[str, ToolDefinition] = {}
        for tool in resolved:
            name = tool.tool_name
            if counts[name] > 1:
                name = f"{tool.server_name}_{tool.tool_name}"
            parameters = tool.schema.input_schema or {"type": "object", "properties": {}}
            bindings[name] = ToolDefinition(
                name=name,
                description=tool.schema.description or f"MCP tool: {name}",
                parameters=parameters,
                tool_id=tool.tool_id,
                args_model=json_schema_to_model(parameters, name),
            )

        if bindings:
            self._log(LogLevel.DEBUG, "Bound tools", {"tools": list(bindings)})
        return bindings

    async def _execute_calls(
        self,
        turn_id: str,
        calls: list[ToolCall],
        bindings: dict[str, ToolDefinition],
        cancel: CancellationToken,
    ) -> tuple[list[ToolExecutionResult], bool]:
        """Run every call concurrently.

        Returns:
            Results in call order, and whether the turn was cancelled while
            waiting. After a cancel only the calls already finished are
            returned; the rest keep running but are no longer awaited.
        """
        tool_logger = self._logger.turn(turn_id).tool() if self._logger else None
        tasks = [
            asyncio.create_task(self._execute_one(call, bindings, tool_logger)) for call in calls
        ]
        cancel_wait = asyncio.create_task(cancel.wait())

        try:
            pending: set[asyncio.Task] = set(tasks)
            while pending:
                done, _ = await asyncio.wait(
                    pending | {cancel_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                pending -= done
                if cancel_wait in done:
                    break
        finally:
            cancel_wait.cancel()

        if cancel.cancelled:
            for task in tasks:
                if not task.done():
                    task.add_done_callback(_retrieve_exception)
            return [task.result() for task in tasks if task.done()], True

        return [task.result() for task in tasks], False

    async def _execute_one(
        self,
        call: ToolCall,
        bindings: dict[str, ToolDefinition],
        tool_logger: "ToolLogger | None",
    ) -> ToolExecutionResult:
        definition = bindings.get(call.name)
        if definition is None:
            self._log(LogLevel.ERROR, f"No bound tool matches call '{call.name}'")
            return ToolExecutionResult(call_id=call.id, tool_name=call.name, error=TOOL_NOT_FOUND)

        if tool_logger:
            tool_logger.calling(definition.tool_id, call.args)
        start_time = time.time()
        try:
            if definition.args_model is not None:
                validate_arguments(definition.args_model, call.args, definition.tool_id)
            raw = await self._executor.execute(definition.tool_id, call.args)
        except Exception as e:
            message = describe_error(e)
            if tool_logger:
                duration_ms = int((time.time() - start_time) * 1000)
                tool_logger.error(definition.tool_id, message, duration_ms)
            return ToolExecutionResult(call_id=call.id, tool_name=call.name, error=message)

        output = _to_payload(raw)
        if tool_logger:
            tool_logger.result(definition.tool_id, output, int((time.time() - start_time) * 1000))
        return ToolExecutionResult(call_id=call.id, tool_name=call.name, output=output)

    async def _remember(self, user_message: str, result: TurnResult) -> None:
        if self._memory is None or not result.text:
            return
        try:
            await self._memory.save_context(user_message, result.memory_context())
        except Exception as e:
            self._log(LogLevel.ERROR, f"Failed to save turn to memory: {e}")
