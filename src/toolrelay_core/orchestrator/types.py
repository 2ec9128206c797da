"""Orchestrator types: messages, tool bindings, results and collaborators."""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from toolrelay_core.streaming.events import GenerationEvent, ToolCall
from toolrelay_core.types import MessageRole


@dataclass
class ChatMessage:
    """One conversation message as handed to the generation transport."""

    role: MessageRole
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data


@dataclass
class ToolDefinition:
    """A tool bound to one generation call.

    ``name`` is the function name the model sees; ``tool_id`` is the
    canonical id it dispatches to.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    tool_id: str
    args_model: type[BaseModel] | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Function-calling representation."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolExecutionResult:
    """Outcome of one tool call in a turn: an output or an error."""

    call_id: str
    tool_name: str
    output: Any = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def payload(self) -> Any:
        return self.output if self.success else {"error": self.error}

    def to_message(self) -> ChatMessage:
        return ChatMessage(
            role=MessageRole.TOOL,
            content=json.dumps(self.payload(), default=str),
            tool_call_id=self.call_id,
            name=self.tool_name,
        )


@dataclass
class TurnResult:
    """Everything a turn produced. Nothing is kept on the orchestrator."""

    text: str
    tool_results: list[ToolExecutionResult] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None

    def memory_context(self) -> str:
        """The answer as it should be remembered, tool results first."""
        if not self.tool_results:
            return self.text
        lines = "\n".join(
            f"[Tool {result.tool_name} Result: {result.to_message().content}]"
            for result in self.tool_results
        )
        return f"{lines}\n\n{self.text}"


@runtime_checkable
class GenerationTransport(Protocol):
    """Streams model output for a list of messages."""

    def stream(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None,
    ) -> AsyncIterator[GenerationEvent]:
        """Return an async iterator of generation events."""
        ...


@runtime_checkable
class MemoryWriter(Protocol):
    """Persists one exchange to conversation memory."""

    async def save_context(self, user_message: str, context: str) -> None:
        """Store the user message and the remembered answer."""
        ...
