"""Streaming Accumulator - narrative text and tool-call reassembly.

One accumulator covers one generation pass. Text is appended in arrival
order. Tool calls arrive either as fragments keyed by index, whose argument
text is concatenated until the pass ends, or as whole calls from providers
that do not stream arguments. Whole calls are only used when the pass
produced no fragments at all.
"""

import json
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from toolrelay_core.logging.logger import RelayLogger
from toolrelay_core.telemetry import record_dropped_tool_call
from toolrelay_core.types import LogLevel

from .cancellation import CancellationToken
from .events import GenerationEvent, ToolCall

TextCallback = Callable[[str], None]


def _new_call_id() -> str:
    return f"tool_call_{uuid.uuid4().hex[:12]}"


@dataclass
class _Fragment:
    index: int
    id: str | None = None
    name: str = ""
    args_parts: list[str] = field(default_factory=list)

    @property
    def args_text(self) -> str:
        return "".join(self.args_parts)


@dataclass
class PassResult:
    """Outcome of one generation pass."""

    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    cancelled: bool = False


class StreamAccumulator:
    """Accumulates one pass of generation events."""

    def __init__(
        self,
        initial_text: str = "",
        resolve_tool_calls: bool = True,
        logger: RelayLogger | None = None,
    ):
        """Initialize accumulator.

        Args:
            initial_text: Text already shown to the user (continuation passes
                start from the first pass's text)
            resolve_tool_calls: When False, tool calls in the stream are ignored
            logger: Optional logger
        """
        self._text = initial_text
        self._resolve_tool_calls = resolve_tool_calls
        self._logger = logger
        self._fragments: dict[int, _Fragment] = {}
        self._whole_calls: list[ToolCall] = []

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "stream", message, context)

    @property
    def text(self) -> str:
        return self._text

    def feed(self, event: GenerationEvent) -> bool:
        """Apply one event.

        Returns:
            True if the event added narrative text
        """
        if self._resolve_tool_calls:
            for chunk in event.tool_call_chunks:
                fragment = self._fragments.get(chunk.index)
                if fragment is None:
                    fragment = self._fragments[chunk.index] = _Fragment(index=chunk.index)
                # First non-empty id and name win
                if chunk.id and not fragment.id:
                    fragment.id = chunk.id
                if chunk.name and not fragment.name:
                    fragment.name = chunk.name
                if chunk.args:
                    fragment.args_parts.append(chunk.args)

            if not event.tool_call_chunks:
                for call in event.tool_calls:
                    if call.name and call.name.strip():
                        self._whole_calls.append(call)

        text = event.text()
        if text:
            self._text += text
            return True
        return False

    def finish(self) -> PassResult:
        """Close the pass and reassemble tool calls.

        Fragments whose argument text does not parse to a JSON object are
        dropped, as are fragments that never received a name.
        """
        if not self._resolve_tool_calls:
            return PassResult(text=self.text)

        if self._fragments:
            calls = [
                call
                for index in sorted(self._fragments)
                if (call := self._resolve_fragment(self._fragments[index])) is not None
            ]
        else:
            calls = [
                call
                for position, whole in enumerate(self._whole_calls)
                if (call := self._resolve_whole(whole, position)) is not None
            ]

        if calls:
            self._log(
                LogLevel.DEBUG,
                f"Resolved {len(calls)} tool call(s)",
                {"tool_calls": [c.to_dict() for c in calls]},
            )
        return PassResult(text=self.text, tool_calls=calls)

    def _resolve_fragment(self, fragment: _Fragment) -> ToolCall | None:
        if not fragment.name:
            self._drop(fragment.index, "nameless", "Dropping tool call fragment without a name")
            return None

        args_text = fragment.args_text
        if not args_text:
            self._drop(fragment.index, "empty_args", f"Dropping '{fragment.name}': no arguments")
            return None

        try:
            args = json.loads(args_text)
        except json.JSONDecodeError as e:
            self._drop(
                fragment.index,
                "parse_error",
                f"Failed to parse tool call arguments for '{fragment.name}': {e}",
                {"args": args_text},
            )
            return None

        if not isinstance(args, dict):
            self._drop(
                fragment.index,
                "not_object",
                f"Arguments for '{fragment.name}' are not a JSON object",
                {"args": args_text},
            )
            return None

        return ToolCall(
            id=fragment.id or _new_call_id(),
            name=fragment.name,
            args=args,
            index=fragment.index,
        )

    def _resolve_whole(self, call: ToolCall, position: int) -> ToolCall | None:
        # Providers that do not stream arguments send None for no-argument tools
        args = {} if call.args is None else call.args
        if not isinstance(args, dict):
            self._drop(position, "not_object", f"Arguments for '{call.name}' are not a JSON object")
            return None
        return ToolCall(id=call.id or _new_call_id(), name=call.name, args=args, index=position)

    def _drop(
        self, index: int, reason: str, message: str, context: dict[str, Any] | None = None
    ) -> None:
        record_dropped_tool_call(reason)
        self._log(LogLevel.WARN, message, {"index": index, "reason": reason, **(context or {})})


async def consume(
    stream: AsyncIterator[GenerationEvent],
    cancel: CancellationToken | None = None,
    on_text: TextCallback | None = None,
    initial_text: str = "",
    resolve_tool_calls: bool = True,
    logger: RelayLogger | None = None,
) -> PassResult:
    """Drive one generation pass to completion.

    The cancellation token is checked once per event, before the event is
    applied. A cancelled pass returns the text buffered so far and no tool
    calls.

    Args:
        stream: Ordered generation events
        cancel: Optional turn-wide cancellation token
        on_text: Called with the full text so far whenever it grows
        initial_text: Text carried over from an earlier pass
        resolve_tool_calls: Whether to reassemble tool calls
        logger: Optional logger

    Returns:
        PassResult for the pass
    """
    accumulator = StreamAccumulator(
        initial_text=initial_text,
        resolve_tool_calls=resolve_tool_calls,
        logger=logger,
    )
    cancelled = False
    try:
        async for event in stream:
            if cancel is not None and cancel.cancelled:
                cancelled = True
                break
            if accumulator.feed(event) and on_text is not None:
                on_text(accumulator.text)
    finally:
        aclose = getattr(stream, "aclose", None)
        if cancelled and aclose is not None:
            await aclose()

    # Also covers a cancel that lands after the last event
    if cancel is not None and cancel.cancelled:
        if logger:
            logger._log(LogLevel.INFO, "stream", "Generation cancelled", {"reason": cancel.reason})
        return PassResult(text=accumulator.text, cancelled=True)
    return accumulator.finish()
