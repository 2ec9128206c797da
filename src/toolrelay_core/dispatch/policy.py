"""Enable/disable policy for tools, keyed by canonical id."""

from collections.abc import Iterable


class ToolPolicy:
    """Set of disabled canonical tool ids. Everything else is enabled."""

    def __init__(self, disabled_tools: Iterable[str] | None = None):
        self._disabled: set[str] = set(disabled_tools or [])

    def is_enabled(self, tool_id: str) -> bool:
        return tool_id not in self._disabled

    def disable(self, tool_id: str) -> None:
        self._disabled.add(tool_id)

    def enable(self, tool_id: str) -> None:
        self._disabled.discard(tool_id)

    @property
    def disabled_tools(self) -> list[str]:
        return sorted(self._disabled)
