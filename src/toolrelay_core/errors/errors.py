"""Relay error types and matcher interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Which part of the relay an error comes from."""

    CONNECTION = "CONNECTION"
    DISPATCH = "DISPATCH"
    TOOL = "TOOL"
    STREAM = "STREAM"
    CONFIG = "CONFIG"
    SYSTEM = "SYSTEM"


@dataclass
class RelayError(Exception):
    """Every failure the relay raises on purpose.

    ``server_name`` and ``tool_name`` locate the failure; for dispatch and
    tool errors ``tool_name`` holds the canonical id when one is known.
    """

    code: str
    category: ErrorCategory
    message: str
    detail: str | None = None
    suggestion: str | None = None
    retryable: bool = False
    server_name: str | None = None
    tool_name: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail and self.detail != self.message:
            return f"{self.message}: {self.detail}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form; unset optional fields are left out."""
        data = {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
        }
        for key in ("detail", "suggestion", "server_name", "tool_name"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    def with_context(
        self, server_name: str | None = None, tool_name: str | None = None
    ) -> "RelayError":
        """Copy that fills in whichever location fields are given."""
        return replace(
            self,
            server_name=server_name or self.server_name,
            tool_name=tool_name or self.tool_name,
        )


@dataclass
class ErrorTemplate:
    """Registered shape of one error code; ``{name}`` fields are interpolated."""

    code: str
    category: ErrorCategory
    message_template: str
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False


@dataclass
class MatchResult:
    code: str
    context: dict[str, Any]
    retryable: bool | None = None  # None keeps the template default


class ErrorMatcher(ABC):
    """Maps one family of raw exceptions (MCP, timeout, socket) to an error code."""

    @abstractmethod
    def matches(self, error: Exception) -> bool: ...

    @abstractmethod
    def extract(self, error: Exception) -> MatchResult: ...
