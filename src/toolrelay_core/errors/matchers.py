"""Error matchers for converting exceptions to RelayErrors."""

import asyncio
from typing import Any

from mcp.shared.exceptions import McpError

from .errors import ErrorMatcher, MatchResult

# JSON-RPC 2.0 "method not found"
METHOD_NOT_FOUND = -32601


def is_method_not_found(error: BaseException) -> bool:
    """Check whether a provider rejected a request as an unknown method.

    Args:
        error: Exception raised by an MCP request

    Returns:
        True for JSON-RPC -32601 or a "Method not found" message
    """
    if isinstance(error, McpError) and error.error.code == METHOD_NOT_FOUND:
        return True
    if getattr(error, "code", None) == METHOD_NOT_FOUND:
        return True
    return "method not found" in str(error).lower()


class MethodNotFoundMatcher(ErrorMatcher):
    """Matches MCP 'method not found' responses."""

    def matches(self, error: Exception) -> bool:
        return is_method_not_found(error)

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="CAPABILITY_UNSUPPORTED",
            context={"method": "unknown", "detail": str(error)},
            retryable=False,
        )


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeout errors."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (asyncio.TimeoutError, TimeoutError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="TOOL_TIMEOUT",
            context={"timeout_seconds": "unknown"},
        )


class ConnectionErrorMatcher(ErrorMatcher):
    """Matches socket-level connection failures."""

    def matches(self, error: Exception) -> bool:
        return isinstance(error, (ConnectionError, OSError))

    def extract(self, error: Exception) -> MatchResult:
        return MatchResult(
            code="MCP_CONNECTION_FAILED",
            context={"server_name": "unknown", "detail": str(error)},
            retryable=True,
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: Exception) -> bool:
        return True

    def extract(self, error: Exception) -> MatchResult:
        context: dict[str, Any] = {
            "detail": str(error) or type(error).__name__,
            "error_type": type(error).__name__,
        }
        return MatchResult(code="INTERNAL_ERROR", context=context, retryable=False)


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: Exception) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        return MatchResult(code="INTERNAL_ERROR", context={"detail": str(error)})

    def add_matcher(self, matcher: ErrorMatcher, priority: int = 0) -> None:
        """Add a matcher to the chain.

        Args:
            matcher: Matcher to add
            priority: Position in chain (0 = first)
        """
        self.matchers.insert(priority, matcher)

    def _load_builtin_matchers(self) -> None:
        # GenericErrorMatcher must stay last
        self.matchers = [
            MethodNotFoundMatcher(),
            TimeoutErrorMatcher(),
            ConnectionErrorMatcher(),
            GenericErrorMatcher(),
        ]
