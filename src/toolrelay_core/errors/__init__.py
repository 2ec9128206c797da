"""Relay error handling - structured errors with context."""

from .errors import ErrorCategory, ErrorMatcher, ErrorTemplate, MatchResult, RelayError
from .factory import ErrorFactory, create_error, describe_error, get_error_factory
from .matchers import METHOD_NOT_FOUND, ErrorMatcherChain, is_method_not_found
from .registry import ErrorRegistry

__all__ = [
    # Core error types
    "RelayError",
    "ErrorCategory",
    "ErrorTemplate",
    "MatchResult",
    # Registry and factory
    "ErrorRegistry",
    "ErrorFactory",
    "ErrorMatcherChain",
    "ErrorMatcher",
    # Convenience functions
    "get_error_factory",
    "create_error",
    "describe_error",
    "is_method_not_found",
    "METHOD_NOT_FOUND",
]
