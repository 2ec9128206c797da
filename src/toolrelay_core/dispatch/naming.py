"""Canonical tool ids.

A tool is addressed as ``@mcp-<server>:<tool>``. Server names may not
contain ``:`` or whitespace, so splitting on the first ``:`` always
recovers the pair; tool names may contain anything, ``:`` included.
"""

from toolrelay_core.config.loader import validate_server_name
from toolrelay_core.errors import create_error

TOOL_ID_PREFIX = "@mcp-"
TOOL_ID_SEPARATOR = ":"


def encode_tool_id(server_name: str, tool_name: str) -> str:
    """Build the canonical id for a server's tool.

    Raises:
        RelayError(MALFORMED_TOOL_ID) if the pair cannot be encoded
            unambiguously
    """
    problem = validate_server_name(server_name)
    if problem or not tool_name:
        raise create_error(
            "MALFORMED_TOOL_ID",
            tool_name=f"{TOOL_ID_PREFIX}{server_name}{TOOL_ID_SEPARATOR}{tool_name}",
            detail=problem or "Tool name must be non-empty",
        )
    return f"{TOOL_ID_PREFIX}{server_name}{TOOL_ID_SEPARATOR}{tool_name}"


def _split(tool_id: str) -> tuple[str, str] | None:
    if not isinstance(tool_id, str) or not tool_id.startswith(TOOL_ID_PREFIX):
        return None
    server_name, sep, tool_name = tool_id[len(TOOL_ID_PREFIX) :].partition(TOOL_ID_SEPARATOR)
    if not sep or not tool_name or validate_server_name(server_name):
        return None
    return server_name, tool_name


def decode_tool_id(tool_id: str) -> tuple[str, str]:
    """Split a canonical id into ``(server_name, tool_name)``.

    Raises:
        RelayError(MALFORMED_TOOL_ID) if the string is not a canonical id
    """
    pair = _split(tool_id)
    if pair is None:
        raise create_error("MALFORMED_TOOL_ID", tool_name=tool_id)
    return pair


def is_tool_id(token: str) -> bool:
    """Shape check only; says nothing about whether the tool exists."""
    return _split(token) is not None
