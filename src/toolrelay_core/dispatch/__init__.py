"""Tool dispatch - canonical ids, resolution, argument schemas and execution."""

from .executor import ToolExecutor
from .naming import TOOL_ID_PREFIX, TOOL_ID_SEPARATOR, decode_tool_id, encode_tool_id, is_tool_id
from .policy import ToolPolicy
from .resolver import ResolvedTool, ToolResolver
from .schema import json_schema_to_model, validate_arguments

__all__ = [
    "TOOL_ID_PREFIX",
    "TOOL_ID_SEPARATOR",
    "encode_tool_id",
    "decode_tool_id",
    "is_tool_id",
    "ToolResolver",
    "ResolvedTool",
    "ToolPolicy",
    "ToolExecutor",
    "json_schema_to_model",
    "validate_arguments",
]
