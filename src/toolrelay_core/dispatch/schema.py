"""JSON schema to pydantic model conversion for tool arguments."""

import keyword
import re
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
)

from toolrelay_core.errors import create_error

_SCALARS: dict[str, Any] = {
    "string": StrictStr,
    "number": StrictFloat,
    "integer": StrictInt,
    "boolean": StrictBool,
}

_MODEL_CONFIG = ConfigDict(extra="allow", populate_by_name=True)


def _model_name(name: str) -> str:
    parts = re.split(r"[\W_]+", name)
    return "".join(part[:1].upper() + part[1:] for part in parts if part) or "ToolArgs"


def _field_name(key: str, position: int) -> str:
    if (
        key.isidentifier()
        and not keyword.iskeyword(key)
        and not key.startswith("_")
        and not hasattr(BaseModel, key)
    ):
        return key
    return f"field_{position}"


def _annotation(schema: Any, name: str) -> Any:
    if not isinstance(schema, dict):
        return Any

    kind = schema.get("type")
    nullable = False
    if isinstance(kind, list):
        kinds = [k for k in kind if k != "null"]
        nullable = len(kinds) < len(kind)
        kind = kinds[0] if len(kinds) == 1 else None

    if kind in _SCALARS:
        annotation = _SCALARS[kind]
    elif kind == "array":
        annotation = list[_annotation(schema.get("items"), f"{name}_item")]
    elif kind == "object":
        if schema.get("properties"):
            annotation = json_schema_to_model(schema, name)
        else:
            annotation = dict[str, Any]
    else:
        return Any

    return annotation | None if nullable else annotation


def json_schema_to_model(schema: dict[str, Any] | None, name: str = "ToolArgs") -> type[BaseModel]:
    """Build a pydantic model that validates arguments against a JSON schema.

    Handles string, number, integer, boolean, array and object (nested
    objects become nested models). Anything else validates as ``Any``.
    Properties not listed in ``required`` are optional, and keys not in the
    schema are accepted.

    Args:
        schema: JSON schema of the tool input (an object schema)
        name: Name used for the generated model

    Returns:
        A pydantic model class
    """
    schema = schema or {}
    model_name = _model_name(name)
    properties = schema.get("properties") if schema.get("type", "object") == "object" else None
    required = set(schema.get("required") or [])

    fields: dict[str, Any] = {}
    for position, (key, prop) in enumerate((properties or {}).items()):
        annotation = _annotation(prop, f"{model_name}_{key}")
        description = prop.get("description") if isinstance(prop, dict) else None
        if key in required:
            field = Field(..., alias=key, description=description)
        else:
            annotation = annotation | None if annotation is not Any else Any
            field = Field(None, alias=key, description=description)
        fields[_field_name(key, position)] = (annotation, field)

    return create_model(model_name, __config__=_MODEL_CONFIG, **fields)


def validate_arguments(
    model: type[BaseModel], arguments: dict[str, Any], tool_name: str
) -> dict[str, Any]:
    """Check arguments against a generated model.

    The caller's dict is returned unchanged; validation never rewrites what
    gets sent to the server.

    Raises:
        RelayError(PARAM_INVALID) when the arguments do not fit the schema
    """
    try:
        model.model_validate(arguments)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise create_error("PARAM_INVALID", tool_name=tool_name, detail=problems) from e
    return arguments
