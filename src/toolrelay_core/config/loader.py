"""Relay configuration loader."""

import os
import re
import typing
from dataclasses import fields
from enum import Enum
from pathlib import Path
from types import UnionType
from typing import Any

import yaml

from toolrelay_core.errors import create_error
from toolrelay_core.types import LogLevel, ValidationIssue, ValidationResult

from .models import RelayConfig

CONFIG_ENV_VAR = "TOOLRELAY_CONFIG_PATH"
LOCAL_CONFIG_NAME = "toolrelay.yaml"

# Characters that would make a canonical tool id ambiguous
_SERVER_NAME_FORBIDDEN = re.compile(r"[:\s]")


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        RelayError: If required var not set
    """
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        if operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", detail=error_msg)
        raise create_error(
            "CONFIG_INVALID",
            detail=f"Required environment variable {var_name} not set",
        )

    return re.sub(pattern, replacer, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    if isinstance(data, str):
        return resolve_env_vars(data)
    return data


def validate_server_name(name: Any) -> str | None:
    """Check a server name can be embedded in a canonical tool id.

    Args:
        name: Candidate server name

    Returns:
        Problem description, or None when the name is usable
    """
    if not isinstance(name, str) or not name:
        return "server name must be a non-empty string"
    if _SERVER_NAME_FORBIDDEN.search(name):
        return f"server name '{name}' must not contain ':' or whitespace"
    return None


class ConfigLoader:
    """Load and validate relay configuration."""

    def __init__(self, logger: Any = None):
        """Initialize config loader.

        Args:
            logger: Optional RelayLogger instance
        """
        self._config: RelayConfig | None = None
        self._config_path: Path | None = None
        self._logger = logger

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger:
            self._logger._log(level, "config", message)

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> RelayConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. TOOLRELAY_CONFIG_PATH environment variable
        2. ./toolrelay.yaml
        3. ~/.toolrelay/config.yaml
        4. If use_defaults=True and no file found, use default configuration

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded RelayConfig instance

        Raises:
            RelayError: If the file is missing (and defaults are not allowed)
                or cannot be parsed
        """
        explicit = path is not None
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path)

        if not config_path.exists():
            if use_defaults and not explicit:
                self._log(LogLevel.INFO, "No config file found, using default configuration")
                return self.load_defaults()
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Configuration file not found: {config_path}",
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Invalid YAML in config file: {e}",
            ) from e

        if not isinstance(data, dict):
            raise create_error("CONFIG_INVALID", detail="Top-level config must be a mapping")

        data = _resolve_env_vars_recursive(data)
        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> RelayConfig:
        """Load default configuration without a file."""
        return self.load_from_dict({})

    def load_from_dict(self, data: dict[str, Any], config_path: Path | None = None) -> RelayConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration dictionary
            config_path: Optional path to config file (for tracking)

        Returns:
            Loaded RelayConfig instance

        Raises:
            RelayError: If configuration is invalid
        """
        validation = self.validate(data)
        for warning in validation.warnings:
            self._log(LogLevel.WARN, warning.message)
        if not validation.valid:
            error_messages = [f"- {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                detail="Configuration validation failed:\n" + "\n".join(error_messages),
            )

        try:
            config = self._dict_to_config(data)
        except (TypeError, ValueError) as e:
            raise create_error(
                "CONFIG_INVALID",
                detail=f"Failed to parse configuration: {e}",
            ) from e

        self._config = config
        self._config_path = config_path
        self._log(LogLevel.INFO, "Configuration loaded successfully")
        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        valid_keys = {f.name for f in fields(RelayConfig)}
        for key in data:
            if key not in valid_keys:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        tools = data.get("tools")
        if tools is not None:
            if not isinstance(tools, dict):
                errors.append(ValidationIssue(path="tools", message="tools must be a dictionary"))
            else:
                errors.extend(self._validate_tools(tools))

        generation = data.get("generation")
        if isinstance(generation, dict):
            rounds = generation.get("max_continuation_rounds", 1)
            if rounds != 1:
                errors.append(
                    ValidationIssue(
                        path="generation.max_continuation_rounds",
                        message="max_continuation_rounds must be 1",
                    )
                )
            timeout = generation.get("tool_call_timeout")
            if timeout is not None and (not isinstance(timeout, int | float) or timeout <= 0):
                errors.append(
                    ValidationIssue(
                        path="generation.tool_call_timeout",
                        message="tool_call_timeout must be a positive number",
                    )
                )

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    def _validate_tools(self, tools: dict[str, Any]) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []

        servers = tools.get("mcp_servers", {})
        if not isinstance(servers, dict):
            errors.append(
                ValidationIssue(
                    path="tools.mcp_servers", message="mcp_servers must be a dictionary"
                )
            )
            servers = {}

        for name, server in servers.items():
            path = f"tools.mcp_servers.{name}"
            problem = validate_server_name(name)
            if problem:
                errors.append(ValidationIssue(path=path, message=problem))
            if not isinstance(server, dict):
                errors.append(ValidationIssue(path=path, message=f"{path} must be a dictionary"))
                continue
            if not server.get("url") and not server.get("command"):
                errors.append(
                    ValidationIssue(path=path, message=f"server '{name}' needs a url or a command")
                )
            timeout = server.get("timeout")
            if timeout is not None and (not isinstance(timeout, int) or timeout <= 0):
                errors.append(
                    ValidationIssue(
                        path=f"{path}.timeout", message="timeout must be a positive integer"
                    )
                )

        disabled = tools.get("disabled_tools", [])
        if not isinstance(disabled, list) or not all(isinstance(t, str) for t in disabled):
            errors.append(
                ValidationIssue(
                    path="tools.disabled_tools",
                    message="disabled_tools must be a list of strings",
                )
            )

        return errors

    def get(self) -> RelayConfig:
        """Get current configuration.

        Raises:
            RelayError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", detail="Configuration not loaded")
        return self._config

    def reload(self) -> RelayConfig:
        """Reload configuration from the file it was last loaded from.

        Raises:
            RelayError: If no config path set or reload fails
        """
        if self._config_path is None:
            raise create_error("CONFIG_INVALID", detail="No config path set, cannot reload")
        return self.load(self._config_path)

    def _resolve_config_path(self) -> Path:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        local_path = Path(LOCAL_CONFIG_NAME)
        if local_path.exists():
            return local_path

        home_path = Path.home() / ".toolrelay" / "config.yaml"
        if home_path.exists():
            return home_path

        # Not found - use local path as default
        return local_path

    def _dict_to_config(self, data: dict[str, Any]) -> RelayConfig:
        kwargs: dict[str, Any] = {}
        for f in fields(RelayConfig):
            if f.name in data:
                kwargs[f.name] = self._convert_field(f.type, data[f.name])

        config = RelayConfig(**kwargs)

        # Server names come from the mapping keys
        for name, server in config.tools.mcp_servers.items():
            server.name = name
        return config

    def _convert_field(self, field_type: Any, value: Any) -> Any:
        """Convert field value to appropriate type.

        Args:
            field_type: Expected field type
            value: Value to convert

        Returns:
            Converted value
        """
        if value is None:
            return None

        origin = typing.get_origin(field_type)

        # Optional[X] / X | None
        if origin in (typing.Union, UnionType):
            args = [a for a in typing.get_args(field_type) if a is not type(None)]
            if len(args) == 1:
                return self._convert_field(args[0], value)
            return value

        if origin is list:
            if not isinstance(value, list):
                return value
            args = typing.get_args(field_type)
            if args:
                return [self._convert_field(args[0], item) for item in value]
            return value

        if origin is dict:
            if not isinstance(value, dict):
                return value
            args = typing.get_args(field_type)
            if args and len(args) == 2:
                value_type = args[1]
                return {k: self._convert_field(value_type, v) for k, v in value.items()}
            return value

        if hasattr(field_type, "__dataclass_fields__"):
            if isinstance(value, dict):
                kwargs = {}
                for f in fields(field_type):
                    if f.name in value:
                        kwargs[f.name] = self._convert_field(f.type, value[f.name])
                return field_type(**kwargs)
            return value

        if isinstance(field_type, type) and issubclass(field_type, Enum):
            if isinstance(value, str):
                return field_type(value)
            return value

        return value


def load_config(path: str | Path | None = None) -> RelayConfig:
    """Convenience function to load config.

    Args:
        path: Optional path to config file

    Returns:
        Loaded RelayConfig instance
    """
    return ConfigLoader().load(path)
