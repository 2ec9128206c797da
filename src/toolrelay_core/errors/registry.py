"""Error registry for creating errors from templates."""

from typing import Any

from .errors import ErrorCategory, ErrorTemplate, RelayError


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        """List all registered error codes."""
        return list(self._templates.keys())

    def register(self, template: ErrorTemplate) -> None:
        """Register (or replace) a template."""
        self._templates[template.code] = template

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
    ) -> RelayError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation

        Returns:
            RelayError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        # An explicit detail in the context wins over the template
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        return RelayError(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            server_name=context.get("server_name"),
            tool_name=context.get("tool_name"),
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except (KeyError, IndexError):
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # CONFIG Errors
        self._templates["CONFIG_NOT_FOUND"] = ErrorTemplate(
            code="CONFIG_NOT_FOUND",
            category=ErrorCategory.CONFIG,
            message_template="Server '{server_name}' not found",
            detail_template="No configuration is registered under this server name",
            suggestion_template="Add the server configuration before connecting",
        )

        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.CONFIG,
            message_template="Invalid configuration",
            detail_template="The toolrelay configuration is invalid",
            suggestion_template="Check the configuration file and fix errors",
        )

        # CONNECTION Errors
        self._templates["MCP_CONNECTION_FAILED"] = ErrorTemplate(
            code="MCP_CONNECTION_FAILED",
            category=ErrorCategory.CONNECTION,
            message_template="Failed to connect to MCP server '{server_name}'",
            detail_template="Could not complete the handshake with the MCP server",
            suggestion_template="Check that the MCP server is running and accessible",
            default_retryable=True,
        )

        self._templates["CAPABILITY_UNSUPPORTED"] = ErrorTemplate(
            code="CAPABILITY_UNSUPPORTED",
            category=ErrorCategory.CONNECTION,
            message_template="MCP server '{server_name}' does not support '{method}'",
            detail_template="The provider answered with 'method not found'",
        )

        self._templates["SERVER_NOT_CONNECTED"] = ErrorTemplate(
            code="SERVER_NOT_CONNECTED",
            category=ErrorCategory.CONNECTION,
            message_template="MCP server '{server_name}' is not connected",
            suggestion_template="Connect the server or refresh connections",
            default_retryable=True,
        )

        # DISPATCH Errors
        self._templates["MALFORMED_TOOL_ID"] = ErrorTemplate(
            code="MALFORMED_TOOL_ID",
            category=ErrorCategory.DISPATCH,
            message_template="Invalid MCP tool name format: {tool_name}",
            detail_template="Expected '@mcp-<server>:<tool>'",
        )

        self._templates["UNKNOWN_SERVER"] = ErrorTemplate(
            code="UNKNOWN_SERVER",
            category=ErrorCategory.DISPATCH,
            message_template="Unknown MCP server '{server_name}'",
            detail_template="No connected server matches the tool id '{tool_name}'",
        )

        self._templates["UNKNOWN_TOOL"] = ErrorTemplate(
            code="UNKNOWN_TOOL",
            category=ErrorCategory.DISPATCH,
            message_template="Tool '{tool_name}' not found",
            detail_template="Server '{server_name}' does not list this tool",
            suggestion_template="Refresh the tool catalog or check the tool name",
        )

        # TOOL Errors
        self._templates["TOOL_DISABLED"] = ErrorTemplate(
            code="TOOL_DISABLED",
            category=ErrorCategory.TOOL,
            message_template="MCP tool {tool_name} is disabled",
            suggestion_template="Enable the tool in settings to use it",
        )

        self._templates["TOOL_FAILED"] = ErrorTemplate(
            code="TOOL_FAILED",
            category=ErrorCategory.TOOL,
            message_template="{message}",
            detail_template="Tool '{tool_name}' encountered an error during execution",
            suggestion_template="Check the tool server logs for more details",
        )

        self._templates["TOOL_TIMEOUT"] = ErrorTemplate(
            code="TOOL_TIMEOUT",
            category=ErrorCategory.TOOL,
            message_template="Tool '{tool_name}' timed out after {timeout_seconds}s",
            detail_template="The tool did not respond within the configured timeout",
            default_retryable=True,
        )

        self._templates["PARAM_INVALID"] = ErrorTemplate(
            code="PARAM_INVALID",
            category=ErrorCategory.TOOL,
            message_template="Invalid arguments for tool '{tool_name}'",
            detail_template="The arguments do not match the tool input schema",
        )

        # STREAM Errors
        self._templates["ARGUMENT_PARSE_ERROR"] = ErrorTemplate(
            code="ARGUMENT_PARSE_ERROR",
            category=ErrorCategory.STREAM,
            message_template="Failed to parse tool call arguments for '{tool_name}'",
            detail_template="The streamed argument text is not a JSON object",
        )

        self._templates["GENERATION_FAILED"] = ErrorTemplate(
            code="GENERATION_FAILED",
            category=ErrorCategory.STREAM,
            message_template="Generation failed",
            detail_template="The generation transport raised an error",
            default_retryable=True,
        )

        # SYSTEM Errors
        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="Internal toolrelay error",
            detail_template="An unexpected error occurred",
            suggestion_template="Check the logs and report this issue",
        )
