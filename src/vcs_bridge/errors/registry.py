"""Error registry for creating errors from templates."""

from typing import Any

from .errors import BridgeError, ErrorCategory, ErrorTemplate


class _KeepMissing(dict[str, Any]):
    """Format mapping that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


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
        """Add or replace a template.

        Args:
            template: Template to register under its code
        """
        self._templates[template.code] = template

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: BridgeError | None = None,
    ) -> BridgeError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            BridgeError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context) or f"Error {code}"
        if template.detail_template is None:
            detail = context.get("detail")
        else:
            detail = self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        return BridgeError(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            server_name=context.get("server_name"),
            tool_name=context.get("tool_name"),
            cause=cause,
        )

    def _interpolate(self, template: str | None, context: dict[str, Any]) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None
        return template.format_map(_KeepMissing(context))

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # SPAWN Errors
        self._templates["SPAWN_FAILURE"] = ErrorTemplate(
            code="SPAWN_FAILURE",
            category=ErrorCategory.SPAWN,
            message_template="Failed to start server '{server_name}'",
            suggestion_template=(
                "Install '{command}' and make sure it is on PATH, "
                "or vendor the backend and run setup to point at it"
            ),
        )

        self._templates["SERVER_UNAVAILABLE"] = ErrorTemplate(
            code="SERVER_UNAVAILABLE",
            category=ErrorCategory.SPAWN,
            message_template="Server '{server_name}' is unavailable for this run",
            suggestion_template="Fix the startup failure and run the command again",
        )

        # HANDSHAKE Errors
        self._templates["HANDSHAKE_FAILURE"] = ErrorTemplate(
            code="HANDSHAKE_FAILURE",
            category=ErrorCategory.HANDSHAKE,
            message_template="Server '{server_name}' failed to initialize",
            suggestion_template="Check that the backend speaks protocol version {protocol_version}",
        )

        # TRANSPORT Errors
        self._templates["TRANSPORT_FAILURE"] = ErrorTemplate(
            code="TRANSPORT_FAILURE",
            category=ErrorCategory.TRANSPORT,
            message_template="Lost connection to server '{server_name}'",
            suggestion_template="The backend process exited; acquire a new client and retry",
            default_retryable=True,
        )

        self._templates["DECODE_FAILURE"] = ErrorTemplate(
            code="DECODE_FAILURE",
            category=ErrorCategory.TRANSPORT,
            message_template="Malformed message from server '{server_name}'",
            suggestion_template="The backend wrote something other than one JSON object per line",
        )

        self._templates["CALL_TIMEOUT"] = ErrorTemplate(
            code="CALL_TIMEOUT",
            category=ErrorCategory.TRANSPORT,
            message_template="Server '{server_name}' did not answer within {timeout_seconds}s",
            suggestion_template="Raise the server timeout or check the backend for hangs",
            default_retryable=True,
        )

        # PROTOCOL Errors
        self._templates["RESPONSE_ID_MISMATCH"] = ErrorTemplate(
            code="RESPONSE_ID_MISMATCH",
            category=ErrorCategory.PROTOCOL,
            message_template=(
                "Server '{server_name}' answered id {received_id} while id {expected_id} "
                "was pending"
            ),
            detail_template="Responses must arrive in request order, one request at a time",
        )

        # CLIENT Errors
        self._templates["NOT_RUNNING"] = ErrorTemplate(
            code="NOT_RUNNING",
            category=ErrorCategory.CLIENT,
            message_template="Client for server '{server_name}' is not running",
            suggestion_template="Start the client or acquire one from the manager",
        )

        self._templates["CLIENT_STOPPED"] = ErrorTemplate(
            code="CLIENT_STOPPED",
            category=ErrorCategory.CLIENT,
            message_template="Client for server '{server_name}' was stopped and cannot restart",
            suggestion_template="Create a new client instead",
        )

        # CONFIG Errors
        self._templates["UNKNOWN_SERVER"] = ErrorTemplate(
            code="UNKNOWN_SERVER",
            category=ErrorCategory.CONFIG,
            message_template="Unknown server '{server_name}'",
            suggestion_template="Configured servers: {available}",
        )

        self._templates["SERVER_DISABLED"] = ErrorTemplate(
            code="SERVER_DISABLED",
            category=ErrorCategory.CONFIG,
            message_template="Server '{server_name}' is disabled",
            suggestion_template="Enable it in the configuration or set its token variable",
        )

        self._templates["AUTH_MISSING"] = ErrorTemplate(
            code="AUTH_MISSING",
            category=ErrorCategory.CONFIG,
            message_template="{token_var} is not set",
            suggestion_template="Export {token_var} with a personal access token and retry",
        )

        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.CONFIG,
            message_template="Invalid configuration",
            suggestion_template="Check the configuration file and fix errors",
        )

        # SYSTEM Errors
        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.SYSTEM,
            message_template="Internal vcs-bridge error",
            suggestion_template="Check the logs and report this issue",
        )
