"""vcs-bridge logger - colored or JSON-line logging for backend servers and calls."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from vcs_bridge.logging.colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from vcs_bridge.types import LogFormat, LogLevel

REDACTED = "[REDACTED]"

# Context keys whose values never reach the log output (case-insensitive substring)
SENSITIVE_KEYS = ("token", "secret", "password", "authorization", "env")


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.WARN
    format: LogFormat = LogFormat.COLORED
    show_context: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO = field(default=sys.stderr)

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {
                "manager": True,
                "server": True,
                "call": True,
                "config": True,
            }


def redact(context: dict[str, Any]) -> dict[str, Any]:
    """Replace values stored under sensitive keys.

    Args:
        context: Log context

    Returns:
        Copy of the context safe to print
    """
    cleaned: dict[str, Any] = {}
    for key, value in context.items():
        if any(marker in key.lower() for marker in SENSITIVE_KEYS):
            cleaned[key] = REDACTED
        elif isinstance(value, dict):
            cleaned[key] = redact(value)
        else:
            cleaned[key] = value
    return cleaned


class BridgeLogger:
    """Main logger facade. Creates component-specific loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def server(self, server_name: str) -> "ServerLogger":
        """Get a logger scoped to one backend server.

        Args:
            server_name: Configured server name

        Returns:
            ServerLogger instance
        """
        return ServerLogger(self, server_name)

    def configure(self, config: LogConfig) -> None:
        """Replace the configuration.

        Args:
            config: New logger configuration
        """
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name (manager, server, call, config)
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        if not self.config.components.get(component, True):
            return

        if context:
            context = redact(context)

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        component_color = {
            "manager": MAGENTA,
            "server": ORANGE,
            "call": GREEN,
            "config": CYAN,
        }.get(component, RESET)

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_context:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class ServerLogger:
    """Logger for backend process lifecycle events."""

    def __init__(self, parent: BridgeLogger, server_name: str):
        """Initialize server logger.

        Args:
            parent: Parent BridgeLogger instance
            server_name: Configured server name
        """
        self.parent = parent
        self.server_name = server_name

    def _emit(self, level: LogLevel, message: str, event: str, **extra: Any) -> None:
        context = {"server": self.server_name, "event": event, **extra}
        self.parent._log(level, "server", message, context)

    def spawning(self, command: str, args: list[str]) -> None:
        """Log process launch. The environment overlay is never logged."""
        self._emit(
            LogLevel.INFO,
            f"Starting server '{self.server_name}': {' '.join([command, *args])}",
            "server_spawning",
        )

    def started(self, pid: int | None, server_info: dict[str, Any] | None = None) -> None:
        """Log a completed handshake."""
        extra: dict[str, Any] = {"pid": pid}
        if server_info:
            extra["server_info"] = server_info
        self._emit(
            LogLevel.INFO, f"Server '{self.server_name}' initialized ✓", "server_started", **extra
        )

    def stopped(self, returncode: int | None) -> None:
        """Log process shutdown."""
        self._emit(
            LogLevel.INFO,
            f"Server '{self.server_name}' stopped",
            "server_stopped",
            returncode=returncode,
        )

    def failed(self, error: Exception) -> None:
        """Log a startup or transport failure."""
        self._emit(
            LogLevel.ERROR,
            f"Server '{self.server_name}' failed: {error}",
            "server_failed",
            error_type=type(error).__name__,
        )

    def skipped(self, method: str | None) -> None:
        """Log an unsolicited message read while a response was pending."""
        self._emit(
            LogLevel.DEBUG,
            f"Skipped unsolicited '{method}' from '{self.server_name}'",
            "message_skipped",
        )

    def rpc_error(self, method: str, code: int, message: str) -> None:
        """Log a backend error response that is returned as an empty result."""
        self._emit(
            LogLevel.WARN,
            f"'{method}' on '{self.server_name}' returned error {code}: {message}",
            "rpc_error",
            code=code,
        )

    def wire(self, direction: str, line: str) -> None:
        """Log one raw protocol line at DEBUG."""
        self._emit(LogLevel.DEBUG, f"{direction} {line.rstrip()}", "wire")

    def call(self) -> "CallLogger":
        """Get a logger for requests sent to this server.

        Returns:
            CallLogger instance
        """
        return CallLogger(self)


class CallLogger:
    """Logger for request/response round trips."""

    def __init__(self, parent: ServerLogger):
        """Initialize call logger.

        Args:
            parent: Parent ServerLogger instance
        """
        self.parent = parent

    def _context(self, event: str, name: str, **extra: Any) -> dict[str, Any]:
        return {"server": self.parent.server_name, "event": event, "name": name, **extra}

    def calling(self, name: str, params: dict[str, Any] | None = None) -> None:
        """Log a request about to be sent.

        Args:
            name: Tool name or method
            params: Optional request parameters
        """
        context = self._context("call_sending", name)
        if params:
            context["params"] = params
        self.parent.parent._log(LogLevel.DEBUG, "call", f"Calling '{name}'", context)

    def result(self, name: str, duration_ms: int, is_error: bool = False) -> None:
        """Log a decoded response.

        Args:
            name: Tool name or method
            duration_ms: Round trip duration in milliseconds
            is_error: Whether the backend reported a tool-level error
        """
        context = self._context("call_result", name, duration_ms=duration_ms, is_error=is_error)
        duration_s = duration_ms / 1000
        if is_error:
            message = f"'{name}' returned an error result ({duration_s:.2f}s)"
            level = LogLevel.WARN
        else:
            message = f"'{name}' completed ({duration_s:.2f}s) ✓"
            level = LogLevel.DEBUG
        self.parent.parent._log(level, "call", message, context)

    def error(self, name: str, error: str, duration_ms: int) -> None:
        """Log a failed round trip.

        Args:
            name: Tool name or method
            error: Error message
            duration_ms: Time until failure in milliseconds
        """
        context = self._context("call_error", name, duration_ms=duration_ms, error=error)
        duration_s = duration_ms / 1000
        self.parent.parent._log(
            LogLevel.ERROR, "call", f"'{name}' failed ({duration_s:.2f}s): {error}", context
        )
