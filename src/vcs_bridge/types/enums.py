"""Shared enumerations for vcs-bridge."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    COLORED = "colored"
    JSON = "json"


class ConnectionStatus(str, Enum):
    """Backend server process status."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    CONNECTING = "connecting"


class Capability(str, Enum):
    """Capability tags a backend server may advertise."""

    TOOLS = "tools"
    RESOURCES = "resources"
    PROMPTS = "prompts"
    ROOTS = "roots"
    SAMPLING = "sampling"


class VcsType(str, Enum):
    """Version control system detected in a working copy."""

    NONE = "none"
    GIT = "git"
    JUJUTSU = "jujutsu"
