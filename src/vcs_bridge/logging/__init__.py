"""vcs-bridge logging - colored or JSON-line output for servers and calls."""

from .colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from .logger import BridgeLogger, CallLogger, LogConfig, ServerLogger, redact

__all__ = [
    # Logger classes
    "BridgeLogger",
    "ServerLogger",
    "CallLogger",
    "LogConfig",
    "redact",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
