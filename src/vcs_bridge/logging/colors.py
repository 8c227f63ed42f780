"""ANSI color codes for terminal output.

256-color palette escape codes shared by the logger and the command layer.

Usage:
    from vcs_bridge.logging.colors import RUNNING, RESET

    print(f"{RUNNING}✓ Running{RESET}")
"""

RESET = "\033[0m"

GREEN = "\033[38;5;82m"
RED = "\033[38;5;196m"
YELLOW = "\033[38;5;226m"
ORANGE = "\033[38;5;208m"
LIGHT_BLUE = "\033[38;5;153m"
CYAN = "\033[38;5;51m"
MAGENTA = "\033[38;5;201m"

# Semantic aliases
RUNNING = GREEN
STOPPED = RED
HINT = YELLOW
DETAIL = LIGHT_BLUE

__all__ = [
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
    "RUNNING",
    "STOPPED",
    "HINT",
    "DETAIL",
]
