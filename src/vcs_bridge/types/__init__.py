"""Shared types for vcs-bridge.

Import from here rather than submodules:
    from vcs_bridge.types import LogLevel, ConnectionStatus
"""

from .enums import Capability, ConnectionStatus, LogFormat, LogLevel, VcsType
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "ConnectionStatus",
    "Capability",
    "VcsType",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
