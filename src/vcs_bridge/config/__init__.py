"""vcs-bridge configuration."""

from .defaults import (
    GITHUB_TOKEN_VAR,
    GITLAB_TOKEN_VAR,
    PROTOCOL_VERSION,
    SERVER_NAMES,
    default_servers,
)
from .loader import ConfigLoader, resolve_env_vars
from .models import BridgeConfig, ClientInfo, ServerConfig

__all__ = [
    # Models
    "ServerConfig",
    "ClientInfo",
    "BridgeConfig",
    # Defaults
    "PROTOCOL_VERSION",
    "SERVER_NAMES",
    "GITHUB_TOKEN_VAR",
    "GITLAB_TOKEN_VAR",
    "default_servers",
    # Loader
    "ConfigLoader",
    "resolve_env_vars",
]
