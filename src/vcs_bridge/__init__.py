"""vcs-bridge - unified VCS and code-hosting operations over stdio MCP backends."""

__version__ = "0.1.0"

from vcs_bridge.config import BridgeConfig, ConfigLoader, ServerConfig
from vcs_bridge.errors import BridgeError, ErrorCategory
from vcs_bridge.logging import BridgeLogger, LogConfig
from vcs_bridge.mcp import MCPClient, MCPManager, Message, ToolResult
from vcs_bridge.vcs import RepoInfo, VcsOperations

__all__ = [
    "__version__",
    "BridgeConfig",
    "ConfigLoader",
    "ServerConfig",
    "BridgeError",
    "ErrorCategory",
    "BridgeLogger",
    "LogConfig",
    "MCPClient",
    "MCPManager",
    "Message",
    "ToolResult",
    "RepoInfo",
    "VcsOperations",
]
