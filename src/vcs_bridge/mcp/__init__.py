"""Backend protocol client and manager."""

from .client import MCPClient
from .manager import MCPManager
from .protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    Message,
    Method,
    RPCError,
)
from .types import (
    BinaryContent,
    Content,
    Resource,
    ResourceContents,
    ResourceReference,
    ServerStatus,
    TextContent,
    ToolResult,
    ToolSchema,
)

__all__ = [
    # Client / manager
    "MCPClient",
    "MCPManager",
    # Protocol
    "Message",
    "Method",
    "RPCError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    # Types
    "Content",
    "TextContent",
    "BinaryContent",
    "ResourceReference",
    "ToolResult",
    "ToolSchema",
    "Resource",
    "ResourceContents",
    "ServerStatus",
]
