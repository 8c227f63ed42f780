"""Result types decoded from backend responses."""

from dataclasses import dataclass, field
from typing import Any

from vcs_bridge.types import ConnectionStatus

from .protocol import RPCError


@dataclass
class TextContent:
    """Plain text produced by a tool."""

    text: str
    mime_type: str | None = None
    type: str = "text"


@dataclass
class BinaryContent:
    """Base64-encoded binary data (``image`` or ``audio`` on the wire)."""

    data: str
    mime_type: str | None = None
    type: str = "image"


@dataclass
class ResourceReference:
    """Reference to, or embedded copy of, a backend resource."""

    uri: str
    text: str | None = None
    mime_type: str | None = None
    type: str = "resource"


Content = TextContent | BinaryContent | ResourceReference

_BINARY_TYPES = {"image", "audio"}
_RESOURCE_TYPES = {"resource", "resource_link"}


def content_from_dict(item: Any) -> Content | None:
    """Decode one content item; returns None for unknown or malformed items."""
    if not isinstance(item, dict):
        return None
    kind = item.get("type")
    mime_type = item.get("mimeType")
    if kind == "text" and isinstance(item.get("text"), str):
        return TextContent(text=item["text"], mime_type=mime_type)
    if kind in _BINARY_TYPES and isinstance(item.get("data"), str):
        return BinaryContent(data=item["data"], mime_type=mime_type, type=kind)
    if kind in _RESOURCE_TYPES:
        # Embedded resources nest the payload under "resource"
        body = item.get("resource") if isinstance(item.get("resource"), dict) else item
        uri = body.get("uri")
        if isinstance(uri, str):
            text = body.get("text")
            return ResourceReference(
                uri=uri,
                text=text if isinstance(text, str) else None,
                mime_type=body.get("mimeType", mime_type),
                type=kind,
            )
    return None


@dataclass
class ToolResult:
    """Outcome of a ``tools/call`` round trip.

    Backend-reported failures are data: ``is_error`` is set and the content
    carries the message. Only transport problems raise.
    """

    is_error: bool = False
    content: list[Content] = field(default_factory=list)

    @property
    def text(self) -> str:
        """All text parts joined by newlines."""
        return "\n".join(c.text for c in self.content if isinstance(c, TextContent))

    @classmethod
    def from_result(cls, result: Any) -> "ToolResult":
        """Decode the ``result`` member of a tools/call response."""
        if not isinstance(result, dict):
            return cls.failure("No result returned")
        items = result.get("content")
        content = []
        if isinstance(items, list):
            for item in items:
                decoded = content_from_dict(item)
                if decoded is not None:
                    content.append(decoded)
        return cls(is_error=bool(result.get("isError", False)), content=content)

    @classmethod
    def from_error(cls, error: RPCError) -> "ToolResult":
        """Wrap a backend error response."""
        return cls.failure(error.message)

    @classmethod
    def failure(cls, message: str) -> "ToolResult":
        return cls(is_error=True, content=[TextContent(text=message)])


@dataclass
class ToolSchema:
    """Tool advertised by a backend via ``tools/list``."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> "ToolSchema | None":
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            return None
        schema = raw.get("inputSchema")
        return cls(
            name=raw["name"],
            description=raw.get("description") or "",
            input_schema=schema if isinstance(schema, dict) else {},
        )


@dataclass
class Resource:
    """Addressable object a backend can serve."""

    uri: str
    name: str
    description: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Resource | None":
        if not isinstance(raw, dict):
            return None
        uri, name = raw.get("uri"), raw.get("name")
        if not isinstance(uri, str) or not isinstance(name, str):
            return None
        return cls(
            uri=uri,
            name=name,
            description=raw.get("description"),
            mime_type=raw.get("mimeType"),
        )


@dataclass
class ResourceContents:
    """One entry of a ``resources/read`` result; exactly one of text / blob is set."""

    uri: str
    mime_type: str | None = None
    text: str | None = None
    blob: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "ResourceContents | None":
        if not isinstance(raw, dict) or not isinstance(raw.get("uri"), str):
            return None
        text, blob = raw.get("text"), raw.get("blob")
        if not isinstance(text, str) and not isinstance(blob, str):
            return None
        return cls(
            uri=raw["uri"],
            mime_type=raw.get("mimeType"),
            text=text if isinstance(text, str) else None,
            blob=blob if isinstance(blob, str) else None,
        )


@dataclass
class ServerStatus:
    """Status of one configured server, as reported by the manager."""

    name: str
    status: ConnectionStatus
    enabled: bool = True
    error: str | None = None

    @property
    def running(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED
