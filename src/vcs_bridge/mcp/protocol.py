"""JSON-RPC 2.0 message model for backend communication.

Messages are plain data: constructing one validates the envelope shape, and
``encode_line`` / ``Message.decode`` are the only places that touch the wire
representation (one compact JSON object per line).
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from vcs_bridge.errors import create_error

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes; anything else is server-defined and passed through
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class Method(str, Enum):
    """Protocol methods this client sends or answers."""

    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"


_METHODS_BY_WIRE = {m.value: m for m in Method}


class _Missing:
    """Marks an absent ``result`` (a JSON ``null`` result is a real value)."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class RPCError:
    """Error object carried by an error response."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, raw: Any) -> "RPCError":
        """Build from a wire error object.

        Raises:
            ValueError: If code or message is missing or mistyped
        """
        if not isinstance(raw, dict):
            raise ValueError("error must be an object")
        code = raw.get("code")
        message = raw.get("message")
        if isinstance(code, bool) or not isinstance(code, int):
            raise ValueError("error.code must be an integer")
        if not isinstance(message, str):
            raise ValueError("error.message must be a string")
        return cls(code=code, message=message, data=raw.get("data"))


@dataclass(frozen=True)
class Message:
    """One JSON-RPC envelope: request, notification or response.

    Shape rules enforced at construction:
    - request: method and id, no result or error
    - notification: method, no id, no result or error
    - response: id and exactly one of result / error, no method
    """

    id: int | str | None = None
    method: Method | str | None = None
    params: dict[str, Any] | list[Any] | None = None
    result: Any = MISSING
    error: RPCError | None = None
    jsonrpc: str = JSONRPC_VERSION

    def __post_init__(self) -> None:
        if self.jsonrpc != JSONRPC_VERSION:
            raise ValueError(f"Unsupported jsonrpc version: {self.jsonrpc!r}")
        if self.id is not None and (isinstance(self.id, bool) or not isinstance(self.id, (int, str))):
            raise ValueError("id must be an integer or string")
        if self.params is not None and not isinstance(self.params, (dict, list)):
            raise ValueError("params must be an object or array")

        has_result = self.result is not MISSING
        has_error = self.error is not None

        if self.method is not None:
            if not isinstance(self.method, str) or not self.method:
                raise ValueError("method must be a non-empty string")
            if has_result or has_error:
                raise ValueError("a request or notification cannot carry result or error")
            return

        if self.params is not None:
            raise ValueError("a response cannot carry params")
        if self.id is None:
            raise ValueError("a response must carry an id")
        if has_result == has_error:
            raise ValueError("a response must carry exactly one of result or error")

    # Constructors

    @classmethod
    def request(
        cls, method: Method | str, params: dict[str, Any] | None = None, id: int = 1
    ) -> "Message":
        """Build a request expecting a response."""
        return cls(id=id, method=method, params=params)

    @classmethod
    def notification(cls, method: Method | str, params: dict[str, Any] | None = None) -> "Message":
        """Build a notification (no response expected)."""
        return cls(method=method, params=params)

    @classmethod
    def response(cls, id: int | str, result: Any) -> "Message":
        """Build a success response."""
        return cls(id=id, result=result)

    @classmethod
    def error_response(
        cls, id: int | str, code: int, message: str, data: Any = None
    ) -> "Message":
        """Build an error response."""
        return cls(id=id, error=RPCError(code=code, message=message, data=data))

    # Classification

    @property
    def is_request(self) -> bool:
        return self.method is not None and self.id is not None

    @property
    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    @property
    def is_response(self) -> bool:
        return self.method is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def method_name(self) -> str | None:
        """Wire string of the method, if any."""
        if self.method is None:
            return None
        return self.method.value if isinstance(self.method, Method) else self.method

    # Wire boundary

    def to_dict(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.id is not None:
            msg["id"] = self.id
        if self.method is not None:
            msg["method"] = self.method_name
        if self.params is not None:
            msg["params"] = self.params
        if self.result is not MISSING:
            msg["result"] = self.result
        if self.error is not None:
            msg["error"] = self.error.to_dict()
        return msg

    def encode_line(self) -> bytes:
        """Serialize to one UTF-8 line terminated by a newline."""
        text = json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)
        return text.encode("utf-8") + b"\n"

    @classmethod
    def from_dict(cls, raw: Any) -> "Message":
        """Build from a parsed JSON value.

        Raises:
            ValueError: If the value is not a well-formed envelope
        """
        if not isinstance(raw, dict):
            raise ValueError("message must be a JSON object")
        method = raw.get("method")
        if method is not None and not isinstance(method, str):
            raise ValueError("method must be a string")
        error = RPCError.from_dict(raw["error"]) if "error" in raw else None
        return cls(
            id=raw.get("id"),
            method=_METHODS_BY_WIRE.get(method, method) if method is not None else None,
            params=raw.get("params"),
            result=raw["result"] if "result" in raw else MISSING,
            error=error,
            jsonrpc=raw.get("jsonrpc", ""),
        )

    @classmethod
    def decode(cls, line: str | bytes) -> "Message":
        """Parse one wire line.

        Args:
            line: Line read from the backend, with or without trailing newline

        Returns:
            Decoded Message

        Raises:
            BridgeError(DECODE_FAILURE): If the line is not a valid envelope
        """
        try:
            if isinstance(line, bytes):
                line = line.decode("utf-8")
            return cls.from_dict(json.loads(line))
        except (ValueError, UnicodeDecodeError) as e:
            preview = line if len(line) <= 120 else line[:120] + "..."
            raise create_error("DECODE_FAILURE", detail=f"{e}: {preview!r}") from e
