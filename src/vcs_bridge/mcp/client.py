"""MCP client - owns one backend subprocess and speaks line-delimited JSON-RPC to it.

Each client allows at most one request in flight. The next response line read
must carry the id of the request just sent; notifications that arrive while a
response is pending are skipped, and requests from the backend are answered
inline so they never break correlation.
"""

import asyncio
import os
import time
from typing import Any

from vcs_bridge.config.defaults import PROTOCOL_VERSION
from vcs_bridge.config.models import ClientInfo, ServerConfig
from vcs_bridge.errors import BridgeError, create_error, get_error_factory
from vcs_bridge.logging.logger import BridgeLogger, ServerLogger

from .protocol import METHOD_NOT_FOUND, Message, Method, RPCError
from .types import Resource, ResourceContents, ToolResult, ToolSchema

# Tool output such as large diffs arrives as a single line
DEFAULT_READ_LIMIT = 16 * 1024 * 1024

# Seconds to wait for a terminated backend before killing it
STOP_GRACE_SECONDS = 2.0


class MCPClient:
    """Handle to exactly one running backend process.

    Lifecycle: constructed idle, ``start()`` spawns and handshakes, any number
    of requests, ``stop()``. A stopped client cannot be started again.
    """

    def __init__(
        self,
        config: ServerConfig,
        client_info: ClientInfo | None = None,
        logger: BridgeLogger | None = None,
        read_limit: int = DEFAULT_READ_LIMIT,
    ):
        """Initialize an idle client.

        Args:
            config: Server launch configuration
            client_info: Identity declared in the handshake
            logger: Optional logger
            read_limit: Maximum length of one response line in bytes
        """
        self.config = config
        self.name = config.name
        self._client_info = client_info or ClientInfo()
        self._logger: ServerLogger | None = logger.server(config.name) if logger else None
        self._read_limit = read_limit

        self._process: asyncio.subprocess.Process | None = None
        self._message_id = 0
        self._running = False
        self._stopped = False
        self._lock = asyncio.Lock()

        # Filled in by the handshake
        self.protocol_version: str | None = None
        self.server_info: dict[str, Any] = {}
        self.server_capabilities: dict[str, Any] = {}

        # Backend error response to the latest call or list/read operation, None
        # when it succeeded. List/read calls report errors only here.
        self.last_error: RPCError | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def message_id(self) -> int:
        """Id of the most recently sent request (0 before the first one)."""
        return self._message_id

    def next_message_id(self) -> int:
        self._message_id += 1
        return self._message_id

    async def __aenter__(self) -> "MCPClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # Lifecycle

    async def start(self) -> None:
        """Spawn the backend and complete the initialize handshake.

        Raises:
            BridgeError(CLIENT_STOPPED): If this client was already stopped
            BridgeError(SPAWN_FAILURE): If the executable cannot be launched
            BridgeError(HANDSHAKE_FAILURE): If initialize fails; the process is stopped
        """
        if self._running:
            return
        if self._stopped:
            raise create_error("CLIENT_STOPPED", server_name=self.name)

        command, args = self.config.command, list(self.config.args)
        if self._logger:
            self._logger.spawning(command, args)

        try:
            self._process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                env=self._build_env(),
                limit=self._read_limit,
            )
        except (OSError, ValueError) as e:
            self._stopped = True
            error = get_error_factory().from_exception(e, server_name=self.name, command=command)
            if error.code != "SPAWN_FAILURE":
                error = create_error(
                    "SPAWN_FAILURE", server_name=self.name, command=command, detail=str(e)
                )
            if self._logger:
                self._logger.failed(error)
            raise error from e

        self._running = True

        try:
            await self._initialize()
        except BridgeError as e:
            await self.stop()
            if self._logger:
                self._logger.failed(e)
            if e.code == "HANDSHAKE_FAILURE":
                raise
            raise create_error(
                "HANDSHAKE_FAILURE",
                server_name=self.name,
                protocol_version=PROTOCOL_VERSION,
                detail=e.detail or e.message,
                cause=e,
            ) from e
        except asyncio.CancelledError:
            await self.stop()
            raise

        if self._logger:
            self._logger.started(self.pid, self.server_info)

    async def stop(self) -> None:
        """Close the streams and terminate the process. Idempotent."""
        self._running = False
        self._stopped = True

        process = self._process
        if process is None:
            return
        self._process = None

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()

        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), STOP_GRACE_SECONDS)
            except TimeoutError:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        if self._logger:
            self._logger.stopped(process.returncode)

    # Operations

    async def call(
        self,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        """Invoke a tool on the backend.

        Args:
            tool_name: Tool to call
            arguments: Tool arguments
            timeout: Seconds to wait for the response (defaults to the server timeout)

        Returns:
            ToolResult; backend error responses come back with is_error set

        Raises:
            BridgeError: NOT_RUNNING, or a transport-category failure
        """
        self._ensure_running()
        self.last_error = None
        call_log = self._logger.call() if self._logger else None
        params = {"name": tool_name, "arguments": arguments or {}}
        if call_log:
            call_log.calling(tool_name, arguments)

        started = time.monotonic()
        try:
            response = await self._request(Method.TOOLS_CALL, params, timeout)
        except BridgeError as e:
            if call_log:
                call_log.error(tool_name, e.message, _elapsed_ms(started))
            raise

        if response.error is not None:
            self.last_error = response.error
            result = ToolResult.from_error(response.error)
        else:
            result = ToolResult.from_result(response.result)

        if call_log:
            call_log.result(tool_name, _elapsed_ms(started), is_error=result.is_error)
        return result

    async def list_tools(self, timeout: float | None = None) -> list[ToolSchema]:
        """Fetch the tools the backend advertises.

        Malformed or error results yield an empty list; a backend error response
        is left in ``last_error``.
        """
        items = await self._collect(Method.TOOLS_LIST, "tools", None, timeout)
        return [tool for tool in map(ToolSchema.from_dict, items) if tool is not None]

    async def get_resources(self, timeout: float | None = None) -> list[Resource]:
        """Fetch the resources the backend can serve; empty on malformed or error results."""
        items = await self._collect(Method.RESOURCES_LIST, "resources", None, timeout)
        return [res for res in map(Resource.from_dict, items) if res is not None]

    async def read_resource(self, uri: str, timeout: float | None = None) -> list[ResourceContents]:
        """Read one resource; empty on malformed or error results."""
        items = await self._collect(Method.RESOURCES_READ, "contents", {"uri": uri}, timeout)
        return [c for c in map(ResourceContents.from_dict, items) if c is not None]

    # Internals

    def _ensure_running(self) -> None:
        if not self._running or self._process is None:
            raise create_error("NOT_RUNNING", server_name=self.name)

    def _build_env(self) -> dict[str, str] | None:
        # Empty overlay values (unset tokens) are not exported
        overlay = {key: value for key, value in self.config.env.items() if value}
        if not overlay:
            return None
        return {**os.environ, **overlay}

    def _effective_timeout(self, timeout: float | None) -> float | None:
        if timeout is None:
            timeout = self.config.timeout
        return timeout if timeout and timeout > 0 else None

    async def _initialize(self) -> None:
        params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {
                "name": self._client_info.name,
                "version": self._client_info.version,
            },
        }
        response = await self._request(Method.INITIALIZE, params, None)

        if response.error is not None:
            raise create_error(
                "HANDSHAKE_FAILURE",
                server_name=self.name,
                protocol_version=PROTOCOL_VERSION,
                detail=f"Initialization failed: {response.error.message} "
                f"(code {response.error.code})",
            )
        result = response.result
        if not isinstance(result, dict):
            raise create_error(
                "HANDSHAKE_FAILURE",
                server_name=self.name,
                protocol_version=PROTOCOL_VERSION,
                detail=f"initialize returned {type(result).__name__}, expected an object",
            )

        self.protocol_version = result.get("protocolVersion")
        server_info = result.get("serverInfo")
        self.server_info = server_info if isinstance(server_info, dict) else {}
        capabilities = result.get("capabilities")
        self.server_capabilities = capabilities if isinstance(capabilities, dict) else {}

        await self._send(Message.notification(Method.INITIALIZED))

    async def _collect(
        self,
        method: Method,
        key: str,
        params: dict[str, Any] | None,
        timeout: float | None,
    ) -> list[Any]:
        """Run a list-style request, following ``nextCursor`` pages."""
        self._ensure_running()
        self.last_error = None
        items: list[Any] = []
        request_params = params
        seen_cursors: set[str] = set()

        while True:
            response = await self._request(method, request_params, timeout)
            if response.error is not None:
                self.last_error = response.error
                if self._logger:
                    self._logger.rpc_error(method.value, response.error.code, response.error.message)
                return items

            result = response.result
            if not isinstance(result, dict):
                return items
            page = result.get(key)
            if isinstance(page, list):
                items.extend(page)

            cursor = result.get("nextCursor")
            if not isinstance(cursor, str) or not cursor or cursor in seen_cursors:
                return items
            seen_cursors.add(cursor)
            request_params = {**(params or {}), "cursor": cursor}

    async def _request(
        self,
        method: Method,
        params: dict[str, Any] | None,
        timeout: float | None,
    ) -> Message:
        """Send one request and wait for its response, one at a time per client."""
        self._ensure_running()
        effective_timeout = self._effective_timeout(timeout)

        async with self._lock:
            # The client may have been stopped while this task waited for the lock
            self._ensure_running()
            request_id = self.next_message_id()
            request = Message.request(method, params, id=request_id)

            try:
                return await asyncio.wait_for(
                    self._exchange(request, request_id), effective_timeout
                )
            except TimeoutError as e:
                await self.stop()
                error = create_error(
                    "CALL_TIMEOUT", server_name=self.name, timeout_seconds=effective_timeout
                )
                if self._logger:
                    self._logger.failed(error)
                raise error from e
            except asyncio.CancelledError:
                # A late response would be read as the answer to the next request
                await self.stop()
                raise
            except BridgeError as e:
                await self.stop()
                if self._logger:
                    self._logger.failed(e)
                raise

    async def _exchange(self, request: Message, request_id: int) -> Message:
        # Write and read share one deadline; a backend that stops reading
        # stdin blocks in drain()
        await self._send(request)
        return await self._read_response(request_id)

    async def _send(self, message: Message) -> None:
        process = self._process
        if process is None or process.stdin is None:
            raise create_error("NOT_RUNNING", server_name=self.name)

        line = message.encode_line()
        if self._logger:
            self._logger.wire("->", line.decode("utf-8"))
        try:
            process.stdin.write(line)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            await self.stop()
            raise get_error_factory().from_exception(e, server_name=self.name) from e

    async def _read_line(self) -> bytes:
        process = self._process
        if process is None or process.stdout is None:
            raise create_error("NOT_RUNNING", server_name=self.name)

        try:
            line = await process.stdout.readline()
        except ValueError as e:
            # StreamReader signals an over-long line with ValueError
            raise create_error(
                "DECODE_FAILURE",
                server_name=self.name,
                detail=f"response line exceeds {self._read_limit} bytes",
            ) from e

        if not line:
            raise create_error(
                "TRANSPORT_FAILURE", server_name=self.name, detail="stream closed by backend"
            )
        if not line.endswith(b"\n"):
            raise create_error(
                "TRANSPORT_FAILURE",
                server_name=self.name,
                detail="stream closed in the middle of a message",
            )
        if self._logger:
            self._logger.wire("<-", line.decode("utf-8", errors="replace"))
        return line

    async def _read_response(self, request_id: int) -> Message:
        while True:
            line = await self._read_line()
            if not line.strip():
                continue

            try:
                message = Message.decode(line)
            except BridgeError as e:
                raise e.with_context(server_name=self.name) from e

            if message.is_notification:
                if self._logger:
                    self._logger.skipped(message.method_name)
                continue
            if message.is_request:
                await self._answer(message)
                continue
            if message.id != request_id:
                raise create_error(
                    "RESPONSE_ID_MISMATCH",
                    server_name=self.name,
                    expected_id=request_id,
                    received_id=message.id,
                )
            return message

    async def _answer(self, request: Message) -> None:
        """Reply to a request initiated by the backend."""
        if request.id is None:
            return
        if request.method == Method.PING:
            reply = Message.response(request.id, {})
        else:
            reply = Message.error_response(
                request.id, METHOD_NOT_FOUND, f"Method not found: {request.method_name}"
            )
        await self._send(reply)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
