"""MCP Manager - owns the configured backend servers for one CLI invocation."""

import asyncio
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from vcs_bridge.config.defaults import default_servers
from vcs_bridge.config.models import BridgeConfig, ClientInfo, ServerConfig
from vcs_bridge.errors import BridgeError, create_error
from vcs_bridge.logging.logger import BridgeLogger
from vcs_bridge.types import ConnectionStatus, LogLevel

from .client import MCPClient
from .types import Resource, ResourceContents, ServerStatus, ToolResult, ToolSchema

ClientFactory = Callable[[ServerConfig, ClientInfo, BridgeLogger | None], MCPClient]


def _default_client_factory(
    config: ServerConfig, client_info: ClientInfo, logger: BridgeLogger | None
) -> MCPClient:
    return MCPClient(config, client_info=client_info, logger=logger)


class MCPManager:
    """Registry of backend clients, one per server name.

    Clients are started lazily on first use and reused for the rest of the
    run. Servers are selected purely by name; there is no routing or fallback.
    A server that fails to start stays unavailable until the manager is
    discarded.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        logger: BridgeLogger | None = None,
        client_factory: ClientFactory | None = None,
    ):
        """Initialize the manager. Nothing is spawned here.

        A configured vendor_dir is applied to the bundled servers right away.

        Args:
            config: Configuration (defaults to the bundled servers)
            logger: Optional logger
            client_factory: Builds clients; tests substitute their own
        """
        self._config = config or BridgeConfig(servers=default_servers())
        self._servers: dict[str, ServerConfig] = {
            name: server.copy() for name, server in self._config.servers.items()
        }
        self._logger = logger
        self._client_factory = client_factory or _default_client_factory

        self._clients: dict[str, MCPClient] = {}
        self._failures: dict[str, BridgeError] = {}
        self._start_locks: dict[str, asyncio.Lock] = {}
        self._tokens: dict[str, str] = {}

        if self._config.vendor_dir:
            self.setup_server_paths(self._config.vendor_dir)

    def _log(self, level: LogLevel, message: str, **context: Any) -> None:
        if self._logger:
            self._logger._log(level, "manager", message, context or None)

    async def __aenter__(self) -> "MCPManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    # Configuration

    @property
    def server_names(self) -> list[str]:
        return list(self._servers)

    def get_server_config(self, server_name: str) -> ServerConfig | None:
        return self._servers.get(server_name)

    def add_server(self, config: ServerConfig) -> None:
        """Register (or replace) a server definition.

        A running client for the same name keeps running with its old
        configuration until it is stopped.
        """
        self._servers[config.name] = config.copy()
        self._failures.pop(config.name, None)

    def load_environment_tokens(self, environ: Mapping[str, str] | None = None) -> None:
        """Copy access tokens from the environment into each server's overlay.

        A missing token leaves the overlay entry empty; the backend reports the
        auth failure when an authenticated tool is called. A found token
        enables its server.

        Args:
            environ: Source mapping (defaults to os.environ)
        """
        source = os.environ if environ is None else environ
        found = 0
        for server in self._servers.values():
            for var in server.token_vars:
                value = source.get(var, "")
                server.env[var] = value
                self._tokens[var] = value
                if value:
                    server.enabled = True
                    found += 1
        self._log(LogLevel.DEBUG, f"Loaded {found}/{len(self._tokens)} access tokens")

    def token_status(self) -> dict[str, bool]:
        """Which token variables were found by load_environment_tokens."""
        return {var: bool(value) for var, value in self._tokens.items()}

    def missing_tokens(self, server_name: str) -> list[str]:
        """Token variables the server expects but has no value for."""
        server = self._servers.get(server_name)
        if server is None:
            return []
        return [var for var in server.token_vars if not server.env.get(var)]

    def setup_server_paths(self, base_dir: str | Path = "vendor") -> None:
        """Point the bundled backends at their vendored copies under base_dir.

        Args:
            base_dir: Directory holding servers/src/{git,github,gitlab} and mcp-jujutsu
        """
        root = Path(base_dir).absolute()
        servers_src = root / "servers" / "src"

        if "git" in self._servers:
            self._servers["git"].args = [
                "--directory",
                str(servers_src / "git"),
                "run",
                "mcp-server-git",
            ]
        for name in ("github", "gitlab"):
            if name in self._servers:
                self._servers[name].args = [str(servers_src / name / "index.js")]

        jujutsu_path = root / "mcp-jujutsu"
        if "jujutsu" in self._servers and jujutsu_path.is_dir():
            self._servers["jujutsu"].command = "nimble"
            self._servers["jujutsu"].args = [
                "--silent",
                "-d:release",
                f"--project:{jujutsu_path}",
                "run",
                "mcp_jujutsu",
            ]
        self._log(LogLevel.DEBUG, f"Server paths set up under {root}")

    # Clients

    async def get_client(self, server_name: str) -> MCPClient:
        """Return the running client for a server, starting it if needed.

        Raises:
            BridgeError(UNKNOWN_SERVER): Name is not configured
            BridgeError(SERVER_DISABLED): Server is disabled
            BridgeError(SERVER_UNAVAILABLE): An earlier start failed in this run
            BridgeError: SPAWN_FAILURE / HANDSHAKE_FAILURE from the first start attempt
        """
        client = self._clients.get(server_name)
        if client is not None and client.running:
            return client

        self._check_startable(server_name)
        lock = self._start_locks.setdefault(server_name, asyncio.Lock())

        async with lock:
            # Another task may have finished starting it meanwhile
            client = self._clients.get(server_name)
            if client is not None and client.running:
                return client
            self._check_startable(server_name)

            config = self._servers[server_name]
            client = self._client_factory(config, self._config.client_info, self._logger)
            try:
                await client.start()
            except BridgeError as e:
                self._clients.pop(server_name, None)
                self._failures[server_name] = e
                self._log(LogLevel.ERROR, f"Failed to start '{server_name}': {e}")
                raise

            self._clients[server_name] = client
            self._log(LogLevel.INFO, f"Started server '{server_name}'")
            return client

    def _check_startable(self, server_name: str) -> None:
        failure = self._failures.get(server_name)
        if failure is not None:
            raise create_error(
                "SERVER_UNAVAILABLE",
                server_name=server_name,
                detail=failure.message,
                cause=failure,
            )
        config = self._servers.get(server_name)
        if config is None:
            raise create_error(
                "UNKNOWN_SERVER",
                server_name=server_name,
                available=", ".join(self._servers) or "none",
            )
        if not config.enabled:
            raise create_error("SERVER_DISABLED", server_name=server_name)

    async def start_server(self, server_name: str) -> bool:
        """Start one server, reporting failure as False instead of raising."""
        try:
            await self.get_client(server_name)
        except BridgeError as e:
            self._log(LogLevel.WARN, f"Server '{server_name}' not started: {e}")
            return False
        return True

    async def start_all(self) -> list[str]:
        """Start every enabled server concurrently.

        Returns:
            Names of the servers now running
        """
        names = [name for name, server in self._servers.items() if server.enabled]
        results = await asyncio.gather(*(self.start_server(name) for name in names))
        started = [name for name, ok in zip(names, results, strict=True) if ok]
        self._log(LogLevel.INFO, f"Started {len(started)}/{len(names)} servers")
        return started

    async def stop_server(self, server_name: str) -> None:
        client = self._clients.pop(server_name, None)
        if client is None:
            return
        try:
            await client.stop()
        except Exception as e:  # noqa: BLE001 - stopping must not fail the caller
            self._log(LogLevel.WARN, f"Error stopping '{server_name}': {e}")

    async def shutdown(self) -> None:
        """Stop every client and clear the registry. Idempotent and never raises."""
        if not self._clients:
            return
        self._log(LogLevel.INFO, f"Stopping {len(self._clients)} servers")
        names = list(self._clients)
        await asyncio.gather(*(self.stop_server(name) for name in names))
        self._clients.clear()

    # Operations

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> ToolResult:
        """Call a tool on a named server, starting the server on demand.

        Tool-level failures come back as ``ToolResult.is_error``; only startup
        and transport failures raise.
        """
        client = await self.get_client(server_name)
        return await client.call(tool_name, arguments, timeout=timeout)

    async def list_tools(self, server_name: str) -> list[ToolSchema]:
        client = await self.get_client(server_name)
        return await client.list_tools()

    async def list_available_tools(self, server_name: str) -> list[str]:
        """Names of the tools a server offers, starting it on demand."""
        return [tool.name for tool in await self.list_tools(server_name)]

    async def list_resources(self, server_name: str) -> list[Resource]:
        client = await self.get_client(server_name)
        return await client.get_resources()

    async def read_resource(self, server_name: str, uri: str) -> list[ResourceContents]:
        client = await self.get_client(server_name)
        return await client.read_resource(uri)

    # Status

    def is_running(self, server_name: str) -> bool:
        client = self._clients.get(server_name)
        return client is not None and client.running

    def get_server_status(self) -> dict[str, ServerStatus]:
        """Status of every configured server. Never starts anything."""
        status: dict[str, ServerStatus] = {}
        for name, server in self._servers.items():
            failure = self._failures.get(name)
            if self.is_running(name):
                state = ConnectionStatus.CONNECTED
            elif failure is not None:
                state = ConnectionStatus.ERROR
            else:
                state = ConnectionStatus.DISCONNECTED
            status[name] = ServerStatus(
                name=name,
                status=state,
                enabled=server.enabled,
                error=failure.message if failure else None,
            )
        return status
