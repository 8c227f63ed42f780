"""vcs-bridge configuration data models."""

from dataclasses import dataclass, field, replace

from vcs_bridge.logging import LogConfig
from vcs_bridge.types import Capability


@dataclass
class ServerConfig:
    """Definition of one backend server process.

    ``env`` is an overlay applied on top of the parent environment when the
    process is spawned. ``token_vars`` names the environment variables that
    ``MCPManager.load_environment_tokens`` copies into that overlay.
    """

    name: str
    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    capabilities: frozenset[Capability] = frozenset({Capability.TOOLS})
    enabled: bool = True
    timeout: float = 30.0  # seconds, per request
    token_vars: tuple[str, ...] = ()

    def copy(self) -> "ServerConfig":
        """Return an independent copy (lists and dicts are not shared)."""
        return replace(self, args=list(self.args), env=dict(self.env))


@dataclass
class ClientInfo:
    """Identity this client declares during the handshake."""

    name: str = "vcs-bridge"
    version: str = "0.1.0"


@dataclass
class BridgeConfig:
    """Top-level configuration, alive for one CLI invocation."""

    servers: dict[str, ServerConfig] = field(default_factory=dict)
    client_info: ClientInfo = field(default_factory=ClientInfo)
    vendor_dir: str | None = None
    logging: LogConfig = field(default_factory=LogConfig)
