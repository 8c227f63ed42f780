"""
Pytest configuration and shared fixtures for vcs-bridge tests.
"""

import io
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from vcs_bridge.config.models import BridgeConfig, ServerConfig  # noqa: E402
from vcs_bridge.logging import BridgeLogger, LogConfig  # noqa: E402
from vcs_bridge.mcp import MCPManager  # noqa: E402
from vcs_bridge.types import LogFormat, LogLevel  # noqa: E402

from tests.mocks import STUB_SERVER_PATH  # noqa: E402

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def stub_server_path() -> Path:
    """Return the scripted backend used by client and manager tests."""
    return STUB_SERVER_PATH


# =============================================================================
# Server Fixtures
# =============================================================================


@pytest.fixture
def make_stub_config() -> Callable[..., ServerConfig]:
    """Factory for ServerConfig entries that launch the stub backend."""

    def _make(
        name: str = "stub",
        scenario: str = "normal",
        timeout: float = 10.0,
        **overrides,
    ) -> ServerConfig:
        return ServerConfig(
            name=name,
            command=sys.executable,
            args=[str(STUB_SERVER_PATH), scenario],
            timeout=timeout,
            **overrides,
        )

    return _make


@pytest.fixture
def stub_config(make_stub_config) -> ServerConfig:
    """ServerConfig for a well-behaved stub backend."""
    return make_stub_config()


@pytest.fixture
def missing_config() -> ServerConfig:
    """ServerConfig whose executable does not exist."""
    return ServerConfig(name="ghost", command="vcs-bridge-no-such-backend-binary")


@pytest.fixture
def stub_manager(make_stub_config) -> Callable[..., MCPManager]:
    """Factory for managers whose servers all point at the stub backend."""

    def _make(*configs: ServerConfig, logger: BridgeLogger | None = None) -> MCPManager:
        servers = configs or (make_stub_config("git"), make_stub_config("github"))
        config = BridgeConfig(servers={server.name: server for server in servers})
        return MCPManager(config, logger=logger)

    return _make


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def log_output() -> io.StringIO:
    """Buffer that captures logger output."""
    return io.StringIO()


@pytest.fixture
def debug_logger(log_output: io.StringIO) -> BridgeLogger:
    """JSON-line logger at DEBUG level writing to log_output."""
    return BridgeLogger(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, output=log_output))


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "subprocess: Tests that spawn the stub backend")
    config.addinivalue_line("markers", "slow: Slow tests")
