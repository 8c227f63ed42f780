"""Built-in backend servers and protocol constants."""

from vcs_bridge.types import Capability

from .models import ServerConfig

PROTOCOL_VERSION = "2024-11-05"

GITHUB_TOKEN_VAR = "GITHUB_TOKEN"
GITLAB_TOKEN_VAR = "GITLAB_PERSONAL_ACCESS_TOKEN"

# Order is the display order used by status and list-tools
SERVER_NAMES = ("git", "github", "gitlab", "jujutsu")


def default_servers() -> dict[str, ServerConfig]:
    """Build a fresh table of the bundled backends.

    Returns:
        Mapping of server name to ServerConfig
    """
    return {
        "git": ServerConfig(
            name="git",
            command="uv",
            args=["--directory", "vendor/servers/src/git", "run", "mcp-server-git"],
            capabilities=frozenset({Capability.TOOLS}),
        ),
        "github": ServerConfig(
            name="github",
            command="node",
            args=["vendor/servers/src/github/index.js"],
            env={GITHUB_TOKEN_VAR: ""},
            capabilities=frozenset({Capability.TOOLS, Capability.RESOURCES}),
            token_vars=(GITHUB_TOKEN_VAR,),
        ),
        "gitlab": ServerConfig(
            name="gitlab",
            command="node",
            args=["vendor/servers/src/gitlab/index.js"],
            env={GITLAB_TOKEN_VAR: ""},
            capabilities=frozenset({Capability.TOOLS, Capability.RESOURCES}),
            token_vars=(GITLAB_TOKEN_VAR,),
        ),
        "jujutsu": ServerConfig(
            name="jujutsu",
            command="nimble",
            args=["-d:release", "run", "mcp_jujutsu"],
            capabilities=frozenset({Capability.TOOLS, Capability.RESOURCES}),
        ),
    }
