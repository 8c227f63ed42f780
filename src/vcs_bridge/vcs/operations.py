"""VCS operations expressed as tool calls on the matching backend server."""

from dataclasses import dataclass, field
from typing import Any

from vcs_bridge.errors import BridgeError, create_error
from vcs_bridge.mcp.manager import MCPManager

# Substrings that mark a backend error as an authentication problem
AUTH_ERROR_MARKERS = (
    "401",
    "403",
    "unauthorized",
    "unauthenticated",
    "bad credentials",
    "authentication",
    "forbidden",
    "token",
)


@dataclass
class VcsOperation:
    """One tool call against a named server."""

    server_name: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class VcsOperationResult:
    """Rendered outcome of a VcsOperation."""

    server_name: str
    success: bool
    content: str = ""
    error: str = ""
    hint: str | None = None
    error_code: str | None = None  # BridgeError code when the call itself failed


class VcsOperations:
    """Platform verbs on top of MCPManager.call_tool.

    Every method returns a VcsOperationResult; nothing here raises for
    backend or transport failures.
    """

    def __init__(self, manager: MCPManager):
        self._manager = manager

    async def execute(self, operation: VcsOperation) -> VcsOperationResult:
        """Run one operation and flatten the outcome to text."""
        try:
            result = await self._manager.call_tool(
                operation.server_name, operation.tool_name, operation.arguments
            )
        except BridgeError as e:
            error = f"{e.message}: {e.detail}" if e.detail else e.message
            return VcsOperationResult(
                server_name=operation.server_name,
                success=False,
                error=error,
                hint=e.suggestion,
                error_code=e.code,
            )

        if result.is_error:
            error = result.text or "Unknown error"
            return VcsOperationResult(
                server_name=operation.server_name,
                success=False,
                error=error,
                hint=self._auth_hint(operation.server_name, error),
            )

        return VcsOperationResult(
            server_name=operation.server_name,
            success=True,
            content=result.text.strip(),
        )

    def _auth_hint(self, server_name: str, error: str) -> str | None:
        config = self._manager.get_server_config(server_name)
        if config is None or not config.token_vars:
            return None
        if not any(marker in error.lower() for marker in AUTH_ERROR_MARKERS):
            return None
        missing = self._manager.missing_tokens(server_name)
        if missing:
            auth = create_error(
                "AUTH_MISSING", server_name=server_name, token_var=" and ".join(missing)
            )
            return f"{auth.message}; {auth.suggestion}"
        return f"Check that {', '.join(config.token_vars)} holds a valid token with the needed scopes"

    # Git

    async def git_status(self, repo_path: str = ".") -> VcsOperationResult:
        return await self.execute(VcsOperation("git", "git_status", {"repo_path": repo_path}))

    async def git_commit(self, message: str, repo_path: str = ".") -> VcsOperationResult:
        return await self.execute(
            VcsOperation("git", "git_commit", {"repo_path": repo_path, "message": message})
        )

    # GitHub

    async def github_create_issue(
        self, owner: str, repo: str, title: str, body: str = ""
    ) -> VcsOperationResult:
        return await self.execute(
            VcsOperation(
                "github",
                "create_issue",
                {"owner": owner, "repo": repo, "title": title, "body": body},
            )
        )

    async def github_create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str = "main",
        body: str = "",
    ) -> VcsOperationResult:
        return await self.execute(
            VcsOperation(
                "github",
                "create_pull_request",
                {
                    "owner": owner,
                    "repo": repo,
                    "title": title,
                    "head": head,
                    "base": base,
                    "body": body,
                },
            )
        )

    # GitLab

    async def gitlab_create_issue(
        self, project_id: str, title: str, description: str = ""
    ) -> VcsOperationResult:
        return await self.execute(
            VcsOperation(
                "gitlab",
                "create_issue",
                {"project_id": project_id, "title": title, "description": description},
            )
        )

    async def gitlab_create_merge_request(
        self,
        project_id: str,
        title: str,
        source_branch: str,
        target_branch: str = "main",
        description: str = "",
    ) -> VcsOperationResult:
        return await self.execute(
            VcsOperation(
                "gitlab",
                "create_merge_request",
                {
                    "project_id": project_id,
                    "title": title,
                    "source_branch": source_branch,
                    "target_branch": target_branch,
                    "description": description,
                },
            )
        )

    # Jujutsu

    async def jujutsu_status(self) -> VcsOperationResult:
        return await self.execute(VcsOperation("jujutsu", "jj_status", {}))
