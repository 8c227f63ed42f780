"""Working-copy inspection: which VCS is in use and which platform hosts it."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from vcs_bridge.types import VcsType


@dataclass
class RepoInfo:
    """Hosting coordinates parsed from a remote URL."""

    platform: str  # "github" | "gitlab" | "unknown"
    owner: str = ""
    repo: str = ""

    @property
    def slug(self) -> str:
        """``owner/repo``; GitLab uses this as the project id."""
        return f"{self.owner}/{self.repo}" if self.owner and self.repo else ""


def parse_repo_info(remote_url: str) -> RepoInfo:
    """Extract platform, owner and repository name from a remote URL.

    Handles https URLs, ``ssh://`` URLs and scp-style ``git@host:owner/repo.git``.
    GitLab subgroups stay in the owner (``group/sub``).

    Args:
        remote_url: URL as printed by ``git remote get-url``

    Returns:
        RepoInfo; platform is "unknown" when the URL cannot be parsed
    """
    url = remote_url.strip()
    if not url:
        return RepoInfo(platform="unknown")

    if "://" not in url and "@" in url and ":" in url:
        # git@github.com:owner/repo.git
        host, _, path = url.split("@", 1)[1].partition(":")
        url = f"https://{host}/{path}"

    parsed = urlparse(url)
    path = parsed.path.rstrip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = [part for part in path.split("/") if part]
    if len(parts) < 2:
        return RepoInfo(platform="unknown")

    host = (parsed.hostname or "").lower()
    if "github" in host:
        platform = "github"
    elif "gitlab" in host:
        platform = "gitlab"
    else:
        platform = "unknown"
    return RepoInfo(platform=platform, owner="/".join(parts[:-1]), repo=parts[-1])


def detect_vcs_type(path: str | Path = ".") -> VcsType:
    """Find the VCS of the working copy containing path.

    Jujutsu wins over Git for colocated repositories.
    """
    start = Path(path).absolute()
    for directory in (start, *start.parents):
        if (directory / ".jj").is_dir():
            return VcsType.JUJUTSU
        if (directory / ".git").exists():
            return VcsType.GIT
    return VcsType.NONE


async def _run(*command: str, cwd: str | Path) -> str | None:
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return None
    stdout, _ = await process.communicate()
    if process.returncode != 0:
        return None
    return stdout.decode("utf-8", errors="replace")


async def get_remote_url(path: str | Path = ".", remote: str = "origin") -> str:
    """URL of the named remote, or "" when there is none.

    Args:
        path: Directory inside the working copy
        remote: Remote name
    """
    vcs_type = detect_vcs_type(path)
    if vcs_type == VcsType.GIT:
        output = await _run("git", "remote", "get-url", remote, cwd=path)
        return output.strip() if output else ""
    if vcs_type == VcsType.JUJUTSU:
        # Lines look like "origin https://github.com/owner/repo.git"
        output = await _run("jj", "git", "remote", "list", cwd=path)
        for line in (output or "").splitlines():
            name, _, url = line.strip().partition(" ")
            if name == remote:
                return url.strip()
    return ""


async def get_repo_info(path: str | Path = ".") -> RepoInfo:
    """Parse the origin remote of the working copy at path."""
    return parse_repo_info(await get_remote_url(path))
