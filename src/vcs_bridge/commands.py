"""Command handlers for the vcs-bridge CLI.

Each handler takes an explicitly constructed MCPManager and an output stream
and returns a process exit code: 0 on success, 1 when a backend call fails or
required configuration is missing, 2 on usage errors. Argument parsing stays
with the caller.
"""

import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TextIO

from vcs_bridge.config.defaults import SERVER_NAMES
from vcs_bridge.errors import BridgeError
from vcs_bridge.logging.colors import CYAN, DETAIL, HINT, RESET, RUNNING, STOPPED
from vcs_bridge.mcp.manager import MCPManager
from vcs_bridge.types import VcsType
from vcs_bridge.vcs import (
    RepoInfo,
    VcsOperationResult,
    VcsOperations,
    detect_vcs_type,
    get_remote_url,
    parse_repo_info,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _heading(out: TextIO, title: str) -> None:
    print(f"{CYAN}{title}{RESET}", file=out)
    print("=" * len(title), file=out)


def _render(result: VcsOperationResult, out: TextIO) -> int:
    if result.success:
        print(result.content, file=out)
        return EXIT_OK
    print(f"{STOPPED}Error:{RESET} {result.error}", file=out)
    if result.hint:
        print(f"{HINT}Hint:{RESET} {result.hint}", file=out)
    return EXIT_FAILURE


def _usage(out: TextIO, usage: str, available: str | None = None) -> int:
    print(f"Usage: {usage}", file=out)
    if available:
        print(f"Available commands: {available}", file=out)
    return EXIT_USAGE


async def _resolve_repo(
    repo_info: RepoInfo | None, path: str | Path
) -> RepoInfo:
    if repo_info is not None:
        return repo_info
    return parse_repo_info(await get_remote_url(path))


async def status_command(
    manager: MCPManager, out: TextIO = sys.stdout, path: str | Path = "."
) -> int:
    """Print server status and the working copy's VCS information."""
    _heading(out, "Server Status")
    for name, status in manager.get_server_status().items():
        if status.running:
            state = f"{RUNNING}✓ Running{RESET}"
        else:
            state = f"{STOPPED}✗ Stopped{RESET}"
        if not status.enabled:
            state += f" {DETAIL}(disabled){RESET}"
        print(f"{name}: {state}", file=out)
        if status.error:
            print(f"  {DETAIL}{status.error}{RESET}", file=out)

    print("", file=out)
    _heading(out, "VCS Information")
    vcs_type = detect_vcs_type(path)
    print(f"Type: {vcs_type.value}", file=out)
    if vcs_type != VcsType.NONE:
        remote_url = await get_remote_url(path)
        if remote_url:
            info = parse_repo_info(remote_url)
            print(f"Remote: {remote_url}", file=out)
            print(f"Platform: {info.platform}", file=out)
            if info.slug:
                print(f"Repository: {info.slug}", file=out)
    return EXIT_OK


async def setup_command(
    manager: MCPManager,
    out: TextIO = sys.stdout,
    environ: Mapping[str, str] | None = None,
    vendor_dir: str | Path | None = None,
) -> int:
    """Load tokens, start every enabled server and report what each offers.

    Returns EXIT_FAILURE when no server could be started.
    """
    if vendor_dir is not None:
        manager.setup_server_paths(vendor_dir)
    manager.load_environment_tokens(environ)

    _heading(out, "Environment Check")
    status = manager.token_status()
    for var, present in status.items():
        mark = f"{RUNNING}✓ Set{RESET}" if present else f"{STOPPED}✗ Not set{RESET}"
        print(f"{var}: {mark}", file=out)
    if status and not any(status.values()):
        print(
            f"{HINT}Warning:{RESET} no access tokens found; "
            "hosted platform features will be limited.",
            file=out,
        )
        print(f"Set {' and/or '.join(status)} to enable them.", file=out)

    print("", file=out)
    _heading(out, "Starting Servers")
    started = await manager.start_all()
    server_status = manager.get_server_status()
    for name, server in server_status.items():
        if not server.enabled:
            continue
        if name in started:
            try:
                tools = await manager.list_available_tools(name)
            except BridgeError as e:
                print(f"{name}: {STOPPED}✗ Failed{RESET} {DETAIL}({e.message}){RESET}", file=out)
                continue
            print(f"{name}: {RUNNING}✓ Running{RESET} ({len(tools)} tools)", file=out)
        else:
            print(f"{name}: {STOPPED}✗ Failed{RESET}", file=out)
            if server.error:
                print(f"  {DETAIL}{server.error}{RESET}", file=out)
            config = manager.get_server_config(name)
            if config is not None:
                print(
                    f"  {HINT}Hint:{RESET} check that '{config.command}' is installed "
                    "and the backend is vendored",
                    file=out,
                )

    return EXIT_OK if started else EXIT_FAILURE


async def stop_command(manager: MCPManager, out: TextIO = sys.stdout) -> int:
    """Stop every running server."""
    running = [name for name in manager.server_names if manager.is_running(name)]
    print(f"Stopping {len(running)} servers...", file=out)
    await manager.shutdown()
    return EXIT_OK


async def list_tools_command(
    manager: MCPManager, out: TextIO = sys.stdout, server_name: str | None = None
) -> int:
    """List tool names for one server, or for every enabled server.

    A single named server that cannot be started is a failure; when listing
    all servers, unavailable ones are reported and skipped.
    """
    if server_name:
        _heading(out, f"Tools for {server_name}")
        try:
            tools = await manager.list_available_tools(server_name)
        except BridgeError as e:
            print(f"{STOPPED}Error:{RESET} {e}", file=out)
            if e.suggestion:
                print(f"{HINT}Hint:{RESET} {e.suggestion}", file=out)
            return EXIT_FAILURE
        for tool in tools:
            print(f"  - {tool}", file=out)
        return EXIT_OK

    _heading(out, "Available Tools by Server")
    ordered = [name for name in SERVER_NAMES if name in manager.server_names]
    ordered += [name for name in manager.server_names if name not in ordered]
    for name in ordered:
        config = manager.get_server_config(name)
        if config is None or not config.enabled:
            continue
        try:
            tools = await manager.list_available_tools(name)
        except BridgeError as e:
            print(f"\n{name}: {STOPPED}unavailable{RESET} {DETAIL}({e.message}){RESET}", file=out)
            continue
        if tools:
            print(f"\n{name}:", file=out)
            for tool in tools:
                print(f"  - {tool}", file=out)
    return EXIT_OK


async def git_command(
    manager: MCPManager, args: Sequence[str], out: TextIO = sys.stdout
) -> int:
    """``status`` | ``commit <message...>``"""
    if not args:
        return _usage(out, "git <command> [args...]", "status, commit")

    operations = VcsOperations(manager)
    command = args[0]
    if command == "status":
        return _render(await operations.git_status(), out)
    if command == "commit":
        if len(args) < 2:
            return _usage(out, "git commit <message>")
        return _render(await operations.git_commit(" ".join(args[1:])), out)

    print(f"Unknown git command: {command}", file=out)
    return _usage(out, "git <command> [args...]", "status, commit")


async def github_command(
    manager: MCPManager,
    args: Sequence[str],
    out: TextIO = sys.stdout,
    repo_info: RepoInfo | None = None,
    path: str | Path = ".",
) -> int:
    """``create-issue <title> [body...]`` | ``create-pr <title> <head> [base] [body...]``

    The target repository comes from repo_info, or from the origin remote of
    the working copy at path.
    """
    usage = "github <command> [args...]"
    if not args:
        return _usage(out, usage, "create-issue, create-pr")

    info = await _resolve_repo(repo_info, path)
    if info.platform != "github" or not info.slug:
        print(
            f"{STOPPED}Error:{RESET} not a GitHub repository or remote not detected",
            file=out,
        )
        return EXIT_FAILURE

    operations = VcsOperations(manager)
    command = args[0]
    if command == "create-issue":
        if len(args) < 2:
            return _usage(out, "github create-issue <title> [body]")
        result = await operations.github_create_issue(
            info.owner, info.repo, args[1], " ".join(args[2:])
        )
        return _render(result, out)
    if command == "create-pr":
        if len(args) < 3:
            return _usage(out, "github create-pr <title> <head-branch> [base-branch] [body]")
        base = args[3] if len(args) > 3 else "main"
        result = await operations.github_create_pull_request(
            info.owner, info.repo, args[1], args[2], base, " ".join(args[4:])
        )
        return _render(result, out)

    print(f"Unknown GitHub command: {command}", file=out)
    return _usage(out, usage, "create-issue, create-pr")


async def gitlab_command(
    manager: MCPManager,
    args: Sequence[str],
    out: TextIO = sys.stdout,
    repo_info: RepoInfo | None = None,
    path: str | Path = ".",
) -> int:
    """``create-issue <title> [description...]`` | ``create-mr <title> <source> [target] [description...]``"""
    usage = "gitlab <command> [args...]"
    if not args:
        return _usage(out, usage, "create-issue, create-mr")

    info = await _resolve_repo(repo_info, path)
    if info.platform != "gitlab" or not info.slug:
        print(
            f"{STOPPED}Error:{RESET} not a GitLab repository or remote not detected",
            file=out,
        )
        return EXIT_FAILURE

    operations = VcsOperations(manager)
    command = args[0]
    if command == "create-issue":
        if len(args) < 2:
            return _usage(out, "gitlab create-issue <title> [description]")
        result = await operations.gitlab_create_issue(info.slug, args[1], " ".join(args[2:]))
        return _render(result, out)
    if command == "create-mr":
        if len(args) < 3:
            return _usage(
                out, "gitlab create-mr <title> <source-branch> [target-branch] [description]"
            )
        target = args[3] if len(args) > 3 else "main"
        result = await operations.gitlab_create_merge_request(
            info.slug, args[1], args[2], target, " ".join(args[4:])
        )
        return _render(result, out)

    print(f"Unknown GitLab command: {command}", file=out)
    return _usage(out, usage, "create-issue, create-mr")


async def jujutsu_command(
    manager: MCPManager, args: Sequence[str], out: TextIO = sys.stdout
) -> int:
    if not args:
        return _usage(out, "jujutsu <command> [args...]", "status")

    command = args[0]
    if command == "status":
        return _render(await VcsOperations(manager).jujutsu_status(), out)

    print(f"Unknown Jujutsu command: {command}", file=out)
    return _usage(out, "jujutsu <command> [args...]", "status")
