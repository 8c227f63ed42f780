"""VCS detection and platform operations."""

from .operations import VcsOperation, VcsOperationResult, VcsOperations
from .remote import RepoInfo, detect_vcs_type, get_remote_url, get_repo_info, parse_repo_info

__all__ = [
    "VcsOperation",
    "VcsOperationResult",
    "VcsOperations",
    "RepoInfo",
    "parse_repo_info",
    "detect_vcs_type",
    "get_remote_url",
    "get_repo_info",
]
