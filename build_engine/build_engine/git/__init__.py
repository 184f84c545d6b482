"""Git integration for commit history and change detection."""

from __future__ import annotations

from build_engine.git.git_client import (
    GitClientError,
    get_diff_files,
    list_recent_commits,
    validate_repo,
)
from build_engine.git.source_control import (
    GitSourceControl,
    SourceControl,
    create_source_control,
)

__all__ = [
    "GitClientError",
    "GitSourceControl",
    "SourceControl",
    "create_source_control",
    "get_diff_files",
    "list_recent_commits",
    "validate_repo",
]
