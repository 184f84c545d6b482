"""Source-control collaborator used by the incremental build orchestrator.

The orchestrator only needs two capabilities from a VCS: the recent commit
history and the set of files that differ between two commits.  Providers
are selected once from :class:`~build_engine.models.build.SourceControlProvider`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from build_engine.git import git_client
from build_engine.models.build import SourceControlProvider


class SourceControl(Protocol):
    """Structural interface for version-control backends."""

    def list_recent_commits(self, root: Path, max_count: int) -> list[str]:
        """Return up to *max_count* commit ids, most recent first, HEAD first."""
        ...

    def diff_files(self, root: Path, from_commit: str, to_commit: str) -> set[str]:
        """Return repository-relative paths that differ between two commits."""
        ...


class GitSourceControl:
    """:class:`SourceControl` implemented on top of the ``git`` executable."""

    def list_recent_commits(self, root: Path, max_count: int) -> list[str]:
        git_client.validate_repo(root)
        return git_client.list_recent_commits(root, max_count)

    def diff_files(self, root: Path, from_commit: str, to_commit: str) -> set[str]:
        return git_client.get_diff_files(root, from_commit, to_commit)


def create_source_control(provider: SourceControlProvider) -> SourceControl:
    """Return the :class:`SourceControl` implementation for *provider*."""
    if provider is SourceControlProvider.GIT:
        return GitSourceControl()
    raise ValueError(f"Unsupported source control provider: {provider!r}")
