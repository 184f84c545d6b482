"""Thin git client for commit history and changed-file detection.

All interaction with the ``git`` binary is done through :func:`subprocess.run`
with explicit timeouts and structured error handling so that callers receive
:class:`GitClientError` exceptions with descriptive messages rather than raw
subprocess failures.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_SUBPROCESS_TIMEOUT = 30  # seconds

# ---------------------------------------------------------------------------
# Git ref validation
# ---------------------------------------------------------------------------

# Matches hex SHAs (4-40 chars) and common ref patterns like branch names,
# tags, HEAD, HEAD~2, origin/main, etc.
_GIT_SHA_RE = re.compile(r"^[0-9a-fA-F]{4,40}$")
_GIT_REF_RE = re.compile(r"^[a-zA-Z0-9_./@~^{}\-]+$")


def _validate_git_ref(ref: str) -> None:
    """Validate a git ref or SHA to prevent command injection.

    Raises
    ------
    ValueError
        If *ref* is empty, starts with ``-`` or contains characters outside
        the safe ref alphabet.
    """
    if not ref:
        raise ValueError("Git ref cannot be empty")
    if ref.startswith("-"):
        raise ValueError(f"Invalid git ref: {ref!r}")
    if not (_GIT_SHA_RE.match(ref) or _GIT_REF_RE.match(ref)):
        raise ValueError(f"Invalid git ref: {ref!r}")


# ---------------------------------------------------------------------------
# Public types
# ---------------------------------------------------------------------------


class GitClientError(Exception):
    """Raised when a git operation fails or the repository is invalid."""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _run_git(
    cmd: list[str],
    repo_path: Path,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command and return the completed process.

    Raises
    ------
    GitClientError
        On non-zero exit, timeout, or if the process cannot be started.
    """
    try:
        return subprocess.run(
            cmd,
            cwd=repo_path,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=True,
            timeout=_SUBPROCESS_TIMEOUT,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitClientError(f"git command failed: {' '.join(cmd)}\n" f"Exit code {exc.returncode}: {stderr}") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitClientError(f"git command timed out after {_SUBPROCESS_TIMEOUT}s: {' '.join(cmd)}") from exc
    except FileNotFoundError as exc:
        raise GitClientError("git executable not found. Ensure git is installed and on PATH.") from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_repo(repo_path: Path) -> None:
    """Verify that *repo_path* is inside a git work tree.

    Raises
    ------
    GitClientError
        If the path does not exist or git does not recognise it as a
        work tree.
    """
    if not repo_path.is_dir():
        raise GitClientError(f"Repository path does not exist: {repo_path}")
    result = _run_git(["git", "rev-parse", "--is-inside-work-tree"], repo_path)
    if result.stdout.strip() != "true":
        raise GitClientError(f"Not a git work tree: {repo_path}")


def list_recent_commits(repo_path: Path, max_count: int) -> list[str]:
    """Return up to *max_count* commit SHAs reachable from HEAD, most recent first.

    The first element is always the current HEAD commit.

    Raises
    ------
    GitClientError
        If git fails or the repository has no commits.
    ValueError
        If *max_count* is not positive.
    """
    if max_count < 1:
        raise ValueError(f"max_count must be positive, got {max_count}")

    result = _run_git(
        ["git", "log", f"--max-count={max_count}", "--format=%H", "HEAD"],
        repo_path,
    )
    commits = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if not commits:
        raise GitClientError(f"No commits found in repository: {repo_path}")
    return commits


def get_diff_files(
    repo_path: Path,
    from_sha: str,
    to_sha: str,
) -> set[str]:
    """Return paths relative to *repo_path* that differ between two commits.

    Changes outside *repo_path* are omitted when it is a subdirectory of
    the work tree.  Rename detection is disabled, so a moved file shows up
    as a deletion of the old path plus an addition of the new one and both
    owning projects are considered changed.

    The diff is requested NUL-separated with ``core.quotePath`` off, so
    paths containing non-ASCII bytes, tabs or quotes come back verbatim.

    Parameters
    ----------
    repo_path:
        Root of the git repository.
    from_sha:
        The commit the comparison starts from (e.g. the current commit).
    to_sha:
        The commit compared against (e.g. the snapshot commit).
    """
    _validate_git_ref(from_sha)
    _validate_git_ref(to_sha)

    result = _run_git(
        [
            "git",
            "-c",
            "core.quotePath=false",
            "diff",
            "--name-status",
            "-z",
            "--no-renames",
            "--relative",
            from_sha,
            to_sha,
        ],
        repo_path,
    )

    # With -z every entry is "<status>\0<path>\0".
    tokens = result.stdout.split("\0")
    changed: set[str] = set()
    index = 0
    while index < len(tokens):
        status = tokens[index]
        if not status:
            index += 1
            continue
        if index + 1 >= len(tokens) or not tokens[index + 1]:
            logger.warning("Skipping diff entry without a path: %r", status)
            break
        changed.add(tokens[index + 1])
        index += 2

    logger.debug("%d file(s) differ between %s and %s.", len(changed), from_sha[:12], to_sha[:12])
    return changed
