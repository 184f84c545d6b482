"""Abstract snapshot store shared by every storage backend.

A snapshot is one archive blob keyed by the commit id it was built at.
Backends implement three primitives (``exists``, ``fetch``, ``store``); the
nearest-snapshot probe is implemented once here on top of ``exists`` so
that every backend answers it identically.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

logger = logging.getLogger(__name__)

# Commit ids are opaque, but they become file and object names; restrict them
# to a conservative alphabet so they can never address anything outside the
# configured root or bucket.
_COMMIT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StorageError(Exception):
    """Raised when a storage backend is unreachable, denies access or holds a corrupt blob."""


class SnapshotNotFoundError(StorageError):
    """Raised when fetching a snapshot for a commit id that has none."""

    def __init__(self, commit_id: str, location: str) -> None:
        self.commit_id = commit_id
        self.location = location
        super().__init__(f"Snapshot for commit '{commit_id}' not found in {location}")


def validate_commit_id(commit_id: str) -> str:
    """Return *commit_id* unchanged, raising :class:`ValueError` if it is unsafe as a key."""
    if not _COMMIT_ID_RE.match(commit_id) or ".." in commit_id:
        raise ValueError(f"Invalid commit id for snapshot storage: {commit_id!r}")
    return commit_id


# ---------------------------------------------------------------------------
# Store interface
# ---------------------------------------------------------------------------


class SnapshotStore(ABC):
    """Persist and retrieve snapshot blobs keyed by commit id.

    Parameters
    ----------
    max_workers:
        Number of threads used for existence checks in
        :meth:`find_nearest_snapshot`.  ``1`` probes sequentially.
    """

    def __init__(self, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._max_workers = max_workers

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable description of where snapshots live."""

    @abstractmethod
    def exists(self, commit_id: str) -> bool:
        """Return ``True`` if a snapshot is stored for *commit_id*."""

    @abstractmethod
    def fetch(self, commit_id: str) -> Path:
        """Return a local path to the snapshot blob for *commit_id*.

        Raises
        ------
        SnapshotNotFoundError
            If no snapshot is stored for *commit_id*.
        StorageError
            If the backend cannot be read.
        """

    @abstractmethod
    def store(self, commit_id: str, blob_path: Path) -> str:
        """Persist *blob_path* as the snapshot for *commit_id*, replacing any existing one.

        Returns
        -------
        str
            The location the blob was written to.
        """

    def find_nearest_snapshot(self, candidates: Sequence[str]) -> str | None:
        """Return the first candidate, in the given order, that has a snapshot.

        *candidates* are expected most recent first.  With ``max_workers > 1``
        existence checks run concurrently, but the result is still the
        earliest candidate in *candidates*, never the first check to finish.
        Returns ``None`` when no candidate has a snapshot.
        """
        if not candidates:
            return None

        if self._max_workers == 1 or len(candidates) == 1:
            for commit_id in candidates:
                if self.exists(commit_id):
                    logger.debug("Nearest snapshot in %s: %s", self.location, commit_id)
                    return commit_id
            return None

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(candidates))) as pool:
            # map() yields in submission order, so the first hit is the most recent.
            for commit_id, found in zip(candidates, pool.map(self.exists, candidates), strict=True):
                if found:
                    logger.debug("Nearest snapshot in %s: %s", self.location, commit_id)
                    return commit_id
        return None
