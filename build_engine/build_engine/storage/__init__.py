"""Snapshot storage backends keyed by commit id."""

from __future__ import annotations

from build_engine.models.build import FileSystemStorage, GoogleCloudStorage, SnapshotStorage
from build_engine.storage.base import (
    SnapshotNotFoundError,
    SnapshotStore,
    StorageError,
    validate_commit_id,
)
from build_engine.storage.filesystem import FileSystemSnapshotStore


def create_store(storage: SnapshotStorage, max_workers: int = 1) -> SnapshotStore:
    """Return the :class:`SnapshotStore` backend for a storage configuration."""
    if isinstance(storage, FileSystemStorage):
        return FileSystemSnapshotStore(storage.path, max_workers=max_workers)
    if isinstance(storage, GoogleCloudStorage):
        from build_engine.storage.gcs import GCSSnapshotStore

        return GCSSnapshotStore(storage.bucket, max_workers=max_workers)
    raise ValueError(f"Unsupported snapshot storage: {storage!r}")


__all__ = [
    "FileSystemSnapshotStore",
    "SnapshotNotFoundError",
    "SnapshotStore",
    "StorageError",
    "create_store",
    "validate_commit_id",
]
