"""Snapshot store backed by a Google Cloud Storage bucket.

Objects are named after the commit id (``gs://<bucket>/<commit_id>``).
Downloads land in a local directory so that the archive codec can read
them like any other file.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Any

from google.api_core import exceptions as gcs_exceptions
from google.auth import exceptions as auth_exceptions

from build_engine.storage.base import (
    SnapshotNotFoundError,
    SnapshotStore,
    StorageError,
    validate_commit_id,
)

logger = logging.getLogger(__name__)


class GCSSnapshotStore(SnapshotStore):
    """One object per snapshot in a GCS bucket.

    Parameters
    ----------
    bucket:
        Bucket name (without the ``gs://`` scheme).
    client:
        A ``google.cloud.storage.Client``.  Created with default credentials
        when omitted.
    download_dir:
        Where fetched blobs are written.  Defaults to a ``snapbuild``
        folder in the system temporary directory.
    """

    def __init__(
        self,
        bucket: str,
        client: Any | None = None,
        download_dir: Path | None = None,
        max_workers: int = 1,
    ) -> None:
        super().__init__(max_workers=max_workers)
        if client is None:
            from google.cloud import storage

            try:
                client = storage.Client()
            except (auth_exceptions.GoogleAuthError, gcs_exceptions.GoogleAPIError, OSError) as exc:
                raise StorageError(f"Failed to create a Google Cloud Storage client for bucket '{bucket}': {exc}") from exc
        self._bucket_name = bucket.removeprefix("gs://").strip("/")
        self._bucket = client.bucket(self._bucket_name)
        self._download_dir = download_dir or Path(tempfile.gettempdir()) / "snapbuild"

    @property
    def location(self) -> str:
        return f"bucket 'gs://{self._bucket_name}'"

    def _blob(self, commit_id: str) -> Any:
        return self._bucket.blob(validate_commit_id(commit_id))

    def exists(self, commit_id: str) -> bool:
        try:
            return bool(self._blob(commit_id).exists())
        except gcs_exceptions.GoogleAPIError as exc:
            raise StorageError(f"Failed to check snapshot '{commit_id}' in {self.location}: {exc}") from exc

    def fetch(self, commit_id: str) -> Path:
        target = self._download_dir / f"{validate_commit_id(commit_id)}.zip"
        try:
            self._download_dir.mkdir(parents=True, exist_ok=True)
            self._blob(commit_id).download_to_filename(str(target))
        except gcs_exceptions.NotFound as exc:
            target.unlink(missing_ok=True)
            raise SnapshotNotFoundError(commit_id, self.location) from exc
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            target.unlink(missing_ok=True)
            raise StorageError(f"Failed to fetch snapshot '{commit_id}' from {self.location}: {exc}") from exc

        logger.info("Downloaded snapshot %s to '%s'.", commit_id, target)
        return target

    def store(self, commit_id: str, blob_path: Path) -> str:
        try:
            self._blob(commit_id).upload_from_filename(str(blob_path))
        except (gcs_exceptions.GoogleAPIError, OSError) as exc:
            raise StorageError(f"Failed to store snapshot '{commit_id}' in {self.location}: {exc}") from exc

        uri = f"gs://{self._bucket_name}/{commit_id}"
        logger.info("Stored snapshot %s at '%s'.", commit_id, uri)
        return uri
