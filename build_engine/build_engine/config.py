"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from build_engine.models.build import (
    BuildConfiguration,
    BuildParameters,
    FileSystemStorage,
    GoogleCloudStorage,
    SourceControlProvider,
)

logger = logging.getLogger(__name__)


class StorageBackend(str, Enum):
    FILESYSTEM = "filesystem"
    GCS = "gcs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with SNAPBUILD_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="SNAPBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False

    # Repository
    repository: Path = Path(".")
    source_control: SourceControlProvider = SourceControlProvider.GIT

    # Snapshot storage
    storage_backend: StorageBackend = StorageBackend.FILESYSTEM
    storage_path: Path = Path.home() / ".snapbuild"
    storage_bucket: str | None = None

    # Snapshot lookup
    max_commits_check: int = 20
    probe_workers: int = 1

    # Build
    configuration: BuildConfiguration = BuildConfiguration.RELEASE

    @model_validator(mode="after")
    def require_bucket_for_gcs(self) -> Settings:
        if self.storage_backend is StorageBackend.GCS and not self.storage_bucket:
            raise ValueError("storage_bucket is required when storage_backend is 'gcs'.")
        return self

    def to_build_parameters(self) -> BuildParameters:
        """Translate these settings into immutable :class:`BuildParameters`."""
        if self.storage_backend is StorageBackend.GCS:
            storage: FileSystemStorage | GoogleCloudStorage = GoogleCloudStorage(bucket=self.storage_bucket or "")
        else:
            storage = FileSystemStorage(path=self.storage_path.expanduser())
        return BuildParameters(
            repository=self.repository,
            source_control_provider=self.source_control,
            storage=storage,
            max_commits_check=self.max_commits_check,
            probe_workers=self.probe_workers,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded settings: storage=%s, repository=%s", settings.storage_backend.value, settings.repository)

    return settings
