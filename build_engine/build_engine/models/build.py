"""Build parameters and the incremental build plan.

``BuildParameters`` is an immutable value.  The defaults live in
:data:`DEFAULT_PARAMETERS`; callers derive variants with
:meth:`BuildParameters.with_overrides` instead of mutating shared state.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from build_engine.models.project import Project, ProjectStructure


class SourceControlProvider(str, Enum):
    """Version control systems that can enumerate history and diffs."""

    GIT = "git"


class BuildConfiguration(str, Enum):
    """Build configuration; selects the ``bin``/``obj`` subdirectory that is archived."""

    RELEASE = "Release"
    DEBUG = "Debug"


# ---------------------------------------------------------------------------
# Snapshot storage variants
# ---------------------------------------------------------------------------


class FileSystemStorage(BaseModel):
    """Snapshots kept as files under a local (or mounted) directory."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["filesystem"] = "filesystem"
    path: Path


class GoogleCloudStorage(BaseModel):
    """Snapshots kept as objects in a Google Cloud Storage bucket."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["gcs"] = "gcs"
    bucket: str = Field(..., min_length=1)


SnapshotStorage = Annotated[FileSystemStorage | GoogleCloudStorage, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


class BuildParameters(BaseModel):
    """Immutable configuration for one incremental build invocation."""

    model_config = ConfigDict(frozen=True)

    repository: Path = Path(".")
    source_control_provider: SourceControlProvider = SourceControlProvider.GIT
    storage: SnapshotStorage = Field(default_factory=lambda: FileSystemStorage(path=Path.home() / ".snapbuild"))
    max_commits_check: int = Field(default=20, ge=1, description="How many recent commits to probe for a snapshot.")
    probe_workers: int = Field(default=1, ge=1, description="Threads used for snapshot existence checks.")

    def with_overrides(self, **changes: Any) -> BuildParameters:
        """Return a validated copy of these parameters with *changes* applied."""
        data = self.model_dump()
        data.update(changes)
        return BuildParameters.model_validate(data)


DEFAULT_PARAMETERS = BuildParameters()


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


class ImpactResult(BaseModel):
    """Partition of a project structure into impacted and unimpacted projects."""

    model_config = ConfigDict(frozen=True)

    impacted: frozenset[Project] = frozenset()
    unimpacted: frozenset[Project] = frozenset()


class IncrementalBuildInfo(BaseModel):
    """The plan computed for one build invocation.

    ``diff_id`` is the commit whose snapshot was found; ``None`` means no
    usable snapshot exists and every project must be built.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Current commit id.")
    diff_id: str | None = Field(default=None, description="Commit id of the nearest stored snapshot.")
    project_structure: ProjectStructure
    impacted_projects: list[Project] = Field(default_factory=list)
    not_impacted_projects: list[Project] = Field(default_factory=list)
    parameters: BuildParameters
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_full_build(self) -> bool:
        return self.diff_id is None

    def summary(self) -> dict[str, Any]:
        """Return a JSON-friendly summary of the plan."""
        return {
            "id": self.id,
            "diff_id": self.diff_id,
            "full_build": self.is_full_build,
            "impacted": [p.name for p in self.impacted_projects],
            "not_impacted": [p.name for p in self.not_impacted_projects],
            "warnings": list(self.warnings),
        }
