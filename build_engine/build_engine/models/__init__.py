"""Domain models for the snapbuild engine."""

from build_engine.models.build import (
    DEFAULT_PARAMETERS,
    BuildConfiguration,
    BuildParameters,
    FileSystemStorage,
    GoogleCloudStorage,
    ImpactResult,
    IncrementalBuildInfo,
    SnapshotStorage,
    SourceControlProvider,
)
from build_engine.models.project import Project, ProjectStructure

__all__ = [
    "DEFAULT_PARAMETERS",
    "BuildConfiguration",
    "BuildParameters",
    "FileSystemStorage",
    "GoogleCloudStorage",
    "ImpactResult",
    "IncrementalBuildInfo",
    "Project",
    "ProjectStructure",
    "SnapshotStorage",
    "SourceControlProvider",
]
