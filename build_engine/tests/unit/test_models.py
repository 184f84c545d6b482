"""Unit tests for build_engine.models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from build_engine.models import (
    DEFAULT_PARAMETERS,
    BuildParameters,
    FileSystemStorage,
    GoogleCloudStorage,
    IncrementalBuildInfo,
    Project,
    ProjectStructure,
    SourceControlProvider,
)


def _project(name: str, deps: list[str] | None = None) -> Project:
    return Project(name=name, folder=f"src/{name}", target_framework="net8.0", dependencies=frozenset(deps or []))


# ---------------------------------------------------------------------------
# Project / ProjectStructure
# ---------------------------------------------------------------------------


class TestProject:
    def test_folder_normalised(self):
        project = Project(name="A", folder="src\\A\\", target_framework="net8.0")
        assert project.folder == "src/A"
        assert project.folder_parts == ("src", "A")

    def test_root_folder(self):
        project = Project(name="A", folder=".", target_framework="net8.0")
        assert project.folder_parts == ()
        assert project.folder_path(Path("/repo")) == Path("/repo")

    def test_rejects_escaping_folder(self):
        with pytest.raises(ValidationError):
            Project(name="A", folder="../elsewhere", target_framework="net8.0")

    def test_rejects_absolute_folder(self):
        with pytest.raises(ValidationError):
            Project(name="A", folder="/abs/A", target_framework="net8.0")

    def test_frozen_and_hashable(self):
        project = _project("A")
        with pytest.raises(ValidationError):
            project.name = "B"  # type: ignore[misc]
        assert {project, _project("A")} == {project}


class TestProjectStructure:
    def test_valid(self):
        structure = ProjectStructure(
            root_folder=Path("/repo"),
            projects={"A": _project("A"), "B": _project("B", ["A"])},
        )
        assert [p.name for p in structure.all_projects()] == ["A", "B"]

    def test_unknown_dependency_is_malformed(self):
        with pytest.raises(ValidationError, match="unknown project"):
            ProjectStructure(root_folder=Path("/repo"), projects={"B": _project("B", ["A"])})

    def test_key_must_match_name(self):
        with pytest.raises(ValidationError, match="registered as"):
            ProjectStructure(root_folder=Path("/repo"), projects={"X": _project("A")})


# ---------------------------------------------------------------------------
# BuildParameters
# ---------------------------------------------------------------------------


class TestBuildParameters:
    def test_defaults(self):
        assert DEFAULT_PARAMETERS.repository == Path(".")
        assert DEFAULT_PARAMETERS.source_control_provider is SourceControlProvider.GIT
        assert isinstance(DEFAULT_PARAMETERS.storage, FileSystemStorage)
        assert DEFAULT_PARAMETERS.storage.path == Path.home() / ".snapbuild"
        assert DEFAULT_PARAMETERS.max_commits_check == 20

    def test_with_overrides_returns_new_value(self):
        params = DEFAULT_PARAMETERS.with_overrides(max_commits_check=5, repository=Path("/repo"))
        assert params.max_commits_check == 5
        assert params.repository == Path("/repo")
        assert DEFAULT_PARAMETERS.max_commits_check == 20

    def test_override_storage_variant(self):
        params = DEFAULT_PARAMETERS.with_overrides(storage={"kind": "gcs", "bucket": "builds"})
        assert params.storage == GoogleCloudStorage(bucket="builds")

    def test_override_validates(self):
        with pytest.raises(ValidationError):
            DEFAULT_PARAMETERS.with_overrides(max_commits_check=0)

    def test_immutable(self):
        with pytest.raises(ValidationError):
            DEFAULT_PARAMETERS.max_commits_check = 3  # type: ignore[misc]


class TestIncrementalBuildInfo:
    def test_summary(self):
        structure = ProjectStructure(root_folder=Path("/repo"), projects={"A": _project("A"), "B": _project("B")})
        info = IncrementalBuildInfo(
            id="c1",
            diff_id=None,
            project_structure=structure,
            impacted_projects=structure.all_projects(),
            parameters=BuildParameters(),
        )
        assert info.is_full_build
        assert info.summary() == {
            "id": "c1",
            "diff_id": None,
            "full_build": True,
            "impacted": ["A", "B"],
            "not_impacted": [],
            "warnings": [],
        }
