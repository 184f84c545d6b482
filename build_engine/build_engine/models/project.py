"""Project and project-structure models parsed from a source tree.

A :class:`Project` is one build unit (a ``.csproj``/``.fsproj`` file and the
folder that holds it).  A :class:`ProjectStructure` is the full set of build
units under a repository root, keyed by project name.  Both are frozen: they
are created once by the loader and read by every later stage of a build
invocation.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Project(BaseModel):
    """A single build unit and its direct project-to-project references."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique project identity, e.g. 'Core.Domain'.")
    folder: str = Field(
        default=".",
        description="Project directory relative to the repository root, POSIX form ('.' for the root).",
    )
    target_framework: str = Field(..., min_length=1, description="Target framework moniker, e.g. 'net8.0'.")
    dependencies: frozenset[str] = Field(
        default_factory=frozenset,
        description="Names of projects this project references directly.",
    )
    project_file: str | None = Field(
        default=None,
        description="Project file path relative to the repository root.",
    )

    @field_validator("folder")
    @classmethod
    def normalise_folder(cls, value: str) -> str:
        posix = PurePosixPath(value.replace("\\", "/"))
        if posix.is_absolute() or ".." in posix.parts:
            raise ValueError(f"Project folder must be relative to the repository root: {value!r}")
        return posix.as_posix()

    @property
    def folder_parts(self) -> tuple[str, ...]:
        """Path components of :attr:`folder`; empty for a root-level project."""
        return PurePosixPath(self.folder).parts if self.folder != "." else ()

    def folder_path(self, root: Path) -> Path:
        """Return the absolute project directory under *root*."""
        return root / self.folder


class ProjectStructure(BaseModel):
    """All projects found under a repository root.

    Every dependency declared by a project must name another project in
    :attr:`projects`; a structure violating that is malformed and rejected
    at construction time.
    """

    model_config = ConfigDict(frozen=True)

    root_folder: Path
    projects: dict[str, Project] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_references(self) -> ProjectStructure:
        for key, project in self.projects.items():
            if key != project.name:
                raise ValueError(f"Project registered as '{key}' is named '{project.name}'.")
            unknown = sorted(dep for dep in project.dependencies if dep not in self.projects)
            if unknown:
                raise ValueError(f"Project '{project.name}' references unknown project(s): {', '.join(unknown)}")
        return self

    def all_projects(self) -> list[Project]:
        """Return every project sorted by name."""
        return [self.projects[name] for name in sorted(self.projects)]
