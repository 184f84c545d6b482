"""Discover and parse MSBuild project files into a :class:`ProjectStructure`.

Every ``*.csproj``, ``*.fsproj`` and ``*.vbproj`` below the repository root
becomes a :class:`~build_engine.models.project.Project` named after the file
stem.  Project-to-project references come from ``<ProjectReference
Include="..."/>`` items, resolved relative to the referencing project's
folder.
"""

from __future__ import annotations

import logging
import posixpath
import xml.etree.ElementTree as ET
from pathlib import Path

from pydantic import ValidationError

from build_engine.models.project import Project, ProjectStructure

logger = logging.getLogger(__name__)

PROJECT_FILE_SUFFIXES: frozenset[str] = frozenset({".csproj", ".fsproj", ".vbproj"})

# Build output directories never contain source projects.
_SKIPPED_DIRS: frozenset[str] = frozenset({"bin", "obj"})


class ProjectParseError(Exception):
    """Raised when a project file is malformed or the project graph is inconsistent."""


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_project_files(root: Path) -> list[Path]:
    """Return every project file under *root*, sorted by relative path."""
    found: list[Path] = []
    for path in root.rglob("*"):
        if path.suffix.lower() not in PROJECT_FILE_SUFFIXES or not path.is_file():
            continue
        relative_dirs = path.relative_to(root).parts[:-1]
        if any(part in _SKIPPED_DIRS or part.startswith(".") for part in relative_dirs):
            continue
        found.append(path)
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _local_name(tag: str) -> str:
    # Legacy project files carry the MSBuild 2003 namespace.
    return tag.rsplit("}", 1)[-1]


def _read_target_framework(root_element: ET.Element) -> str | None:
    single: str | None = None
    multiple: str | None = None
    for element in root_element.iter():
        name = _local_name(element.tag)
        text = (element.text or "").strip()
        if not text:
            continue
        if name == "TargetFramework" and single is None:
            single = text
        elif name == "TargetFrameworks" and multiple is None:
            multiple = text
    if single:
        return single
    if multiple:
        first = next((tfm.strip() for tfm in multiple.split(";") if tfm.strip()), None)
        return first
    return None


def _read_project_references(root_element: ET.Element) -> list[str]:
    references: list[str] = []
    for element in root_element.iter():
        if _local_name(element.tag) != "ProjectReference":
            continue
        include = element.get("Include")
        if include:
            references.append(include.strip())
    return references


def _resolve_reference(project_folder: str, include: str) -> str:
    """Resolve an ``Include`` path to a repository-relative POSIX path."""
    joined = posixpath.join(project_folder, include.replace("\\", "/"))
    return posixpath.normpath(joined)


def parse_project_file(path: Path, root: Path) -> tuple[Project, list[str]]:
    """Parse a single project file.

    Returns
    -------
    tuple[Project, list[str]]
        The project without dependencies filled in, and the
        repository-relative paths of the project files it references.

    Raises
    ------
    ProjectParseError
        If the file cannot be read, is not well-formed XML or declares no
        target framework.
    """
    relative = path.relative_to(root)
    try:
        tree = ET.parse(path)
    except ET.ParseError as exc:
        raise ProjectParseError(f"Malformed project file '{relative.as_posix()}': {exc}") from exc
    except OSError as exc:
        raise ProjectParseError(f"Failed to read project file '{relative.as_posix()}': {exc}") from exc

    root_element = tree.getroot()
    target_framework = _read_target_framework(root_element)
    if target_framework is None:
        raise ProjectParseError(f"Project file '{relative.as_posix()}' declares no TargetFramework(s).")

    folder = relative.parent.as_posix()
    references = [_resolve_reference(folder, include) for include in _read_project_references(root_element)]

    project = Project(
        name=path.stem,
        folder=folder,
        target_framework=target_framework,
        project_file=relative.as_posix(),
    )
    return project, references


def load_project_structure(root: Path) -> ProjectStructure:
    """Discover and parse every project under *root*.

    Parameters
    ----------
    root:
        Repository root; project folders are recorded relative to it.

    Returns
    -------
    ProjectStructure
        Projects keyed by name with resolved dependency names.

    Raises
    ------
    ProjectParseError
        If *root* is not a directory, two projects share a name, a project
        file is malformed, or a reference points at a project file that
        does not exist in the tree.
    """
    root = root.resolve()
    if not root.is_dir():
        raise ProjectParseError(f"Repository root does not exist or is not a directory: '{root}'")

    project_files = discover_project_files(root)
    if not project_files:
        logger.warning("No project files found under '%s'.", root)

    parsed: dict[str, tuple[Project, list[str]]] = {}
    by_file: dict[str, str] = {}
    for path in project_files:
        project, references = parse_project_file(path, root)
        if project.name in parsed:
            other = parsed[project.name][0].project_file
            raise ProjectParseError(
                f"Duplicate project name '{project.name}': '{other}' and '{project.project_file}'."
            )
        parsed[project.name] = (project, references)
        by_file[project.project_file or ""] = project.name

    projects: dict[str, Project] = {}
    for name, (project, references) in parsed.items():
        dependencies: set[str] = set()
        for reference in references:
            dependency = by_file.get(reference)
            if dependency is None:
                raise ProjectParseError(
                    f"Project '{name}' references '{reference}' which is not a project in the tree."
                )
            dependencies.add(dependency)
        projects[name] = project.model_copy(update={"dependencies": frozenset(dependencies)})

    try:
        structure = ProjectStructure(root_folder=root, projects=projects)
    except ValidationError as exc:
        raise ProjectParseError(f"Inconsistent project structure under '{root}': {exc}") from exc

    logger.info("Loaded %d project(s) from '%s'.", len(projects), root)
    return structure
