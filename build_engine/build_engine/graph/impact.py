"""Change-impact analysis: which projects must be rebuilt for a set of changed files.

A changed file is attributed to the project whose folder is the deepest
path-component prefix of the file path.  Files that fall outside every
project folder (root-level configuration, documentation, ...) seed nothing.
The seed projects and every project that transitively references one of
them form the impacted set; everything else is unimpacted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import PurePosixPath

import networkx as nx

from build_engine.graph.dag_builder import build_dag, get_downstream
from build_engine.models.build import ImpactResult
from build_engine.models.project import Project, ProjectStructure

logger = logging.getLogger(__name__)


def _path_parts(path: str) -> tuple[str, ...]:
    posix = PurePosixPath(path.replace("\\", "/"))
    return tuple(part for part in posix.parts if part not in ("", "."))


def owning_project(structure: ProjectStructure, file_path: str) -> Project | None:
    """Return the project whose folder is the longest prefix of *file_path*.

    Matching is done per path component, so ``src/App/x.cs`` belongs to
    ``src/App`` but ``src/AppTests/x.cs`` does not.  When several projects
    match, the deepest folder wins; equally deep matches are resolved by
    project name for determinism.

    Parameters
    ----------
    structure:
        The parsed project structure.
    file_path:
        Repository-relative path as reported by the VCS diff.
    """
    parts = _path_parts(file_path)
    best: Project | None = None
    for project in structure.all_projects():
        folder = project.folder_parts
        if len(folder) >= len(parts) or parts[: len(folder)] != folder:
            continue
        if best is None or len(folder) > len(best.folder_parts):
            best = project
    return best


def seed_projects(structure: ProjectStructure, changed_files: Iterable[str]) -> set[str]:
    """Map changed files to the names of the projects that directly own them."""
    seeds: set[str] = set()
    for file_path in sorted(changed_files):
        owner = owning_project(structure, file_path)
        if owner is None:
            logger.debug("Changed file '%s' is outside every project folder; ignoring.", file_path)
            continue
        seeds.add(owner.name)
    return seeds


def impacted_closure(dag: nx.DiGraph, seeds: Iterable[str]) -> set[str]:
    """Return *seeds* plus every project that transitively depends on one of them.

    Seeds that are not in *dag* are dropped.  Cyclic references terminate
    because each downstream walk keeps its own visited set.
    """
    impacted: set[str] = set()
    for seed in seeds:
        if seed in dag and seed not in impacted:
            impacted.add(seed)
            impacted |= get_downstream(dag, seed)
    return impacted


def compute_impacted(
    structure: ProjectStructure,
    changed_files: Iterable[str],
    dag: nx.DiGraph | None = None,
) -> ImpactResult:
    """Partition *structure* into impacted and unimpacted projects.

    Parameters
    ----------
    structure:
        The parsed project structure.
    changed_files:
        Repository-relative paths that differ between the snapshot commit
        and the current commit.  An empty collection impacts nothing.
    dag:
        A graph previously built from *structure*; built on demand if omitted.

    Returns
    -------
    ImpactResult
        Disjoint impacted/unimpacted sets whose union is every project.
    """
    graph = dag if dag is not None else build_dag(structure)
    seeds = seed_projects(structure, changed_files)
    impacted_names = impacted_closure(graph, seeds)

    impacted = frozenset(structure.projects[name] for name in impacted_names)
    unimpacted = frozenset(p for name, p in structure.projects.items() if name not in impacted_names)

    logger.info(
        "%d changed project(s) impact %d of %d project(s).",
        len(seeds),
        len(impacted),
        len(structure.projects),
    )
    return ImpactResult(impacted=impacted, unimpacted=unimpacted)
