"""Incremental build orchestration.

One invocation runs these steps strictly in order:

1. parse the project structure of the repository;
2. enumerate the most recent commits (the first one is the current commit);
3. find the nearest earlier commit that has a stored snapshot;
4. if one exists, diff it against the current commit, compute the impacted
   projects and restore the snapshot so unimpacted outputs are on disk;
   otherwise every project is impacted (full build);
5. return an :class:`IncrementalBuildInfo` describing the plan.

After the external build succeeds, :meth:`IncrementalBuilder.create_snapshot`
archives the outputs of every project and stores them under the current
commit, where a later invocation will find them.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from build_engine.archive import pack, unpack
from build_engine.git.git_client import GitClientError
from build_engine.git.source_control import SourceControl, create_source_control
from build_engine.graph.dag_builder import build_dag, find_cycles, format_cycles
from build_engine.graph.impact import compute_impacted, owning_project
from build_engine.loader.project_loader import load_project_structure
from build_engine.models.build import (
    DEFAULT_PARAMETERS,
    BuildConfiguration,
    BuildParameters,
    IncrementalBuildInfo,
)
from build_engine.models.project import Project, ProjectStructure
from build_engine.storage import SnapshotStore, create_store

logger = logging.getLogger(__name__)

StructureLoader = Callable[[Path], ProjectStructure]


def output_folders(project: Project, root: Path, configuration: BuildConfiguration) -> list[Path]:
    """Return the ``bin`` and ``obj`` output folders of *project* for *configuration*."""
    folder = project.folder_path(root)
    return [
        folder / "bin" / configuration.value / project.target_framework,
        folder / "obj" / configuration.value / project.target_framework,
    ]


def collect_output_files(structure: ProjectStructure, configuration: BuildConfiguration) -> list[Path]:
    """Return every output file of every project in *structure*, sorted.

    Projects whose output folders do not exist (never built for this
    configuration) contribute nothing.
    """
    files: list[Path] = []
    for project in structure.all_projects():
        for folder in output_folders(project, structure.root_folder, configuration):
            if not folder.is_dir():
                logger.warning("Output folder '%s' of project '%s' does not exist; skipping.", folder, project.name)
                continue
            files.extend(sorted(p for p in folder.rglob("*") if p.is_file()))
    return files


class IncrementalBuilder:
    """Compute incremental build plans and manage build-output snapshots.

    Collaborators are resolved once, here, from *parameters*; each may be
    injected explicitly instead.

    Parameters
    ----------
    parameters:
        Immutable build parameters.
    store:
        Snapshot store; defaults to the backend selected by
        ``parameters.storage``.
    source_control:
        VCS collaborator; defaults to the provider selected by
        ``parameters.source_control_provider``.
    structure_loader:
        Callable parsing a repository root into a :class:`ProjectStructure`.
    """

    def __init__(
        self,
        parameters: BuildParameters = DEFAULT_PARAMETERS,
        *,
        store: SnapshotStore | None = None,
        source_control: SourceControl | None = None,
        structure_loader: StructureLoader = load_project_structure,
    ) -> None:
        self.parameters = parameters
        self.store = store or create_store(parameters.storage, max_workers=parameters.probe_workers)
        self.source_control = source_control or create_source_control(parameters.source_control_provider)
        self._load_structure = structure_loader

    # -- planning -------------------------------------------------------------

    def plan(self, restore: bool = True) -> IncrementalBuildInfo:
        """Compute the incremental build plan for the current commit.

        Parameters
        ----------
        restore:
            When a snapshot is found, unpack it into the repository so the
            outputs of unimpacted projects are present before building.
        """
        structure = self._load_structure(self.parameters.repository)
        dag = build_dag(structure)

        warnings: list[str] = []
        cycles = find_cycles(dag)
        if cycles:
            message = f"Cyclic project references: {format_cycles(cycles)}"
            logger.warning("%s", message)
            warnings.append(message)

        commits = self.source_control.list_recent_commits(structure.root_folder, self.parameters.max_commits_check)
        if not commits:
            raise GitClientError(f"No commits found in repository: {structure.root_folder}")
        current = commits[0]
        snapshot_commit = self.store.find_nearest_snapshot(commits[1:])

        if snapshot_commit is None:
            logger.warning("Last snapshot is not found. Full build should be done.")
            return IncrementalBuildInfo(
                id=current,
                diff_id=None,
                project_structure=structure,
                impacted_projects=structure.all_projects(),
                not_impacted_projects=[],
                parameters=self.parameters,
                warnings=warnings,
            )

        changed_files = self.source_control.diff_files(structure.root_folder, current, snapshot_commit)
        impact = compute_impacted(structure, changed_files, dag=dag)
        info = IncrementalBuildInfo(
            id=current,
            diff_id=snapshot_commit,
            project_structure=structure,
            impacted_projects=sorted(impact.impacted, key=lambda p: p.name),
            not_impacted_projects=sorted(impact.unimpacted, key=lambda p: p.name),
            parameters=self.parameters,
            warnings=warnings,
        )
        logger.info(
            "Last snapshot %s. Build %d of %d projects.",
            snapshot_commit,
            len(info.impacted_projects),
            len(structure.projects),
        )

        if restore:
            self.restore_snapshot(info)
        return info

    # -- snapshots ------------------------------------------------------------

    def restore_snapshot(self, info: IncrementalBuildInfo) -> list[Path]:
        """Unpack the snapshot at ``info.diff_id`` into the repository.

        Entries owned by impacted projects are skipped since those projects
        are rebuilt anyway.  Returns the files written; empty when the plan
        has no snapshot.
        """
        if info.diff_id is None:
            logger.info("Last build not found. Nothing to restore.")
            return []

        structure = info.project_structure
        impacted = {p.name for p in info.impacted_projects}

        def _owned_by_impacted(entry: str) -> bool:
            owner = owning_project(structure, entry)
            return owner is not None and owner.name in impacted

        archive = self.store.fetch(info.diff_id)
        restored = unpack(archive, structure.root_folder, skip=_owned_by_impacted)
        logger.info("Restored %d file(s) from snapshot %s.", len(restored), info.diff_id)
        return restored

    def create_snapshot(
        self,
        info: IncrementalBuildInfo,
        configuration: BuildConfiguration = BuildConfiguration.RELEASE,
    ) -> str:
        """Archive the outputs of every project and store them under ``info.id``.

        Returns
        -------
        str
            The location reported by the snapshot store.
        """
        structure = info.project_structure
        files = collect_output_files(structure, configuration)
        with tempfile.TemporaryDirectory(prefix="snapbuild-") as tmp:
            archive = pack(structure.root_folder, files, Path(tmp) / f"{info.id}.zip")
            location = self.store.store(info.id, archive)
        logger.info("Snapshot %s created with %d file(s).", info.id, len(files))
        return location


def get_incremental_build(restore: bool = True, **overrides: Any) -> IncrementalBuildInfo:
    """Plan an incremental build with :data:`DEFAULT_PARAMETERS` plus *overrides*."""
    parameters = DEFAULT_PARAMETERS.with_overrides(**overrides) if overrides else DEFAULT_PARAMETERS
    return IncrementalBuilder(parameters).plan(restore=restore)
