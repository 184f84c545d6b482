"""Hand the impacted projects of a plan to the ``dotnet`` CLI.

Two operations are provided: building the impacted set in dependency order,
and generating a solution file ("view") that groups a list of projects for
an IDE.
"""

from __future__ import annotations

import logging
from pathlib import Path

from build_engine.executor.process import BuildToolError, ProcessRunner, run_process
from build_engine.graph.dag_builder import build_dag, topological_sort
from build_engine.models.build import BuildConfiguration, IncrementalBuildInfo

logger = logging.getLogger(__name__)


def build_order(info: IncrementalBuildInfo) -> list[str]:
    """Return the impacted project names, dependencies first."""
    dag = build_dag(info.project_structure)
    return topological_sort(dag, subset={p.name for p in info.impacted_projects})


def build_projects(
    info: IncrementalBuildInfo,
    configuration: BuildConfiguration = BuildConfiguration.RELEASE,
    runner: ProcessRunner = run_process,
) -> list[str]:
    """Build every impacted project with ``dotnet build``.

    Outputs of unimpacted projects are expected to be on disk already
    (restored from the snapshot), so each project is built with
    ``--no-dependencies``.

    Returns
    -------
    list[str]
        Names of the projects built, in build order.

    Raises
    ------
    BuildToolError
        If a project has no project file or ``dotnet`` fails.
    CyclicDependencyError
        If the impacted projects reference each other cyclically.
    """
    root = info.project_structure.root_folder
    order = build_order(info)
    for name in order:
        project = info.project_structure.projects[name]
        if project.project_file is None:
            raise BuildToolError(f"Project '{name}' has no project file to build.")
        logger.info("Building %s (%s).", name, configuration.value)
        runner(
            ["dotnet", "build", project.project_file, "--configuration", configuration.value, "--no-dependencies"],
            root,
        )
    if not order:
        logger.info("Nothing to build: no impacted projects.")
    return order


def create_view(
    name: str,
    folder: Path,
    project_files: list[str],
    runner: ProcessRunner = run_process,
) -> Path:
    """Generate ``<folder>/<name>.sln`` containing *project_files*.

    An existing solution with the same name is replaced.
    """
    solution = folder / f"{name}.sln"
    solution.unlink(missing_ok=True)

    runner(["dotnet", "new", "sln", "--name", name], folder)
    if project_files:
        runner(["dotnet", "sln", solution.name, "add", *project_files], folder)

    logger.info("Created view '%s' with %d project(s).", solution, len(project_files))
    return solution
