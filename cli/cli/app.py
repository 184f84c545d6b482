"""snapbuild CLI application -- Typer-based developer interface.

Provides commands for incremental build planning, snapshot restore and
creation, building the impacted projects and generating solution views.
Human-readable output goes to *stderr* via Rich; machine-readable output
(``--json``) goes to *stdout* so that pipelines can compose cleanly.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from build_engine.models.build import BuildParameters

import typer
from rich.console import Console
from rich.logging import RichHandler

from cli.display import display_build_plan, display_project_list

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="snapbuild",
    help="snapbuild - incremental builds for multi-project repositories",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_REPO_OPTION = typer.Option(
    None,
    "--repo",
    "-r",
    help="Repository root (defaults to SNAPBUILD_REPOSITORY or the current directory).",
    file_okay=False,
    resolve_path=True,
)
_STORAGE_PATH_OPTION = typer.Option(
    None,
    "--storage-path",
    help="Directory holding snapshots (filesystem backend).",
)
_BUCKET_OPTION = typer.Option(
    None,
    "--bucket",
    help="GCS bucket holding snapshots; selects the gcs backend.",
)
_MAX_COMMITS_OPTION = typer.Option(
    None,
    "--max-commits",
    min=1,
    help="How many recent commits to search for a snapshot.",
)
_CONFIGURATION_OPTION = typer.Option(
    None,
    "--configuration",
    "-c",
    help="Build configuration whose outputs are archived (Release | Debug).",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_parameters(
    repo: Path | None,
    storage_path: Path | None,
    bucket: str | None,
    max_commits: int | None,
) -> BuildParameters:
    """Merge command-line options over environment settings."""
    from build_engine.config import StorageBackend, load_settings

    overrides: dict[str, Any] = {}
    if repo is not None:
        overrides["repository"] = repo
    if storage_path is not None:
        overrides["storage_path"] = storage_path
        overrides["storage_backend"] = StorageBackend.FILESYSTEM
    if bucket is not None:
        overrides["storage_bucket"] = bucket
        overrides["storage_backend"] = StorageBackend.GCS
    if max_commits is not None:
        overrides["max_commits_check"] = max_commits
    return load_settings(**overrides).to_build_parameters()


def _resolve_configuration(value: str | None) -> Any:
    from build_engine.config import load_settings
    from build_engine.models.build import BuildConfiguration

    if value is None:
        return load_settings().configuration
    for configuration in BuildConfiguration:
        if configuration.value.lower() == value.lower():
            return configuration
    console.print(f"[red]Unknown configuration '{value}'. Use Release or Debug.[/red]")
    raise typer.Exit(code=3)


def _fail(action: str, exc: Exception) -> typer.Exit:
    console.print(f"[red]Error {action}: {exc}[/red]")
    return typer.Exit(code=3)


def _write_json(data: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(data, indent=2, sort_keys=True) + "\n")


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


@app.command()
def plan(
    repo: Path | None = _REPO_OPTION,
    storage_path: Path | None = _STORAGE_PATH_OPTION,
    bucket: str | None = _BUCKET_OPTION,
    max_commits: int | None = _MAX_COMMITS_OPTION,
    restore: bool = typer.Option(
        True,
        "--restore/--no-restore",
        help="Restore outputs of unimpacted projects from the nearest snapshot.",
    ),
) -> None:
    """Decide which projects must be rebuilt since the nearest snapshot."""
    from build_engine.orchestrator import IncrementalBuilder

    try:
        parameters = _build_parameters(repo, storage_path, bucket, max_commits)
        info = IncrementalBuilder(parameters).plan(restore=restore)
    except Exception as exc:
        raise _fail("planning build", exc) from exc

    if _json_output:
        _write_json(info.summary())
    else:
        display_build_plan(console, info)


# ---------------------------------------------------------------------------
# restore
# ---------------------------------------------------------------------------


@app.command()
def restore(
    repo: Path | None = _REPO_OPTION,
    storage_path: Path | None = _STORAGE_PATH_OPTION,
    bucket: str | None = _BUCKET_OPTION,
    max_commits: int | None = _MAX_COMMITS_OPTION,
) -> None:
    """Unpack the nearest snapshot, leaving impacted projects' outputs alone."""
    from build_engine.orchestrator import IncrementalBuilder

    try:
        parameters = _build_parameters(repo, storage_path, bucket, max_commits)
        builder = IncrementalBuilder(parameters)
        info = builder.plan(restore=False)
        restored = builder.restore_snapshot(info)
    except Exception as exc:
        raise _fail("restoring snapshot", exc) from exc

    if _json_output:
        _write_json({"id": info.id, "diff_id": info.diff_id, "restored": len(restored)})
    elif info.diff_id is None:
        console.print("[yellow]No snapshot found; nothing restored.[/yellow]")
    else:
        console.print(f"Restored {len(restored)} file(s) from snapshot [bold]{info.diff_id[:12]}[/bold].")


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------


@app.command()
def build(
    repo: Path | None = _REPO_OPTION,
    storage_path: Path | None = _STORAGE_PATH_OPTION,
    bucket: str | None = _BUCKET_OPTION,
    max_commits: int | None = _MAX_COMMITS_OPTION,
    configuration: str | None = _CONFIGURATION_OPTION,
    snapshot: bool = typer.Option(
        True,
        "--snapshot/--no-snapshot",
        help="Store a snapshot of all outputs after a successful build.",
    ),
) -> None:
    """Restore cached outputs, build the impacted projects and snapshot the result."""
    from build_engine.executor import build_projects
    from build_engine.orchestrator import IncrementalBuilder

    build_configuration = _resolve_configuration(configuration)
    try:
        parameters = _build_parameters(repo, storage_path, bucket, max_commits)
        builder = IncrementalBuilder(parameters)
        info = builder.plan(restore=True)
        if not _json_output:
            display_build_plan(console, info)
        built = build_projects(info, build_configuration)
        location = builder.create_snapshot(info, build_configuration) if snapshot else None
    except Exception as exc:
        raise _fail("building", exc) from exc

    if _json_output:
        _write_json({**info.summary(), "built": built, "snapshot": location})
    else:
        console.print(f"[green]Built {len(built)} project(s).[/green]")
        if location:
            console.print(f"Snapshot stored at [bold]{location}[/bold]")


# ---------------------------------------------------------------------------
# snapshot
# ---------------------------------------------------------------------------


@app.command()
def snapshot(
    repo: Path | None = _REPO_OPTION,
    storage_path: Path | None = _STORAGE_PATH_OPTION,
    bucket: str | None = _BUCKET_OPTION,
    configuration: str | None = _CONFIGURATION_OPTION,
) -> None:
    """Archive the build outputs of every project under the current commit."""
    from build_engine.orchestrator import IncrementalBuilder

    build_configuration = _resolve_configuration(configuration)
    try:
        parameters = _build_parameters(repo, storage_path, bucket, None)
        builder = IncrementalBuilder(parameters)
        info = builder.plan(restore=False)
        location = builder.create_snapshot(info, build_configuration)
    except Exception as exc:
        raise _fail("creating snapshot", exc) from exc

    if _json_output:
        _write_json({"id": info.id, "snapshot": location})
    else:
        console.print(f"Snapshot for [bold]{info.id[:12]}[/bold] stored at [bold]{location}[/bold]")


# ---------------------------------------------------------------------------
# projects
# ---------------------------------------------------------------------------


@app.command()
def projects(
    repo: Path = typer.Option(
        Path("."),
        "--repo",
        "-r",
        help="Repository root.",
        exists=True,
        file_okay=False,
        resolve_path=True,
    ),
) -> None:
    """List the projects in the repository and their references."""
    from build_engine.graph import build_dag, find_cycles
    from build_engine.loader import load_project_structure

    try:
        structure = load_project_structure(repo)
    except Exception as exc:
        raise _fail("loading projects", exc) from exc

    cycles = find_cycles(build_dag(structure))
    if _json_output:
        _write_json(
            {
                "root": str(structure.root_folder),
                "projects": [
                    {
                        "name": p.name,
                        "folder": p.folder,
                        "target_framework": p.target_framework,
                        "dependencies": sorted(p.dependencies),
                    }
                    for p in structure.all_projects()
                ],
                "cycles": cycles,
            }
        )
        return

    display_project_list(console, structure)
    for cycle in cycles:
        console.print(f"[yellow]Warning: cyclic references {' -> '.join(cycle + [cycle[0]])}[/yellow]")


# ---------------------------------------------------------------------------
# view
# ---------------------------------------------------------------------------


@app.command()
def view(
    name: str = typer.Argument(..., help="Solution name (without .sln)."),
    repo: Path | None = _REPO_OPTION,
    storage_path: Path | None = _STORAGE_PATH_OPTION,
    bucket: str | None = _BUCKET_OPTION,
    all_projects: bool = typer.Option(
        False,
        "--all",
        help="Include every project instead of only the impacted ones.",
    ),
) -> None:
    """Generate a solution file grouping the impacted (or all) projects."""
    from build_engine.executor import create_view
    from build_engine.orchestrator import IncrementalBuilder

    try:
        parameters = _build_parameters(repo, storage_path, bucket, None)
        info = IncrementalBuilder(parameters).plan(restore=False)
        selected = info.project_structure.all_projects() if all_projects else info.impacted_projects
        files = [p.project_file for p in selected if p.project_file]
        solution = create_view(name, info.project_structure.root_folder, files)
    except Exception as exc:
        raise _fail("creating view", exc) from exc

    if _json_output:
        _write_json({"solution": str(solution), "projects": files})
    else:
        console.print(f"Solution [bold]{solution}[/bold] created with {len(files)} project(s).")
