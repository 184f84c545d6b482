"""Rich output formatting for the snapbuild CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from build_engine.models.build import IncrementalBuildInfo
    from build_engine.models.project import ProjectStructure


# ---------------------------------------------------------------------------
# Build plan
# ---------------------------------------------------------------------------


def display_build_plan(console: Console, info: IncrementalBuildInfo) -> None:
    """Render an incremental build plan: header panel plus a project table.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    info:
        The plan to display.
    """
    total = len(info.project_structure.projects)
    header_lines = [
        f"[bold]Commit:[/bold]    {info.id[:12]}",
        f"[bold]Snapshot:[/bold]  {info.diff_id[:12] if info.diff_id else '(none)'}",
        f"[bold]Build:[/bold]     {len(info.impacted_projects)} of {total} project(s)",
    ]
    if info.is_full_build:
        header_lines.append("[yellow]No snapshot found -- full build required.[/yellow]")
    console.print(
        Panel(
            "\n".join(header_lines),
            title="Incremental Build Plan",
            border_style="blue",
        )
    )

    for warning in info.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    if total == 0:
        console.print("[dim]No projects found.[/dim]")
        return

    table = Table(title="Projects", show_lines=False)
    table.add_column("Project", style="bold")
    table.add_column("Folder")
    table.add_column("Framework")
    table.add_column("Action")

    for project in info.impacted_projects:
        table.add_row(project.name, project.folder, project.target_framework, "[red]build[/red]")
    for project in info.not_impacted_projects:
        table.add_row(project.name, project.folder, project.target_framework, "[green]restore[/green]")

    console.print(table)


# ---------------------------------------------------------------------------
# Project list
# ---------------------------------------------------------------------------


def display_project_list(console: Console, structure: ProjectStructure) -> None:
    """Render every project with its direct dependencies and dependents."""
    projects = structure.all_projects()
    if not projects:
        console.print("[dim]No projects found.[/dim]")
        return

    dependents: dict[str, list[str]] = {p.name: [] for p in projects}
    for project in projects:
        for dependency in project.dependencies:
            dependents[dependency].append(project.name)

    table = Table(title=f"Projects ({len(projects)})")
    table.add_column("Project", style="bold")
    table.add_column("Folder")
    table.add_column("Framework")
    table.add_column("Depends on")
    table.add_column("Used by", justify="right")

    for project in projects:
        table.add_row(
            project.name,
            project.folder,
            project.target_framework,
            ", ".join(sorted(project.dependencies)) or "-",
            str(len(dependents[project.name])),
        )

    console.print(table)
