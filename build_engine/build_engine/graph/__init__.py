"""Project dependency graph and change-impact analysis."""

from build_engine.graph.dag_builder import (
    CyclicDependencyError,
    build_dag,
    find_cycles,
    get_downstream,
    topological_sort,
)
from build_engine.graph.impact import (
    compute_impacted,
    impacted_closure,
    owning_project,
    seed_projects,
)

__all__ = [
    # DAG construction
    "CyclicDependencyError",
    "build_dag",
    "find_cycles",
    "get_downstream",
    "topological_sort",
    # Impact analysis
    "compute_impacted",
    "impacted_closure",
    "owning_project",
    "seed_projects",
]
