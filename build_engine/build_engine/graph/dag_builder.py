"""Project dependency graph construction and traversal using NetworkX.

This module builds a directed graph from a
:class:`~build_engine.models.project.ProjectStructure`, provides
deterministic topological ordering, downstream traversal and cycle
detection.  Edges point **from** a dependency **to** the project that
references it, so "everything downstream of X" is exactly the set of
projects that must be rebuilt when X changes.
"""

from __future__ import annotations

import heapq
import logging
from collections import deque

import networkx as nx

from build_engine.models.project import ProjectStructure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CyclicDependencyError(Exception):
    """Raised when project references form one or more cycles.

    Attributes
    ----------
    cycles:
        A list of cycles, where each cycle is a list of project names
        forming the loop (e.g. ``[["a", "b", "c"]]`` means a -> b -> c -> a).
    """

    def __init__(self, cycles: list[list[str]]) -> None:
        self.cycles = cycles
        super().__init__(f"Cyclic dependencies detected: {format_cycles(cycles)}")


def format_cycles(cycles: list[list[str]]) -> str:
    return "; ".join(" -> ".join(c + [c[0]]) for c in cycles)


# ---------------------------------------------------------------------------
# DAG construction
# ---------------------------------------------------------------------------


def build_dag(structure: ProjectStructure) -> nx.DiGraph:
    """Build a directed graph from a project structure.

    Each project becomes a node keyed by its ``name`` carrying the
    :class:`~build_engine.models.project.Project` under node key
    ``"project"``.  For every declared reference ``A depends on B`` an edge
    ``B -> A`` is added.  Self references are ignored.

    Parameters
    ----------
    structure:
        The parsed project structure.

    Returns
    -------
    nx.DiGraph
        A directed graph suitable for downstream traversal.
    """
    dag = nx.DiGraph()

    for project in structure.all_projects():
        dag.add_node(project.name, project=project)

    for project in structure.all_projects():
        for dependency in sorted(project.dependencies):
            if dependency != project.name:
                dag.add_edge(dependency, project.name)

    return dag


# ---------------------------------------------------------------------------
# Topological sort
# ---------------------------------------------------------------------------


def _lexicographic_topological_sort(graph: nx.DiGraph) -> list[str]:
    """Stable topological sort with lexicographic tie-breaking (Kahn + min-heap)."""
    in_degree = dict(graph.in_degree())
    heap = sorted(n for n, d in in_degree.items() if d == 0)
    heapq.heapify(heap)
    result: list[str] = []
    while heap:
        node = heapq.heappop(heap)
        result.append(node)
        for successor in sorted(graph.successors(node)):
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                heapq.heappush(heap, successor)
    if len(result) != len(graph):
        raise nx.NetworkXUnfeasible("Graph contains a cycle")
    return result


def topological_sort(dag: nx.DiGraph, subset: set[str] | None = None) -> list[str]:
    """Return a deterministic build ordering of projects.

    Dependencies come before the projects that reference them; among
    unconstrained projects the order is alphabetical.  When *subset* is
    given, only those projects are ordered (using the subgraph they induce).

    Raises
    ------
    CyclicDependencyError
        If the (sub)graph contains one or more cycles.
    """
    graph = dag.subgraph(subset).copy() if subset is not None else dag
    try:
        return _lexicographic_topological_sort(graph)
    except nx.NetworkXUnfeasible:
        raise CyclicDependencyError(find_cycles(graph)) from None


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------


def get_downstream(dag: nx.DiGraph, project_name: str) -> set[str]:
    """Return all projects that transitively depend on *project_name*.

    Breadth-first traversal over successor edges with a visited set, so
    diamonds are walked once and cycles terminate.  *project_name* itself
    is **not** included unless it sits on a cycle.
    """
    if project_name not in dag:
        return set()

    visited: set[str] = set()
    queue: deque[str] = deque(dag.successors(project_name))

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        queue.extend(dag.successors(current))

    return visited


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def find_cycles(dag: nx.DiGraph) -> list[list[str]]:
    """Return every elementary cycle in *dag*, each rotated to start at its smallest name."""
    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(dag):
        pivot = cycle.index(min(cycle))
        cycles.append(cycle[pivot:] + cycle[:pivot])
    return sorted(cycles)


