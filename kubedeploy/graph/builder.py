"""Build a DependencyGraph from declared nodes.

Edges are inferred from the references embedded in each node's manifest.
Schema references never create edges and references to ids outside the
graph are reported and ignored here (they fail at resolution time).  A
resource that references itself forms a one-node cycle.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable

import structlog

from kubedeploy.errors import CircularDependencyError, DuplicateResourceError
from kubedeploy.graph.models import DependencyEdge, DependencyGraph
from kubedeploy.models.resources import GraphNode

_log = structlog.get_logger(component="graph_builder")


def build_dependency_graph(nodes: Iterable[GraphNode]) -> DependencyGraph:
    """Validate *nodes* and compute a deterministic deployment order.

    Raises:
        DuplicateResourceError: if two nodes share an id.
        CircularDependencyError: if the references form a cycle.
    """
    declared: dict[str, GraphNode] = {}
    for node in nodes:
        if node.id in declared:
            raise DuplicateResourceError(node.id)
        declared[node.id] = node

    edges: list[DependencyEdge] = []
    dependencies: dict[str, list[str]] = {rid: [] for rid in declared}
    for rid, node in declared.items():
        for reference in node.references():
            if reference.is_schema:
                continue
            if reference.source_id not in declared:
                _log.warning(
                    "reference_to_unknown_resource",
                    resource_id=rid,
                    source_id=reference.source_id,
                    field_path=reference.field_path,
                )
                continue
            edges.append(DependencyEdge(rid, reference.source_id, reference.field_path))
            if reference.source_id not in dependencies[rid]:
                dependencies[rid].append(reference.source_id)

    _check_cycles(list(declared), dependencies)
    order = _topological_order(list(declared), dependencies)

    _log.debug("dependency_graph_built", nodes=len(declared), edges=len(edges), order=order)
    return DependencyGraph(
        nodes=declared,
        dependencies={rid: tuple(deps) for rid, deps in dependencies.items()},
        order=tuple(order),
        edges=tuple(edges),
    )


def _check_cycles(ids: list[str], dependencies: dict[str, list[str]]) -> None:
    """Depth-first search with an explicit recursion stack."""
    done: set[str] = set()
    for start in ids:
        if start in done:
            continue
        path: list[str] = [start]
        on_path: set[str] = {start}
        iterators = [iter(dependencies[start])]
        while iterators:
            dep = next(iterators[-1], None)
            if dep is None:
                iterators.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if dep in on_path:
                raise CircularDependencyError(path[path.index(dep):])
            if dep in done:
                continue
            path.append(dep)
            on_path.add(dep)
            iterators.append(iter(dependencies[dep]))


def _topological_order(ids: list[str], dependencies: dict[str, list[str]]) -> list[str]:
    """Kahn's algorithm; ties go to the earliest-declared node."""
    index = {rid: i for i, rid in enumerate(ids)}
    remaining = {rid: len(dependencies[rid]) for rid in ids}
    dependents: dict[str, list[str]] = {rid: [] for rid in ids}
    for rid in ids:
        for dep in dependencies[rid]:
            dependents[dep].append(rid)

    ready = [(index[rid], rid) for rid in ids if remaining[rid] == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        _, rid = heapq.heappop(ready)
        order.append(rid)
        for child in dependents[rid]:
            remaining[child] -= 1
            if remaining[child] == 0:
                heapq.heappush(ready, (index[child], child))

    if len(order) != len(ids):
        placed = set(order)
        stuck = [rid for rid in ids if rid not in placed]
        raise CircularDependencyError(stuck)
    return order
