"""Data structures for the resource dependency graph."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from kubedeploy.models.resources import GraphNode


@dataclass(frozen=True)
class DependencyEdge:
    """``dependent`` reads ``field_path`` of ``dependency``."""

    dependent: str
    dependency: str
    field_path: str


@dataclass(frozen=True)
class DependencyGraph:
    """A validated, acyclic resource graph with its deployment order.

    Build through ``build_dependency_graph``; constructing one directly skips
    cycle detection.
    """

    nodes: Mapping[str, GraphNode]
    dependencies: Mapping[str, tuple[str, ...]]
    order: tuple[str, ...]
    edges: tuple[DependencyEdge, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.order)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self.nodes

    def node(self, resource_id: str) -> GraphNode:
        return self.nodes[resource_id]

    def dependencies_of(self, resource_id: str) -> tuple[str, ...]:
        return self.dependencies.get(resource_id, ())

    def dependents(self, resource_id: str) -> tuple[str, ...]:
        """Direct dependents of *resource_id*, in deployment order."""
        return tuple(rid for rid in self.order if resource_id in self.dependencies.get(rid, ()))

    def transitive_dependents(self, resource_id: str) -> tuple[str, ...]:
        """Every node that directly or indirectly depends on *resource_id*."""
        found: set[str] = set()
        stack = [resource_id]
        while stack:
            current = stack.pop()
            for rid in self.dependents(current):
                if rid not in found:
                    found.add(rid)
                    stack.append(rid)
        return tuple(rid for rid in self.order if rid in found)

    def edges_for(self, resource_id: str) -> tuple[DependencyEdge, ...]:
        return tuple(e for e in self.edges if e.dependent == resource_id)

    def levels(self) -> list[list[str]]:
        """Group nodes into levels that could be deployed in parallel.

        Level 0 holds nodes without dependencies; every other node sits one
        level below its deepest dependency.
        """
        depth: dict[str, int] = {}
        for rid in self.order:
            deps = self.dependencies.get(rid, ())
            depth[rid] = 1 + max(depth[d] for d in deps) if deps else 0
        grouped: list[list[str]] = []
        for rid in self.order:
            while len(grouped) <= depth[rid]:
                grouped.append([])
            grouped[depth[rid]].append(rid)
        return grouped

    def rollback_order(self) -> list[str]:
        return list(reversed(self.order))
