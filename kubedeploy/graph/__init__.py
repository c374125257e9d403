"""Resource dependency graph."""

from kubedeploy.graph.builder import build_dependency_graph
from kubedeploy.graph.models import DependencyEdge, DependencyGraph

__all__ = ["DependencyEdge", "DependencyGraph", "build_dependency_graph"]
