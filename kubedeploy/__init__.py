"""kubedeploy: dependency-aware deployment of Kubernetes resource graphs."""

from kubedeploy.app import KubeDeployApp
from kubedeploy.config import load_config
from kubedeploy.engine import DeploymentEngine
from kubedeploy.graph import DependencyGraph, build_dependency_graph
from kubedeploy.models import (
    CompositeNode,
    DeploymentOptions,
    DeploymentResult,
    FailurePolicy,
    ResolutionMode,
    ResourceNode,
    ref,
    schema_ref,
)
from kubedeploy.resolver import ReferenceResolver

__version__ = "0.1.0"

__all__ = [
    "CompositeNode",
    "DependencyGraph",
    "DeploymentEngine",
    "DeploymentOptions",
    "DeploymentResult",
    "FailurePolicy",
    "KubeDeployApp",
    "ReferenceResolver",
    "ResolutionMode",
    "ResourceNode",
    "__version__",
    "build_dependency_graph",
    "load_config",
    "ref",
    "schema_ref",
]
