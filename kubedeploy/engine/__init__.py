"""Deployment execution."""

from kubedeploy.engine.apply import ResourceApplier, merge_identity, with_namespace
from kubedeploy.engine.engine import DeploymentEngine, ProgressCallback
from kubedeploy.engine.rollback import RollbackManager

__all__ = [
    "DeploymentEngine",
    "ProgressCallback",
    "ResourceApplier",
    "RollbackManager",
    "merge_identity",
    "with_namespace",
]
