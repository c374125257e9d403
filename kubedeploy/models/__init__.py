"""Core data structures for kubedeploy."""

from kubedeploy.models.config import (
    DeploymentOptions,
    FailurePolicy,
    KubeDeployConfig,
    ResolutionMode,
    RetryPolicy,
)
from kubedeploy.models.deployment import (
    DeployedResource,
    DeploymentError,
    DeploymentEvent,
    DeploymentPhase,
    DeploymentResult,
    DeploymentStatus,
    EventType,
    ResourceStatus,
)
from kubedeploy.models.resources import (
    CompositeNode,
    GraphNode,
    ReadinessResult,
    ResourceNode,
)
from kubedeploy.models.values import (
    SCHEMA_ID,
    Expression,
    Literal,
    Operator,
    Reference,
    Value,
    as_value,
    is_expression,
    is_literal,
    is_reference,
    is_value,
    iter_references,
    map_values,
    ref,
    schema_ref,
)

__all__ = [
    "CompositeNode",
    "DeployedResource",
    "DeploymentError",
    "DeploymentEvent",
    "DeploymentOptions",
    "DeploymentPhase",
    "DeploymentResult",
    "DeploymentStatus",
    "EventType",
    "Expression",
    "FailurePolicy",
    "GraphNode",
    "KubeDeployConfig",
    "Literal",
    "Operator",
    "ReadinessResult",
    "Reference",
    "ResolutionMode",
    "ResourceNode",
    "ResourceStatus",
    "RetryPolicy",
    "SCHEMA_ID",
    "Value",
    "as_value",
    "is_expression",
    "is_literal",
    "is_reference",
    "is_value",
    "iter_references",
    "map_values",
    "ref",
    "schema_ref",
]
