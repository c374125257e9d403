"""Exception hierarchy for kubedeploy.

Graph-construction errors (CircularDependencyError, DuplicateResourceError)
abort a run before any resource is touched.  Every other error is raised per
resource, recorded in the DeploymentResult, and handled according to the
run's failure policy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubedeploy.models.resources import ReadinessResult
    from kubedeploy.models.values import Reference


class KubeDeployError(Exception):
    """Base class for all kubedeploy errors."""


class CircularDependencyError(KubeDeployError):
    """Raised when the references between resources form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        path = " -> ".join([*cycle, cycle[0]]) if cycle else "<unknown>"
        super().__init__(f"Circular dependency detected: {path}")
        self.cycle = list(cycle)


class DuplicateResourceError(KubeDeployError):
    """Raised when two nodes in one graph share an id."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Resource id '{resource_id}' is declared more than once")
        self.resource_id = resource_id


class ReferenceResolutionError(KubeDeployError):
    """Raised when a reference or expression cannot be turned into a value."""

    def __init__(self, message: str, reference: Reference | None = None) -> None:
        if reference is not None:
            message = f"Failed to resolve {reference.source_id}.{reference.field_path}: {message}"
        super().__init__(message)
        self.reference = reference


class ResourceNotFoundError(KubeDeployError):
    """Raised by a ResourceClient when the requested object does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None) -> None:
        where = f" in namespace '{namespace}'" if namespace else ""
        super().__init__(f"{kind}/{name} not found{where}")
        self.kind = kind
        self.name = name
        self.namespace = namespace


class ApplyError(KubeDeployError):
    """Raised when a resource could not be applied after all retries."""

    def __init__(self, resource_id: str, kind: str, name: str, cause: Exception, attempts: int = 1) -> None:
        super().__init__(f"Failed to apply {kind}/{name} ({resource_id}) after {attempts} attempt(s): {cause}")
        self.resource_id = resource_id
        self.kind = kind
        self.name = name
        self.cause = cause
        self.attempts = attempts


class ResourceReadinessTimeoutError(KubeDeployError):
    """Raised when a resource does not become ready within its timeout."""

    def __init__(self, resource_id: str, timeout: float, last_result: ReadinessResult | None) -> None:
        detail = ""
        if last_result is not None:
            detail = f": {last_result.reason or 'NotReady'}"
            if last_result.message:
                detail += f" ({last_result.message})"
        super().__init__(f"Timed out after {timeout:g}s waiting for '{resource_id}' to become ready{detail}")
        self.resource_id = resource_id
        self.timeout = timeout
        self.last_result = last_result


class ResourceReadinessError(KubeDeployError):
    """Raised when an evaluator reports a terminal failure reason."""

    def __init__(self, resource_id: str, result: ReadinessResult) -> None:
        message = f"Resource '{resource_id}' failed: {result.reason}"
        if result.message:
            message += f" ({result.message})"
        super().__init__(message)
        self.resource_id = resource_id
        self.result = result


class DependencyFailedError(KubeDeployError):
    """Recorded for a resource skipped because a dependency failed."""

    def __init__(self, resource_id: str, failed_dependencies: list[str]) -> None:
        deps = ", ".join(failed_dependencies)
        super().__init__(f"Skipped '{resource_id}': dependency failed ({deps})")
        self.resource_id = resource_id
        self.failed_dependencies = list(failed_dependencies)


class RollbackError(KubeDeployError):
    """Raised when deleting a resource during rollback fails."""

    def __init__(self, resource_id: str, cause: Exception) -> None:
        super().__init__(f"Failed to roll back '{resource_id}': {cause}")
        self.resource_id = resource_id
        self.cause = cause


class DeploymentTimeoutError(KubeDeployError):
    """Raised when the whole run exceeds its run-level timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Deployment exceeded run timeout of {timeout:g}s")
        self.timeout = timeout
