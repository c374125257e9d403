"""Deployment run data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from kubedeploy.models.resources import ReadinessResult


class ResourceStatus(StrEnum):
    """Lifecycle of a single resource within one run."""

    PENDING = "pending"
    APPLIED = "applied"
    READY = "ready"
    FAILED = "failed"


class DeploymentStatus(StrEnum):
    """Overall outcome of a run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class DeploymentPhase(StrEnum):
    """Where in the per-resource pipeline an error occurred."""

    RESOLUTION = "resolution"
    APPLY = "apply"
    READINESS = "readiness"
    DEPENDENCY = "dependency"
    ROLLBACK = "rollback"
    TIMEOUT = "timeout"


class EventType(StrEnum):
    """Progress event types emitted to the optional callback."""

    STARTED = "started"
    PROGRESS = "progress"
    RESOURCE_STATUS = "resource-status"
    RESOURCE_READY = "resource-ready"
    FAILED = "failed"
    ROLLBACK = "rollback"
    COMPLETED = "completed"


@dataclass
class DeployedResource:
    """Per-run record of one applied resource.

    Mutated only by the engine's execution loop for a single run.  The
    ``live_object`` is the last observed live state and is what downstream
    status projection consumes.
    """

    id: str
    kind: str
    name: str
    namespace: str
    status: ResourceStatus = ResourceStatus.PENDING
    api_version: str | None = None
    applied_manifest: dict[str, Any] | None = None
    live_object: dict[str, Any] | None = None
    readiness_history: list[ReadinessResult] = field(default_factory=list)
    error: Exception | None = None
    sub_resources: list[DeployedResource] = field(default_factory=list)
    rolled_back: bool = False

    @property
    def was_applied(self) -> bool:
        return self.applied_manifest is not None and self.live_object is not None

    @property
    def last_readiness(self) -> ReadinessResult | None:
        return self.readiness_history[-1] if self.readiness_history else None


@dataclass(frozen=True)
class DeploymentError:
    """An error recorded against a resource id during a run."""

    resource_id: str
    phase: DeploymentPhase
    error: Exception
    timestamp: datetime


@dataclass(frozen=True)
class DeploymentEvent:
    """Progress notification delivered to ``progress_callback``."""

    type: EventType
    message: str
    timestamp: datetime
    resource_id: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of one engine run.  Immutable after return."""

    deployment_id: str
    status: DeploymentStatus
    resources: list[DeployedResource] = field(default_factory=list)
    errors: list[DeploymentError] = field(default_factory=list)
    duration: float = 0.0
    order: list[str] = field(default_factory=list)

    def get(self, resource_id: str) -> DeployedResource | None:
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    @property
    def succeeded(self) -> list[str]:
        return [r.id for r in self.resources if r.status is not ResourceStatus.FAILED]

    @property
    def failed(self) -> list[str]:
        return [r.id for r in self.resources if r.status is ResourceStatus.FAILED]

    def errors_for(self, resource_id: str) -> list[DeploymentError]:
        return [e for e in self.errors if e.resource_id == resource_id]
