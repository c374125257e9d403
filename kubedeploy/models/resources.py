"""Graph node and readiness data structures."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from kubedeploy.models.values import Reference, iter_references

# Kinds that must never receive a namespace.
CLUSTER_SCOPED_KINDS = frozenset(
    {
        "Namespace",
        "Node",
        "PersistentVolume",
        "StorageClass",
        "ClusterRole",
        "ClusterRoleBinding",
        "CustomResourceDefinition",
        "PriorityClass",
        "IngressClass",
        "ValidatingWebhookConfiguration",
        "MutatingWebhookConfiguration",
        "ClusterIssuer",
        "ResourceGraphDefinition",
    }
)


@dataclass(frozen=True)
class ResourceNode:
    """A single resource declared in a deployment graph.

    The manifest is deep-copied on construction; resolution produces derived
    copies and never mutates the node.
    """

    id: str
    kind: str
    manifest: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ResourceNode id must not be empty")
        object.__setattr__(self, "manifest", copy.deepcopy(dict(self.manifest)))

    @classmethod
    def from_manifest(cls, resource_id: str, manifest: Mapping[str, Any]) -> ResourceNode:
        """Build a node taking its kind from ``manifest["kind"]``."""
        kind = manifest.get("kind")
        if not isinstance(kind, str) or not kind:
            raise ValueError(f"Manifest for {resource_id!r} has no literal kind")
        return cls(id=resource_id, kind=kind, manifest=manifest)

    @property
    def api_version(self) -> str | None:
        value = self.manifest.get("apiVersion")
        return value if isinstance(value, str) else None

    @property
    def steps(self) -> tuple[ResourceNode, ...]:
        return (self,)

    def references(self) -> Iterator[Reference]:
        yield from iter_references(self.manifest)


@dataclass(frozen=True)
class CompositeNode:
    """A logical unit applied as several strictly ordered steps.

    The last step is the outward-facing instance: its kind is the composite's
    kind and other nodes depend on the composite through ``id`` alone.  The
    earlier steps are definitions (e.g. a ResourceGraphDefinition before its
    custom resource instance).
    """

    id: str
    steps: tuple[ResourceNode, ...]

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("CompositeNode id must not be empty")
        if len(self.steps) < 2:
            raise ValueError("CompositeNode needs a definition step and an instance step")
        object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def instance(self) -> ResourceNode:
        return self.steps[-1]

    @property
    def definitions(self) -> tuple[ResourceNode, ...]:
        return self.steps[:-1]

    @property
    def kind(self) -> str:
        return self.instance.kind

    @property
    def manifest(self) -> Mapping[str, Any]:
        return self.instance.manifest

    @property
    def api_version(self) -> str | None:
        return self.instance.api_version

    def references(self) -> Iterator[Reference]:
        for step in self.steps:
            yield from step.references()


GraphNode = ResourceNode | CompositeNode


@dataclass(frozen=True)
class ReadinessResult:
    """Verdict of a readiness evaluator for one live object."""

    ready: bool
    reason: str | None = None
    message: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"ready": self.ready}
        if self.reason is not None:
            out["reason"] = self.reason
        if self.message is not None:
            out["message"] = self.message
        if self.details:
            out["details"] = dict(self.details)
        return out
