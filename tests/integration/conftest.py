"""Shared fixtures for kubedeploy integration tests.

Provides an in-memory ResourceClient that behaves like a small cluster so the
engine can be exercised end to end without a real API server.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from kubedeploy.client.base import ResourceClient
from kubedeploy.errors import ResourceNotFoundError
from kubedeploy.models import DeploymentOptions, ReadinessResult, ResourceNode, RetryPolicy

# ---------------------------------------------------------------------------
# Fake cluster
# ---------------------------------------------------------------------------


class FakeCluster(ResourceClient):
    """In-memory cluster keyed by (kind, namespace, name).

    ``statuses`` maps an object name to the status it reports on every read.
    ``fail_apply`` maps an object name to how many apply calls are rejected.
    ``fail_delete`` names objects whose deletion raises.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.timeline: list[tuple[str, str]] = []
        self.applied_bodies: list[dict[str, Any]] = []
        self.statuses: dict[str, dict[str, Any]] = {}
        self.fail_apply: dict[str, int] = {}
        self.fail_delete: set[str] = set()
        self.apply_delay = 0.0
        self.active_applies = 0
        self.max_active_applies = 0
        self._version = 100

    @staticmethod
    def _key(kind: str, name: str, namespace: str | None) -> tuple[str, str, str]:
        return (kind, namespace or "", name)

    def seed(self, manifest: Mapping[str, Any]) -> None:
        """Pre-create an object as if it already existed in the cluster."""
        meta = manifest["metadata"]
        self.objects[self._key(manifest["kind"], meta["name"], meta.get("namespace"))] = copy.deepcopy(dict(manifest))

    async def apply(self, manifest: Mapping[str, Any]) -> dict[str, Any]:
        kind = manifest["kind"]
        meta = manifest.get("metadata") or {}
        name = meta["name"]
        self.calls.append(("apply", kind, name))
        self.applied_bodies.append(copy.deepcopy(dict(manifest)))
        self.active_applies += 1
        self.max_active_applies = max(self.max_active_applies, self.active_applies)
        self.timeline.append(("start", name))
        try:
            if self.apply_delay:
                await asyncio.sleep(self.apply_delay)
            if self.fail_apply.get(name, 0) > 0:
                self.fail_apply[name] -= 1
                raise RuntimeError(f"admission webhook denied {kind}/{name}")
            obj = copy.deepcopy(dict(manifest))
            obj_meta = obj.setdefault("metadata", {})
            obj_meta.setdefault("uid", f"uid-{name}")
            self._version += 1
            obj_meta["resourceVersion"] = str(self._version)
            self.objects[self._key(kind, name, meta.get("namespace"))] = obj
            self.timeline.append(("end", name))
            return copy.deepcopy(obj)
        finally:
            self.active_applies -= 1

    async def get(
        self, kind: str, name: str, namespace: str | None, api_version: str | None = None
    ) -> dict[str, Any]:
        self.calls.append(("get", kind, name))
        obj = self.objects.get(self._key(kind, name, namespace))
        if obj is None:
            raise ResourceNotFoundError(kind, name, namespace)
        if name in self.statuses:
            obj["status"] = copy.deepcopy(self.statuses[name])
        return copy.deepcopy(obj)

    async def delete(self, kind: str, name: str, namespace: str | None, api_version: str | None = None) -> None:
        self.calls.append(("delete", kind, name))
        if name in self.fail_delete:
            raise RuntimeError(f"delete of {kind}/{name} forbidden")
        if self.objects.pop(self._key(kind, name, namespace), None) is None:
            raise ResourceNotFoundError(kind, name, namespace)

    def call_index(self, op: str, kind: str, name: str) -> int:
        return self.calls.index((op, kind, name))

    def ops(self, op: str) -> list[str]:
        return [name for (o, _, name) in self.calls if o == op]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_node(
    resource_id: str,
    kind: str = "ConfigMap",
    name: str | None = None,
    api_version: str = "v1",
    **body: Any,
) -> ResourceNode:
    """Create a ResourceNode whose manifest carries *body* as top-level fields."""
    manifest: dict[str, Any] = {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name or resource_id.lower()},
    }
    manifest.update(body)
    return ResourceNode(id=resource_id, kind=kind, manifest=manifest)


def fast_options(**overrides: Any) -> DeploymentOptions:
    """Deployment options with short intervals and no apply retries."""
    defaults: dict[str, Any] = {
        "poll_interval": 0.01,
        "timeout": 2.0,
        "retry": RetryPolicy(max_retries=0, initial_delay=0.0),
    }
    defaults.update(overrides)
    return DeploymentOptions(**defaults)


class ScriptedEvaluator:
    """Readiness evaluator that replays a fixed sequence of results.

    The last result repeats once the script is exhausted.
    """

    def __init__(self, *results: ReadinessResult) -> None:
        self._results = list(results)
        self.calls = 0

    def __call__(self, live: Mapping[str, Any]) -> ReadinessResult:
        result = self._results[min(self.calls, len(self._results) - 1)]
        self.calls += 1
        return result


def not_ready(reason: str = "RollingUpdateInProgress", times: int = 1) -> list[ReadinessResult]:
    return [ReadinessResult(ready=False, reason=reason, message="still rolling")] * times


READY = ReadinessResult(ready=True, message="ok")


def status_field_evaluator(field: str) -> Callable[[Mapping[str, Any]], ReadinessResult]:
    """Ready once ``status.<field>`` is populated."""

    def _evaluate(live: Mapping[str, Any]) -> ReadinessResult:
        if (live.get("status") or {}).get(field):
            return READY
        return ReadinessResult(ready=False, reason="Pending")

    return _evaluate


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()
