"""Apply a resolved manifest with retries.

Each attempt reads the live object first.  A missing object is applied as-is;
an existing one has its server-assigned identity merged into the manifest so
the update is accepted as a replacement of that object.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping
from typing import Any

import structlog

from kubedeploy.client.base import ResourceClient
from kubedeploy.errors import ApplyError, ResourceNotFoundError
from kubedeploy.models.config import DeploymentOptions
from kubedeploy.models.resources import CLUSTER_SCOPED_KINDS

_log = structlog.get_logger(component="applier")

_IDENTITY_FIELDS = ("resourceVersion", "uid", "creationTimestamp")


def with_namespace(manifest: Mapping[str, Any], kind: str, namespace: str) -> dict[str, Any]:
    """Return a copy of *manifest* whose namespaced kinds carry a namespace."""
    out = copy.deepcopy(dict(manifest))
    if kind in CLUSTER_SCOPED_KINDS:
        return out
    metadata = dict(out.get("metadata") or {})
    if not metadata.get("namespace"):
        metadata["namespace"] = namespace
        out["metadata"] = metadata
    return out


def merge_identity(manifest: Mapping[str, Any], live: Mapping[str, Any]) -> dict[str, Any]:
    """Carry identity fields, labels and annotations over from *live*.

    Labels and annotations set in *manifest* win over the live ones.
    """
    out = copy.deepcopy(dict(manifest))
    live_meta = live.get("metadata") or {}
    metadata = dict(out.get("metadata") or {})
    for key in _IDENTITY_FIELDS:
        if key in live_meta and key not in metadata:
            metadata[key] = live_meta[key]
    for key in ("labels", "annotations"):
        merged = {**(live_meta.get(key) or {}), **(metadata.get(key) or {})}
        if merged:
            metadata[key] = merged
    out["metadata"] = metadata
    return out


def manifest_identity(manifest: Mapping[str, Any]) -> tuple[str, str | None]:
    metadata = manifest.get("metadata") or {}
    return str(metadata.get("name") or ""), metadata.get("namespace") or None


class ResourceApplier:
    """Apply manifests through a ResourceClient according to DeploymentOptions."""

    def __init__(self, client: ResourceClient, options: DeploymentOptions) -> None:
        self._client = client
        self._options = options

    def prepare(self, kind: str, manifest: Mapping[str, Any]) -> dict[str, Any]:
        return with_namespace(manifest, kind, self._options.namespace)

    async def apply(self, resource_id: str, kind: str, manifest: Mapping[str, Any]) -> dict[str, Any] | None:
        """Apply a prepared manifest; returns the live object, or None on a dry run.

        Raises:
            ApplyError: once every retry has failed.
        """
        name, namespace = manifest_identity(manifest)
        log = _log.bind(resource_id=resource_id, kind=kind, name=name, namespace=namespace)
        if self._options.dry_run:
            log.info("apply_skipped_dry_run")
            return None

        delays = self._options.retry.delays()
        attempts = 0
        while True:
            attempts += 1
            try:
                return await self._apply_once(kind, name, namespace, manifest)
            except Exception as exc:  # noqa: BLE001
                if attempts > len(delays):
                    log.error("apply_failed", attempts=attempts, error=str(exc))
                    raise ApplyError(resource_id, kind, name, exc, attempts) from exc
                delay = delays[attempts - 1]
                log.warning("apply_retrying", attempt=attempts, delay=delay, error=str(exc))
                await asyncio.sleep(delay)

    async def _apply_once(
        self, kind: str, name: str, namespace: str | None, manifest: Mapping[str, Any]
    ) -> dict[str, Any]:
        api_version = manifest.get("apiVersion")
        try:
            live = await self._client.get(kind, name, namespace, api_version)
        except ResourceNotFoundError:
            return await self._client.apply(manifest)
        return await self._client.apply(merge_identity(manifest, live))
