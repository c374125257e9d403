"""ResourceClient implementation on top of the kubernetes-asyncio dynamic client."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kubedeploy.client.base import ResourceClient
from kubedeploy.errors import ResourceNotFoundError

_log = structlog.get_logger(component="kubernetes_client")

_DEFAULT_API_VERSIONS = {
    "Namespace": "v1",
    "Service": "v1",
    "ConfigMap": "v1",
    "Secret": "v1",
    "Pod": "v1",
    "PersistentVolumeClaim": "v1",
    "ServiceAccount": "v1",
    "Deployment": "apps/v1",
    "StatefulSet": "apps/v1",
    "DaemonSet": "apps/v1",
    "Job": "batch/v1",
    "CronJob": "batch/v1",
    "Ingress": "networking.k8s.io/v1",
    "CustomResourceDefinition": "apiextensions.k8s.io/v1",
}


def _to_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()  # type: ignore[no-any-return]
    raise TypeError(f"Unexpected API response type: {type(obj).__name__}")


class KubernetesResourceClient(ResourceClient):
    """Create, replace, read and delete arbitrary kinds via discovery.

    ``dynamic`` is an initialised ``kubernetes_asyncio.dynamic.DynamicClient``.
    Use ``connect()`` to build one from in-cluster config or kubeconfig.
    """

    def __init__(self, dynamic: Any, field_manager: str = "kubedeploy", api_client: Any = None) -> None:
        self._dynamic = dynamic
        self._field_manager = field_manager
        self._api_client = api_client

    @classmethod
    async def connect(cls, field_manager: str = "kubedeploy") -> KubernetesResourceClient:
        """Load in-cluster config, falling back to kubeconfig, and discover APIs."""
        import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
        from kubernetes_asyncio.client import ApiClient  # type: ignore[import-untyped]
        from kubernetes_asyncio.dynamic import DynamicClient  # type: ignore[import-untyped]

        try:
            k8s_config.load_incluster_config()
            _log.info("k8s_client_configured", source="in-cluster")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config()
            _log.info("k8s_client_configured", source="kubeconfig")

        api_client = ApiClient()
        dynamic = await DynamicClient(api_client)
        return cls(dynamic, field_manager=field_manager, api_client=api_client)

    async def close(self) -> None:
        if self._api_client is not None:
            await self._api_client.close()

    async def _api(self, kind: str, api_version: str | None) -> Any:
        version = api_version or _DEFAULT_API_VERSIONS.get(kind)
        if version is None:
            raise ValueError(f"apiVersion is required for kind {kind}")
        return await self._dynamic.resources.get(api_version=version, kind=kind)

    async def apply(self, manifest: Mapping[str, Any]) -> dict[str, Any]:
        body = dict(manifest)
        kind = body["kind"]
        metadata = body.get("metadata") or {}
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        api = await self._api(kind, body.get("apiVersion"))

        if metadata.get("resourceVersion"):
            return await self._replace(api, body, name, namespace)
        try:
            created = await self._dynamic.create(
                api, body=body, namespace=namespace, field_manager=self._field_manager
            )
            _log.debug("resource_created", kind=kind, name=name, namespace=namespace)
            return _to_dict(created)
        except ApiException as exc:
            if exc.status != 409:
                raise
            _log.debug("resource_exists_replacing", kind=kind, name=name, namespace=namespace)
            return await self._replace(api, body, name, namespace)

    async def _replace(self, api: Any, body: dict[str, Any], name: str, namespace: str | None) -> dict[str, Any]:
        replaced = await self._dynamic.replace(
            api, body=body, name=name, namespace=namespace, field_manager=self._field_manager
        )
        _log.debug("resource_replaced", kind=body.get("kind"), name=name, namespace=namespace)
        return _to_dict(replaced)

    async def get(
        self, kind: str, name: str, namespace: str | None, api_version: str | None = None
    ) -> dict[str, Any]:
        api = await self._api(kind, api_version)
        try:
            obj = await self._dynamic.get(api, name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise ResourceNotFoundError(kind, name, namespace) from exc
            raise
        return _to_dict(obj)

    async def delete(self, kind: str, name: str, namespace: str | None, api_version: str | None = None) -> None:
        api = await self._api(kind, api_version)
        try:
            await self._dynamic.delete(api, name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise ResourceNotFoundError(kind, name, namespace) from exc
            raise
        _log.debug("resource_deleted", kind=kind, name=name, namespace=namespace)
