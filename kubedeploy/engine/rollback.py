"""Best-effort removal of resources applied during a failed run."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from kubedeploy.client.base import ResourceClient
from kubedeploy.errors import ResourceNotFoundError, RollbackError
from kubedeploy.models.deployment import DeployedResource
from kubedeploy.observability.metrics import resource_operations_total

_log = structlog.get_logger(component="rollback")


class RollbackManager:
    """Deletes applied resources in reverse apply order.

    Composite resources lose their instance first, then their definitions in
    reverse.  A resource that is already gone counts as deleted.  Failures
    are collected and returned; they never stop the remaining deletions.
    """

    def __init__(self, client: ResourceClient) -> None:
        self._client = client

    async def rollback(self, applied: Sequence[DeployedResource]) -> list[RollbackError]:
        """Roll back *applied*, given in the order the resources were applied."""
        errors: list[RollbackError] = []
        for resource in reversed(applied):
            targets = [resource, *reversed(resource.sub_resources)]
            ok = True
            for target in targets:
                if not target.was_applied:
                    continue
                error = await self._delete(resource.id, target)
                if error is not None:
                    errors.append(error)
                    ok = False
            resource.rolled_back = ok
        _log.info("rollback_completed", resources=len(applied), errors=len(errors))
        return errors

    async def _delete(self, resource_id: str, target: DeployedResource) -> RollbackError | None:
        namespace = target.namespace or None
        try:
            await self._client.delete(target.kind, target.name, namespace, target.api_version)
        except ResourceNotFoundError:
            _log.debug("rollback_already_deleted", resource_id=resource_id, kind=target.kind, name=target.name)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "rollback_delete_failed",
                resource_id=resource_id,
                kind=target.kind,
                name=target.name,
                error=str(exc),
            )
            resource_operations_total.labels(kind=target.kind, phase="rollback", outcome="failure").inc()
            return RollbackError(resource_id, exc)
        target.rolled_back = True
        resource_operations_total.labels(kind=target.kind, phase="rollback", outcome="success").inc()
        _log.info("rollback_deleted", resource_id=resource_id, kind=target.kind, name=target.name)
        return None
