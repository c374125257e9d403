"""Readiness evaluators for common Kubernetes and controller kinds.

Nothing here is registered by default; pass ``builtin_registry()`` (or a
registry built from selected evaluators) to the engine to opt in.  Expected
counts are read from the live object's own ``spec``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kubedeploy.models.resources import ReadinessResult
from kubedeploy.readiness.base import ReadinessRegistry


def _status(live: Mapping[str, Any]) -> Mapping[str, Any] | None:
    status = live.get("status")
    return status if isinstance(status, Mapping) and status else None


def _spec(live: Mapping[str, Any]) -> Mapping[str, Any]:
    spec = live.get("spec")
    return spec if isinstance(spec, Mapping) else {}


def _int(value: Any, default: int = 0) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else default


def _condition(status: Mapping[str, Any], cond_type: str) -> Mapping[str, Any] | None:
    conditions = status.get("conditions")
    if not isinstance(conditions, list):
        return None
    for cond in conditions:
        if isinstance(cond, Mapping) and cond.get("type") == cond_type:
            return cond
    return None


def _condition_true(status: Mapping[str, Any], cond_type: str) -> bool:
    cond = _condition(status, cond_type)
    return cond is not None and cond.get("status") == "True"


def _missing(kind: str) -> ReadinessResult:
    return ReadinessResult(ready=False, reason="StatusMissing", message=f"{kind} status not available yet")


def deployment_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("Deployment")
    expected = _int(_spec(live).get("replicas"), 1)
    ready = _int(status.get("readyReplicas"))
    available = _int(status.get("availableReplicas"))
    details = {
        "expectedReplicas": expected,
        "readyReplicas": ready,
        "availableReplicas": available,
        "updatedReplicas": _int(status.get("updatedReplicas")),
    }
    if ready == expected and available == expected:
        return ReadinessResult(
            ready=True,
            message=f"Deployment has {ready}/{expected} ready and {available}/{expected} available replicas",
        )
    return ReadinessResult(
        ready=False,
        reason="ReplicasNotReady",
        message=f"Waiting for replicas: {ready}/{expected} ready, {available}/{expected} available",
        details=details,
    )


def statefulset_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("StatefulSet")
    spec = _spec(live)
    expected = _int(spec.get("replicas"), 1)
    strategy = spec.get("updateStrategy") or {}
    strategy_type = strategy.get("type", "RollingUpdate") if isinstance(strategy, Mapping) else "RollingUpdate"
    ready = _int(status.get("readyReplicas"))

    if strategy_type == "OnDelete":
        if ready == expected:
            return ReadinessResult(ready=True, message=f"StatefulSet (OnDelete) has {ready}/{expected} ready replicas")
        return ReadinessResult(
            ready=False,
            reason="ReplicasNotReady",
            message=f"StatefulSet (OnDelete) waiting for replicas: {ready}/{expected} ready",
            details={"expectedReplicas": expected, "readyReplicas": ready, "updateStrategy": strategy_type},
        )

    current = _int(status.get("currentReplicas"))
    updated = _int(status.get("updatedReplicas"))
    if ready == expected and current == expected and updated == expected:
        return ReadinessResult(ready=True, message=f"StatefulSet (RollingUpdate) has {ready}/{expected} ready replicas")
    return ReadinessResult(
        ready=False,
        reason="RollingUpdateInProgress",
        message=(
            f"StatefulSet (RollingUpdate) updating: {ready}/{expected} ready, "
            f"{current}/{expected} current, {updated}/{expected} updated"
        ),
        details={
            "expectedReplicas": expected,
            "readyReplicas": ready,
            "currentReplicas": current,
            "updatedReplicas": updated,
            "updateStrategy": strategy_type,
        },
    )


def daemonset_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("DaemonSet")
    desired = _int(status.get("desiredNumberScheduled"))
    ready = _int(status.get("numberReady"))
    updated = _int(status.get("updatedNumberScheduled"), desired)
    if ready == desired and updated == desired:
        return ReadinessResult(ready=True, message=f"DaemonSet has {ready}/{desired} ready pods")
    return ReadinessResult(
        ready=False,
        reason="PodsNotReady",
        message=f"DaemonSet waiting: {ready}/{desired} ready, {updated}/{desired} updated",
        details={"desired": desired, "ready": ready, "updated": updated},
    )


def job_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("Job")
    spec = _spec(live)
    completions = _int(spec.get("completions"), 1)
    backoff_limit = _int(spec.get("backoffLimit"), 6)
    succeeded = _int(status.get("succeeded"))
    failed = _int(status.get("failed"))
    active = _int(status.get("active"))
    details = {"expectedCompletions": completions, "succeeded": succeeded, "failed": failed, "active": active}

    if _condition_true(status, "Failed") or failed > backoff_limit:
        return ReadinessResult(
            ready=False,
            reason="JobFailed",
            message=f"Job failed: {failed} failed pod(s), backoff limit {backoff_limit}",
            details={**details, "backoffLimit": backoff_limit},
        )
    if _condition_true(status, "Complete") or succeeded >= completions:
        return ReadinessResult(ready=True, message=f"Job completed: {succeeded}/{completions} completions succeeded")
    return ReadinessResult(
        ready=False,
        reason="JobInProgress",
        message=f"Job in progress: {succeeded}/{completions} succeeded, {active} active, {failed} failed",
        details=details,
    )


def pod_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("Pod")
    phase = status.get("phase")
    if phase == "Failed":
        return ReadinessResult(ready=False, reason="PodFailed", message=status.get("message") or "Pod failed")
    if phase == "Succeeded":
        return ReadinessResult(ready=True, message="Pod completed successfully")
    if phase == "Running" and _condition_true(status, "Ready"):
        return ReadinessResult(ready=True, message="Pod is running and ready")
    return ReadinessResult(
        ready=False,
        reason="PodNotReady",
        message=f"Pod is {phase or 'Pending'}",
        details={"phase": phase},
    )


def service_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    spec = _spec(live)
    service_type = spec.get("type") or "ClusterIP"
    if service_type == "LoadBalancer":
        status = _status(live) or {}
        load_balancer = status.get("loadBalancer") or {}
        ingress = load_balancer.get("ingress") if isinstance(load_balancer, Mapping) else None
        first = ingress[0] if isinstance(ingress, list) and ingress else None
        endpoint = (first.get("ip") or first.get("hostname")) if isinstance(first, Mapping) else None
        if endpoint:
            return ReadinessResult(ready=True, message=f"LoadBalancer service has external endpoint: {endpoint}")
        return ReadinessResult(
            ready=False,
            reason="LoadBalancerPending",
            message="Waiting for LoadBalancer to assign external IP or hostname",
            details={"serviceType": service_type},
        )
    if service_type == "ExternalName":
        if spec.get("externalName"):
            return ReadinessResult(ready=True, message=f"ExternalName service configured with: {spec['externalName']}")
        return ReadinessResult(
            ready=False,
            reason="ExternalNameMissing",
            message="ExternalName service missing externalName field",
        )
    return ReadinessResult(ready=True, message=f"{service_type} service is ready")


def pvc_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("PersistentVolumeClaim")
    phase = status.get("phase")
    if phase == "Bound":
        return ReadinessResult(ready=True, message="PersistentVolumeClaim is bound")
    if phase == "Lost":
        return ReadinessResult(ready=False, reason="VolumeLost", message="Bound volume has been lost")
    return ReadinessResult(ready=False, reason="Pending", message=f"PersistentVolumeClaim is {phase or 'Pending'}")


def namespace_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("Namespace")
    phase = status.get("phase")
    if phase == "Active":
        return ReadinessResult(ready=True, message="Namespace is active")
    phase = phase if isinstance(phase, str) and phase else "Pending"
    return ReadinessResult(ready=False, reason=phase, message=f"Namespace is {phase}")


def crd_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("CustomResourceDefinition")
    if _condition_true(status, "Established"):
        return ReadinessResult(ready=True, message="CustomResourceDefinition is established")
    names = _condition(status, "NamesAccepted")
    if names is not None and names.get("status") == "False":
        return ReadinessResult(
            ready=False,
            reason="NamesNotAccepted",
            message=names.get("message") or "CRD names were not accepted",
        )
    return ReadinessResult(ready=False, reason="NotEstablished", message="Waiting for CRD to be established")


def helm_release_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        return _missing("HelmRelease")
    phase = status.get("phase")
    revision = status.get("revision") or "unknown"
    if phase == "Ready":
        return ReadinessResult(ready=True, message=f"HelmRelease is ready (revision {revision})")
    if phase == "Failed":
        return ReadinessResult(
            ready=False,
            reason="InstallationFailed",
            message=status.get("message") or "Helm installation/upgrade failed",
        )
    if phase in ("Installing", "Upgrading"):
        return ReadinessResult(ready=False, reason=phase, message=f"Helm chart is {phase.lower()}")

    ready_cond = _condition(status, "Ready")
    if ready_cond is not None:
        if ready_cond.get("status") == "True":
            return ReadinessResult(
                ready=True, message=ready_cond.get("message") or f"HelmRelease is ready (revision {revision})"
            )
        return ReadinessResult(
            ready=False,
            reason=ready_cond.get("reason") or "NotReady",
            message=ready_cond.get("message") or "HelmRelease is not ready",
        )
    if _condition_true(status, "Released"):
        return ReadinessResult(ready=True, message=f"Helm chart released (revision {revision})")
    return ReadinessResult(ready=False, reason="Processing", message=f"HelmRelease is {phase or 'processing'}")


def resource_graph_definition_readiness(live: Mapping[str, Any]) -> ReadinessResult:
    status = _status(live)
    if status is None:
        metadata = live.get("metadata") or {}
        if isinstance(metadata, Mapping) and metadata.get("uid"):
            return ReadinessResult(
                ready=False,
                reason="StatusPending",
                message="ResourceGraphDefinition exists but its controller has not initialized status",
            )
        return _missing("ResourceGraphDefinition")

    conditions = status.get("conditions") if isinstance(status.get("conditions"), list) else []
    failed = next((c for c in conditions if isinstance(c, Mapping) and c.get("status") == "False"), None)
    if status.get("state") == "failed" or failed is not None:
        return ReadinessResult(
            ready=False,
            reason="RGDProcessingFailed",
            message=f"ResourceGraphDefinition processing failed: {(failed or {}).get('message') or 'unknown error'}",
            details={"state": status.get("state")},
        )
    wanted = ("ReconcilerReady", "GraphVerified", "CustomResourceDefinitionSynced")
    if status.get("state") == "Active" and all(_condition_true(status, c) for c in wanted):
        return ReadinessResult(ready=True, message="ResourceGraphDefinition is active and ready")
    return ReadinessResult(
        ready=False,
        reason="ReconciliationPending",
        message=f"Waiting for ResourceGraphDefinition to become active (state: {status.get('state') or 'unknown'})",
        details={"state": status.get("state")},
    )


BUILTIN_EVALUATORS = {
    "Deployment": deployment_readiness,
    "StatefulSet": statefulset_readiness,
    "DaemonSet": daemonset_readiness,
    "Job": job_readiness,
    "Pod": pod_readiness,
    "Service": service_readiness,
    "PersistentVolumeClaim": pvc_readiness,
    "Namespace": namespace_readiness,
    "CustomResourceDefinition": crd_readiness,
    "HelmRelease": helm_release_readiness,
    "ResourceGraphDefinition": resource_graph_definition_readiness,
}


def builtin_registry() -> ReadinessRegistry:
    """A new registry pre-populated with every evaluator in this module."""
    return ReadinessRegistry(BUILTIN_EVALUATORS)
