"""Prometheus metrics for deployment runs."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

deployments_total = Counter(
    "kubedeploy_deployments_total",
    "Completed deployment runs by final status",
    ["status"],
)

resource_operations_total = Counter(
    "kubedeploy_resource_operations_total",
    "Per-resource operations by kind, phase and outcome",
    ["kind", "phase", "outcome"],
)

readiness_polls_total = Counter(
    "kubedeploy_readiness_polls_total",
    "Readiness evaluations by kind and verdict",
    ["kind", "ready"],
)

deployment_duration_seconds = Histogram(
    "kubedeploy_deployment_duration_seconds",
    "Wall-clock duration of deployment runs",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800),
)
