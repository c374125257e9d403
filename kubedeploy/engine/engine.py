"""Dependency-aware deployment engine.

DeploymentEngine  -- builds the graph for a set of nodes and runs it.
_DeploymentRun    -- per-run state: one asyncio task per node, each waiting
                     on the events of its dependencies before resolving,
                     applying and polling its own resource.

Resolution and apply hold a semaphore sized by ``max_concurrency``;
readiness polling does not.  Graph construction errors propagate from
``deploy``; every other failure is recorded in the returned result.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog

from kubedeploy.client.base import ResourceClient
from kubedeploy.engine.apply import ResourceApplier, manifest_identity
from kubedeploy.engine.rollback import RollbackManager
from kubedeploy.errors import (
    ApplyError,
    DependencyFailedError,
    DeploymentTimeoutError,
    ReferenceResolutionError,
    ResourceNotFoundError,
    ResourceReadinessError,
    ResourceReadinessTimeoutError,
)
from kubedeploy.graph import DependencyGraph, build_dependency_graph
from kubedeploy.models.config import DeploymentOptions, FailurePolicy, ResolutionMode
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
from kubedeploy.models.resources import CLUSTER_SCOPED_KINDS, GraphNode, ReadinessResult, ResourceNode
from kubedeploy.observability.metrics import (
    deployment_duration_seconds,
    deployments_total,
    readiness_polls_total,
    resource_operations_total,
)
from kubedeploy.readiness.base import (
    DEFAULT_TERMINAL_REASONS,
    ReadinessEvaluator,
    ReadinessRegistry,
    is_terminal,
)
from kubedeploy.resolver import ReferenceResolver, Stage, required_stage

_log = structlog.get_logger(component="engine")

ProgressCallback = Callable[[DeploymentEvent], None]

_ERROR_PHASES: tuple[tuple[type[Exception], DeploymentPhase], ...] = (
    (ReferenceResolutionError, DeploymentPhase.RESOLUTION),
    (ApplyError, DeploymentPhase.APPLY),
    (ResourceReadinessError, DeploymentPhase.READINESS),
    (ResourceReadinessTimeoutError, DeploymentPhase.READINESS),
    (DependencyFailedError, DeploymentPhase.DEPENDENCY),
)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _phase_for(exc: Exception, default: DeploymentPhase) -> DeploymentPhase:
    for exc_type, phase in _ERROR_PHASES:
        if isinstance(exc, exc_type):
            return phase
    return default


class _Aborted(Exception):
    """Internal signal: a fail-fast abort was raised while a node was waiting."""


class DeploymentEngine:
    """Deploys graphs of ResourceNode / CompositeNode through a ResourceClient.

    An engine instance runs one deployment at a time; calling ``deploy``
    while a run is in progress raises RuntimeError.
    """

    def __init__(
        self,
        client: ResourceClient,
        evaluators: ReadinessRegistry | Mapping[str, ReadinessEvaluator] | None = None,
        options: DeploymentOptions | None = None,
        progress_callback: ProgressCallback | None = None,
        terminal_reasons: Iterable[str] = DEFAULT_TERMINAL_REASONS,
    ) -> None:
        self._client = client
        if isinstance(evaluators, ReadinessRegistry):
            self._registry = evaluators
        else:
            self._registry = ReadinessRegistry(evaluators)
        self._options = options or DeploymentOptions()
        self._progress_callback = progress_callback
        self._terminal_reasons = frozenset(terminal_reasons)
        self._rollback = RollbackManager(client)
        self._running = False

    @property
    def registry(self) -> ReadinessRegistry:
        return self._registry

    async def deploy(
        self,
        nodes: Iterable[GraphNode],
        instance_spec: Mapping[str, Any] | None = None,
        options: DeploymentOptions | None = None,
        deployment_id: str | None = None,
    ) -> DeploymentResult:
        """Deploy *nodes* and return the outcome.

        Raises:
            CircularDependencyError: the references form a cycle.
            DuplicateResourceError: two nodes share an id.
            RuntimeError: a run is already in progress on this engine.
        """
        if self._running:
            raise RuntimeError("DeploymentEngine is already running a deployment")
        graph = build_dependency_graph(nodes)
        run = _DeploymentRun(
            engine=self,
            graph=graph,
            options=options or self._options,
            instance_spec=instance_spec or {},
            deployment_id=deployment_id or f"deploy-{uuid4().hex[:12]}",
        )
        self._running = True
        try:
            return await run.execute()
        finally:
            self._running = False

    def _emit(self, event: DeploymentEvent) -> None:
        if self._progress_callback is None:
            return
        try:
            self._progress_callback(event)
        except Exception as exc:  # noqa: BLE001
            _log.warning("progress_callback_failed", event_type=event.type.value, error=str(exc))


class _DeploymentRun:
    """State for a single execution of a graph."""

    def __init__(
        self,
        engine: DeploymentEngine,
        graph: DependencyGraph,
        options: DeploymentOptions,
        instance_spec: Mapping[str, Any],
        deployment_id: str,
    ) -> None:
        self._engine = engine
        self._client = engine._client
        self._registry = engine._registry
        self._graph = graph
        self._options = options
        self._deployment_id = deployment_id
        self._log = _log.bind(deployment_id=deployment_id)
        self._applier = ResourceApplier(engine._client, options)

        self._live_state: dict[str, dict[str, Any]] = {}
        self._resolver = ReferenceResolver(
            mode=options.mode,
            resource_ids=graph.nodes.keys(),
            instance_spec=instance_spec,
            live_state=self._live_state,
        )
        self._records: dict[str, DeployedResource] = {
            rid: self._new_record(graph.node(rid)) for rid in graph.order
        }
        self._applied = {rid: asyncio.Event() for rid in graph.order}
        self._ready = {rid: asyncio.Event() for rid in graph.order}
        self._failed: set[str] = set()
        self._abort = asyncio.Event()
        self._semaphore = asyncio.Semaphore(options.max_concurrency)
        self._errors: list[DeploymentError] = []
        self._apply_order: list[str] = []

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    async def execute(self) -> DeploymentResult:
        opts = self._options
        started = time.monotonic()
        timed_out = False
        self._log.info(
            "deployment_started",
            resources=len(self._graph),
            order=list(self._graph.order),
            mode=opts.mode.value,
            failure_policy=opts.failure_policy.value,
        )
        self._emit(
            EventType.STARTED,
            f"Deploying {len(self._graph)} resource(s)",
            details={"order": list(self._graph.order)},
        )

        tasks = [asyncio.create_task(self._deploy_node(rid), name=f"deploy:{rid}") for rid in self._graph.order]
        try:
            async with asyncio.timeout(opts.run_timeout):
                await asyncio.gather(*tasks)
        except TimeoutError:
            timed_out = True
            await asyncio.gather(*tasks, return_exceptions=True)
            self._mark_timed_out()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        should_rollback = opts.rollback_enabled and (
            timed_out or (self._failed and opts.failure_policy is FailurePolicy.FAIL_FAST)
        )
        if should_rollback:
            await self._rollback()

        status = self._final_status(timed_out)
        duration = time.monotonic() - started
        deployments_total.labels(status=status.value).inc()
        deployment_duration_seconds.observe(duration)
        self._log.info(
            "deployment_completed",
            status=status.value,
            duration=round(duration, 3),
            failed=sorted(self._failed),
            errors=len(self._errors),
        )
        self._emit(
            EventType.COMPLETED,
            f"Deployment {status.value}",
            details={"status": status.value, "duration": duration},
        )
        return DeploymentResult(
            deployment_id=self._deployment_id,
            status=status,
            resources=[self._records[rid] for rid in self._graph.order],
            errors=list(self._errors),
            duration=duration,
            order=list(self._graph.order),
        )

    def _final_status(self, timed_out: bool) -> DeploymentStatus:
        fail_fast = self._options.failure_policy is FailurePolicy.FAIL_FAST
        if timed_out and fail_fast:
            return DeploymentStatus.FAILED
        if not self._failed:
            return DeploymentStatus.SUCCESS
        if fail_fast:
            return DeploymentStatus.FAILED
        succeeded = [
            r for r in self._records.values() if r.status in (ResourceStatus.APPLIED, ResourceStatus.READY)
        ]
        return DeploymentStatus.PARTIAL if succeeded else DeploymentStatus.FAILED

    def _mark_timed_out(self) -> None:
        timeout = self._options.run_timeout or 0.0
        error = DeploymentTimeoutError(timeout)
        self._log.error("deployment_timed_out", timeout=timeout)
        for rid in self._graph.order:
            record = self._records[rid]
            if record.status in (ResourceStatus.READY, ResourceStatus.FAILED):
                continue
            if record.status is ResourceStatus.APPLIED and not self._options.wait_for_ready:
                continue
            record.status = ResourceStatus.FAILED
            record.error = error
            self._failed.add(rid)
            self._errors.append(DeploymentError(rid, DeploymentPhase.TIMEOUT, error, _now()))
            self._emit(EventType.FAILED, str(error), resource_id=rid, details={"phase": "timeout"})

    async def _rollback(self) -> None:
        applied = [self._records[rid] for rid in self._apply_order]
        self._log.warning("rollback_started", resources=[r.id for r in applied])
        self._emit(
            EventType.ROLLBACK,
            f"Rolling back {len(applied)} resource(s)",
            details={"resources": list(self._apply_order)},
        )
        for error in await self._engine._rollback.rollback(applied):
            self._errors.append(DeploymentError(error.resource_id, DeploymentPhase.ROLLBACK, error, _now()))

    # ------------------------------------------------------------------
    # Per-node pipeline
    # ------------------------------------------------------------------

    async def _deploy_node(self, rid: str) -> None:
        node = self._graph.node(rid)
        record = self._records[rid]
        log = self._log.bind(resource_id=rid, kind=node.kind)
        phase = DeploymentPhase.DEPENDENCY
        try:
            failed_deps = await self._await_dependencies(rid)
            if failed_deps:
                raise DependencyFailedError(rid, failed_deps)

            self._emit(EventType.PROGRESS, f"Deploying {node.kind} '{rid}'", resource_id=rid)
            for definition, sub_record in zip(node.steps[:-1], record.sub_resources, strict=True):
                phase = DeploymentPhase.APPLY
                await self._apply_step(rid, definition, sub_record)
                if self._options.wait_for_ready and not self._options.dry_run:
                    phase = DeploymentPhase.READINESS
                    await self._wait_until_ready(rid, definition.kind, sub_record, publish=False)
                    sub_record.status = ResourceStatus.READY

            phase = DeploymentPhase.APPLY
            await self._apply_step(rid, node.steps[-1], record, publish=True)
            self._applied[rid].set()
            self._emit(
                EventType.RESOURCE_STATUS,
                f"{node.kind} '{rid}' applied",
                resource_id=rid,
                details={"status": record.status.value},
            )

            if self._options.wait_for_ready and not self._options.dry_run:
                phase = DeploymentPhase.READINESS
                result = await self._wait_until_ready(rid, node.kind, record, publish=True)
                record.status = ResourceStatus.READY
                log.info("resource_ready", polls=len(record.readiness_history), message=result.message)
                self._emit(EventType.RESOURCE_READY, f"{node.kind} '{rid}' is ready", resource_id=rid)
        except _Aborted:
            log.info("resource_aborted", status=record.status.value)
        except asyncio.CancelledError:
            log.debug("resource_cancelled", status=record.status.value)
            raise
        except Exception as exc:  # noqa: BLE001
            self._fail(rid, _phase_for(exc, phase), exc)
        finally:
            self._applied[rid].set()
            self._ready[rid].set()

    async def _await_dependencies(self, rid: str) -> list[str]:
        """Wait for every dependency to reach the stage *rid* needs.

        Returns the dependencies that failed.  Raises _Aborted if the run is
        aborted while waiting.
        """
        for dep in self._graph.dependencies_of(rid):
            event = self._ready[dep] if self._required_stage(rid, dep) is Stage.READY else self._applied[dep]
            if not await self._wait(event) or self._abort.is_set():
                raise _Aborted
        return [dep for dep in self._graph.dependencies_of(rid) if dep in self._failed]

    def _required_stage(self, rid: str, dep: str) -> Stage:
        if self._options.mode is ResolutionMode.DEFERRED or not self._options.wait_for_ready:
            return Stage.APPLIED
        for edge in self._graph.edges_for(rid):
            if edge.dependency == dep and required_stage(edge.field_path) is Stage.READY:
                return Stage.READY
        return Stage.APPLIED

    async def _apply_step(
        self, rid: str, step: ResourceNode, record: DeployedResource, publish: bool = False
    ) -> None:
        async with self._semaphore:
            if self._abort.is_set():
                raise _Aborted
            manifest = self._applier.prepare(step.kind, self._resolver.resolve_manifest(step.manifest))
            name, namespace = manifest_identity(manifest)
            record.name = name
            record.namespace = namespace or ""
            record.api_version = manifest.get("apiVersion") or record.api_version
            try:
                live = await self._applier.apply(rid, step.kind, manifest)
            except ApplyError:
                resource_operations_total.labels(kind=step.kind, phase="apply", outcome="failure").inc()
                raise
            resource_operations_total.labels(kind=step.kind, phase="apply", outcome="success").inc()

        record.applied_manifest = manifest
        record.live_object = live
        record.status = ResourceStatus.APPLIED
        if rid not in self._apply_order:
            self._apply_order.append(rid)
        if publish:
            # Dry runs expose the rendered manifest so spec fields stay resolvable.
            self._live_state[rid] = live if live is not None else manifest
        self._log.info(
            "resource_applied",
            resource_id=rid,
            step=step.id,
            kind=step.kind,
            name=name,
            namespace=namespace,
            dry_run=self._options.dry_run,
        )

    async def _wait_until_ready(
        self, rid: str, kind: str, record: DeployedResource, publish: bool
    ) -> ReadinessResult:
        opts = self._options
        evaluator = self._registry.get(kind)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + opts.timeout
        while True:
            if self._abort.is_set():
                raise _Aborted
            result = await self._poll(kind, record, evaluator)
            record.readiness_history.append(result)
            readiness_polls_total.labels(kind=kind, ready=str(result.ready).lower()).inc()
            if publish and record.live_object is not None:
                self._live_state[rid] = record.live_object

            if result.ready:
                resource_operations_total.labels(kind=kind, phase="readiness", outcome="success").inc()
                return result
            if is_terminal(result, self._engine._terminal_reasons):
                resource_operations_total.labels(kind=kind, phase="readiness", outcome="failure").inc()
                raise ResourceReadinessError(rid, result)

            remaining = deadline - loop.time()
            if remaining <= 0:
                resource_operations_total.labels(kind=kind, phase="readiness", outcome="timeout").inc()
                raise ResourceReadinessTimeoutError(rid, opts.timeout, result)
            self._log.debug(
                "resource_not_ready",
                resource_id=rid,
                kind=kind,
                reason=result.reason,
                message=result.message,
                remaining=round(remaining, 3),
            )
            if await self._sleep(min(opts.poll_interval, remaining)):
                raise _Aborted
            if loop.time() >= deadline:
                resource_operations_total.labels(kind=kind, phase="readiness", outcome="timeout").inc()
                raise ResourceReadinessTimeoutError(rid, opts.timeout, result)

    async def _poll(
        self, kind: str, record: DeployedResource, evaluator: ReadinessEvaluator
    ) -> ReadinessResult:
        namespace = record.namespace or None
        try:
            live = await self._client.get(kind, record.name, namespace, record.api_version)
        except ResourceNotFoundError as exc:
            return ReadinessResult(ready=False, reason="NotFound", message=str(exc))
        except Exception as exc:  # noqa: BLE001
            return ReadinessResult(ready=False, reason="ReadError", message=str(exc))
        record.live_object = live
        try:
            return evaluator(live)
        except Exception as exc:  # noqa: BLE001
            return ReadinessResult(ready=False, reason="EvaluationError", message=str(exc))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, rid: str, phase: DeploymentPhase, exc: Exception) -> None:
        record = self._records[rid]
        record.status = ResourceStatus.FAILED
        record.error = exc
        self._failed.add(rid)
        self._errors.append(DeploymentError(rid, phase, exc, _now()))
        log = self._log.bind(resource_id=rid, kind=record.kind, phase=phase.value)
        if phase is DeploymentPhase.DEPENDENCY:
            log.warning("resource_skipped", error=str(exc))
        else:
            log.error("resource_failed", error=str(exc), error_type=type(exc).__name__)
        self._emit(EventType.FAILED, str(exc), resource_id=rid, details={"phase": phase.value})
        if self._options.failure_policy is FailurePolicy.FAIL_FAST:
            self._abort.set()

    async def _wait(self, event: asyncio.Event) -> bool:
        """Wait for *event*; False if the run was aborted first."""
        if event.is_set():
            return True
        if self._abort.is_set():
            return False
        waiter = asyncio.ensure_future(event.wait())
        aborter = asyncio.ensure_future(self._abort.wait())
        try:
            done, _ = await asyncio.wait({waiter, aborter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            aborter.cancel()
        return waiter in done

    async def _sleep(self, delay: float) -> bool:
        """Sleep for *delay* seconds; True if the run was aborted meanwhile."""
        try:
            await asyncio.wait_for(self._abort.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    def _new_record(self, node: GraphNode) -> DeployedResource:
        record = self._record_for(node.id, node.steps[-1])
        record.sub_resources = [self._record_for(step.id, step) for step in node.steps[:-1]]
        return record

    def _record_for(self, rid: str, step: ResourceNode) -> DeployedResource:
        metadata = step.manifest.get("metadata") or {}
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        if not isinstance(namespace, str):
            namespace = "" if step.kind in CLUSTER_SCOPED_KINDS else self._options.namespace
        return DeployedResource(
            id=rid,
            kind=step.kind,
            name=name if isinstance(name, str) else "",
            namespace=namespace,
            api_version=step.api_version,
        )

    def _emit(
        self,
        event_type: EventType,
        message: str,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        event = DeploymentEvent(
            type=event_type,
            message=message,
            timestamp=_now(),
            resource_id=resource_id,
            details=details,
        )
        self._engine._emit(event)
