"""Application bootstrap for kubedeploy.

Wires configuration, logging, the cluster client and the engine.
Startup order: config → logging → K8s client → engine.  Shutdown closes the
client connection pool.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from kubedeploy.config import load_config
from kubedeploy.engine.engine import DeploymentEngine, ProgressCallback
from kubedeploy.models.config import KubeDeployConfig
from kubedeploy.observability.logging import get_logger, setup_logging
from kubedeploy.readiness.base import ReadinessEvaluator, ReadinessRegistry

if TYPE_CHECKING:
    import structlog

    from kubedeploy.client.base import ResourceClient
    from kubedeploy.models.deployment import DeploymentResult
    from kubedeploy.models.resources import GraphNode


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeDeployApp:
    """Owns the client and engine for a process.

    Usable as an async context manager::

        async with KubeDeployApp() as app:
            result = await app.deploy(nodes)

    Pass ``client`` to run against something other than the configured
    cluster; a supplied client is not closed by ``stop()``.
    """

    def __init__(
        self,
        config: KubeDeployConfig | None = None,
        client: ResourceClient | None = None,
        evaluators: ReadinessRegistry | Mapping[str, ReadinessEvaluator] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._evaluators = evaluators
        self._progress_callback = progress_callback
        self._engine: DeploymentEngine | None = None
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def engine(self) -> DeploymentEngine:
        if self._engine is None:
            raise RuntimeError("KubeDeployApp is not started")
        return self._engine

    async def start(self) -> None:
        """Load config, configure logging, connect and build the engine.

        Raises _ComponentError if the cluster client cannot be created.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log)
        self._log = get_logger("app")
        self._log.info("kubedeploy starting", version=_kubedeploy_version())

        if self._client is None:
            self._client = await self._connect_client()

        self._engine = DeploymentEngine(
            self._client,
            evaluators=self._evaluators,
            options=self.config.deployment,
            progress_callback=self._progress_callback,
        )
        self._log.info(
            "kubedeploy started",
            namespace=self.config.deployment.namespace,
            mode=str(self.config.deployment.mode),
        )

    async def _connect_client(self) -> ResourceClient:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            from kubedeploy.client.kubernetes import KubernetesResourceClient

            return await KubernetesResourceClient.connect(field_manager=self.config.field_manager)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def deploy(
        self,
        nodes: Iterable[GraphNode],
        instance_spec: Mapping[str, Any] | None = None,
        deployment_id: str | None = None,
    ) -> DeploymentResult:
        return await self.engine.deploy(nodes, instance_spec=instance_spec, deployment_id=deployment_id)

    async def stop(self) -> None:
        """Close the client if this app created it.  Safe to call twice."""
        if self._log is None:
            return
        log = self._log
        self._engine = None
        if self._owns_client and self._client is not None:
            try:
                await self._client.close()
            except Exception as exc:  # noqa: BLE001
                log.debug("k8s client close raised (non-fatal)", error=str(exc))
            self._client = None
        log.info("kubedeploy stopped")
        self._log = None

    async def __aenter__(self) -> KubeDeployApp:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


def _kubedeploy_version() -> str:
    from kubedeploy import __version__

    return __version__
