"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ResolutionMode(StrEnum):
    """How cross-resource references are turned into manifest values."""

    IMMEDIATE = "immediate"  # substitute live values client-side
    DEFERRED = "deferred"  # emit ${...} expressions for an in-cluster evaluator


class FailurePolicy(StrEnum):
    """What a resource failure does to the rest of the run."""

    FAIL_FAST = "fail-fast"
    FAIL_TOLERANT = "fail-tolerant"


@dataclass
class RetryPolicy:
    """Exponential backoff for apply calls."""

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 10.0

    def delays(self) -> list[float]:
        """Sleep durations between consecutive attempts."""
        out: list[float] = []
        delay = self.initial_delay
        for _ in range(self.max_retries):
            out.append(delay)
            delay = min(delay * self.backoff_multiplier, self.max_delay)
        return out


@dataclass
class DeploymentOptions:
    """Per-run deployment options.  All durations are in seconds."""

    namespace: str = "default"
    mode: ResolutionMode = ResolutionMode.IMMEDIATE
    wait_for_ready: bool = True
    timeout: float = 300.0  # per resource readiness
    poll_interval: float = 2.0
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST
    rollback_enabled: bool = False
    run_timeout: float | None = None
    max_concurrency: int = 1
    dry_run: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        self.mode = ResolutionMode(self.mode)
        self.failure_policy = FailurePolicy(self.failure_policy)
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if self.run_timeout is not None and self.run_timeout <= 0:
            raise ValueError("run_timeout must be positive when set")


@dataclass
class LogConfig:
    """Logging configuration.

    ``format`` is ``"json"`` (one object per line) or ``"console"``.
    """

    level: str = "info"
    format: str = "json"
    service: str = "kubedeploy"


@dataclass
class KubeDeployConfig:
    """Top-level kubedeploy configuration."""

    deployment: DeploymentOptions = field(default_factory=DeploymentOptions)
    log: LogConfig = field(default_factory=LogConfig)
    field_manager: str = "kubedeploy"
