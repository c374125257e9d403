"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubedeploy.models.config import (
    DeploymentOptions,
    FailurePolicy,
    KubeDeployConfig,
    LogConfig,
    ResolutionMode,
    RetryPolicy,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEDEPLOY_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _env_optional_float(key: str) -> float | None:
    raw = _env(key, "")
    return float(raw) if raw else None


def _validate_choice(value: str, choices: set[str], what: str) -> str:
    if value.lower() not in choices:
        raise ValueError(f"Invalid {what}: {value}. Must be one of {sorted(choices)}")
    return value.lower()


def _validate_log_level(value: str) -> str:
    return _validate_choice(value, {"debug", "info", "warning", "error"}, "log level")


def load_config() -> KubeDeployConfig:
    """Load configuration from KUBEDEPLOY_* environment variables."""
    return KubeDeployConfig(
        deployment=DeploymentOptions(
            namespace=_env("NAMESPACE", "default") or "default",
            mode=ResolutionMode(
                _validate_choice(_env("MODE", "immediate"), {m.value for m in ResolutionMode}, "resolution mode")
            ),
            wait_for_ready=_env_bool("WAIT_FOR_READY", True),
            timeout=_env_float("TIMEOUT", 300.0, min_val=0.001),
            poll_interval=_env_float("POLL_INTERVAL", 2.0, min_val=0.001),
            failure_policy=FailurePolicy(
                _validate_choice(
                    _env("FAILURE_POLICY", "fail-fast"), {p.value for p in FailurePolicy}, "failure policy"
                )
            ),
            rollback_enabled=_env_bool("ROLLBACK_ENABLED", False),
            run_timeout=_env_optional_float("RUN_TIMEOUT"),
            max_concurrency=_env_int("MAX_CONCURRENCY", 1, min_val=1, max_val=64),
            dry_run=_env_bool("DRY_RUN", False),
            retry=RetryPolicy(
                max_retries=_env_int("RETRY_MAX", 3, min_val=0, max_val=10),
                initial_delay=_env_float("RETRY_INITIAL_DELAY", 1.0, min_val=0.0),
                backoff_multiplier=_env_float("RETRY_BACKOFF_MULTIPLIER", 2.0, min_val=1.0),
                max_delay=_env_float("RETRY_MAX_DELAY", 10.0, min_val=0.0),
            ),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_choice(_env("LOG_FORMAT", "json"), {"json", "console"}, "log format"),
        ),
        field_manager=_env("FIELD_MANAGER", "kubedeploy") or "kubedeploy",
    )
