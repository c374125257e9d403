"""Structured logging for deployment runs, built on structlog."""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from kubedeploy.models.config import LogConfig


def _service_binder(service: str) -> structlog.types.Processor:
    def bind_service(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return bind_service


def _renderer(config: LogConfig) -> structlog.types.Processor:
    if config.format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def setup_logging(config: LogConfig | None = None, stream: IO[str] | None = None) -> None:
    """Configure structlog from a LogConfig.

    Every line carries ``service`` (from the config) next to whatever the
    caller bound; the engine binds ``deployment_id`` and ``resource_id``.
    Lines go to ``stream`` (stderr by default) as JSON, or as plain key=value
    text when ``config.format`` is ``"console"``.
    """
    config = config or LogConfig()
    log_level = getattr(logging, config.level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _service_binder(config.service),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            _renderer(config),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
