"""Readiness evaluation."""

from kubedeploy.readiness.base import (
    DEFAULT_TERMINAL_REASONS,
    ReadinessEvaluator,
    ReadinessRegistry,
    is_terminal,
    optimistic_evaluator,
)
from kubedeploy.readiness.evaluators import builtin_registry

__all__ = [
    "DEFAULT_TERMINAL_REASONS",
    "ReadinessEvaluator",
    "ReadinessRegistry",
    "builtin_registry",
    "is_terminal",
    "optimistic_evaluator",
]
