"""Readiness evaluator contract and kind-keyed registry.

An evaluator is a pure function from a live object to a ReadinessResult.  It
must tolerate partially populated status and must not raise for a missing
field; the engine still treats an exception as a not-ready poll.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from kubedeploy.models.resources import ReadinessResult

ReadinessEvaluator = Callable[[Mapping[str, Any]], ReadinessResult]

DEFAULT_TERMINAL_REASONS = frozenset(
    {
        "Failed",
        "Error",
        "InstallationFailed",
        "JobFailed",
        "PodFailed",
        "VolumeLost",
        "RGDProcessingFailed",
    }
)


def optimistic_evaluator(live: Mapping[str, Any]) -> ReadinessResult:
    """Default for kinds without an evaluator: ready as soon as it exists."""
    return ReadinessResult(ready=True, message="No readiness evaluator registered; assuming ready")


def is_terminal(result: ReadinessResult, reasons: Iterable[str] = DEFAULT_TERMINAL_REASONS) -> bool:
    """True when *result* is not ready and its reason can never recover."""
    return not result.ready and result.reason is not None and result.reason in frozenset(reasons)


class ReadinessRegistry:
    """Maps resource kinds to readiness evaluators."""

    def __init__(
        self,
        evaluators: Mapping[str, ReadinessEvaluator] | None = None,
        default: ReadinessEvaluator = optimistic_evaluator,
    ) -> None:
        self._evaluators: dict[str, ReadinessEvaluator] = dict(evaluators or {})
        self._default = default

    def register(self, kind: str, evaluator: ReadinessEvaluator) -> None:
        """Register *evaluator* for *kind*, replacing any previous one."""
        self._evaluators[kind] = evaluator

    def unregister(self, kind: str) -> None:
        self._evaluators.pop(kind, None)

    def get(self, kind: str) -> ReadinessEvaluator:
        """Return the evaluator for *kind*, or the default evaluator."""
        return self._evaluators.get(kind, self._default)

    def __contains__(self, kind: object) -> bool:
        return kind in self._evaluators

    def __iter__(self) -> Iterator[str]:
        return iter(self._evaluators)

    def __len__(self) -> int:
        return len(self._evaluators)

    @property
    def kinds(self) -> list[str]:
        return sorted(self._evaluators)

    def evaluate(self, kind: str, live: Mapping[str, Any]) -> ReadinessResult:
        return self.get(kind)(live)
