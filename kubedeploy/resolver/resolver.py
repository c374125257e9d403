"""Turn manifest trees with embedded Values into applicable manifests."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from enum import StrEnum
from typing import Any

from kubedeploy.errors import ReferenceResolutionError
from kubedeploy.expressions.printer import to_expression_string, wrap_expression
from kubedeploy.models.config import ResolutionMode
from kubedeploy.models.values import (
    Expression,
    Literal,
    Reference,
    Value,
    iter_references,
    map_values,
)
from kubedeploy.resolver.evaluator import evaluate
from kubedeploy.resolver.paths import read_path, root_segment


class Stage(StrEnum):
    """How far a dependency must have progressed before its value is usable."""

    APPLIED = "applied"
    READY = "ready"


def required_stage(field_path: str) -> Stage:
    """Return READY for paths rooted at ``status``, APPLIED for anything else."""
    try:
        root = root_segment(field_path)
    except ValueError:
        return Stage.APPLIED
    return Stage.READY if root == "status" else Stage.APPLIED


class ReferenceResolver:
    """Resolve Values for a single resource in one of two modes.

    In ``deferred`` mode every Reference and Expression becomes a ``${...}``
    string for the in-cluster evaluator and no dependency state is read.  In
    ``immediate`` mode references are read from ``live_state`` (resource id
    to last observed live object) and expressions are evaluated locally.
    Schema references read from ``{"spec": instance_spec}`` in both modes.

    ``live_state`` is read on every call, so the engine can keep updating the
    same mapping while a run progresses.
    """

    def __init__(
        self,
        mode: ResolutionMode | str,
        resource_ids: Collection[str] | None = None,
        instance_spec: Mapping[str, Any] | None = None,
        live_state: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        self.mode = ResolutionMode(mode)
        self._resource_ids = frozenset(resource_ids) if resource_ids is not None else None
        self._schema_root = {"spec": dict(instance_spec or {})}
        self._live_state: Mapping[str, Mapping[str, Any]] = live_state if live_state is not None else {}

    def resolve_manifest(self, manifest: Any) -> Any:
        """Return a copy of *manifest* with every Value leaf resolved."""
        return map_values(manifest, self.resolve_value)

    def resolve_value(self, value: Value) -> Any:
        if isinstance(value, Literal):
            return value.value
        if self.mode is ResolutionMode.DEFERRED:
            return self._emit(value)
        return evaluate(value, self._read)

    def _emit(self, value: Reference | Expression) -> str:
        if self._resource_ids is not None:
            for reference in iter_references(value):
                if not reference.is_schema and reference.source_id not in self._resource_ids:
                    raise ReferenceResolutionError("unknown resource", reference)
        text = to_expression_string(value)
        if isinstance(value, Expression) and value.is_template:
            return text
        return wrap_expression(text)

    def _read(self, reference: Reference) -> Any:
        if reference.is_schema:
            root: Mapping[str, Any] = self._schema_root
        else:
            live = self._live_state.get(reference.source_id)
            if live is None:
                raise ReferenceResolutionError("resource has no live state", reference)
            root = live
        try:
            return read_path(root, reference.field_path)
        except (LookupError, ValueError) as exc:
            raise ReferenceResolutionError(str(exc), reference) from exc
