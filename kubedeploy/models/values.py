"""Reference model: the tagged values embedded in resource manifest trees.

A manifest tree is plain data (dicts, lists, tuples and scalars) in which any
leaf may instead be one of three ``Value`` variants:

    Literal     -- an explicit scalar.
    Reference   -- a pointer to a field of another resource, or of the
                   caller-supplied instance specification (``SCHEMA_ID``).
    Expression  -- a composition of other values (see kubedeploy.expressions).

Tree walkers treat these three classes as a closed variant; nothing is
classified by structural shape.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

SCHEMA_ID = "__schema__"

Scalar = str | int | float | bool | None

_SCALAR_TYPES = (str, int, float, bool, type(None))


class Operator(StrEnum):
    """Kinds of composed expression."""

    CONCAT = "concat"
    TEMPLATE = "template"
    CONDITIONAL = "conditional"
    COMPARE = "compare"
    ARITHMETIC = "arithmetic"
    CALL = "call"


@dataclass(frozen=True)
class Literal:
    """An explicit scalar value."""

    value: Scalar

    def __post_init__(self) -> None:
        if isinstance(self.value, (Literal, Reference, Expression)):
            raise TypeError("Literal cannot wrap another Value")
        if not isinstance(self.value, _SCALAR_TYPES):
            raise TypeError(f"Literal must hold a scalar, got {type(self.value).__name__}")
        if isinstance(self.value, float) and not math.isfinite(self.value):
            raise ValueError(f"Literal must be a finite number, got {self.value}")


@dataclass(frozen=True)
class Reference:
    """A field of another resource (or of the instance spec) used as a value."""

    source_id: str
    field_path: str

    def __post_init__(self) -> None:
        if not self.source_id:
            raise ValueError("Reference source_id must not be empty")
        if not self.field_path:
            raise ValueError("Reference field_path must not be empty")

    @property
    def is_schema(self) -> bool:
        """True when the reference points at the instance specification."""
        return self.source_id == SCHEMA_ID

    def child(self, *path: str | int) -> Reference:
        """Return a reference to a field nested below this one."""
        return Reference(self.source_id, _join_path(self.field_path, path))


@dataclass(frozen=True)
class Expression:
    """A composed expression over other values.

    ``symbol`` carries the operator detail: the function name for CALL, the
    infix operator for COMPARE and ARITHMETIC, and the format string for
    TEMPLATE.  It is empty for CONCAT and CONDITIONAL.
    """

    operator: Operator
    parts: tuple[Value, ...]
    symbol: str = ""

    def __post_init__(self) -> None:
        for part in self.parts:
            if not is_value(part):
                raise TypeError(f"Expression parts must be Values, got {type(part).__name__}")

    @property
    def is_template(self) -> bool:
        """Templates print as raw mixed text and are never re-wrapped."""
        return self.operator is Operator.TEMPLATE


Value = Literal | Reference | Expression


def is_value(obj: object) -> bool:
    return isinstance(obj, (Literal, Reference, Expression))


def is_reference(obj: object) -> bool:
    return isinstance(obj, Reference)


def is_expression(obj: object) -> bool:
    return isinstance(obj, Expression)


def is_literal(obj: object) -> bool:
    return isinstance(obj, Literal)


def as_value(obj: object) -> Value:
    """Coerce *obj* into a Value, wrapping plain scalars as Literal.

    Raises:
        TypeError: if *obj* is a container or an unsupported type.
        ValueError: if *obj* is a NaN or infinite float.
    """
    if is_value(obj):
        return obj  # type: ignore[return-value]
    if isinstance(obj, _SCALAR_TYPES):
        return Literal(obj)  # type: ignore[arg-type]
    raise TypeError(f"Cannot use {type(obj).__name__} as an expression value")


def ref(source_id: str, *path: str | int) -> Reference:
    """Build a reference to ``source_id`` at the given field path.

    Segments are joined with dots, integers become index accessors::

        ref("database", "status", "podIP")          -> database.status.podIP
        ref("web", "spec.ports", 0, "port")          -> web.spec.ports[0].port
    """
    if not path:
        raise ValueError("ref() needs at least one path segment")
    return Reference(source_id, _join_path("", path))


def schema_ref(*path: str | int) -> Reference:
    """Build a reference into the caller-supplied instance specification."""
    return ref(SCHEMA_ID, *path)


def _join_path(base: str, segments: tuple[str | int, ...]) -> str:
    out = base
    for segment in segments:
        if isinstance(segment, bool):
            raise TypeError("Field path segments must be str or int")
        if isinstance(segment, int):
            out = f"{out}[{segment}]"
        elif not segment:
            raise ValueError("Field path segments must not be empty")
        else:
            out = f"{out}.{segment}" if out else segment
    return out


def map_values(tree: Any, fn: Callable[[Value], Any]) -> Any:
    """Return a copy of *tree* with every Value leaf replaced by ``fn(leaf)``.

    Containers keep their shape: dicts keep key order, lists stay lists and
    tuples stay tuples.  Non-Value scalars are returned unchanged.  Values are
    leaves; ``fn`` is responsible for anything nested inside an Expression.
    """
    if is_value(tree):
        return fn(tree)
    if isinstance(tree, dict):
        return {key: map_values(item, fn) for key, item in tree.items()}
    if isinstance(tree, list):
        return [map_values(item, fn) for item in tree]
    if isinstance(tree, tuple):
        return tuple(map_values(item, fn) for item in tree)
    return tree


def iter_references(tree: Any) -> Iterator[Reference]:
    """Yield every Reference in *tree*, including those inside Expressions."""
    if isinstance(tree, Reference):
        yield tree
    elif isinstance(tree, Expression):
        for part in tree.parts:
            yield from iter_references(part)
    elif isinstance(tree, dict):
        for item in tree.values():
            yield from iter_references(item)
    elif isinstance(tree, (list, tuple)):
        for item in tree:
            yield from iter_references(item)
