"""Render Values as expression text for the in-cluster evaluator.

The printer is pure: the same Value always prints to the same string.
"""

from __future__ import annotations

import json

from kubedeploy.expressions.builders import PLACEHOLDER
from kubedeploy.models.values import Expression, Literal, Operator, Reference, Value

_INFIX = (Operator.COMPARE, Operator.ARITHMETIC)


def wrap_expression(text: str) -> str:
    """Wrap expression text in the ``${...}`` interpolation marker."""
    return "${" + text + "}"


def reference_path(reference: Reference) -> str:
    """``schema.<path>`` for instance-spec references, ``<id>.<path>`` otherwise."""
    root = "schema" if reference.is_schema else reference.source_id
    sep = "" if reference.field_path.startswith("[") else "."
    return f"{root}{sep}{reference.field_path}"


def literal_text(value: object) -> str:
    """Canonical unquoted text of a scalar, as used inside templates."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def to_expression_string(value: Value) -> str:
    """Print *value* as expression text (without the ``${}`` wrapper)."""
    if isinstance(value, Literal):
        return json.dumps(value.value)
    if isinstance(value, Reference):
        return reference_path(value)
    if isinstance(value, Expression):
        return _print_expression(value)
    raise TypeError(f"Not a Value: {type(value).__name__}")


def _print_expression(expr: Expression) -> str:
    op = expr.operator
    if op is Operator.TEMPLATE:
        return _render_template(expr)
    if op is Operator.CONCAT:
        return " + ".join(_operand(part, (Operator.CONDITIONAL, *_INFIX)) for part in expr.parts)
    if op is Operator.CONDITIONAL:
        cond, if_true, if_false = (_operand(part, (Operator.CONDITIONAL,)) for part in expr.parts)
        return f"{cond} ? {if_true} : {if_false}"
    if op in _INFIX:
        wrap_kinds = (Operator.CONCAT, Operator.CONDITIONAL, *_INFIX)
        left, right = (_operand(part, wrap_kinds) for part in expr.parts)
        return f"{left} {expr.symbol} {right}"
    if op is Operator.CALL:
        args = ", ".join(to_expression_string(part) for part in expr.parts)
        return f"{expr.symbol}({args})"
    raise ValueError(f"Unknown operator: {op}")


def _operand(part: Value, wrap_kinds: tuple[Operator, ...]) -> str:
    text = to_expression_string(part)
    if isinstance(part, Expression) and part.operator in wrap_kinds:
        return f"({text})"
    return text


def _render_template(expr: Expression) -> str:
    chunks = expr.symbol.split(PLACEHOLDER)
    out = [chunks[0]]
    for part, chunk in zip(expr.parts, chunks[1:], strict=True):
        if isinstance(part, Literal):
            out.append(literal_text(part.value))
        elif isinstance(part, Expression) and part.is_template:
            out.append(_render_template(part))
        else:
            out.append(wrap_expression(to_expression_string(part)))
        out.append(chunk)
    return "".join(out)
