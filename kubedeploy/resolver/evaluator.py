"""Client-side evaluation of composed expressions.

Evaluation is strict about types: every operator checks its operands and a
mismatch raises ReferenceResolutionError instead of coercing.
"""

from __future__ import annotations

import math as _math
from collections.abc import Callable
from typing import Any

from kubedeploy.errors import ReferenceResolutionError
from kubedeploy.expressions.builders import PLACEHOLDER
from kubedeploy.expressions.printer import literal_text
from kubedeploy.models.values import Expression, Literal, Operator, Reference, Value

ReferenceReader = Callable[[Reference], Any]

_SCALARS = (str, int, float, bool, type(None))


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: object) -> str:
    return "null" if value is None else type(value).__name__


def evaluate(value: Value, read: ReferenceReader) -> Any:
    """Evaluate *value*, using *read* to obtain referenced fields."""
    if isinstance(value, Literal):
        return value.value
    if isinstance(value, Reference):
        return read(value)
    if isinstance(value, Expression):
        handler = _HANDLERS.get(value.operator)
        if handler is None:
            raise ReferenceResolutionError(f"Unsupported operator: {value.operator}")
        return handler(value, read)
    raise ReferenceResolutionError(f"Not a Value: {_type_name(value)}")


def _concat(expr: Expression, read: ReferenceReader) -> str:
    pieces: list[str] = []
    for part in expr.parts:
        result = evaluate(part, read)
        if not isinstance(result, str):
            raise ReferenceResolutionError(f"concat() operands must be strings, got {_type_name(result)}")
        pieces.append(result)
    return "".join(pieces)


def _template(expr: Expression, read: ReferenceReader) -> str:
    chunks = expr.symbol.split(PLACEHOLDER)
    out = [chunks[0]]
    for part, chunk in zip(expr.parts, chunks[1:], strict=True):
        result = evaluate(part, read)
        if not isinstance(result, _SCALARS):
            raise ReferenceResolutionError(f"template() values must be scalars, got {_type_name(result)}")
        out.append(literal_text(result))
        out.append(chunk)
    return "".join(out)


def _conditional(expr: Expression, read: ReferenceReader) -> Any:
    condition, if_true, if_false = expr.parts
    result = evaluate(condition, read)
    if not isinstance(result, bool):
        raise ReferenceResolutionError(f"conditional() condition must be a bool, got {_type_name(result)}")
    return evaluate(if_true if result else if_false, read)


def _compatible(left: object, right: object, ordering: bool) -> bool:
    if _is_number(left) and _is_number(right):
        return True
    if isinstance(left, str) and isinstance(right, str):
        return True
    if ordering:
        return False
    if left is None or right is None:
        return True
    if isinstance(left, bool) and isinstance(right, bool):
        return True
    return isinstance(left, (list, dict)) and type(left) is type(right)


def _compare(expr: Expression, read: ReferenceReader) -> bool:
    left, right = (evaluate(part, read) for part in expr.parts)
    op = expr.symbol
    ordering = op not in ("==", "!=")
    if not _compatible(left, right, ordering):
        raise ReferenceResolutionError(
            f"Cannot compare {_type_name(left)} {op} {_type_name(right)}"
        )
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _arithmetic(expr: Expression, read: ReferenceReader) -> Any:
    left, right = (evaluate(part, read) for part in expr.parts)
    op = expr.symbol
    if op == "+" and isinstance(left, str) and isinstance(right, str):
        return left + right
    if op == "+" and isinstance(left, list) and isinstance(right, list):
        return left + right
    if not (_is_number(left) and _is_number(right)):
        raise ReferenceResolutionError(
            f"Arithmetic {op} needs numbers, got {_type_name(left)} and {_type_name(right)}"
        )
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise ReferenceResolutionError("Division by zero")
    if isinstance(left, int) and isinstance(right, int):
        quotient = abs(left) // abs(right)
        if (left < 0) != (right < 0):
            quotient = -quotient
        return quotient if op == "/" else left - right * quotient
    return left / right if op == "/" else _math.fmod(left, right)


def _call(expr: Expression, read: ReferenceReader) -> Any:
    name = expr.symbol
    args = [evaluate(part, read) for part in expr.parts]
    if name in ("min", "max"):
        if len(args) == 1 and isinstance(args[0], list):
            args = args[0]
        if not args or not all(_is_number(a) for a in args):
            raise ReferenceResolutionError(f"{name}() needs one or more numbers")
        return min(args) if name == "min" else max(args)
    (arg,) = args
    if name == "size":
        if isinstance(arg, (str, list, dict)):
            return len(arg)
        raise ReferenceResolutionError(f"size() needs a string, list or map, got {_type_name(arg)}")
    if name == "string":
        if isinstance(arg, _SCALARS):
            return literal_text(arg)
        raise ReferenceResolutionError(f"string() needs a scalar, got {_type_name(arg)}")
    if name == "int":
        return _to_int(arg)
    if name == "double":
        return _to_double(arg)
    raise ReferenceResolutionError(f"Unsupported function: {name}")


def _to_int(arg: object) -> int:
    if _is_number(arg):
        if isinstance(arg, float) and not _math.isfinite(arg):
            raise ReferenceResolutionError(f"int() cannot convert {arg}")
        return int(arg)
    if isinstance(arg, str):
        try:
            return int(arg.strip())
        except ValueError as exc:
            raise ReferenceResolutionError(f"int() cannot parse {arg!r}") from exc
    raise ReferenceResolutionError(f"int() needs a number or string, got {_type_name(arg)}")


def _to_double(arg: object) -> float:
    if _is_number(arg):
        return float(arg)
    if isinstance(arg, str):
        try:
            return float(arg.strip())
        except ValueError as exc:
            raise ReferenceResolutionError(f"double() cannot parse {arg!r}") from exc
    raise ReferenceResolutionError(f"double() needs a number or string, got {_type_name(arg)}")


_HANDLERS: dict[Operator, Callable[[Expression, ReferenceReader], Any]] = {
    Operator.CONCAT: _concat,
    Operator.TEMPLATE: _template,
    Operator.CONDITIONAL: _conditional,
    Operator.COMPARE: _compare,
    Operator.ARITHMETIC: _arithmetic,
    Operator.CALL: _call,
}
