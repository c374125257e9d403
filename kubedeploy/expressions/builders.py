"""Combinators that compose Values into Expressions.

Plain Python scalars passed to a combinator are wrapped as Literal; anything
else must already be a Value.  Builders validate their operators eagerly so a
malformed expression fails where it is written, not at deploy time.
"""

from __future__ import annotations

from kubedeploy.models.values import Expression, Operator, Value, as_value

COMPARE_OPERATORS = frozenset({"==", "!=", "<", "<=", ">", ">="})
ARITHMETIC_OPERATORS = frozenset({"+", "-", "*", "/", "%"})

# Function name -> (min arity, max arity or None for variadic).
FUNCTIONS: dict[str, tuple[int, int | None]] = {
    "min": (1, None),
    "max": (1, None),
    "size": (1, 1),
    "string": (1, 1),
    "int": (1, 1),
    "double": (1, 1),
}

PLACEHOLDER = "%s"


def _values(items: tuple[object, ...]) -> tuple[Value, ...]:
    return tuple(as_value(item) for item in items)


def concat(*parts: object) -> Expression:
    """``a + b + ...`` string concatenation."""
    if not parts:
        raise ValueError("concat() needs at least one part")
    return Expression(Operator.CONCAT, _values(parts))


def template(fmt: str, *values: object) -> Expression:
    """Mixed text with ``%s`` placeholders, e.g. ``template("http://%s:80", host)``.

    The number of placeholders must match the number of values.
    """
    if not isinstance(fmt, str):
        raise TypeError("template() format must be a string")
    expected = fmt.count(PLACEHOLDER)
    if expected != len(values):
        raise ValueError(f"template() has {expected} placeholder(s) but {len(values)} value(s)")
    return Expression(Operator.TEMPLATE, _values(values), symbol=fmt)


def conditional(condition: object, if_true: object, if_false: object) -> Expression:
    """``condition ? if_true : if_false``."""
    return Expression(Operator.CONDITIONAL, _values((condition, if_true, if_false)))


def compare(op: str, left: object, right: object) -> Expression:
    if op not in COMPARE_OPERATORS:
        raise ValueError(f"Unsupported comparison operator: {op!r}")
    return Expression(Operator.COMPARE, _values((left, right)), symbol=op)


def arithmetic(op: str, left: object, right: object) -> Expression:
    if op not in ARITHMETIC_OPERATORS:
        raise ValueError(f"Unsupported arithmetic operator: {op!r}")
    return Expression(Operator.ARITHMETIC, _values((left, right)), symbol=op)


def math(name: str, *operands: object) -> Expression:
    """Function call ``name(a, b, ...)`` over the supported function set."""
    if name not in FUNCTIONS:
        raise ValueError(f"Unsupported function: {name!r}")
    low, high = FUNCTIONS[name]
    if len(operands) < low or (high is not None and len(operands) > high):
        raise ValueError(f"{name}() takes {low if high == low else f'at least {low}'} argument(s), got {len(operands)}")
    return Expression(Operator.CALL, _values(operands), symbol=name)


def min_(*values: object) -> Expression:
    return math("min", *values)


def max_(*values: object) -> Expression:
    return math("max", *values)


def size(collection: object) -> Expression:
    return math("size", collection)


def to_string(value: object) -> Expression:
    return math("string", value)


def to_int(value: object) -> Expression:
    return math("int", value)


def to_double(value: object) -> Expression:
    return math("double", value)
