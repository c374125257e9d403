"""Expression construction and printing."""

from kubedeploy.expressions.builders import (
    arithmetic,
    compare,
    concat,
    conditional,
    math,
    max_,
    min_,
    size,
    template,
    to_double,
    to_int,
    to_string,
)
from kubedeploy.expressions.printer import to_expression_string, wrap_expression

__all__ = [
    "arithmetic",
    "compare",
    "concat",
    "conditional",
    "math",
    "max_",
    "min_",
    "size",
    "template",
    "to_double",
    "to_expression_string",
    "to_int",
    "to_string",
    "wrap_expression",
]
