"""Reference resolution."""

from kubedeploy.resolver.evaluator import evaluate
from kubedeploy.resolver.paths import parse_path, read_path
from kubedeploy.resolver.resolver import ReferenceResolver, Stage, required_stage

__all__ = ["ReferenceResolver", "Stage", "evaluate", "parse_path", "read_path", "required_stage"]
