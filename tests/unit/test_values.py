"""Tests for the reference model: Value variants, accessor builders and tree walkers."""

from __future__ import annotations

import pytest

from kubedeploy.expressions import concat
from kubedeploy.models import (
    SCHEMA_ID,
    CompositeNode,
    DeployedResource,
    Expression,
    Literal,
    Operator,
    ReadinessResult,
    Reference,
    ResourceNode,
    as_value,
    is_expression,
    is_literal,
    is_reference,
    is_value,
    iter_references,
    map_values,
    ref,
    schema_ref,
)


class TestValueVariants:
    def test_literal_rejects_nested_value(self) -> None:
        with pytest.raises(TypeError):
            Literal(Literal("x"))  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            Literal(ref("a", "spec"))  # type: ignore[arg-type]

    def test_literal_rejects_containers(self) -> None:
        with pytest.raises(TypeError):
            Literal({"a": 1})  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_literal_rejects_non_finite_floats(self, value: float) -> None:
        with pytest.raises(ValueError, match="finite"):
            Literal(value)
        with pytest.raises(ValueError, match="finite"):
            as_value(value)

    def test_literal_accepts_extreme_finite_floats(self) -> None:
        assert Literal(1.7976931348623157e308).value == 1.7976931348623157e308
        assert Literal(-0.0).value == 0.0

    def test_expression_parts_must_be_values(self) -> None:
        with pytest.raises(TypeError):
            Expression(Operator.CONCAT, ("raw",))  # type: ignore[arg-type]

    def test_predicates_are_disjoint(self) -> None:
        values = [Literal(1), ref("a", "spec"), concat("a", "b")]
        assert [is_literal(v) for v in values] == [True, False, False]
        assert [is_reference(v) for v in values] == [False, True, False]
        assert [is_expression(v) for v in values] == [False, False, True]
        assert all(is_value(v) for v in values)
        assert not is_value("plain string")
        assert not is_value({"k": "v"})

    def test_as_value_wraps_scalars_only(self) -> None:
        assert as_value("x") == Literal("x")
        assert as_value(None) == Literal(None)
        reference = ref("a", "spec")
        assert as_value(reference) is reference
        with pytest.raises(TypeError):
            as_value([1, 2])


class TestAccessorBuilders:
    def test_segments_are_dot_joined(self) -> None:
        assert ref("database", "status", "podIP") == Reference("database", "status.podIP")

    def test_integer_segments_become_indexes(self) -> None:
        assert ref("web", "spec.ports", 0, "port").field_path == "spec.ports[0].port"

    def test_schema_ref_uses_sentinel(self) -> None:
        reference = schema_ref("spec", "name")
        assert reference.source_id == SCHEMA_ID
        assert reference.is_schema
        assert reference.field_path == "spec.name"

    def test_child_extends_path(self) -> None:
        assert ref("svc", "status").child("loadBalancer", "ingress", 0).field_path == "status.loadBalancer.ingress[0]"

    def test_empty_path_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            ref("a")
        with pytest.raises(ValueError):
            ref("a", "")
        with pytest.raises(TypeError):
            ref("a", True)  # type: ignore[arg-type]


class TestTreeWalkers:
    def test_map_values_keeps_container_shapes(self) -> None:
        tree = {
            "b": [ref("x", "spec"), "plain"],
            "a": (Literal(1), 2),
            "c": {"n": None},
        }

        out = map_values(tree, lambda v: "<v>")

        assert out == {"b": ["<v>", "plain"], "a": ("<v>", 2), "c": {"n": None}}
        assert list(out) == ["b", "a", "c"]
        assert isinstance(out["b"], list)
        assert isinstance(out["a"], tuple)

    def test_map_values_does_not_mutate_input(self) -> None:
        inner = [ref("x", "spec")]
        tree = {"k": inner}

        map_values(tree, lambda v: 0)

        assert tree["k"] is inner
        assert is_reference(inner[0])

    def test_iter_references_descends_into_expressions(self) -> None:
        a, b, c = ref("a", "spec"), ref("b", "status", "ip"), schema_ref("spec", "name")
        tree = {"x": [a, {"y": concat(b, "-", c)}], "z": "plain"}

        assert list(iter_references(tree)) == [a, b, c]


class TestNodes:
    def test_from_manifest_takes_kind(self) -> None:
        node = ResourceNode.from_manifest("web", {"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {}})

        assert node.kind == "Deployment"
        assert node.api_version == "apps/v1"
        assert node.steps == (node,)

    def test_from_manifest_needs_literal_kind(self) -> None:
        with pytest.raises(ValueError, match="no literal kind"):
            ResourceNode.from_manifest("web", {"kind": ref("other", "kind")})

    def test_manifest_is_copied(self) -> None:
        manifest = {"kind": "ConfigMap", "data": {"a": "1"}}
        node = ResourceNode(id="cfg", kind="ConfigMap", manifest=manifest)

        manifest["data"]["a"] = "2"

        assert node.manifest["data"]["a"] == "1"

    def test_composite_exposes_instance(self) -> None:
        definition = ResourceNode(id="rgd", kind="ResourceGraphDefinition", manifest={})
        instance = ResourceNode(id="inst", kind="WebApp", manifest={"apiVersion": "kro.run/v1alpha1"})
        composite = CompositeNode(id="app", steps=(definition, instance))

        assert composite.kind == "WebApp"
        assert composite.api_version == "kro.run/v1alpha1"
        assert composite.definitions == (definition,)

    def test_composite_needs_two_steps(self) -> None:
        with pytest.raises(ValueError):
            CompositeNode(id="app", steps=(ResourceNode(id="x", kind="WebApp", manifest={}),))

    def test_deployed_resource_helpers(self) -> None:
        record = DeployedResource(id="a", kind="ConfigMap", name="a", namespace="default")
        assert record.last_readiness is None
        assert record.was_applied is False

        record.readiness_history.append(ReadinessResult(ready=False, reason="Pending"))
        record.readiness_history.append(ReadinessResult(ready=True))
        record.applied_manifest = record.live_object = {"kind": "ConfigMap"}

        assert record.last_readiness == ReadinessResult(ready=True)
        assert record.was_applied is True
