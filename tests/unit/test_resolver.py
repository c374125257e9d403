"""Tests for field paths, expression evaluation and the reference resolver."""

from __future__ import annotations

from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from kubedeploy.errors import ReferenceResolutionError
from kubedeploy.expressions import (
    arithmetic,
    compare,
    concat,
    conditional,
    max_,
    min_,
    size,
    template,
    to_double,
    to_int,
    to_string,
)
from kubedeploy.models import Literal, ResolutionMode, ref, schema_ref
from kubedeploy.resolver import ReferenceResolver, Stage, evaluate, parse_path, read_path, required_stage

LIVE: dict[str, dict[str, Any]] = {
    "db": {
        "metadata": {"name": "db", "annotations": {"example.com/owner": "team-a"}},
        "spec": {"replicas": 3, "ports": [{"port": 5432}], "selector": None},
        "status": {"podIP": "10.0.0.5", "ready": True, "phase": "Running", "items": [4, 9, 2]},
    },
}


def _immediate(**kwargs: Any) -> ReferenceResolver:
    kwargs.setdefault("live_state", LIVE)
    return ReferenceResolver(ResolutionMode.IMMEDIATE, **kwargs)


def _eval(value: Any) -> Any:
    return _immediate().resolve_value(value)


class TestPaths:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("status.podIP", ("status", "podIP")),
            ("spec.ports[0].port", ("spec", "ports", 0, "port")),
            ('metadata.annotations["example.com/owner"]', ("metadata", "annotations", "example.com/owner")),
            ("data['key.with.dots']", ("data", "key.with.dots")),
            ("[1]", (1,)),
        ],
    )
    def test_parse(self, path: str, expected: tuple[str | int, ...]) -> None:
        assert parse_path(path) == expected

    @pytest.mark.parametrize("path", ["", ".status", "status..ip", "status[x]", "status["])
    def test_malformed_path_raises(self, path: str) -> None:
        with pytest.raises(ValueError):
            parse_path(path)

    def test_read_nested(self) -> None:
        assert read_path(LIVE["db"], "spec.ports[0].port") == 5432
        assert read_path(LIVE["db"], 'metadata.annotations["example.com/owner"]') == "team-a"

    def test_present_null_is_returned(self) -> None:
        assert read_path(LIVE["db"], "spec.selector") is None

    @pytest.mark.parametrize("path", ["status.hostIP", "spec.ports[3].port", "status.podIP.x", "metadata[0]"])
    def test_absent_field_raises_lookup_error(self, path: str) -> None:
        with pytest.raises(LookupError):
            read_path(LIVE["db"], path)


class TestRequiredStage:
    def test_status_paths_need_ready(self) -> None:
        assert required_stage("status.podIP") is Stage.READY
        assert required_stage("status") is Stage.READY

    def test_other_paths_need_applied(self) -> None:
        assert required_stage("metadata.name") is Stage.APPLIED
        assert required_stage("spec.statusCode") is Stage.APPLIED


class TestDeferredMode:
    def test_reference_becomes_expression(self) -> None:
        resolver = ReferenceResolver("deferred")

        assert resolver.resolve_value(ref("db", "status", "podIP")) == "${db.status.podIP}"
        assert resolver.resolve_value(schema_ref("spec", "name")) == "${schema.spec.name}"

    def test_literal_is_unwrapped(self) -> None:
        assert ReferenceResolver("deferred").resolve_value(Literal(8080)) == 8080

    def test_expression_is_wrapped_once(self) -> None:
        value = compare("==", ref("db", "status", "phase"), "Running")

        assert ReferenceResolver("deferred").resolve_value(value) == '${db.status.phase == "Running"}'

    def test_template_is_raw_text(self) -> None:
        value = template("postgres://%s:%s/app", ref("db", "status", "podIP"), 5432)

        assert ReferenceResolver("deferred").resolve_value(value) == "postgres://${db.status.podIP}:5432/app"

    def test_unknown_resource_is_rejected(self) -> None:
        resolver = ReferenceResolver("deferred", resource_ids={"db"})

        with pytest.raises(ReferenceResolutionError, match="ghost.status.ip"):
            resolver.resolve_value(concat("x", ref("ghost", "status", "ip")))

    def test_schema_reference_needs_no_known_id(self) -> None:
        resolver = ReferenceResolver("deferred", resource_ids=set())

        assert resolver.resolve_value(schema_ref("spec", "host")) == "${schema.spec.host}"

    def test_does_not_read_live_state(self) -> None:
        resolver = ReferenceResolver("deferred", live_state={})

        assert resolver.resolve_value(ref("db", "status", "podIP")) == "${db.status.podIP}"


class TestImmediateMode:
    def test_reads_live_state(self) -> None:
        assert _eval(ref("db", "status", "podIP")) == "10.0.0.5"

    def test_present_null_resolves_to_none(self) -> None:
        assert _eval(ref("db", "spec", "selector")) is None

    def test_absent_field_raises(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="db.status.hostIP"):
            _eval(ref("db", "status", "hostIP"))

    def test_missing_live_state_raises(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="no live state"):
            _eval(ref("cache", "status", "podIP"))

    def test_schema_reference_reads_instance_spec(self) -> None:
        resolver = _immediate(instance_spec={"name": "demo", "replicas": 2})

        assert resolver.resolve_value(schema_ref("spec", "name")) == "demo"
        assert resolver.resolve_value(schema_ref("spec", "replicas")) == 2

    def test_live_state_is_read_on_every_call(self) -> None:
        live: dict[str, dict[str, Any]] = {}
        resolver = _immediate(live_state=live)
        with pytest.raises(ReferenceResolutionError):
            resolver.resolve_value(ref("a", "metadata", "name"))

        live["a"] = {"metadata": {"name": "late"}}

        assert resolver.resolve_value(ref("a", "metadata", "name")) == "late"

    def test_manifest_keeps_shape_and_is_not_mutated(self) -> None:
        manifest = {
            "kind": "ConfigMap",
            "data": {"host": ref("db", "status", "podIP"), "port": "5432"},
            "items": [ref("db", "spec", "replicas"), 1],
        }

        resolved = _immediate().resolve_manifest(manifest)

        assert resolved == {"kind": "ConfigMap", "data": {"host": "10.0.0.5", "port": "5432"}, "items": [3, 1]}
        assert manifest["data"]["host"] == ref("db", "status", "podIP")


class TestEvaluation:
    def test_concat(self) -> None:
        assert _eval(concat("http://", ref("db", "status", "podIP"), ":5432")) == "http://10.0.0.5:5432"

    def test_concat_rejects_non_strings(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="strings"):
            _eval(concat("replicas=", ref("db", "spec", "replicas")))

    def test_template_formats_scalars(self) -> None:
        value = template("%s replicas, ready=%s", ref("db", "spec", "replicas"), ref("db", "status", "ready"))

        assert _eval(value) == "3 replicas, ready=true"

    def test_template_rejects_containers(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="scalars"):
            _eval(template("ports: %s", ref("db", "spec", "ports")))

    def test_conditional(self) -> None:
        value = conditional(ref("db", "status", "ready"), "up", "down")

        assert _eval(value) == "up"

    def test_conditional_needs_bool(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="bool"):
            _eval(conditional(ref("db", "spec", "replicas"), "a", "b"))

    @pytest.mark.parametrize(
        ("op", "right", "expected"),
        [("==", 3, True), ("!=", 3, False), ("<", 4, True), ("<=", 2, False), (">", 2.5, True), (">=", 3, True)],
    )
    def test_compare_numbers(self, op: str, right: Any, expected: bool) -> None:
        assert _eval(compare(op, ref("db", "spec", "replicas"), right)) is expected

    def test_compare_null_for_equality(self) -> None:
        assert _eval(compare("==", ref("db", "spec", "selector"), None)) is True

    @pytest.mark.parametrize("op", ["==", "<"])
    def test_compare_mixed_types_raises(self, op: str) -> None:
        with pytest.raises(ReferenceResolutionError, match="Cannot compare"):
            _eval(compare(op, ref("db", "spec", "replicas"), "3"))

    @pytest.mark.parametrize(
        ("op", "left", "right", "expected"),
        [
            ("+", 2, 3, 5),
            ("-", 2, 3, -1),
            ("*", 4, 2.5, 10.0),
            ("/", 7, 2, 3),
            ("/", -7, 2, -3),
            ("%", -7, 2, -1),
            ("%", 7, -2, 1),
            ("/", 7.0, 2, 3.5),
            ("+", "ab", "cd", "abcd"),
        ],
    )
    def test_arithmetic(self, op: str, left: Any, right: Any, expected: Any) -> None:
        assert _eval(arithmetic(op, left, right)) == expected

    def test_list_addition(self) -> None:
        assert _eval(arithmetic("+", ref("db", "status", "items"), ref("db", "status", "items"))) == [4, 9, 2, 4, 9, 2]

    @pytest.mark.parametrize("op", ["/", "%"])
    def test_division_by_zero(self, op: str) -> None:
        with pytest.raises(ReferenceResolutionError, match="Division by zero"):
            _eval(arithmetic(op, 1, 0))

    def test_arithmetic_rejects_booleans(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="needs numbers"):
            _eval(arithmetic("+", ref("db", "status", "ready"), 1))

    def test_functions(self) -> None:
        assert _eval(min_(ref("db", "spec", "replicas"), 1, 7)) == 1
        assert _eval(max_(ref("db", "status", "items"))) == 9
        assert _eval(size(ref("db", "status", "podIP"))) == 8
        assert _eval(size(ref("db", "spec", "ports"))) == 1
        assert _eval(to_string(ref("db", "spec", "replicas"))) == "3"
        assert _eval(to_int(" 42 ")) == 42
        assert _eval(to_int(3.9)) == 3
        assert _eval(to_double("2.5")) == 2.5

    @pytest.mark.parametrize(
        "value",
        [size(ref("db", "spec", "replicas")), to_int("four"), to_double(True), min_(ref("db", "spec", "ports"))],
    )
    def test_function_type_errors(self, value: Any) -> None:
        with pytest.raises(ReferenceResolutionError):
            _eval(value)

    def test_nested_expression(self) -> None:
        value = conditional(
            compare(">", arithmetic("*", ref("db", "spec", "replicas"), 2), 5),
            concat("big-", ref("db", "metadata", "name")),
            "small",
        )

        assert _eval(value) == "big-db"

    def test_evaluate_with_custom_reader(self) -> None:
        seen: list[str] = []

        def read(reference):
            seen.append(reference.field_path)
            return 1

        assert evaluate(arithmetic("+", ref("a", "x"), ref("b", "y")), read) == 2
        assert seen == ["x", "y"]


_KEYS = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=8)
_SCALARS = st.one_of(st.none(), st.booleans(), st.integers(), st.text(max_size=10))


class TestProperties:
    @given(data=st.dictionaries(_KEYS, _SCALARS, min_size=1, max_size=6))
    @settings(max_examples=100)
    def test_reference_reads_back_what_is_live(self, data: dict[str, Any]) -> None:
        resolver = _immediate(live_state={"cm": {"data": data}})

        for key, value in data.items():
            assert resolver.resolve_value(ref("cm", "data", key)) == value

    @given(segments=st.lists(st.one_of(_KEYS, st.integers(min_value=0, max_value=99)), min_size=1, max_size=6))
    @settings(max_examples=100)
    def test_ref_paths_parse_back_to_segments(self, segments: list[str | int]) -> None:
        assert parse_path(ref("x", *segments).field_path) == tuple(segments)

    @given(left=st.integers(min_value=-1000, max_value=1000), right=st.integers(min_value=-50, max_value=50).filter(bool))
    @settings(max_examples=200)
    def test_integer_division_identity(self, left: int, right: int) -> None:
        quotient = _eval(arithmetic("/", left, right))
        remainder = _eval(arithmetic("%", left, right))

        assert quotient * right + remainder == left
        assert abs(remainder) < abs(right)
        assert remainder == 0 or (remainder < 0) == (left < 0)
