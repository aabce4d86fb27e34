from __future__ import annotations

import pytest

from agent_script.exceptions import InputShapeError
from agent_script.models import Property
from agent_script.rules import RuleResolver
from agent_script.types import MAX_TYPE_DEPTH, map_property_type


def _map(node: dict, rules: dict | None = None) -> str:
    prop = Property.model_validate(node)
    return map_property_type(prop.prop_type, prop, RuleResolver.from_source(rules))


def test_primitive_types() -> None:
    assert _map({"type": "string"}) == "string"
    assert _map({"type": "integer"}) == "number"
    assert _map({"type": "boolean"}) == "boolean"
    assert _map({"type": "object"}) == "object"


def test_missing_and_unknown_types_fall_back_to_default() -> None:
    assert _map({}) == "object"
    assert _map({"type": "date"}) == "object"
    assert _map({"type": "date"}, {"type_mappings": {"default": "string"}}) == "string"


def test_nested_arrays() -> None:
    node = {"type": "array", "items": {"type": "array", "items": {"type": "string"}}}
    assert _map(node) == "list[list[string]]"
    assert _map({"type": "array"}) == "list[object]"
    assert _map({"type": "array", "items": {"title": "untyped"}}) == "list[object]"


def test_override_maps_are_used_recursively() -> None:
    rules = {
        "type_mappings": {
            "primitive": {"string": "text"},
            "complex": {"array": "collection<{itemType}>"},
        }
    }
    node = {"type": "array", "items": {"type": "array", "items": {"type": "string"}}}
    assert _map(node, rules) == "collection<collection<text>>"
    # An override map replaces the built-in one wholesale.
    assert _map({"type": "integer"}, rules) == "object"


def test_depth_cap() -> None:
    shallow = {"type": "string"}
    for _ in range(10):
        shallow = {"type": "array", "items": shallow}
    assert _map(shallow).count("list[") == 10

    deep = {"type": "string"}
    for _ in range(MAX_TYPE_DEPTH + 5):
        deep = {"type": "array", "items": deep}
    with pytest.raises(InputShapeError):
        _map(deep)
