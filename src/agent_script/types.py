"""Map schema-like property types onto script type names."""

from __future__ import annotations

from typing import Optional

from .contract import MAX_TYPE_DEPTH
from .exceptions import InputShapeError
from .models import Property
from .rules import RuleResolver


def map_property_type(
    declared: Optional[str],
    prop: Optional[Property],
    resolver: RuleResolver | None = None,
    *,
    _depth: int = 0,
) -> str:
    """Return the script type for ``declared``.

    Arrays map their ``items`` recursively into the resolved list format
    (``list[{itemType}]`` by default), so ``array`` of ``array`` of
    ``string`` becomes ``list[list[string]]``. Everything else is looked up in
    the primitive map, then the complex map, then falls back to the default
    type.
    """

    if _depth > MAX_TYPE_DEPTH:
        raise InputShapeError(
            f"Property type nesting exceeds the maximum depth of {MAX_TYPE_DEPTH}"
        )
    resolver = resolver or RuleResolver()
    json_type = declared or "object"

    if json_type == "array":
        items = prop.items if prop is not None else None
        item_declared = items.prop_type if items is not None else None
        item_type = map_property_type(
            item_declared or "object", items, resolver, _depth=_depth + 1
        )
        return resolver.list_format.replace("{itemType}", item_type)

    primitive = resolver.primitive_types
    if json_type in primitive:
        return primitive[json_type]
    complex_types = resolver.complex_types
    if json_type in complex_types:
        return complex_types[json_type]
    return resolver.default_type


__all__ = ["MAX_TYPE_DEPTH", "map_property_type"]
