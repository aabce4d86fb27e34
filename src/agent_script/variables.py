"""Build the variable table from function property trees or declared variables."""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from .document import Variable
from .models import Function, Plugin, Property, VariableInput
from .rules import RuleResolver
from .types import map_property_type


def clean_variable_name(raw: str, prefix: str) -> str:
    """Drop the ``Input:``/``Output:`` token and every non-word character."""

    return "".join(ch for ch in raw.replace(prefix, "") if ch.isalnum() or ch == "_")


def _input_variable(name: str, prop: Property, var_type: str) -> Variable:
    return Variable(
        category="mutable",
        var_type=var_type,
        label=prop.title,
        description=prop.description or prop.title or f"Variable for {name}",
    )


def _output_variable(raw_name: str, prop: Property, var_type: str, func: Function) -> Variable:
    description = prop.description or prop.title or f"Output from {func.label or func.name}"
    if "object" in var_type:
        return Variable("mutable", var_type, description, label=prop.title)
    return Variable(
        "linked",
        var_type,
        description,
        label=prop.title,
        source=f"@action.{func.identifier}.{raw_name}",
    )


def extract_function_variables(
    plugins: Optional[Iterable[Plugin]], resolver: RuleResolver
) -> Dict[str, Variable]:
    """Walk every topic plugin function, inputs before outputs.

    The first definition of a cleaned name wins; later ones are dropped.
    """

    variables: Dict[str, Variable] = {}
    for plugin in plugins or ():
        if not plugin.is_topic:
            continue
        for func in plugin.functions or ():
            if func.input_type and func.input_type.properties:
                for raw_name, prop in func.input_type.properties.items():
                    name = clean_variable_name(raw_name, "Input:")
                    if not name or name in variables:
                        continue
                    var_type = map_property_type(prop.prop_type, prop, resolver)
                    variables[name] = _input_variable(name, prop, var_type)
            if func.output_type and func.output_type.properties:
                for raw_name, prop in func.output_type.properties.items():
                    name = clean_variable_name(raw_name, "Output:")
                    if not name or name in variables:
                        continue
                    var_type = map_property_type(prop.prop_type, prop, resolver)
                    variables[name] = _output_variable(raw_name, prop, var_type, func)
    return variables


def declared_variables(entries: Optional[Iterable[VariableInput]]) -> Dict[str, Variable]:
    """Variables listed directly on a pre-structured definition."""

    variables: Dict[str, Variable] = {}
    for entry in entries or ():
        name = entry.name or entry.id
        if not name or name in variables:
            continue
        var_type = entry.var_type or "string"
        if "object" not in var_type and entry.source is not None:
            category, source = "linked", entry.source
        else:
            category, source = "mutable", None
        variables[name] = Variable(
            category=category,
            var_type=var_type,
            label=entry.label,
            source=source,
            description=entry.description or f"Variable {name}",
        )
    return variables


__all__ = ["clean_variable_name", "declared_variables", "extract_function_variables"]
