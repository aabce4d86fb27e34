"""Structural contract for agent definition documents.

The contract only checks shape (objects, arrays, scalar kinds and the few
required names). Business meaning is not validated here.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from jsonschema import Draft202012Validator, ValidationError

from .exceptions import InputShapeError

MAX_TYPE_DEPTH = 64
MAX_DOCUMENT_DEPTH = 256

_STR = {"type": ["string", "null"]}
_BOOL = {"type": ["boolean", "null"]}
_STR_LIST = {"type": ["array", "null"], "items": {"type": "string"}}

AGENT_DEFINITION_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "$defs": {
        "property": {
            "type": "object",
            "properties": {
                "type": _STR,
                "title": _STR,
                "description": _STR,
                "items": {
                    "anyOf": [{"$ref": "#/$defs/property"}, {"type": "null"}]
                },
                "copilotAction:isUserInput": _BOOL,
                "copilotAction:isDisplayable": _BOOL,
                "copilotAction:isUsedByPlanner": _BOOL,
                "lightning:type": _STR,
                "$ref": _STR,
            },
        },
        "propertySet": {
            "type": ["object", "null"],
            "properties": {
                "properties": {
                    "type": ["object", "null"],
                    "additionalProperties": {"$ref": "#/$defs/property"},
                },
                "required": _STR_LIST,
            },
        },
        "function": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string"},
                "localDevName": _STR,
                "label": _STR,
                "description": _STR,
                "invocationTargetType": _STR,
                "invocationTargetName": _STR,
                "invocationTargetId": _STR,
                "inputType": {"$ref": "#/$defs/propertySet"},
                "outputType": {"$ref": "#/$defs/propertySet"},
                "requireUserConfirmation": _BOOL,
                "includeInProgressIndicator": _BOOL,
                "progressIndicatorMessage": _STR,
                "source": _STR,
            },
        },
        "plugin": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string"},
                "localDevName": _STR,
                "label": _STR,
                "description": _STR,
                "scope": _STR,
                "pluginType": _STR,
                "instructionDefinitions": {
                    "type": ["array", "null"],
                    "items": {
                        "type": "object",
                        "properties": {"name": _STR, "description": _STR},
                    },
                },
                "functions": {
                    "type": ["array", "null"],
                    "items": {"$ref": "#/$defs/function"},
                },
                "canEscalate": _BOOL,
            },
        },
        "actionProperty": {
            "type": "object",
            "properties": {
                "type": _STR,
                "description": _STR,
                "label": _STR,
                "required": _BOOL,
                "is_user_input": _BOOL,
                "is_displayable": _BOOL,
                "is_used_by_planner": _BOOL,
                "complex_type": _STR,
            },
        },
        "action": {
            "type": "object",
            "properties": {
                "name": _STR,
                "id": _STR,
                "label": _STR,
                "description": _STR,
                "target": _STR,
                "invocation_target": _STR,
                "target_name": _STR,
                "type": _STR,
                "inputs": {
                    "type": ["object", "null"],
                    "additionalProperties": {"$ref": "#/$defs/actionProperty"},
                },
                "outputs": {
                    "type": ["object", "null"],
                    "additionalProperties": {"$ref": "#/$defs/actionProperty"},
                },
                "require_user_confirmation": _BOOL,
                "include_in_progress_indicator": _BOOL,
                "progress_indicator_message": _STR,
                "source": _STR,
            },
        },
        "topic": {
            "type": "object",
            "properties": {
                "name": _STR,
                "id": _STR,
                "label": _STR,
                "description": _STR,
                "scope": _STR,
                "instructions": _STR,
                "reasoning": _STR,
                "actions": {
                    "type": ["array", "null"],
                    "items": {"$ref": "#/$defs/action"},
                },
                "is_start": _BOOL,
            },
        },
        "variable": {
            "type": "object",
            "properties": {
                "name": _STR,
                "id": _STR,
                "label": _STR,
                "type": _STR,
                "source": _STR,
                "description": _STR,
            },
        },
    },
    "properties": {
        "id": _STR,
        "name": _STR,
        "label": _STR,
        "description": _STR,
        "plannerRole": _STR,
        "plannerCompany": _STR,
        "plannerToneType": _STR,
        "locale": _STR,
        "secondaryLocales": _STR_LIST,
        "welcomeMessage": _STR,
        "welcomeMessageAlt": _STR,
        "userLocation": _STR,
        "plugins": {"type": ["array", "null"], "items": {"$ref": "#/$defs/plugin"}},
        "topics": {"type": ["array", "null"], "items": {"$ref": "#/$defs/topic"}},
        "variables": {
            "type": ["array", "null"],
            "items": {"$ref": "#/$defs/variable"},
        },
    },
}

_VALIDATOR = Draft202012Validator(AGENT_DEFINITION_SCHEMA)


def validate_definition(payload: Mapping[str, Any]) -> None:
    """Validate ``payload`` against the agent definition contract."""

    def _sort_key(error: ValidationError) -> tuple:
        path = tuple(str(part) for part in error.absolute_path)
        return path + (error.message,)

    errors = sorted(_VALIDATOR.iter_errors(payload), key=_sort_key)
    if errors:
        messages = []
        for error in errors:
            location = "/".join(str(p) for p in error.absolute_path) or "<root>"
            messages.append(f"{location}: {error.message}")
        raise InputShapeError("Input document does not match a recognized shape", messages)


def check_nesting(payload: Any) -> None:
    """Reject documents nested deeper than the converter can walk.

    ``items`` chains are capped at :data:`MAX_TYPE_DEPTH` and overall nesting
    at :data:`MAX_DOCUMENT_DEPTH`. Runs before schema validation.
    """

    stack = [(payload, 0, 0)]
    while stack:
        node, depth, items_depth = stack.pop()
        if depth > MAX_DOCUMENT_DEPTH:
            raise InputShapeError(
                f"Input document nesting exceeds the maximum depth of {MAX_DOCUMENT_DEPTH}"
            )
        if items_depth > MAX_TYPE_DEPTH:
            raise InputShapeError(
                f"Property type nesting exceeds the maximum depth of {MAX_TYPE_DEPTH}"
            )
        if isinstance(node, Mapping):
            for key, value in node.items():
                if isinstance(value, (Mapping, list)):
                    chain = items_depth + 1 if key == "items" else 0
                    stack.append((value, depth + 1, chain))
        elif isinstance(node, list):
            for value in node:
                if isinstance(value, (Mapping, list)):
                    stack.append((value, depth + 1, 0))
