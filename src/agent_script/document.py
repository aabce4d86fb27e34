"""In-memory target script document assembled by the converter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SELECTOR_KEY = "start_agent topic_selector"
TOPIC_PREFIX = "topic "
START_PREFIX = "start_agent "
CONNECTION_PREFIX = "connection "


@dataclass(slots=True)
class SystemSection:
    instructions: str
    welcome: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instructions": self.instructions,
            "messages": {"welcome": self.welcome, "error": self.error},
        }


@dataclass(slots=True)
class ConfigSection:
    default_agent_user: str
    agent_label: str
    developer_name: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_agent_user": self.default_agent_user,
            "agent_label": self.agent_label,
            "developer_name": self.developer_name,
            "description": self.description,
        }


@dataclass(slots=True)
class Variable:
    """Variable table entry; ``category`` is ``mutable`` or ``linked``."""

    category: str
    var_type: str
    description: str
    label: Optional[str] = None
    source: Optional[str] = None

    @property
    def declaration(self) -> str:
        return f"{self.category} {self.var_type}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "category": self.category,
            "type": self.var_type,
            "description": self.description,
        }
        if self.label is not None:
            payload["label"] = self.label
        if self.source is not None:
            payload["source"] = self.source
        return payload


@dataclass(slots=True)
class LanguageSection:
    default_locale: str
    additional_locales: str = ""
    all_additional_locales: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_locale": self.default_locale,
            "additional_locales": self.additional_locales,
            "all_additional_locales": self.all_additional_locales,
        }


@dataclass(slots=True)
class ConnectionSection:
    adaptive_response_allowed: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"adaptive_response_allowed": self.adaptive_response_allowed}


@dataclass(slots=True)
class TransitionRef:
    """A reasoning-level reference to another topic, a utility or an action."""

    target: str
    description: Optional[str] = None
    with_params: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"target": self.target}
        if self.description is not None:
            payload["description"] = self.description
        if self.with_params:
            payload["with"] = list(self.with_params)
        return payload


@dataclass(slots=True)
class ActionInputDef:
    input_type: str
    is_required: bool = False
    is_user_input: bool = False
    description: Optional[str] = None
    label: Optional[str] = None
    const_value: Any = None
    complex_data_type_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.input_type,
            "is_required": self.is_required,
            "is_user_input": self.is_user_input,
        }
        for key in ("description", "label", "const_value", "complex_data_type_name"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True)
class ActionOutputDef:
    output_type: str
    is_displayable: bool = False
    is_used_by_planner: bool = True
    description: Optional[str] = None
    label: Optional[str] = None
    complex_data_type_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.output_type,
            "is_displayable": self.is_displayable,
            "is_used_by_planner": self.is_used_by_planner,
        }
        for key in ("description", "label", "complex_data_type_name"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True)
class Action:
    """Detailed action definition attached to a topic."""

    description: str
    target: str
    label: Optional[str] = None
    require_user_confirmation: bool = False
    include_in_progress_indicator: bool = False
    progress_indicator_message: Optional[str] = None
    source: Optional[str] = None
    inputs: Dict[str, ActionInputDef] = field(default_factory=dict)
    outputs: Dict[str, ActionOutputDef] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "description": self.description,
            "target": self.target,
            "require_user_confirmation": self.require_user_confirmation,
            "include_in_progress_indicator": self.include_in_progress_indicator,
        }
        for key in ("label", "progress_indicator_message", "source"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.inputs:
            payload["inputs"] = {name: item.to_dict() for name, item in self.inputs.items()}
        if self.outputs:
            payload["outputs"] = {name: item.to_dict() for name, item in self.outputs.items()}
        return payload


@dataclass(slots=True)
class ReasoningSection:
    instructions: str
    actions: Dict[str, TransitionRef] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instructions": self.instructions,
            "actions": {name: ref.to_dict() for name, ref in self.actions.items()},
        }


@dataclass(slots=True)
class Topic:
    label: str
    description: str
    reasoning: ReasoningSection
    actions: Dict[str, Action] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "label": self.label,
            "description": self.description,
            "reasoning": self.reasoning.to_dict(),
        }
        if self.actions:
            payload["actions"] = {name: action.to_dict() for name, action in self.actions.items()}
        return payload


@dataclass(slots=True)
class ScriptDocument:
    """Complete target script before serialization."""

    system: SystemSection
    config: ConfigSection
    language: LanguageSection
    variables: Dict[str, Variable] = field(default_factory=dict)
    connections: Dict[str, ConnectionSection] = field(default_factory=dict)
    topics: Dict[str, Topic] = field(default_factory=dict)

    def has_topic_like(self, fragment: str) -> bool:
        """Return True when a topic key contains ``fragment`` case-insensitively."""

        needle = fragment.lower()
        return any(
            key.startswith((TOPIC_PREFIX, START_PREFIX)) and needle in key.lower()
            for key in self.topics
        )

    @property
    def action_count(self) -> int:
        return sum(len(topic.actions) for topic in self.topics.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system": self.system.to_dict(),
            "config": self.config.to_dict(),
            "variables": {name: var.to_dict() for name, var in sorted(self.variables.items())},
            "language": self.language.to_dict(),
            "connections": {
                key: conn.to_dict() for key, conn in sorted(self.connections.items())
            },
            "topics": {key: topic.to_dict() for key, topic in sorted(self.topics.items())},
        }


__all__ = [
    "Action",
    "ActionInputDef",
    "ActionOutputDef",
    "ConfigSection",
    "ConnectionSection",
    "LanguageSection",
    "ReasoningSection",
    "SELECTOR_KEY",
    "ScriptDocument",
    "SystemSection",
    "Topic",
    "TransitionRef",
    "Variable",
]
