"""Input models for the three recognized agent definition shapes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")
_SNAKE = ConfigDict(populate_by_name=True, extra="ignore")


class Property(BaseModel):
    """A schema-like node describing one input or output value."""

    model_config = _SNAKE

    prop_type: Optional[str] = Field(default=None, alias="type")
    title: Optional[str] = None
    description: Optional[str] = None
    items: Optional["Property"] = None
    const_value: Any = Field(
        default=None, validation_alias=AliasChoices("const", "constValue", "const_value")
    )
    default_value: Any = Field(default=None, alias="default")
    is_user_input: Optional[bool] = Field(default=None, alias="copilotAction:isUserInput")
    is_displayable: Optional[bool] = Field(default=None, alias="copilotAction:isDisplayable")
    is_used_by_planner: Optional[bool] = Field(
        default=None, alias="copilotAction:isUsedByPlanner"
    )
    lightning_type: Optional[str] = Field(default=None, alias="lightning:type")
    ref_type: Optional[str] = Field(default=None, alias="$ref")


class PropertySet(BaseModel):
    model_config = _SNAKE

    properties: Optional[Dict[str, Property]] = None
    required: Optional[List[str]] = None


class InstructionDefinition(BaseModel):
    model_config = _SNAKE

    name: Optional[str] = None
    description: Optional[str] = None


class Function(BaseModel):
    """A callable capability exposed by a plugin."""

    model_config = _CAMEL

    name: str
    local_dev_name: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    invocation_target_type: Optional[str] = None
    invocation_target_name: Optional[str] = None
    invocation_target_id: Optional[str] = None
    input_type: Optional[PropertySet] = None
    output_type: Optional[PropertySet] = None
    require_user_confirmation: Optional[bool] = None
    include_in_progress_indicator: Optional[bool] = None
    progress_indicator_message: Optional[str] = None
    source: Optional[str] = None

    @property
    def identifier(self) -> str:
        """Developer name when present, otherwise the display name."""

        return self.local_dev_name or self.name


class Plugin(BaseModel):
    """A capability bundle; only ``TOPIC`` plugins become topics."""

    model_config = _CAMEL

    name: str
    local_dev_name: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    scope: Optional[str] = None
    plugin_type: Optional[str] = None
    instruction_definitions: Optional[List[InstructionDefinition]] = None
    functions: Optional[List[Function]] = None
    can_escalate: Optional[bool] = None

    @property
    def identifier(self) -> str:
        return self.local_dev_name or self.name

    @property
    def is_topic(self) -> bool:
        return self.plugin_type == "TOPIC"


class ActionProperty(BaseModel):
    model_config = _SNAKE

    prop_type: Optional[str] = Field(default=None, alias="type")
    description: Optional[str] = None
    label: Optional[str] = None
    required: Optional[bool] = None
    default_value: Any = Field(default=None, alias="default")
    is_user_input: Optional[bool] = None
    is_displayable: Optional[bool] = None
    is_used_by_planner: Optional[bool] = None
    complex_type: Optional[str] = None
    complex_data_type_name: Optional[str] = None


class ActionInput(BaseModel):
    model_config = _SNAKE

    name: Optional[str] = None
    id: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    target: Optional[str] = None
    invocation_target: Optional[str] = None
    target_name: Optional[str] = None
    action_type: Optional[str] = Field(default=None, alias="type")
    inputs: Optional[Dict[str, ActionProperty]] = None
    outputs: Optional[Dict[str, ActionProperty]] = None
    require_user_confirmation: Optional[bool] = None
    include_in_progress_indicator: Optional[bool] = None
    progress_indicator_message: Optional[str] = None
    source: Optional[str] = None

    @property
    def is_transition(self) -> bool:
        return self.target is not None or self.action_type == "transition"


class TopicInput(BaseModel):
    model_config = _SNAKE

    name: Optional[str] = None
    id: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    scope: Optional[str] = None
    instructions: Optional[str] = None
    reasoning: Optional[str] = None
    actions: Optional[List[ActionInput]] = None
    is_start: Optional[bool] = None


class VariableInput(BaseModel):
    model_config = _SNAKE

    name: Optional[str] = None
    id: Optional[str] = None
    label: Optional[str] = None
    var_type: Optional[str] = Field(default=None, alias="type")
    source: Optional[str] = None
    description: Optional[str] = None


class AgentDefinition(BaseModel):
    """Top level agent definition document."""

    model_config = _CAMEL

    id: Optional[str] = None
    name: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    planner_role: Optional[str] = None
    planner_company: Optional[str] = None
    planner_tone_type: Optional[str] = None
    locale: Optional[str] = None
    secondary_locales: Optional[List[str]] = None
    welcome_message: Optional[str] = None
    welcome_message_alt: Optional[str] = None
    user_location: Optional[str] = None
    voice_config: Any = None
    plugins: Optional[List[Plugin]] = None
    topics: Optional[List[TopicInput]] = None
    variables: Optional[List[VariableInput]] = None

    @property
    def input_format(self) -> str:
        """Return ``plugins``, ``topics`` or ``generic``; plugins always win."""

        if self.plugins:
            return "plugins"
        if self.topics:
            return "topics"
        return "generic"


Property.model_rebuild()

__all__ = [
    "ActionInput",
    "ActionProperty",
    "AgentDefinition",
    "Function",
    "InstructionDefinition",
    "Plugin",
    "Property",
    "PropertySet",
    "TopicInput",
    "VariableInput",
]
