"""Deterministic text rendering of a :class:`ScriptDocument`.

Section order is fixed (system, config, variables, language, connection,
topics) and every mapping is emitted in sorted key order, so the same document
always renders to the same bytes.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from .document import (
    CONNECTION_PREFIX,
    START_PREFIX,
    TOPIC_PREFIX,
    Action,
    ScriptDocument,
    Topic,
    TransitionRef,
    Variable,
)
from .placeholders import PlaceholderRewriter
from .rules import RuleResolver
from .text import escape

FALLBACK_INSTRUCTION_LINE = "Handle user requests appropriately."


def _literal(value: bool) -> str:
    return "True" if value else "False"


def _lines(text: str) -> List[str]:
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def is_readable_source_name(source: str) -> bool:
    """Return False when ``source`` looks like a generated record id."""

    if "_" in source or " " in source:
        return True
    if not all(ch.isalnum() for ch in source):
        return True
    if len(source) in (15, 18):
        has_letters = any(ch.isalpha() for ch in source)
        has_digits = any(ch.isnumeric() for ch in source)
        if has_letters and has_digits:
            return False
    run = 0
    for ch in source:
        run = run + 1 if ch.isnumeric() else 0
        if run >= 3:
            return False
    return True


class ScriptRenderer:
    """Render one document; free text is rewritten for placeholders, then escaped."""

    def __init__(self, resolver: RuleResolver | None = None) -> None:
        self.resolver = resolver or RuleResolver()
        self.rewriter = PlaceholderRewriter(self.resolver)
        self.indicator = self.resolver.instruction_indicator
        self.line_prefix = self.resolver.instruction_line_prefix
        self._out: List[str] = []

    def _text(self, value: str) -> str:
        return escape(self.rewriter.rewrite(value))

    def _flag(self, value: bool) -> str:
        return self.resolver.format_boolean(value)

    def _emit(self, line: str = "") -> None:
        self._out.append(line)

    def render(self, document: ScriptDocument) -> str:
        self._out = []
        self._system(document)
        self._config(document)
        self._variables(document.variables)
        self._emit()
        self._language(document)
        self._connection(document)
        for key in sorted(document.topics):
            if key.startswith((START_PREFIX, TOPIC_PREFIX)):
                self._topic(key, document.topics[key])
        return "\n".join(self._out).strip() + "\n"

    def _system(self, document: ScriptDocument) -> None:
        system = document.system
        self._emit("system:")
        self._emit(f'    instructions: "{self._text(system.instructions)}"')
        self._emit("    messages:")
        self._emit(f'        welcome: "{self._text(system.welcome)}"')
        self._emit(f'        error: "{self._text(system.error)}"')
        self._emit()

    def _config(self, document: ScriptDocument) -> None:
        config = document.config
        self._emit("config:")
        self._emit(f'  default_agent_user: "{escape(config.default_agent_user)}"')
        self._emit(f'  agent_label: "{escape(config.agent_label)}"')
        self._emit(f'  developer_name: "{escape(config.developer_name)}"')
        self._emit(f'  description: "{self._text(config.description)}"')
        self._emit()

    def _variables(self, variables: Mapping[str, Variable]) -> None:
        if not variables:
            return
        self._emit("variables:")
        for name in sorted(variables):
            variable = variables[name]
            self._emit(f"    {name}: {variable.declaration}")
            source = variable.source
            if variable.category == "linked" and source and not source.startswith("@action."):
                self._emit(f"        source: {source}")
            if variable.label is not None:
                self._emit(f'        label: "{escape(variable.label)}"')
            self._emit(f'        description: "{self._text(variable.description)}"')

    def _language(self, document: ScriptDocument) -> None:
        language = document.language
        self._emit("language:")
        self._emit(f'    default_locale: "{escape(language.default_locale)}"')
        self._emit(f'    additional_locales: "{escape(language.additional_locales)}"')
        self._emit(f"    all_additional_locales: {_literal(language.all_additional_locales)}")
        self._emit()

    def _connection(self, document: ScriptDocument) -> None:
        for key in sorted(document.connections):
            if key.startswith(CONNECTION_PREFIX):
                connection = document.connections[key]
                self._emit(f"{key}:")
                self._emit(
                    "    adaptive_response_allowed: "
                    + _literal(connection.adaptive_response_allowed)
                )
                self._emit()
                break

    def _topic(self, key: str, topic: Topic) -> None:
        self._emit(f"{key}:")
        self._emit(f'    label: "{escape(topic.label)}"')
        self._emit()
        self._emit(f'    description: "{self._text(topic.description)}"')
        self._emit()
        self._emit("    reasoning:")
        self._instructions(topic.reasoning.instructions)
        if topic.reasoning.actions:
            self._references(topic.reasoning.actions)
        if topic.actions:
            self._emit()
            self._emit("    actions:")
            for name in sorted(topic.actions):
                self._action(name, topic.actions[name])
        self._emit()

    def _instructions(self, instructions: str) -> None:
        self._emit(f"        instructions: {self.indicator}")
        lines = _lines(self.rewriter.rewrite(instructions)) if instructions else []
        if not lines:
            lines = [FALLBACK_INSTRUCTION_LINE]
        for line in lines:
            self._emit(f"            {self.line_prefix} {line}")

    def _references(self, references: Dict[str, TransitionRef]) -> None:
        self._emit("        actions:")
        for name in sorted(references):
            ref = references[name]
            self._emit(f"            {name}: {ref.target}")
            for param in ref.with_params:
                self._emit(f"                with {param} = ...")
            if ref.description is not None:
                self._emit(f'                description: "{self._text(ref.description)}"')
        self._emit()

    def _action(self, name: str, action: Action) -> None:
        self._emit(f"        {name}:")
        self._emit(f'            description: "{self._text(action.description)}"')
        if action.label is not None:
            self._emit(f'            label: "{escape(action.label)}"')
        self._emit(f"            require_user_confirmation: {self._flag(action.require_user_confirmation)}")
        self._emit(
            "            include_in_progress_indicator: "
            + self._flag(action.include_in_progress_indicator)
        )
        if action.source is not None and is_readable_source_name(action.source):
            self._emit(f'            source: "{escape(action.source)}"')
        self._emit(f'            target: "{escape(action.target)}"')
        if action.progress_indicator_message is not None:
            self._emit(
                f'            progress_indicator_message: "{self._text(action.progress_indicator_message)}"'
            )
        if action.inputs:
            self._emit()
            self._emit("            inputs:")
            for input_name in sorted(action.inputs):
                item = action.inputs[input_name]
                self._emit(f'                "{input_name}": {item.input_type}')
                if item.description is not None:
                    self._emit(f'                    description: "{self._text(item.description)}"')
                if item.label is not None:
                    self._emit(f'                    label: "{escape(item.label)}"')
                self._emit(f"                    is_required: {self._flag(item.is_required)}")
                self._emit(f"                    is_user_input: {self._flag(item.is_user_input)}")
                if item.complex_data_type_name is not None:
                    self._emit(
                        f'                    complex_data_type_name: "{escape(item.complex_data_type_name)}"'
                    )
        if action.outputs:
            self._emit()
            self._emit("            outputs:")
            for output_name in sorted(action.outputs):
                item = action.outputs[output_name]
                self._emit(f'                "{output_name}": {item.output_type}')
                if item.description is not None:
                    self._emit(f'                    description: "{self._text(item.description)}"')
                if item.label is not None:
                    self._emit(f'                    label: "{escape(item.label)}"')
                self._emit(f"                    is_displayable: {self._flag(item.is_displayable)}")
                self._emit(
                    f"                    is_used_by_planner: {self._flag(item.is_used_by_planner)}"
                )
                if item.complex_data_type_name is not None:
                    self._emit(
                        f'                    complex_data_type_name: "{escape(item.complex_data_type_name)}"'
                    )


def render_script(document: ScriptDocument, resolver: RuleResolver | None = None) -> str:
    """Serialize ``document`` to target script text."""

    return ScriptRenderer(resolver).render(document)


__all__ = ["ScriptRenderer", "is_readable_source_name", "render_script"]
