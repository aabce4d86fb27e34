"""Shape detection, dispatch and the public conversion entry points."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .document import (
    CONNECTION_PREFIX,
    ConfigSection,
    ConnectionSection,
    LanguageSection,
    ScriptDocument,
    SystemSection,
)
from .loader import document_text, parse_definition
from .logging import get_logger, log_event
from .models import AgentDefinition
from .placeholders import PlaceholderRewriter
from .report import ReportMetadata
from .rules import RuleResolver
from .serializer import render_script
from .text import clean_description, format_locales, generate_developer_name
from .topics import install_topics, plugin_topics, simple_topics
from .variables import declared_variables, extract_function_variables

LOGGER = get_logger("converter")

TONE_SENTENCES: Dict[str, str] = {
    "CASUAL": "Maintain a casual and friendly tone.",
    "FORMAL": "Maintain a formal and professional tone.",
    "NEUTRAL": "Maintain a neutral and balanced tone.",
}


@dataclass(slots=True)
class ConversionResult:
    """Outcome of :func:`convert`."""

    output_text: str
    legacy_placeholders_found: bool
    topic_count: int
    action_count: int
    alert_message: str
    status_suffix: str
    input_format: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_text": self.output_text,
            "legacy_placeholders_found": self.legacy_placeholders_found,
            "topic_count": self.topic_count,
            "action_count": self.action_count,
            "alert_message": self.alert_message,
            "status_suffix": self.status_suffix,
            "input_format": self.input_format,
        }

    def to_metadata(self) -> ReportMetadata:
        return ReportMetadata(
            input_format=self.input_format,
            topic_count=self.topic_count,
            action_count=self.action_count,
            has_variables=self.legacy_placeholders_found,
            alert_message=self.alert_message or None,
            status_suffix=self.status_suffix or None,
        )


def _connection_key(definition: AgentDefinition) -> str:
    kind = "voice" if definition.voice_config is not None else "messaging"
    return CONNECTION_PREFIX + kind


def _system_instructions(
    definition: AgentDefinition, resolver: RuleResolver, rewriter: PlaceholderRewriter
) -> str:
    parts = []
    if definition.planner_role is not None:
        parts.append(rewriter.rewrite(definition.planner_role))
    if definition.planner_company is not None:
        parts.append(rewriter.rewrite(definition.planner_company))
    tone = TONE_SENTENCES.get(definition.planner_tone_type or "")
    if tone:
        parts.append(tone)
    if definition.user_location is not None:
        parts.append(f"User location: {definition.user_location}.")
    return " ".join(parts) if parts else resolver.system_instructions


def _welcome_message(definition: AgentDefinition) -> str:
    if definition.welcome_message is not None:
        return definition.welcome_message
    if definition.welcome_message_alt is not None:
        return definition.welcome_message_alt
    label = definition.label or definition.name or "AI Assistant"
    return f"Hi, I'm {label}. How can I help you today?"


def _from_plugins(
    definition: AgentDefinition, resolver: RuleResolver, rewriter: PlaceholderRewriter
) -> ScriptDocument:
    document = ScriptDocument(
        system=SystemSection(
            instructions=_system_instructions(definition, resolver, rewriter),
            welcome=_welcome_message(definition),
            error=resolver.error_message,
        ),
        config=ConfigSection(
            default_agent_user=f"agentforce_service_agent@{definition.id or 'example'}.ext",
            agent_label=definition.label or definition.name or "Agentforce Service Agent",
            developer_name=generate_developer_name(definition.name or definition.label or "Agent"),
            description=clean_description(definition.description),
        ),
        language=LanguageSection(
            default_locale=definition.locale or resolver.default_locale,
            additional_locales=format_locales(definition.secondary_locales),
            all_additional_locales=resolver.all_additional_locales,
        ),
        variables=extract_function_variables(definition.plugins, resolver),
    )
    install_topics(document, plugin_topics(definition.plugins, resolver, rewriter), resolver)
    return document


def _service_agent(
    definition: AgentDefinition,
    resolver: RuleResolver,
    *,
    instructions: str,
    welcome: str,
    developer_source: str,
) -> ScriptDocument:
    return ScriptDocument(
        system=SystemSection(
            instructions=instructions, welcome=welcome, error=resolver.error_message
        ),
        config=ConfigSection(
            default_agent_user="agentforce_service_agent@example.ext",
            agent_label=definition.label or definition.name or "Custom Agent",
            developer_name=generate_developer_name(developer_source),
            description=definition.description or "Service Agent",
        ),
        language=LanguageSection(
            default_locale=definition.locale or resolver.default_locale,
            all_additional_locales=resolver.all_additional_locales,
        ),
    )


def _from_topics(definition: AgentDefinition, resolver: RuleResolver) -> ScriptDocument:
    document = _service_agent(
        definition,
        resolver,
        instructions=definition.description or resolver.system_instructions,
        welcome=definition.welcome_message or resolver.welcome_message,
        developer_source=definition.name or definition.label or "Agent",
    )
    document.variables = declared_variables(definition.variables)
    install_topics(document, simple_topics(definition.topics), resolver)
    return document


def _generic(definition: AgentDefinition, resolver: RuleResolver) -> ScriptDocument:
    document = _service_agent(
        definition,
        resolver,
        instructions=definition.planner_role or resolver.system_instructions,
        welcome=resolver.welcome_message,
        developer_source=definition.name or "Agent",
    )
    install_topics(document, {}, resolver)
    return document


def _build(definition: AgentDefinition, resolver: RuleResolver) -> ScriptDocument:
    input_format = definition.input_format
    if input_format == "plugins":
        document = _from_plugins(definition, resolver, PlaceholderRewriter(resolver))
    elif input_format == "topics":
        document = _from_topics(definition, resolver)
    else:
        document = _generic(definition, resolver)
    document.connections[_connection_key(definition)] = ConnectionSection(
        adaptive_response_allowed=resolver.adaptive_response_allowed
    )
    return document


def build_document(source: Any, rules: Any = None) -> ScriptDocument:
    """Return the in-memory script document for ``source`` without rendering it."""

    return _build(parse_definition(source), RuleResolver.from_source(rules))


def _placeholder_status(text: str, resolver: RuleResolver) -> Tuple[bool, str, str]:
    found = PlaceholderRewriter(resolver).has_legacy_placeholder(text)
    if not found:
        return False, "", ""
    return True, resolver.alert_message, resolver.status_suffix


def convert(source: Any, rules: Any = None) -> ConversionResult:
    """Convert an agent definition into target script text.

    ``source`` is a mapping or JSON/YAML text; ``rules`` is an optional
    override document in any form :func:`~agent_script.rules.load_rules`
    accepts. Raises :class:`InputShapeError` for unreadable input; rules never
    cause a failure.
    """

    resolver = RuleResolver.from_source(rules)
    definition = parse_definition(source)
    document = _build(definition, resolver)
    output_text = render_script(document, resolver)
    found, alert_message, status_suffix = _placeholder_status(document_text(source), resolver)

    result = ConversionResult(
        output_text=output_text,
        legacy_placeholders_found=found,
        topic_count=len(document.topics),
        action_count=document.action_count,
        alert_message=alert_message,
        status_suffix=status_suffix,
        input_format=definition.input_format,
    )
    log_event(
        LOGGER,
        "conversion:completed",
        {
            "input_format": result.input_format,
            "topics": result.topic_count,
            "actions": result.action_count,
            "variables": len(document.variables),
            "legacy_placeholders": found,
        },
    )
    return result


def detect_legacy_placeholders(text: str, rules: Any = None) -> bool:
    return PlaceholderRewriter(RuleResolver.from_source(rules)).has_legacy_placeholder(text)


def resolve_alert_message(rules: Any = None) -> str:
    return RuleResolver.from_source(rules).alert_message


def resolve_status_suffix(rules: Any = None) -> str:
    return RuleResolver.from_source(rules).status_suffix


__all__ = [
    "ConversionResult",
    "build_document",
    "convert",
    "detect_legacy_placeholders",
    "resolve_alert_message",
    "resolve_status_suffix",
]
