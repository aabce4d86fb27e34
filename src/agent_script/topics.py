"""Topic and action synthesis.

Builds one topic per topic plugin (or per pre-structured topic), the
``start_agent topic_selector`` dispatcher and the escalation, off-topic and
ambiguous-question topics every script must carry.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .document import (
    SELECTOR_KEY,
    TOPIC_PREFIX,
    Action,
    ActionInputDef,
    ActionOutputDef,
    ReasoningSection,
    ScriptDocument,
    Topic,
    TransitionRef,
)
from .logging import context, get_logger
from .models import ActionInput, ActionProperty, Function, Plugin, PropertySet, TopicInput
from .placeholders import PlaceholderRewriter
from .rules import RuleResolver
from .text import (
    clean_description,
    format_label,
    merge_description_and_scope,
    sanitize_action_name,
    sanitize_topic_name,
)
from .types import map_property_type

LOGGER = get_logger("topics")

FALLBACK_INSTRUCTIONS = "Handle user requests appropriately."
SECURITY_TOPIC_MARKERS = ("off_topic", "offtopic", "ambiguous", "general")

SELECTOR_LABEL = "Topic Selector"
SELECTOR_DESCRIPTION = "Welcome the user and determine the appropriate topic based on user input"
SELECTOR_INSTRUCTIONS = (
    "Select the best tool to call based on conversation history and user's intent."
)
REQUIRED_TRANSITIONS = ("escalation", "off_topic", "ambiguous_question")

ESCALATION_LABEL = "Escalation"
ESCALATION_DESCRIPTION = (
    "Handles requests from users who want to transfer or escalate their "
    "conversation to a live human agent."
)
ESCALATION_INSTRUCTIONS = (
    "If a user explicitly asks to transfer to a live agent, escalate the conversation.\n"
    "If escalation to a live agent fails for any reason, acknowledge the issue and ask "
    "the user whether they would like to log a support case instead."
)
ESCALATE_ACTION = "escalate_to_human"
ESCALATE_TARGET = "@utils.escalate"
ESCALATE_DESCRIPTION = "Call this tool to escalate to a human agent."

OFF_TOPIC_LABEL = "Off Topic"
OFF_TOPIC_DESCRIPTION = (
    "Redirect conversation to relevant topics when user request goes off-topic"
)
OFF_TOPIC_INSTRUCTIONS = (
    "Your job is to redirect the conversation to relevant topics politely and succinctly.\n"
    "The user request is off-topic. NEVER answer general knowledge questions. Only respond "
    "to general greetings and questions about your capabilities.\n"
    "Do not acknowledge the user's off-topic question. Redirect the conversation by asking "
    "how you can help with questions related to the pre-defined topics."
)

AMBIGUOUS_LABEL = "Ambiguous Question"
AMBIGUOUS_DESCRIPTION = (
    "Redirect conversation to relevant topics when user request is too ambiguous"
)
AMBIGUOUS_INSTRUCTIONS = (
    "Your job is to help the user provide clearer, more focused requests for better "
    "assistance.\n"
    "Do not answer any of the user's ambiguous questions. Do not invoke any actions.\n"
    "Politely guide the user to provide more specific details about their request.\n"
    "Encourage them to focus on their most important concern first to ensure you can "
    "provide the most helpful response."
)


def transition_to(topic_name: str) -> str:
    return f"@utils.transition to @topic.{topic_name}"


def template_transitions(resolver: RuleResolver, template: str) -> Dict[str, TransitionRef]:
    """Template actions normalized to transition references."""

    return {
        key: TransitionRef(target=action.target, description=action.description)
        for key, action in resolver.template_actions(template).items()
    }


def reasoning_references(actions: Mapping[str, Action]) -> Dict[str, TransitionRef]:
    """One ``@actions.<name>`` reference per action, its inputs sorted."""

    return {
        name: TransitionRef(target=f"@actions.{name}", with_params=sorted(action.inputs))
        for name, action in actions.items()
    }


def _security_block(resolver: RuleResolver) -> List[str]:
    rules = resolver.security_rules
    if not rules:
        return []
    return ["Rules:"] + [f"  {rule}" for rule in rules]


# ----- Capability bundle shape ---------------------------------------------


def build_action_target(func: Function, resolver: RuleResolver) -> str:
    target_type = func.invocation_target_type or "action"
    mapped = resolver.target_types.get(target_type, target_type)
    identifier = func.invocation_target_name or func.invocation_target_id or func.name
    return f"{mapped}://{identifier}"


def _detailed_inputs(property_set: PropertySet, resolver: RuleResolver) -> Dict[str, ActionInputDef]:
    required = set(property_set.required or ())
    inputs: Dict[str, ActionInputDef] = {}
    for raw_name, prop in (property_set.properties or {}).items():
        name = raw_name.replace("Input:", "")
        is_required = raw_name in required
        inputs[name] = ActionInputDef(
            input_type=map_property_type(prop.prop_type, prop, resolver),
            is_required=is_required,
            is_user_input=prop.is_user_input if prop.is_user_input is not None else is_required,
            description=prop.description or prop.title,
            label=prop.title or name,
            const_value=prop.const_value if prop.const_value is not None else prop.default_value,
            complex_data_type_name=prop.lightning_type,
        )
    return inputs


def _detailed_outputs(
    property_set: PropertySet, resolver: RuleResolver
) -> Dict[str, ActionOutputDef]:
    outputs: Dict[str, ActionOutputDef] = {}
    for raw_name, prop in (property_set.properties or {}).items():
        name = raw_name.replace("Output:", "")
        outputs[name] = ActionOutputDef(
            output_type=map_property_type(prop.prop_type, prop, resolver),
            is_displayable=bool(prop.is_displayable),
            is_used_by_planner=prop.is_used_by_planner is not False,
            description=prop.description or prop.title,
            label=prop.title or name,
            complex_data_type_name=prop.lightning_type,
        )
    return outputs


def build_function_action(func: Function, resolver: RuleResolver) -> Action:
    action_name = sanitize_action_name(func.identifier)
    action = Action(
        description=clean_description(func.description or func.label or action_name),
        target=build_action_target(func, resolver),
        label=func.label,
        require_user_confirmation=bool(func.require_user_confirmation),
        include_in_progress_indicator=bool(func.include_in_progress_indicator),
        progress_indicator_message=func.progress_indicator_message,
        source=func.source,
    )
    if func.input_type is not None:
        action.inputs = _detailed_inputs(func.input_type, resolver)
    if func.output_type is not None:
        action.outputs = _detailed_outputs(func.output_type, resolver)
    return action


def _plugin_instructions(
    plugin: Plugin, topic_name: str, resolver: RuleResolver, rewriter: PlaceholderRewriter
) -> str:
    parts: List[str] = []
    if plugin.scope is not None:
        parts.append(rewriter.rewrite(plugin.scope))
    for definition in plugin.instruction_definitions or ():
        if definition.description is not None:
            parts.append(rewriter.rewrite(definition.description))
    if any(marker in topic_name for marker in SECURITY_TOPIC_MARKERS):
        parts.extend(_security_block(resolver))
    return "\n".join(parts) if parts else FALLBACK_INSTRUCTIONS


def build_plugin_topic(
    plugin: Plugin, resolver: RuleResolver, rewriter: PlaceholderRewriter
) -> Topic:
    topic_name = sanitize_topic_name(plugin.identifier)
    actions: Dict[str, Action] = {}
    for func in plugin.functions or ():
        action_name = sanitize_action_name(func.identifier)
        if action_name in actions:
            LOGGER.warning(
                "Duplicate action %r in topic %r; keeping the first definition",
                action_name,
                topic_name,
                extra=context(topic=topic_name, action=action_name),
            )
            continue
        actions[action_name] = build_function_action(func, resolver)

    return Topic(
        label=plugin.label or format_label(plugin.name),
        description=merge_description_and_scope(
            plugin.description, plugin.scope, plugin.label or plugin.name
        ),
        reasoning=ReasoningSection(
            instructions=_plugin_instructions(plugin, topic_name, resolver, rewriter),
            actions=reasoning_references(actions),
        ),
        actions=actions,
    )


def plugin_topics(
    plugins: Optional[Iterable[Plugin]], resolver: RuleResolver, rewriter: PlaceholderRewriter
) -> Dict[str, Topic]:
    """Topics keyed ``topic <name>`` for every ``TOPIC`` plugin, first name wins."""

    topics: Dict[str, Topic] = {}
    for plugin in plugins or ():
        if not plugin.is_topic:
            continue
        key = TOPIC_PREFIX + sanitize_topic_name(plugin.identifier)
        if key in topics:
            LOGGER.warning(
                "Duplicate topic %r; keeping the first definition",
                key,
                extra=context(topic=key[len(TOPIC_PREFIX):]),
            )
            continue
        topics[key] = build_plugin_topic(plugin, resolver, rewriter)
    return topics


# ----- Pre-structured shape ------------------------------------------------


def _simple_inputs(entries: Mapping[str, ActionProperty]) -> Dict[str, ActionInputDef]:
    return {
        name: ActionInputDef(
            input_type=entry.prop_type or "string",
            is_required=bool(entry.required),
            is_user_input=entry.is_user_input is not False,
            description=entry.description,
            label=entry.label or name,
            const_value=entry.default_value,
            complex_data_type_name=entry.complex_type or entry.complex_data_type_name,
        )
        for name, entry in entries.items()
    }


def _simple_outputs(entries: Mapping[str, ActionProperty]) -> Dict[str, ActionOutputDef]:
    return {
        name: ActionOutputDef(
            output_type=entry.prop_type or "string",
            is_displayable=bool(entry.is_displayable),
            is_used_by_planner=entry.is_used_by_planner is not False,
            description=entry.description,
            label=entry.label or name,
            complex_data_type_name=entry.complex_type or entry.complex_data_type_name,
        )
        for name, entry in entries.items()
    }


def simple_actions(entries: Optional[Sequence[ActionInput]], topic_name: str) -> Dict[str, Action]:
    """Detailed actions of a pre-structured topic.

    Transition and escalate entries are routing, not callable actions, and are
    skipped.
    """

    actions: Dict[str, Action] = {}
    for entry in entries or ():
        if entry.is_transition or entry.action_type == "escalate":
            continue
        name = sanitize_action_name(entry.name or entry.id)
        if name in actions:
            LOGGER.warning(
                "Duplicate action %r in topic %r; keeping the first definition",
                name,
                topic_name,
                extra=context(topic=topic_name, action=name),
            )
            continue
        action = Action(
            description=entry.description or name,
            target=entry.invocation_target or entry.target_name or f"action://{name}",
            label=entry.label,
            require_user_confirmation=bool(entry.require_user_confirmation),
            include_in_progress_indicator=bool(entry.include_in_progress_indicator),
            progress_indicator_message=entry.progress_indicator_message,
            source=entry.source,
        )
        if entry.inputs:
            action.inputs = _simple_inputs(entry.inputs)
        if entry.outputs:
            action.outputs = _simple_outputs(entry.outputs)
        actions[name] = action
    return actions


def build_simple_topic(entry: TopicInput, topic_name: str) -> Topic:
    actions = simple_actions(entry.actions, topic_name)
    return Topic(
        label=entry.label or format_label(topic_name),
        description=merge_description_and_scope(entry.description, entry.scope, topic_name),
        reasoning=ReasoningSection(
            instructions=entry.instructions or entry.reasoning or FALLBACK_INSTRUCTIONS,
            actions=reasoning_references(actions),
        ),
        actions=actions,
    )


def simple_topics(entries: Optional[Iterable[TopicInput]]) -> Dict[str, Topic]:
    topics: Dict[str, Topic] = {}
    for entry in entries or ():
        topic_name = sanitize_topic_name(entry.name or entry.id)
        key = TOPIC_PREFIX + topic_name
        if key in topics:
            LOGGER.warning(
                "Duplicate topic %r; keeping the first definition",
                key,
                extra=context(topic=key[len(TOPIC_PREFIX):]),
            )
            continue
        topics[key] = build_simple_topic(entry, topic_name)
    return topics


# ----- Selector and default topics -----------------------------------------


def build_topic_selector(topic_names: Iterable[str], resolver: RuleResolver) -> Topic:
    """Dispatcher topic; synthesized transitions beat template ones, which beat built-ins."""

    actions: Dict[str, TransitionRef] = {}
    for name in topic_names:
        actions.setdefault(f"go_to_{name}", TransitionRef(target=transition_to(name)))
    for key, ref in template_transitions(resolver, "topic_selector").items():
        actions.setdefault(key, ref)
    for name in REQUIRED_TRANSITIONS:
        actions.setdefault(f"go_to_{name}", TransitionRef(target=transition_to(name)))

    return Topic(
        label=resolver.lookup("templates.topic_selector.label", SELECTOR_LABEL),
        description=resolver.lookup("templates.topic_selector.description", SELECTOR_DESCRIPTION),
        reasoning=ReasoningSection(
            instructions=resolver.lookup(
                "templates.topic_selector.reasoning.instructions", SELECTOR_INSTRUCTIONS
            ),
            actions=actions,
        ),
    )


def build_escalation_topic(resolver: RuleResolver) -> Topic:
    actions = template_transitions(resolver, "escalation")
    actions.setdefault(
        ESCALATE_ACTION, TransitionRef(target=ESCALATE_TARGET, description=ESCALATE_DESCRIPTION)
    )
    return Topic(
        label=resolver.lookup("templates.escalation.label", ESCALATION_LABEL),
        description=resolver.lookup("templates.escalation.description", ESCALATION_DESCRIPTION),
        reasoning=ReasoningSection(
            instructions=resolver.lookup(
                "templates.escalation.reasoning.instructions", ESCALATION_INSTRUCTIONS
            ),
            actions=actions,
        ),
    )


def _guarded_topic(
    template: str, label: str, description: str, instructions: str, resolver: RuleResolver
) -> Topic:
    base = resolver.lookup(
        f"templates.{template}.base_instructions",
        resolver.lookup(f"templates.{template}.reasoning.instructions", instructions),
    )
    rules = resolver.security_rules
    if resolver.lookup(f"templates.{template}.include_security_rules", True) and rules:
        base = base + "\nRules:\n  " + "\n  ".join(rules)
    return Topic(
        label=resolver.lookup(f"templates.{template}.label", label),
        description=resolver.lookup(f"templates.{template}.description", description),
        reasoning=ReasoningSection(
            instructions=base, actions=template_transitions(resolver, template)
        ),
    )


def build_off_topic(resolver: RuleResolver) -> Topic:
    return _guarded_topic(
        "off_topic", OFF_TOPIC_LABEL, OFF_TOPIC_DESCRIPTION, OFF_TOPIC_INSTRUCTIONS, resolver
    )


def build_ambiguous_topic(resolver: RuleResolver) -> Topic:
    return _guarded_topic(
        "ambiguous_question",
        AMBIGUOUS_LABEL,
        AMBIGUOUS_DESCRIPTION,
        AMBIGUOUS_INSTRUCTIONS,
        resolver,
    )


def ensure_default_topics(document: ScriptDocument, resolver: RuleResolver) -> None:
    """Add escalation, off-topic and ambiguous topics unless a key already covers them."""

    if not document.has_topic_like("escalation"):
        document.topics[TOPIC_PREFIX + "escalation"] = build_escalation_topic(resolver)
    if not (document.has_topic_like("off_topic") or document.has_topic_like("offtopic")):
        document.topics[TOPIC_PREFIX + "off_topic"] = build_off_topic(resolver)
    if not document.has_topic_like("ambiguous"):
        document.topics[TOPIC_PREFIX + "ambiguous_question"] = build_ambiguous_topic(resolver)


def install_topics(
    document: ScriptDocument,
    topics: Mapping[str, Topic],
    resolver: RuleResolver,
) -> None:
    """Place the selector, the synthesized topics and the defaults on ``document``."""

    names = [key[len(TOPIC_PREFIX):] for key in topics]
    document.topics[SELECTOR_KEY] = build_topic_selector(names, resolver)
    document.topics.update(topics)
    ensure_default_topics(document, resolver)


__all__ = [
    "build_action_target",
    "build_escalation_topic",
    "build_off_topic",
    "build_ambiguous_topic",
    "build_plugin_topic",
    "build_topic_selector",
    "ensure_default_topics",
    "install_topics",
    "plugin_topics",
    "reasoning_references",
    "simple_topics",
]
