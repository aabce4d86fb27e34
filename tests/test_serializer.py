from __future__ import annotations

import pytest

from agent_script.converter import build_document
from agent_script.document import (
    Action,
    ActionInputDef,
    ConfigSection,
    LanguageSection,
    ReasoningSection,
    ScriptDocument,
    SystemSection,
    Topic,
    Variable,
)
from agent_script.rules import RuleResolver
from agent_script.serializer import is_readable_source_name, render_script

GENERIC_PREFIX = """\
system:
    instructions: "You are an AI Agent."
    messages:
        welcome: "Hi, I'm an AI assistant. How can I help you?"
        error: "Sorry, it looks like something has gone wrong."

config:
  default_agent_user: "agentforce_service_agent@example.ext"
  agent_label: "Custom Agent"
  developer_name: "AGENT"
  description: "Service Agent"


language:
    default_locale: "en_US"
    additional_locales: ""
    all_additional_locales: False

connection messaging:
    adaptive_response_allowed: True

start_agent topic_selector:
    label: "Topic Selector"

    description: "Welcome the user and determine the appropriate topic based on user input"

    reasoning:
        instructions: ->
            | Select the best tool to call based on conversation history and user's intent.
        actions:
            go_to_ambiguous_question: @utils.transition to @topic.ambiguous_question
            go_to_escalation: @utils.transition to @topic.escalation
            go_to_off_topic: @utils.transition to @topic.off_topic
"""


def _document(**topic_overrides) -> ScriptDocument:
    action = Action(
        description='Say "hi"',
        target="flow://Greet",
        label="Greet",
        source="Greet_Customer",
        inputs={
            "name": ActionInputDef("string", is_required=True, is_user_input=True),
            "age": ActionInputDef("number"),
        },
    )
    topic = Topic(
        label="Greeting",
        description="Greets people",
        reasoning=ReasoningSection(instructions="Line one\nLine two"),
        actions={"Greet": action},
    )
    return ScriptDocument(
        system=SystemSection("Be nice to {!$Name}.", "Hello", "Oops"),
        config=ConfigSection("user@example.ext", "Bot", "BOT", "A bot"),
        language=LanguageSection("en_US", "fr"),
        variables={
            "Zeta": Variable("mutable", "string", "Last"),
            "Alpha": Variable("linked", "string", "First", source="@MessagingSession.Id"),
            "Beta": Variable("linked", "number", "Hidden", source="@action.F.Output:Beta"),
        },
        topics={"topic greeting": topic, **topic_overrides},
    )


def test_generic_output_prefix() -> None:
    text = render_script(build_document({}))
    assert text.startswith(GENERIC_PREFIX)
    assert text.endswith("\n")
    assert not text.endswith("\n\n")


def test_rendering_is_deterministic() -> None:
    document = build_document({})
    assert render_script(document) == render_script(document)


def test_section_order_and_variables() -> None:
    text = render_script(_document())
    order = [text.index(section) for section in ("system:", "config:", "variables:", "language:")]
    assert order == sorted(order)
    assert text.index("    Alpha:") < text.index("    Beta:") < text.index("    Zeta:")
    assert "        source: @MessagingSession.Id" in text
    assert "@action.F" not in text
    assert '    instructions: "Be nice to {!@variables.Name}."' in text


def test_topic_and_action_layout() -> None:
    lines = render_script(_document()).splitlines()
    start = lines.index("topic greeting:")
    assert lines[start + 1 : start + 9] == [
        '    label: "Greeting"',
        "",
        '    description: "Greets people"',
        "",
        "    reasoning:",
        "        instructions: ->",
        "            | Line one",
        "            | Line two",
    ]
    action = lines.index("        Greet:")
    assert lines[action + 1 : action + 7] == [
        '            description: "Say \\"hi\\""',
        '            label: "Greet"',
        "            require_user_confirmation: False",
        "            include_in_progress_indicator: False",
        '            source: "Greet_Customer"',
        '            target: "flow://Greet"',
    ]
    assert lines.index('                "age": number') < lines.index('                "name": string')


def test_empty_variables_section_is_omitted() -> None:
    document = _document()
    document.variables = {}
    assert "variables:" not in render_script(document)


def test_format_overrides() -> None:
    resolver = RuleResolver.from_source(
        {
            "output_format": {
                "reasoning": {"instructions_format": {"indicator": "=>", "line_prefix": ">"}},
                "action_definition": {"boolean_format": {"true": "yes", "false": "no"}},
            }
        }
    )
    text = render_script(_document(), resolver)
    assert "        instructions: =>" in text
    assert "            > Line one" in text
    assert "            require_user_confirmation: no" in text
    assert "                    is_required: yes" in text
    # Section booleans keep the fixed literals.
    assert "    all_additional_locales: False" in text


def test_empty_instructions_use_fallback_line() -> None:
    document = _document()
    document.topics["topic greeting"].reasoning.instructions = ""
    assert "            | Handle user requests appropriately." in render_script(document)


def test_opaque_action_source_is_omitted() -> None:
    document = _document()
    document.topics["topic greeting"].actions["Greet"].source = "179000000000001"
    assert "source:" not in render_script(document).split("topic greeting:")[1]


@pytest.mark.parametrize(
    ("source", "readable"),
    [
        ("Get_Invoice_Flow", True),
        ("My Flow", True),
        ("GetInvoice", True),
        ("a-b.c", True),
        ("0Xx000000000001", False),
        ("3A7x00000004CqWEAU", False),
        ("Flow123", False),
    ],
)
def test_is_readable_source_name(source, readable) -> None:
    assert is_readable_source_name(source) is readable
