from __future__ import annotations

import json
import logging

import pytest
import yaml

from agent_script import (
    InputShapeError,
    build_document,
    convert,
    detect_legacy_placeholders,
    resolve_alert_message,
    resolve_status_suffix,
)


def test_billing_conversion(billing_agent) -> None:
    result = convert(billing_agent)
    text = result.output_text

    assert result.input_format == "plugins"
    assert result.topic_count == 5
    assert result.action_count == 1
    assert result.legacy_placeholders_found is True
    assert result.alert_message == resolve_alert_message()
    assert result.status_suffix == resolve_status_suffix()

    assert (
        '    instructions: "You assist {!@variables.CustomerName} with invoices. '
        'Maintain a formal and professional tone."'
    ) in text
    assert "        welcome: \"Hi, I'm Acme Bot. How can I help you today?\"" in text
    assert '  default_agent_user: "agentforce_service_agent@0Xx000000000001.ext"' in text
    assert '  developer_name: "ACME_BOT"' in text
    assert '  description: "Helps customers with billing."' in text
    assert '    additional_locales: "fr, de"' in text
    assert "connection messaging:" in text
    assert "{!$" not in text and "{$" not in text

    assert "            go_to_billing: @utils.transition to @topic.billing" in text
    assert (
        "            GetInvoice: @actions.GetInvoice\n"
        "                with InvoiceId = ...\n"
        "                with Notes = ...\n"
    ) in text
    assert '            target: "flow://Get_Invoice_Flow"' in text
    assert '            source: "Get_Invoice_Flow"' not in text
    assert "    Amount: linked number" in text
    assert "source: @action." not in text


def test_topic_order_in_output(billing_agent) -> None:
    text = convert(billing_agent).output_text
    keys = [line[:-1] for line in text.splitlines() if line.endswith(":") and not line[0].isspace()]
    assert keys == [
        "system",
        "config",
        "variables",
        "language",
        "connection messaging",
        "start_agent topic_selector",
        "topic ambiguous_question",
        "topic billing",
        "topic escalation",
        "topic off_topic",
    ]


def test_record_id_target(billing_agent) -> None:
    function = billing_agent["plugins"][0]["functions"][0]
    function.pop("invocationTargetName")
    function["invocationTargetId"] = "3A7x00000004CqWEAU"
    text = convert(billing_agent).output_text
    assert '            target: "flow://3A7x00000004CqWEAU"' in text


def test_json_and_yaml_text_convert_identically(billing_agent) -> None:
    from_mapping = convert(billing_agent).output_text
    assert convert(json.dumps(billing_agent)).output_text == from_mapping
    assert convert(yaml.safe_dump(billing_agent)).output_text == from_mapping
    assert convert(json.dumps(billing_agent).encode("utf-8")).output_text == from_mapping


@pytest.mark.parametrize(
    "source",
    [
        {"plugins": "nope"},
        {"plugins": [{"pluginType": "TOPIC"}]},
        "[1, 2]",
        "just a sentence",
        "",
        "   ",
        "key: [unclosed",
        b'{"name": "\xff\xfe"}',
        "[" * 100000,
    ],
)
def test_unreadable_input_raises(source) -> None:
    with pytest.raises(InputShapeError):
        convert(source)


def _nested_array_agent(levels: int) -> dict:
    prop: dict = {"type": "string"}
    for _ in range(levels):
        prop = {"type": "array", "items": prop}
    function = {"name": "Deep", "inputType": {"properties": {"x": prop}}}
    return {"plugins": [{"name": "Deep", "pluginType": "TOPIC", "functions": [function]}]}


@pytest.mark.parametrize("levels", [65, 200, 400])
def test_deeply_nested_property_types_raise(levels) -> None:
    with pytest.raises(InputShapeError):
        convert(_nested_array_agent(levels))
    with pytest.raises(InputShapeError):
        convert(json.dumps(_nested_array_agent(levels)))


def test_nested_property_types_at_the_limit_convert() -> None:
    result = convert(_nested_array_agent(64))
    assert result.action_count == 1
    assert "list[" * 64 + "string" + "]" * 64 in result.output_text


def test_deep_plain_nesting_raises() -> None:
    payload: dict = {}
    for _ in range(1000):
        payload = {"nested": payload}
    with pytest.raises(InputShapeError):
        convert({"name": "Deep", "extra": payload})


def test_shape_errors_are_listed() -> None:
    with pytest.raises(InputShapeError) as excinfo:
        convert({"plugins": "nope", "topics": 5})
    assert len(excinfo.value.errors) == 2
    assert excinfo.value.errors[0].startswith("plugins: ")


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ({}, "generic"),
        ({"plugins": [], "topics": [{"name": "a"}]}, "topics"),
        ({"plugins": [{"name": "x"}], "topics": [{"name": "a"}]}, "plugins"),
        ({"topics": []}, "generic"),
    ],
)
def test_input_format_detection(source, expected) -> None:
    assert convert(source).input_format == expected


def test_non_topic_plugins_still_use_plugin_shape() -> None:
    result = convert({"name": "Quiet", "plugins": [{"name": "x", "pluginType": "ACTION"}]})
    assert result.input_format == "plugins"
    assert result.topic_count == 4
    assert result.action_count == 0


def test_existing_off_topic_plugin_replaces_default() -> None:
    agent = {
        "plugins": [
            {"name": "Off Topic Handling", "pluginType": "TOPIC", "scope": "Stay focused."}
        ]
    }
    text = convert(agent).output_text
    assert "topic off_topic_handling:" in text
    assert "topic off_topic:" not in text
    assert "go_to_off_topic: @utils.transition to @topic.off_topic" in text


def test_voice_connection() -> None:
    text = convert({"name": "Caller", "voiceConfig": {"voice": "alto"}}).output_text
    assert "connection voice:" in text
    assert "connection messaging:" not in text


def test_rules_change_connection_and_system() -> None:
    rules = {
        "connection": {"fields": {"adaptive_response_allowed": {"default": False}}},
        "system": {"fields": {"instructions": {"default": "Be concise."}}},
    }
    text = convert({}, rules).output_text
    assert "    adaptive_response_allowed: False" in text
    assert '    instructions: "Be concise."' in text


def test_simple_shape_conversion() -> None:
    agent = {
        "name": "Helper Bot",
        "description": "Assists with orders.",
        "welcome_message": "Welcome!",
        "topics": [
            {
                "name": "Orders",
                "instructions": "Look up the order {!$OrderNumber}.",
                "actions": [
                    {
                        "name": "Find Order",
                        "invocation_target": "flow://Find_Order",
                        "inputs": {"order_number": {"type": "string", "required": True}},
                    }
                ],
            }
        ],
        "variables": [{"name": "Region", "type": "string", "source": "@User.Region"}],
    }
    result = convert(agent)
    text = result.output_text
    assert result.input_format == "topics"
    assert result.action_count == 1
    assert '    instructions: "Assists with orders."' in text
    assert '        welcome: "Welcome!"' in text
    assert '  default_agent_user: "agentforce_service_agent@example.ext"' in text
    assert '  developer_name: "HELPER_BOT"' in text
    assert "    Region: linked string\n        source: @User.Region" in text
    assert "            | Look up the order {!@variables.OrderNumber}." in text
    assert (
        "            Find_Order: @actions.Find_Order\n                with order_number = ..."
    ) in text


def test_generic_shape_uses_planner_role() -> None:
    result = convert({"name": "Solo", "plannerRole": "Help with {!$Topic}."})
    assert result.input_format == "generic"
    assert result.topic_count == 4
    assert '    instructions: "Help with {!@variables.Topic}."' in result.output_text
    assert '  developer_name: "SOLO"' in result.output_text


def test_placeholder_flags_without_legacy_syntax() -> None:
    result = convert({"name": "Clean", "plannerRole": "Help with {!@variables.Topic}."})
    assert result.legacy_placeholders_found is False
    assert result.alert_message == ""
    assert result.status_suffix == ""


def test_disabled_variable_conversion(billing_agent) -> None:
    result = convert(billing_agent, {"variable_conversion": {"enabled": False}})
    assert result.legacy_placeholders_found is False
    assert "{!$CustomerName}" in result.output_text


def test_custom_alert_text(billing_agent) -> None:
    rules = {"variable_conversion": {"alert_message": "Check vars", "status_suffix": "(vars)"}}
    result = convert(billing_agent, rules)
    assert result.alert_message == "Check vars"
    assert result.status_suffix == "(vars)"
    assert resolve_alert_message(rules) == "Check vars"
    assert resolve_status_suffix(rules) == "(vars)"


def test_unreadable_rules_fall_back_to_defaults(billing_agent) -> None:
    assert convert(billing_agent, "{not json: [").output_text == convert(billing_agent).output_text


def test_detect_legacy_placeholders() -> None:
    assert detect_legacy_placeholders("Hi {!$Name}") is True
    assert detect_legacy_placeholders("Hi {!@variables.Name}") is False
    disabled = {"variable_conversion": {"enabled": False}}
    assert detect_legacy_placeholders("Hi {!$Name}", disabled) is False


def test_build_document_exposes_tree(billing_agent) -> None:
    document = build_document(billing_agent)
    payload = document.to_dict()
    assert list(payload["connections"]) == ["connection messaging"]
    billing = payload["topics"]["topic billing"]
    assert billing["actions"]["GetInvoice"]["inputs"]["InvoiceId"]["is_required"] is True
    assert payload["variables"]["Amount"]["source"] == "@action.GetInvoice.Output:Amount"


def test_conversion_logs_event(billing_agent, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="agent_script"):
        convert(billing_agent)
    events = [getattr(record, "event", None) for record in caplog.records]
    assert "conversion:completed" in events
