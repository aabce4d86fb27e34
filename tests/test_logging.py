from __future__ import annotations

import json
import logging

import pytest

from agent_script.logging import CONTEXT_FIELDS, context, get_logger
from agent_script.models import Plugin
from agent_script.placeholders import PlaceholderRewriter
from agent_script.rules import RuleResolver
from agent_script.topics import plugin_topics


def _format(record: logging.LogRecord) -> dict:
    formatter = get_logger("topics").handlers[0].formatter
    return json.loads(formatter.format(record))


def _record(msg: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("agent_script.topics", logging.WARNING, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_carries_context_fields() -> None:
    entry = _format(_record("Duplicate action", **context(topic="billing", action="GetInvoice")))
    assert entry["level"] == "WARNING"
    assert entry["component"] == "topics"
    assert entry["msg"] == "Duplicate action"
    assert entry["context"] == {"topic": "billing", "action": "GetInvoice"}
    assert "event" not in entry


def test_formatter_carries_event_stats() -> None:
    record = _record(
        "event=conversion:completed", event="conversion:completed", payload={"topic_count": 5}
    )
    entry = _format(record)
    assert entry["event"] == "conversion:completed"
    assert entry["stats"] == {"topic_count": 5}
    assert "context" not in entry


def test_context_rejects_unknown_fields() -> None:
    assert set(context(pattern="x", rules_source="text")) <= set(CONTEXT_FIELDS)
    with pytest.raises(ValueError):
        context(plugin="x")


def test_duplicate_topic_warning_names_topic(caplog) -> None:
    resolver = RuleResolver()
    plugins = [
        Plugin.model_validate({"name": "Orders", "pluginType": "TOPIC"}),
        Plugin.model_validate({"name": "orders", "pluginType": "TOPIC"}),
    ]
    with caplog.at_level(logging.WARNING, logger="agent_script"):
        plugin_topics(plugins, resolver, PlaceholderRewriter(resolver))
    topics = [getattr(record, "topic", None) for record in caplog.records]
    assert topics == ["orders"]


def test_unreadable_rules_warning_names_source(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="agent_script"):
        RuleResolver.from_source("{not json: [")
    sources = [getattr(record, "rules_source", None) for record in caplog.records]
    assert sources == ["text"]
