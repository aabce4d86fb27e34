from __future__ import annotations

import pytest

from agent_script.text import (
    clean_description,
    escape,
    format_label,
    format_locales,
    generate_developer_name,
    merge_description_and_scope,
    sanitize_action_name,
    sanitize_topic_name,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("MyTopic", "mytopic"),
        ("My Topic", "my_topic"),
        ("My.Topic.Name", "my_topic_name"),
        ("Topic@123", "topic_123"),
        ("__Leading__and__trailing__", "leading_and_trailing"),
        (None, "unnamed"),
        ("___", ""),
    ],
)
def test_sanitize_topic_name(raw, expected) -> None:
    assert sanitize_topic_name(raw) == expected


def test_sanitize_action_name_keeps_case() -> None:
    assert sanitize_action_name("GetData") == "GetData"
    assert sanitize_action_name("Get Data-Now") == "Get_Data_Now"
    assert sanitize_action_name(None) == "action"


def test_generate_developer_name() -> None:
    assert generate_developer_name("My Agent") == "MY_AGENT"
    assert generate_developer_name("My@Agent#1") == "MYAGENT1"
    assert generate_developer_name("Test_Name") == "TEST_NAME"
    assert len(generate_developer_name("x " * 100)) == 80


def test_format_label() -> None:
    assert format_label("my_topic") == "My Topic"
    assert format_label("order status") == "Order Status"
    assert format_label("mixedCase_name") == "MixedCase Name"


def test_clean_description_strips_tags_and_whitespace() -> None:
    assert clean_description("Hello #Tag# World") == "Hello World"
    assert clean_description("#Start# text #End#") == "text"
    assert clean_description("  a\n\tb  ") == "a b"
    assert clean_description(None) == ""


def test_merge_description_and_scope() -> None:
    assert merge_description_and_scope("Desc", "Scope", "fallback") == "Desc Scope"
    assert merge_description_and_scope("Desc", None, "fallback") == "Desc"
    assert merge_description_and_scope(None, None, "Billing") == "Handles Billing requests"


def test_format_locales() -> None:
    assert format_locales(["en_US", "es_ES"]) == "en_US, es_ES"
    assert format_locales(None) == ""


def test_escape() -> None:
    assert escape("plain") == "plain"
    assert escape('say "hi"') == 'say \\"hi\\"'
    assert escape("a\nb\tc\rd") == "a\\nb\\tc\\rd"
    assert escape("back\\slash") == "back\\\\slash"
