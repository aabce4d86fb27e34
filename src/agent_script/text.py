"""Name, label and description helpers shared by the converter stages."""

from __future__ import annotations

import re
from typing import Iterable, Optional

_TAG_RE = re.compile(r"#[A-Za-z]+#")
_WHITESPACE_RE = re.compile(r"\s+")


def _underscore_join(name: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in name)
    return "_".join(part for part in cleaned.split("_") if part)


def sanitize_topic_name(name: Optional[str]) -> str:
    """Return a lower-case, underscore-separated topic identifier.

    >>> sanitize_topic_name("Order Status (v2)")
    'order_status_v2'
    """

    return _underscore_join("unnamed" if name is None else name).lower()


def sanitize_action_name(name: Optional[str]) -> str:
    """Like :func:`sanitize_topic_name` but keeps the original casing."""

    return _underscore_join("action" if name is None else name)


def generate_developer_name(name: str) -> str:
    kept = "".join(ch for ch in name if ch.isalnum() or ch.isspace() or ch == "_")
    return "_".join(kept.split()).upper()[:80]


def format_label(name: str) -> str:
    words = name.replace("_", " ").split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def clean_description(text: Optional[str]) -> str:
    """Strip ``#Tag#`` markers and collapse whitespace."""

    if text is None:
        return ""
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub("", text)).strip()


def merge_description_and_scope(
    description: Optional[str], scope: Optional[str], fallback_name: str
) -> str:
    parts = [clean_description(value) for value in (description, scope) if value is not None]
    if not parts:
        return f"Handles {fallback_name} requests"
    return " ".join(parts)


def format_locales(locales: Optional[Iterable[str]]) -> str:
    return ", ".join(locales) if locales else ""


def escape(text: str) -> str:
    """Escape ``text`` for a double-quoted script scalar."""

    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


__all__ = [
    "clean_description",
    "escape",
    "format_label",
    "format_locales",
    "generate_developer_name",
    "merge_description_and_scope",
    "sanitize_action_name",
    "sanitize_topic_name",
]
