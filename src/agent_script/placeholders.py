"""Detection and rewriting of legacy inline variable placeholders.

Legacy syntaxes ``{!$Name}``, ``{$!Name}``, ``{$Name}`` and ``{!Name}`` are
rewritten to the canonical ``{!@variables.Name}`` form. Override rules may
replace the built-in pattern set entirely or switch conversion off.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional, Pattern, Sequence, Set, Tuple

from .logging import context, get_logger
from .rules import RuleResolver, VariablePattern

LOGGER = get_logger("placeholders")

CANONICAL_REPLACEMENT = r"{!@variables.\1}"

LEGACY_PLACEHOLDER_RE = re.compile(r"\{[!]?\$[!]?[^}]+\}|\{![^@}][^}]*\}")

# Applied in order; later patterns see the output of earlier ones.
BUILTIN_REWRITES: Tuple[Pattern[str], ...] = (
    re.compile(r"\{!\$([^}]+)\}"),
    re.compile(r"\{\$!([^}]+)\}"),
    re.compile(r"\{\$([^!}][^}]*)\}"),
    re.compile(r"\{!([^@}][^}]*)\}"),
)

# Canonical references, then the legacy forms; each name is matched once.
REFERENCE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\{!@variables\.([^}]+)\}"),
    re.compile(r"\{!?\$!?([^}]+)\}"),
    re.compile(r"\{!([^@$}][^}]*)\}"),
)

_TEMPLATE_REF_RE = re.compile(r"\$(?:(\$)|\{([^}]*)\}|([_0-9A-Za-z]+))")
_GROUP_NAME_RE = re.compile(r"[_0-9A-Za-z]+")


def _parse_replacement(template: str) -> Tuple[Tuple[bool, str], ...]:
    """Split a ``$1``/``${name}`` replacement into literal and group parts."""

    parts: List[Tuple[bool, str]] = []
    position = 0
    for match in _TEMPLATE_REF_RE.finditer(template):
        literal = template[position : match.start()]
        dollar, braced, bare = match.groups()
        reference = braced if braced is not None else bare
        if dollar:
            parts.append((False, literal + "$"))
        elif reference is not None and _GROUP_NAME_RE.fullmatch(reference):
            if literal:
                parts.append((False, literal))
            parts.append((True, reference))
        else:
            parts.append((False, literal + match.group(0)))
        position = match.end()
    if position < len(template):
        parts.append((False, template[position:]))
    return tuple(parts)


def _group_text(match: "re.Match[str]", reference: str) -> str:
    if reference.isdigit():
        index = int(reference)
        if index > (match.re.groups or 0):
            return ""
        return match.group(index) or ""
    if reference not in match.re.groupindex:
        return ""
    return match.group(reference) or ""


class _Replacement:
    """Callable replacement expanding group references; unknown groups become empty."""

    def __init__(self, template: str) -> None:
        self._parts = _parse_replacement(template)

    def __call__(self, match: "re.Match[str]") -> str:
        return "".join(
            _group_text(match, value) if is_group else value for is_group, value in self._parts
        )


@lru_cache(maxsize=256)
def _compile_custom(pattern: str, replacement: str) -> Optional[Tuple[Pattern[str], _Replacement]]:
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        LOGGER.warning(
            "Skipping invalid variable pattern %r: %s", pattern, exc, extra=context(pattern=pattern)
        )
        return None
    return compiled, _Replacement(replacement)


def _custom_rules(patterns: Sequence[VariablePattern]) -> List[Tuple[Pattern[str], _Replacement]]:
    compiled = (_compile_custom(item.pattern, item.replacement) for item in patterns)
    return [entry for entry in compiled if entry is not None]


class PlaceholderRewriter:
    """Rule-aware detector and rewriter bound to one :class:`RuleResolver`."""

    def __init__(self, resolver: RuleResolver | None = None) -> None:
        resolver = resolver or RuleResolver()
        self.enabled = resolver.variable_conversion_enabled
        custom = resolver.custom_patterns
        self._custom = None if custom is None else _custom_rules(custom)

    def has_legacy_placeholder(self, text: Optional[str]) -> bool:
        if not text or not self.enabled:
            return False
        if self._custom is not None:
            return any(pattern.search(text) for pattern, _ in self._custom)
        return LEGACY_PLACEHOLDER_RE.search(text) is not None

    def rewrite(self, text: Optional[str]) -> str:
        if text is None:
            return ""
        if not self.enabled:
            return text
        if self._custom is not None:
            for pattern, replacement in self._custom:
                text = pattern.sub(replacement, text)
            return text
        for pattern in BUILTIN_REWRITES:
            text = pattern.sub(CANONICAL_REPLACEMENT, text)
        return text


def has_legacy_placeholder(text: Optional[str], resolver: RuleResolver | None = None) -> bool:
    return PlaceholderRewriter(resolver).has_legacy_placeholder(text)


def rewrite_placeholders(text: Optional[str], resolver: RuleResolver | None = None) -> str:
    return PlaceholderRewriter(resolver).rewrite(text)


def find_placeholder_names(text: str) -> Set[str]:
    """Return every variable name referenced in ``text``, canonical or legacy."""

    names: Set[str] = set()
    for pattern in REFERENCE_PATTERNS:
        names.update(match.group(1) for match in pattern.finditer(text))
    return names


__all__ = [
    "LEGACY_PLACEHOLDER_RE",
    "PlaceholderRewriter",
    "find_placeholder_names",
    "has_legacy_placeholder",
    "rewrite_placeholders",
]
