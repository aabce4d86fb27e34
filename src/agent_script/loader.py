"""Parse agent definition and rules text into generic trees and models."""

from __future__ import annotations

import json
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .contract import check_nesting, validate_definition
from .exceptions import InputShapeError
from .models import AgentDefinition


def parse_text(text: str) -> Any:
    """Parse ``text`` as JSON, falling back to YAML.

    YAML is a superset of JSON for the documents we accept, but JSON is tried
    first so that JSON error positions are never masked by YAML quirks.
    """

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    except RecursionError as exc:
        raise InputShapeError("Document is nested too deeply to parse") from exc
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InputShapeError(f"Document is neither valid JSON nor YAML ({exc})") from exc
    except RecursionError as exc:
        raise InputShapeError("Document is nested too deeply to parse") from exc


def _decode(source: bytes | bytearray) -> str:
    try:
        return bytes(source).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InputShapeError("Input document is not valid UTF-8") from exc


def load_document(source: Any) -> Mapping[str, Any]:
    """Return the input document as a mapping.

    ``source`` may be a mapping or JSON/YAML text. Anything that does not end up
    as a mapping raises :class:`InputShapeError`.
    """

    if isinstance(source, (bytes, bytearray)):
        source = _decode(source)
    if isinstance(source, str):
        if not source.strip():
            raise InputShapeError("Input document is empty")
        source = parse_text(source)
    if not isinstance(source, Mapping):
        raise InputShapeError("Input document must be an object")
    return source


def document_text(source: Any) -> str:
    """Return the text form of ``source`` used for placeholder detection."""

    if isinstance(source, (bytes, bytearray)):
        return _decode(source)
    if isinstance(source, str):
        return source
    return json.dumps(source, ensure_ascii=False, default=str)


def parse_definition(source: Any) -> AgentDefinition:
    """Load, check nesting, validate and model an input document."""

    payload = load_document(source)
    check_nesting(payload)
    validate_definition(payload)
    try:
        return AgentDefinition.model_validate(payload)
    except ValidationError as exc:
        messages = [
            f"{'/'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        ]
        raise InputShapeError("Input document does not match a recognized shape", messages) from exc
