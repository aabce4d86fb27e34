"""Structured JSON logging for the agent script converter.

Every record is one JSON object. Conversion stages attach context through
``extra=``: ``event``/``payload`` for stage summaries (``conversion:completed``,
``report:built``) and the names in :data:`CONTEXT_FIELDS` for diagnostics about
a specific topic, action, custom pattern or rules document.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging import Logger
from typing import Any, Dict, Mapping

_LOGGER_NAME = "agent_script"

CONTEXT_FIELDS = ("topic", "action", "pattern", "rules_source")


def _component(record_name: str) -> str:
    prefix = f"{_LOGGER_NAME}."
    return record_name[len(prefix):] if record_name.startswith(prefix) else record_name


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "msg": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event is not None:
            entry["event"] = event
            entry["stats"] = getattr(record, "payload", None) or {}
        context = {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def get_logger(name: str | None = None) -> Logger:
    """Return a converter logger (``agent_script.<name>``) emitting JSON lines."""

    logger_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    logger = logging.getLogger(logger_name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
        try:
            logger.setLevel(getattr(logging, level, logging.INFO))
        except (TypeError, ValueError):
            logger.setLevel(logging.INFO)
    return logger


def log_event(logger: Logger, event: str, payload: Mapping[str, object] | None = None) -> None:
    """Log a stage summary; ``payload`` holds its counts and flags."""

    logger.info(f"event={event}", extra={"event": event, "payload": dict(payload or {})})


def context(**fields: object) -> Dict[str, object]:
    """Build an ``extra=`` mapping restricted to :data:`CONTEXT_FIELDS`."""

    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
    return dict(fields)


__all__ = ["CONTEXT_FIELDS", "context", "get_logger", "log_event"]
