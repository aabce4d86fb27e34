"""Rule-driven converter from agent definitions to target agent scripts."""

from .converter import (
    ConversionResult,
    build_document,
    convert,
    detect_legacy_placeholders,
    resolve_alert_message,
    resolve_status_suffix,
)
from .exceptions import ConversionError, InputShapeError
from .report import ReportDocument, ReportMetadata, build_report, render_report_markdown
from .rules import ConversionRules, RuleResolver, load_rules
from .serializer import render_script

__all__ = [
    "ConversionError",
    "ConversionResult",
    "ConversionRules",
    "InputShapeError",
    "ReportDocument",
    "ReportMetadata",
    "RuleResolver",
    "build_document",
    "build_report",
    "convert",
    "detect_legacy_placeholders",
    "load_rules",
    "render_report_markdown",
    "render_script",
    "resolve_alert_message",
    "resolve_status_suffix",
]
