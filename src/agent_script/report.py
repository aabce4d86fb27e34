"""Post-conversion analysis report.

The report is rebuilt from the original input and the produced script text.
Its main heuristic flags custom actions (flows, Apex, invocable actions and
similar) whose target looks like a generated record id instead of an API
name; those targets have to be re-selected by hand after import.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .loader import parse_definition
from .logging import get_logger, log_event
from .models import AgentDefinition
from .placeholders import find_placeholder_names

LOGGER = get_logger("report")

NO_DESCRIPTION = "No description"
DEFAULT_REPORT_ALERT = "Variables within instructions were converted to @variables format."

CUSTOM_ACTION_TYPES = frozenset(
    {
        "flow",
        "apex",
        "standardinvocableaction",
        "invocableaction",
        "generatepromptresponse",
        "externalservice",
    }
)


@dataclass(slots=True)
class ReportMetadata:
    input_format: str = "generic"
    topic_count: int = 0
    action_count: int = 0
    has_variables: bool = False
    alert_message: Optional[str] = None
    status_suffix: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ReportMetadata":
        has_variables = payload.get("has_variables", payload.get("legacy_placeholders_found"))
        return cls(
            input_format=str(payload.get("input_format") or "generic"),
            topic_count=int(payload.get("topic_count") or 0),
            action_count=int(payload.get("action_count") or 0),
            has_variables=bool(has_variables),
            alert_message=payload.get("alert_message") or None,
            status_suffix=payload.get("status_suffix") or None,
        )


@dataclass(slots=True)
class AgentInfo:
    name: str
    label: str
    description: str
    planner_role: Optional[str] = None
    planner_company: Optional[str] = None
    planner_tone_type: Optional[str] = None
    locale: Optional[str] = None
    secondary_locales: Optional[str] = None


@dataclass(slots=True)
class ActionReport:
    name: str
    label: str
    description: str
    target: str
    action_type: str


@dataclass(slots=True)
class TopicReport:
    name: str
    label: str
    description: str
    is_start: bool
    actions: List[ActionReport] = field(default_factory=list)


@dataclass(slots=True)
class VariableReport:
    name: str
    var_type: str
    description: str
    source: Optional[str] = None


@dataclass(slots=True)
class VariablesInInstructions:
    has_variables: bool
    alert_message: str
    variables: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ManualReviewItem:
    """A custom action whose target looks like a record id."""

    topic_name: str
    action_name: str
    action_type: str
    target: str


@dataclass(slots=True)
class ReportFindings:
    topics_missing_descriptions: List[str] = field(default_factory=list)
    topics_without_actions: List[str] = field(default_factory=list)
    actions_missing_descriptions: int = 0
    variables_missing_descriptions: List[str] = field(default_factory=list)
    manual_review: List[ManualReviewItem] = field(default_factory=list)


@dataclass(slots=True)
class ReportDocument:
    agent_info: AgentInfo
    topics: List[TopicReport]
    variables: List[VariableReport]
    variables_in_instructions: VariablesInInstructions
    findings: ReportFindings
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ----- Heuristics ----------------------------------------------------------


def is_description_missing(description: str) -> bool:
    return not description.strip() or description == NO_DESCRIPTION


def is_custom_action_type(action_type: str) -> bool:
    return action_type.lower() in CUSTOM_ACTION_TYPES


def is_record_id(target: str) -> bool:
    """Heuristic: does ``target`` look like a generated record id?

    It must mix ASCII letters and digits, contain no underscore or space, be
    purely ASCII alphanumeric, and either start with a digit or contain a run
    of three digits.
    """

    if not any(ch.isascii() and ch.isalpha() for ch in target):
        return False
    if not any(ch.isascii() and ch.isdigit() for ch in target):
        return False
    if "_" in target or " " in target:
        return False
    if not (target.isascii() and target.isalnum()):
        return False
    if target[0].isdigit():
        return True
    return any(target[i : i + 3].isdigit() for i in range(len(target) - 2))


def manual_review_items(topics: Iterable[TopicReport]) -> List[ManualReviewItem]:
    return [
        ManualReviewItem(topic.name, action.name, action.action_type, action.target)
        for topic in topics
        for action in topic.actions
        if is_custom_action_type(action.action_type) and is_record_id(action.target)
    ]


# ----- Extraction ----------------------------------------------------------


def _agent_info(definition: AgentDefinition) -> AgentInfo:
    return AgentInfo(
        name=definition.name or definition.label or "Unnamed Agent",
        label=definition.label or definition.name or "Unnamed Agent",
        description=definition.description or "No description provided",
        planner_role=definition.planner_role,
        planner_company=definition.planner_company,
        planner_tone_type=definition.planner_tone_type,
        locale=definition.locale,
        secondary_locales=(
            ", ".join(definition.secondary_locales)
            if definition.secondary_locales is not None
            else None
        ),
    )


def _plugin_topics(definition: AgentDefinition) -> List[TopicReport]:
    topics: List[TopicReport] = []
    for index, plugin in enumerate(definition.plugins or ()):
        if plugin.plugin_type not in (None, "TOPIC"):
            continue
        if plugin.description is not None and plugin.scope is not None:
            description = f"{plugin.description}\n\n{plugin.scope}"
        else:
            description = plugin.description or plugin.scope or NO_DESCRIPTION
        actions = [
            ActionReport(
                name=func.identifier,
                label=func.label or func.identifier,
                description=func.description or NO_DESCRIPTION,
                target=func.invocation_target_name or func.invocation_target_id or func.name,
                action_type=func.invocation_target_type or "unknown",
            )
            for func in plugin.functions or ()
        ]
        if plugin.can_escalate:
            actions.append(
                ActionReport(
                    name="escalate_to_human",
                    label="Escalate to Human",
                    description="Transfer to a live human agent",
                    target="@utils.escalate",
                    action_type="escalation",
                )
            )
        topics.append(
            TopicReport(
                name=plugin.identifier,
                label=plugin.label or plugin.identifier,
                description=description,
                is_start=index == 0,
                actions=actions,
            )
        )
    return topics


def _simple_topics(definition: AgentDefinition) -> List[TopicReport]:
    topics: List[TopicReport] = []
    for index, topic in enumerate(definition.topics or ()):
        name = topic.name or topic.id or f"topic_{index + 1}"
        actions = [
            ActionReport(
                name=action.name or action.id or "unnamed_action",
                label=action.label or action.name or "Unnamed Action",
                description=action.description or NO_DESCRIPTION,
                target=action.target or action.invocation_target or "N/A",
                action_type=action.action_type or "unknown",
            )
            for action in topic.actions or ()
        ]
        topics.append(
            TopicReport(
                name=name,
                label=topic.label or name,
                description=topic.description or topic.scope or NO_DESCRIPTION,
                is_start=bool(topic.is_start) or index == 0,
                actions=actions,
            )
        )
    return topics


def _unquote(value: str) -> str:
    if value.startswith('"') and value.endswith('"') and len(value) >= 2:
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value[1:-1]
    return value


def script_variables(output_text: str) -> List[VariableReport]:
    """Read the ``variables:`` section of rendered script text."""

    variables: List[VariableReport] = []
    current: Optional[VariableReport] = None
    in_section = False
    for line in output_text.splitlines():
        if not in_section:
            in_section = line == "variables:"
            continue
        if not line.strip() or not line.startswith(" "):
            break
        if line.startswith("        "):
            if current is None:
                continue
            key, _, value = line.strip().partition(": ")
            if key == "source":
                current.source = value
            elif key == "description":
                current.description = _unquote(value)
            continue
        name, _, declaration = line.strip().partition(": ")
        current = VariableReport(
            name=name, var_type=declaration or "unknown", description=NO_DESCRIPTION
        )
        variables.append(current)
    return variables


def _report_variables(definition: AgentDefinition, output_text: str) -> List[VariableReport]:
    variables = script_variables(output_text)
    known = {variable.name for variable in variables}
    for entry in definition.variables or ():
        name = entry.name or entry.id or "unnamed_variable"
        if name in known:
            continue
        known.add(name)
        variables.append(
            VariableReport(
                name=name,
                var_type=entry.var_type or "unknown",
                description=entry.description or NO_DESCRIPTION,
                source=entry.source,
            )
        )
    return variables


def _variables_in_instructions(
    definition: AgentDefinition, output_text: str, metadata: ReportMetadata
) -> VariablesInInstructions:
    names: Set[str] = set()
    if metadata.has_variables:
        input_text = json.dumps(
            definition.model_dump(by_alias=True, exclude_none=True),
            ensure_ascii=False,
            default=str,
        )
        names |= find_placeholder_names(input_text)
        names |= find_placeholder_names(output_text)
    return VariablesInInstructions(
        has_variables=metadata.has_variables,
        alert_message=metadata.alert_message or DEFAULT_REPORT_ALERT,
        variables=sorted(names),
    )


def analyze(topics: List[TopicReport], variables: List[VariableReport]) -> ReportFindings:
    return ReportFindings(
        topics_missing_descriptions=[
            topic.name for topic in topics if is_description_missing(topic.description)
        ],
        topics_without_actions=[topic.name for topic in topics if not topic.actions],
        actions_missing_descriptions=sum(
            1
            for topic in topics
            for action in topic.actions
            if is_description_missing(action.description)
        ),
        variables_missing_descriptions=[
            variable.name for variable in variables if is_description_missing(variable.description)
        ],
        manual_review=manual_review_items(topics),
    )


def render_notes(findings: ReportFindings, metadata: ReportMetadata) -> List[str]:
    notes: List[str] = []
    if findings.topics_missing_descriptions:
        names = findings.topics_missing_descriptions
        notes.append(f"- {len(names)} topic(s) are missing descriptions: {', '.join(names)}")
    if findings.topics_without_actions:
        names = findings.topics_without_actions
        notes.append(f"- {len(names)} topic(s) have no actions: {', '.join(names)}")
    if findings.actions_missing_descriptions:
        notes.append(
            f"- {findings.actions_missing_descriptions} action(s) are missing descriptions"
        )
    if findings.variables_missing_descriptions:
        names = findings.variables_missing_descriptions
        notes.append(f"- {len(names)} variable(s) are missing descriptions: {', '.join(names)}")
    if findings.manual_review:
        notes.append(
            f"- **MANUAL ACTION REQUIRED:** {len(findings.manual_review)} custom action(s) "
            "have target record IDs instead of API names:"
        )
        notes.append(
            "  - **Custom actions (flow, Apex, standardInvocableAction, etc.) show the "
            "target record ID in the output.**"
        )
        notes.append(
            "  - **You must manually re-select the target for each action in the agent builder.**"
        )
        notes.append("")
        notes.append("  | Topic | Action | Type | Target (Record ID) |")
        notes.append("  |-------|--------|------|-------------------|")
        for item in findings.manual_review:
            notes.append(
                f"  | `{item.topic_name}` | `{item.action_name}` | {item.action_type} | `{item.target}` |"
            )
        notes.append("")
        notes.append(
            "  - **Steps to fix:** In the agent builder, navigate to each topic/action listed "
            "above and manually select the correct target from the available options."
        )
    if metadata.status_suffix:
        notes.append(f"- {metadata.status_suffix}")
    return notes


def _coerce_metadata(metadata: Any) -> ReportMetadata:
    if metadata is None:
        return ReportMetadata()
    if isinstance(metadata, ReportMetadata):
        return metadata
    if hasattr(metadata, "to_metadata"):
        return metadata.to_metadata()
    if isinstance(metadata, Mapping):
        return ReportMetadata.from_dict(metadata)
    raise TypeError(f"Unsupported report metadata: {type(metadata).__name__}")


def build_report(source: Any, output_text: str, metadata: Any = None) -> ReportDocument:
    """Analyze a finished conversion.

    ``metadata`` may be a :class:`ReportMetadata`, a conversion result or a
    mapping with the same keys.
    """

    meta = _coerce_metadata(metadata)
    definition = parse_definition(source)
    if definition.plugins:
        topics = _plugin_topics(definition)
    else:
        topics = _simple_topics(definition)
    variables = _report_variables(definition, output_text)
    findings = analyze(topics, variables)
    report = ReportDocument(
        agent_info=_agent_info(definition),
        topics=topics,
        variables=variables,
        variables_in_instructions=_variables_in_instructions(definition, output_text, meta),
        findings=findings,
        notes=render_notes(findings, meta),
    )
    log_event(
        LOGGER,
        "report:built",
        {"topics": len(topics), "manual_review": len(findings.manual_review)},
    )
    return report


def render_report_markdown(
    report: ReportDocument, metadata: Any = None, generated_at: datetime | None = None
) -> str:
    """Render ``report`` as a Markdown document."""

    meta = _coerce_metadata(metadata)
    generated_at = generated_at or datetime.now(timezone.utc)
    info = report.agent_info
    lines: List[str] = [
        "# Conversion Report",
        "",
        f"**Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        f"**Input Format:** {meta.input_format}",
        f"**Topics Converted:** {meta.topic_count}",
        f"**Actions Converted:** {meta.action_count}",
        "",
        "---",
        "",
        "## 1. Agent Information",
        "",
        f"**Name:** {info.name}",
        f"**Label:** {info.label}",
        "",
        "**Description:**",
        info.description,
        "",
    ]
    for title, value in (
        ("Planner Role", info.planner_role),
        ("Planner Company", info.planner_company),
        ("Tone Type", info.planner_tone_type),
        ("Locale", info.locale),
        ("Secondary Locales", info.secondary_locales),
    ):
        if value:
            lines.append(f"**{title}:** {value}")
    lines += ["", "---", "", "## 2. Topics and Actions", ""]

    if report.topics:
        for index, topic in enumerate(report.topics, start=1):
            marker = " (Start Topic)" if topic.is_start else ""
            lines += [
                f"### {index}. {topic.label}{marker}",
                "",
                f"**Topic Name:** `{topic.name}`",
                "",
                "**Description:**",
                topic.description,
                "",
            ]
            if topic.actions:
                lines += [f"**Actions ({len(topic.actions)}):**", ""]
                for number, action in enumerate(topic.actions, start=1):
                    lines += [
                        f"{number}. **{action.label}** (`{action.name}`)",
                        f"   - **Target:** {action.target}",
                        f"   - **Type:** {action.action_type}",
                        f"   - **Description:** {action.description}",
                        "",
                    ]
            else:
                lines += ["**Actions:** None", ""]
            lines += ["---", ""]
    else:
        lines += ["No topics found in input.", ""]

    lines += ["## 3. Variables Converted", ""]
    if report.variables:
        lines += [f"**Total Variables:** {len(report.variables)}", ""]
        for index, variable in enumerate(report.variables, start=1):
            lines.append(f"{index}. **{variable.name}**")
            lines.append(f"   - **Type:** {variable.var_type}")
            if variable.source:
                lines.append(f"   - **Source:** {variable.source}")
            lines += [f"   - **Description:** {variable.description}", ""]
    else:
        lines += ["No variables found in conversion.", ""]
    lines += ["---", "", "## 4. Variables in Instructions (Requires Review)", ""]

    found = report.variables_in_instructions
    if found.has_variables:
        lines += ["**Variables were detected and converted in instructions.**", ""]
        lines += [found.alert_message, ""]
        if found.variables:
            lines += ["**Variables found in instructions:**", ""]
            lines += [f"{index}. `{name}`" for index, name in enumerate(found.variables, start=1)]
            lines += [
                "",
                "**Action Required:** Please review these variables to ensure they are "
                "correctly converted and referenced.",
                "",
            ]
    else:
        lines += ["No variables detected in instructions that require conversion.", ""]
    lines += ["---", "", "## 5. Other Important Notes", ""]

    if report.notes:
        lines += report.notes + [""]
    else:
        lines += ["No additional notes or warnings.", ""]
    lines += ["---", "", "**End of Report**"]
    return "\n".join(lines) + "\n"


__all__ = [
    "ActionReport",
    "AgentInfo",
    "ManualReviewItem",
    "ReportDocument",
    "ReportFindings",
    "ReportMetadata",
    "TopicReport",
    "VariableReport",
    "VariablesInInstructions",
    "build_report",
    "is_record_id",
    "render_report_markdown",
]
