"""
Human-readable formula description of a report.

The output is deterministic for identical input: sections appear in a fixed
order, each only when its list is non-empty, separated by one blank line.
This is pure and touches neither metadata nor storage.
"""

import json
from typing import Any, List

from crm_engine.query.schemas import OPERATOR_LABELS, Operator
from crm_engine.reporting.schemas import ReportDefinition

OBJECT_TYPE_LABELS = {
    "leads": "Leads",
    "clients": "Clients",
    "invoices": "Invoices",
    "meetings": "Meetings",
    "payments": "Payments",
    "services": "Services",
    "team_members": "Team Members",
}

EMPTY_VALUE = "(empty)"


def object_type_label(object_type: str) -> str:
    return OBJECT_TYPE_LABELS.get(object_type, object_type)


def operator_text(operator: Any) -> str:
    raw = operator.value if isinstance(operator, Operator) else str(operator)
    try:
        return OPERATOR_LABELS[Operator(raw)]
    except ValueError:
        return raw


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def value_text(value: Any) -> str:
    if value is None:
        return EMPTY_VALUE
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return _literal(value)


def describe(definition: ReportDefinition) -> str:
    """Render the formula description for a report definition."""
    sections: List[str] = [f"Data Source: {object_type_label(definition.object_type)}"]

    if definition.filters:
        lines = ["Filters:"]
        for f in definition.filters:
            lines.append(f"  - {f.field} {operator_text(f.operator)} {value_text(f.value)}")
        sections.append("\n".join(lines))

    if definition.groupings:
        sections.append("Grouped By: " + ", ".join(definition.groupings))

    if definition.aggregations:
        lines = ["Calculations:"]
        for agg in definition.aggregations:
            lines.append(f"  - {agg.label}: {agg.function.value.upper()}({agg.field})")
        sections.append("\n".join(lines))

    visible = [c.label for c in definition.columns if c.visible is not False]
    if visible:
        sections.append("Columns: " + ", ".join(visible))

    return "\n\n".join(sections)
