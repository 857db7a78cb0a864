"""Markdown report builder: renders a CompletedAudit to a Markdown document."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from urlaudit.audit.synthesis import IMPACTS
from urlaudit.schemas.audit import BusinessSummary, CompletedAudit, Violation

_IMPACT_ICONS = {"critical": "🔴", "serious": "🟠", "moderate": "🟡", "minor": "🟢"}


def parse_business_summary(raw: str | None) -> BusinessSummary | None:
    """Decode the stored AI summary; None if absent or not a JSON object."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return BusinessSummary.model_validate(data)
    except ValidationError:
        return None


def score_band(score: int) -> str:
    if score >= 90:
        return "Good"
    if score >= 70:
        return "Needs improvement"
    return "Poor"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def flatten_value(value: Any) -> str:
    if isinstance(value, list):
        return "; ".join(flatten_value(v) for v in value)
    if isinstance(value, dict):
        return "; ".join(f"{k}: {flatten_value(v)}" for k, v in value.items())
    return str(value)


def _render_summary(summary: BusinessSummary) -> list[str]:
    lines: list[str] = ["## Business Summary\n"]
    if summary.error:
        lines.append(f"*AI summary unavailable: {summary.error}*\n")
        return lines

    sections = [
        ("Website Classification", summary.websiteClassification),
        ("Business Impact", summary.businessImpact),
        ("Industry Context", summary.industryContext),
        ("Recommendations", summary.businessRecommendations),
    ]
    for title, fields in sections:
        if not fields:
            continue
        lines.append(f"### {title}\n")
        for key, value in fields.items():
            lines.append(f"- **{key}:** {flatten_value(value)}")
        lines.append("")

    if summary.quickWins:
        lines.append("### Quick Wins\n")
        for win in summary.quickWins:
            lines.append(f"- {flatten_value(win)}")
        lines.append("")
    return lines


def _render_violation(v: Violation) -> list[str]:
    icon = _IMPACT_ICONS.get(v.impact, "⚪")
    lines = [f"#### {icon} `{v.violation_id}` ({v.impact}, WCAG {v.wcag_level})\n"]
    if v.description:
        lines.append(f"{v.description}\n")
    if v.fix_suggestion:
        lines.append(f"**Fix:** {v.fix_suggestion}\n")
    if v.selector:
        lines.append(f"**Element:** `{v.selector}`\n")
    if v.html:
        lines.append("```html")
        lines.append(v.html)
        lines.append("```\n")
    if v.wcag_criteria:
        lines.append(f"**WCAG tags:** {', '.join(v.wcag_criteria)}")
    if v.help_url:
        lines.append(f"**Reference:** {v.help_url}")
    lines.append("")
    return lines


def render_audit_markdown(audit: CompletedAudit) -> str:
    """Render a CompletedAudit into a Markdown string."""
    sections: list[str] = []

    sections.append(f"# Accessibility Audit: {audit.title}\n")
    sections.append(f"*URL: {audit.url}*  ")
    sections.append(f"*Audited: {audit.created_at}*  ")
    sections.append(f"*Audit id: {audit.audit_id}*\n")

    sections.append("## Score\n")
    sections.append(f"**{audit.overall_score} / 100** ({score_band(audit.overall_score)})\n")

    sections.append("| Severity | Count |")
    sections.append("|----------|-------|")
    for impact in IMPACTS:
        sections.append(f"| {impact.capitalize()} | {getattr(audit, f'{impact}_count')} |")
    sections.append(f"| **Total** | **{audit.total_violations}** |")
    sections.append("")

    summary = parse_business_summary(audit.ai_summary)
    if summary is not None:
        sections.extend(_render_summary(summary))

    sections.append("## Violations\n")
    if not audit.violations:
        sections.append("No violations found.\n")
    else:
        sections.append("| Rule | Impact | Level | Element |")
        sections.append("|------|--------|-------|---------|")
        for v in audit.violations:
            sections.append(
                f"| `{v.violation_id}` | {v.impact} | {v.wcag_level} | {_escape_cell(v.selector) or '-'} |"
            )
        sections.append("")
        sections.append("### Details\n")
        for impact in IMPACTS:
            for v in audit.violations:
                if v.impact == impact:
                    sections.extend(_render_violation(v))

    return "\n".join(sections)
