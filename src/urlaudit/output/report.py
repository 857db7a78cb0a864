"""Static HTML report: renders a CompletedAudit to a self-contained HTML file."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from urlaudit.audit.synthesis import IMPACTS
from urlaudit.output.markdown import flatten_value, parse_business_summary, score_band
from urlaudit.schemas.audit import CompletedAudit

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_report_html(audit: CompletedAudit) -> str:
    """Render a CompletedAudit into a single HTML page.

    Violations are grouped by impact, most severe first.
    """
    env = Environment(loader=FileSystemLoader(str(_TEMPLATE_DIR)), autoescape=True)
    env.filters["flatten"] = flatten_value
    template = env.get_template("report.html")

    summary = parse_business_summary(audit.ai_summary)
    groups = [
        (impact, [v.model_dump() for v in audit.violations if v.impact == impact])
        for impact in IMPACTS
    ]

    return template.render(
        audit=audit.model_dump(),
        audit_id=audit.audit_id,
        band=score_band(audit.overall_score),
        counts={impact: getattr(audit, f"{impact}_count") for impact in IMPACTS},
        groups=[(impact, items) for impact, items in groups if items],
        summary=summary.model_dump() if summary else None,
    )
