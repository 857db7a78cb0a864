"""Turn raw axe-core findings into Violations, severity counts and a score.

Score = 100 minus a weighted penalty per finding, floored at 0.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from urlaudit.schemas.audit import Violation

IMPACTS = ("critical", "serious", "moderate", "minor")

PENALTY_WEIGHTS: dict[str, int] = {
    "critical": 10,
    "serious": 5,
    "moderate": 2,
    "minor": 1,
}

_AA_TAGS = ("wcag2aa", "wcag21aa")


@dataclass(frozen=True)
class SeverityCounts:
    critical: int = 0
    serious: int = 0
    moderate: int = 0
    minor: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.serious + self.moderate + self.minor

    @property
    def penalty(self) -> int:
        return sum(getattr(self, impact) * weight for impact, weight in PENALTY_WEIGHTS.items())


def build_violation(raw: dict[str, Any]) -> Violation:
    """Map one axe-core violation dict onto a Violation."""
    tags = [str(t) for t in raw.get("tags") or []]
    impact = raw.get("impact") or "minor"
    if impact not in IMPACTS:
        impact = "minor"

    nodes = raw.get("nodes") or []
    first = nodes[0] if nodes else {}
    target = [str(t) for t in first.get("target") or []]

    return Violation(
        id=str(uuid.uuid4()),
        violation_id=str(raw.get("id", "")),
        description=raw.get("description") or "",
        impact=impact,
        help_url=raw.get("helpUrl") or "",
        wcag_criteria=[t for t in tags if "wcag" in t],
        wcag_level="AA" if any(aa in t for t in tags for aa in _AA_TAGS) else "A",
        selector=", ".join(target),
        html=first.get("html") or "",
        target=target,
        fix_suggestion=raw.get("help") or "",
        ai_explanation="",
    )


def count_by_impact(violations: list[Violation]) -> SeverityCounts:
    tally = {impact: 0 for impact in IMPACTS}
    for v in violations:
        tally[v.impact] += 1
    return SeverityCounts(**tally)


def compute_score(counts: SeverityCounts) -> int:
    """``max(0, 100 - penalty)``, always within [0, 100]."""
    return max(0, 100 - counts.penalty)
