"""Audit rows in and out of the database.

Every read and delete is scoped to the owning user; an audit id belonging
to someone else behaves exactly like an unknown id.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from urlaudit.db.models import AuditViolation, UrlAccessibilityAudit
from urlaudit.schemas.audit import (
    AuditHistory,
    AuditHistoryItem,
    CompletedAudit,
    PersistedIdentity,
    Violation,
)


def _iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    # SQLite hands timestamps back without tzinfo; they are stored as UTC.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts)


class AuditRepository:
    """Stateless; every method takes the session it should run in."""

    async def save_completed(
        self,
        session: AsyncSession,
        audit: CompletedAudit,
        *,
        user_id: str,
        credits_used: int,
    ) -> str:
        """Insert the audit and its violations; return the new row id."""
        row = UrlAccessibilityAudit(
            user_id=user_id,
            url=audit.url,
            title=audit.title,
            status="completed",
            credits_used=credits_used,
            total_violations=audit.total_violations,
            critical_count=audit.critical_count,
            serious_count=audit.serious_count,
            moderate_count=audit.moderate_count,
            minor_count=audit.minor_count,
            overall_score=audit.overall_score,
            ai_summary=audit.ai_summary,
            processing_started_at=_parse(audit.processing_started_at),
            processing_completed_at=_parse(audit.processing_completed_at),
            created_at=_parse(audit.created_at),
        )
        row.violations = [
            AuditViolation(
                id=v.id,
                violation_id=v.violation_id,
                description=v.description,
                impact=v.impact,
                help_url=v.help_url,
                detected_by=["axe-core"],
                wcag_criteria=list(v.wcag_criteria),
                wcag_level=v.wcag_level,
                selector=v.selector,
                html=v.html,
                target=list(v.target),
                ai_explanation=v.ai_explanation,
                fix_suggestion=v.fix_suggestion,
                position=i,
            )
            for i, v in enumerate(audit.violations)
        ]
        session.add(row)
        await session.flush()
        return row.id

    async def get(self, session: AsyncSession, audit_id: str, *, user_id: str) -> CompletedAudit | None:
        row = await session.scalar(
            select(UrlAccessibilityAudit).where(
                UrlAccessibilityAudit.id == audit_id,
                UrlAccessibilityAudit.user_id == user_id,
            )
        )
        if row is None:
            return None

        violation_rows = await session.scalars(
            select(AuditViolation)
            .where(AuditViolation.audit_id == audit_id)
            .order_by(AuditViolation.position)
        )
        created_at = _iso(row.created_at)
        return CompletedAudit(
            identity=PersistedIdentity(id=row.id),
            url=row.url,
            title=row.title or row.url,
            created_at=created_at,
            processing_started_at=_iso(row.processing_started_at) or created_at,
            processing_completed_at=_iso(row.processing_completed_at) or created_at,
            total_violations=row.total_violations or 0,
            critical_count=row.critical_count or 0,
            serious_count=row.serious_count or 0,
            moderate_count=row.moderate_count or 0,
            minor_count=row.minor_count or 0,
            overall_score=row.overall_score or 0,
            ai_summary=row.ai_summary,
            violations=[
                Violation(
                    id=v.id,
                    violation_id=v.violation_id,
                    description=v.description,
                    impact=v.impact,
                    help_url=v.help_url or "",
                    wcag_criteria=v.wcag_criteria or [],
                    wcag_level=v.wcag_level or "A",
                    selector=v.selector or "",
                    html=v.html or "",
                    target=v.target or [],
                    ai_explanation=v.ai_explanation or "",
                    fix_suggestion=v.fix_suggestion or "",
                )
                for v in violation_rows
            ],
        )

    async def list_for_user(self, session: AsyncSession, user_id: str, *, limit: int = 20) -> AuditHistory:
        rows = await session.scalars(
            select(UrlAccessibilityAudit)
            .where(UrlAccessibilityAudit.user_id == user_id)
            .order_by(UrlAccessibilityAudit.created_at.desc())
            .limit(limit)
        )
        return AuditHistory(audits=[
            AuditHistoryItem(
                id=r.id,
                url=r.url,
                title=r.title or r.url,
                status=r.status,
                overall_score=r.overall_score,
                total_violations=r.total_violations or 0,
                created_at=_iso(r.created_at),
            )
            for r in rows
        ])

    async def delete(self, session: AsyncSession, audit_id: str, *, user_id: str) -> bool:
        """Delete one of the user's audits. Violations cascade."""
        result = await session.execute(
            delete(UrlAccessibilityAudit).where(
                UrlAccessibilityAudit.id == audit_id,
                UrlAccessibilityAudit.user_id == user_id,
            )
        )
        return result.rowcount > 0

    async def count_violations(self, session: AsyncSession, audit_id: str) -> int:
        rows = await session.scalars(select(AuditViolation.id).where(AuditViolation.audit_id == audit_id))
        return len(list(rows))
