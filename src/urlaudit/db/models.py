"""SQLAlchemy ORM tables for users, credits, audits and trial usage."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)  # identity-provider user id
    email: Mapped[str] = mapped_column(String(255), unique=True)
    credits: Mapped[int] = mapped_column(Integer, default=100)
    total_credits_earned: Mapped[int] = mapped_column(Integer, default=100)
    total_credits_used: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    audits: Mapped[list["UrlAccessibilityAudit"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True,
    )


class CreditTransaction(Base):
    """Append-only credit ledger. ``amount`` is negative for usage."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(16))  # purchase | bonus | usage | refund
    amount: Mapped[int] = mapped_column(Integer)
    balance_before: Mapped[int] = mapped_column(Integer)
    balance_after: Mapped[int] = mapped_column(Integer)
    description: Mapped[str] = mapped_column(Text)
    tool_used: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class UrlAccessibilityAudit(Base):
    __tablename__ = "url_accessibility_audits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    url: Mapped[str] = mapped_column(Text)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="completed")
    credits_used: Mapped[int] = mapped_column(Integer, default=0)

    total_violations: Mapped[int | None] = mapped_column(Integer, default=0)
    critical_count: Mapped[int | None] = mapped_column(Integer, default=0)
    serious_count: Mapped[int | None] = mapped_column(Integer, default=0)
    moderate_count: Mapped[int | None] = mapped_column(Integer, default=0)
    minor_count: Mapped[int | None] = mapped_column(Integer, default=0)
    overall_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    user: Mapped[User] = relationship(back_populates="audits")
    violations: Mapped[list["AuditViolation"]] = relationship(
        back_populates="audit", cascade="all, delete-orphan", passive_deletes=True,
    )


class AuditViolation(Base):
    __tablename__ = "audit_violations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    audit_id: Mapped[str] = mapped_column(
        ForeignKey("url_accessibility_audits.id", ondelete="CASCADE"), index=True,
    )
    violation_id: Mapped[str] = mapped_column(String(128))
    description: Mapped[str] = mapped_column(Text)
    impact: Mapped[str] = mapped_column(String(16))
    help_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    detected_by: Mapped[list[str]] = mapped_column(JSON, default=lambda: ["axe-core"])
    wcag_criteria: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    wcag_level: Mapped[str | None] = mapped_column(String(4), nullable=True)
    selector: Mapped[str | None] = mapped_column(Text, nullable=True)
    html: Mapped[str | None] = mapped_column(Text, nullable=True)
    target: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    ai_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    fix_suggestion: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)  # index in the scan result
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    audit: Mapped[UrlAccessibilityAudit] = relationship(back_populates="violations")


class TrialUsage(Base):
    """One anonymous tool use, keyed by caller fingerprint (client IP)."""

    __tablename__ = "trial_usage"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    fingerprint: Mapped[str] = mapped_column(String(255), index=True)
    tool: Mapped[str] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    input_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
