"""Pydantic models for audit requests, violations and reports."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

Impact = Literal["critical", "serious", "moderate", "minor"]
WcagLevel = Literal["A", "AA"]


class AuditRequest(BaseModel):
    """Caller-supplied audit input. Never persisted."""

    url: str
    unlimited_access: bool = False


class Violation(BaseModel):
    """One finding from the scanner, normalized."""

    model_config = ConfigDict(frozen=True)

    id: str
    violation_id: str  # scanner rule id, e.g. "image-alt"
    description: str = ""
    impact: Impact = "minor"
    help_url: str = ""
    wcag_criteria: list[str] = []
    wcag_level: WcagLevel = "A"
    selector: str = ""
    html: str = ""
    target: list[str] = []
    fix_suggestion: str = ""
    ai_explanation: str = ""


class EphemeralIdentity(BaseModel):
    """Client-generated id for a report that was never stored."""

    kind: Literal["ephemeral"] = "ephemeral"
    client_id: str


class PersistedIdentity(BaseModel):
    """Id of the stored audit row."""

    kind: Literal["persisted"] = "persisted"
    id: str


AuditIdentity = Annotated[
    Union[EphemeralIdentity, PersistedIdentity], Field(discriminator="kind")
]


class _AuditBase(BaseModel):
    identity: AuditIdentity
    url: str
    created_at: str  # ISO 8601

    @computed_field  # type: ignore[prop-decorator]
    @property
    def audit_id(self) -> str:
        if isinstance(self.identity, PersistedIdentity):
            return self.identity.id
        return self.identity.client_id

    @property
    def is_persisted(self) -> bool:
        return isinstance(self.identity, PersistedIdentity)


class CompletedAudit(_AuditBase):
    """A scored report for one URL."""

    status: Literal["completed"] = "completed"
    title: str
    processing_started_at: str
    processing_completed_at: str
    total_violations: int = Field(ge=0)
    critical_count: int = Field(ge=0)
    serious_count: int = Field(ge=0)
    moderate_count: int = Field(ge=0)
    minor_count: int = Field(ge=0)
    overall_score: int = Field(ge=0, le=100)
    ai_summary: str | None = None  # JSON string
    violations: list[Violation] = []

    def as_persisted(self, audit_id: str) -> "CompletedAudit":
        """Return a copy carrying the stored row's identity."""
        return self.model_copy(update={"identity": PersistedIdentity(id=audit_id)})


class FailedAudit(_AuditBase):
    """Returned instead of a report when the scan stage raised."""

    status: Literal["failed"] = "failed"
    error_message: str


AuditResult = Annotated[Union[CompletedAudit, FailedAudit], Field(discriminator="status")]


class AuditHistoryItem(BaseModel):
    """One row of the caller's audit history."""

    id: str
    url: str
    title: str
    status: str
    overall_score: int | None = None
    total_violations: int = 0
    created_at: str


class AuditHistory(BaseModel):
    audits: list[AuditHistoryItem] = []


class BusinessSummary(BaseModel):
    """Shape the AI enrichment is asked to return.

    Only used for display; the stored value stays the raw JSON string.
    """

    model_config = ConfigDict(extra="allow")

    websiteClassification: dict[str, Any] = {}
    businessImpact: dict[str, Any] = {}
    industryContext: dict[str, Any] = {}
    quickWins: list[Any] = []
    businessRecommendations: dict[str, Any] = {}
    error: str = ""


class UnlimitedAccessCheck(BaseModel):
    """Body of ``POST /verify-unlimited-access``."""

    secret_key: str = ""
