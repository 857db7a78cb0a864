"""Audit orchestrator: validate, entitle, scan, synthesize, persist.

Steps run strictly in order within one call. Everything up to and
including the entitlement check raises typed ``AuditError`` subclasses;
anything that goes wrong afterwards comes back as a ``FailedAudit``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from urlaudit.audit.entitlement import Caller, Entitlement, check_entitlement
from urlaudit.audit.errors import AccountNotFound, NotAuthenticated
from urlaudit.audit.repository import AuditRepository
from urlaudit.audit.scanner import BrowserFactory, scan_url
from urlaudit.audit.summary import CompletionClient, build_summary_payload, generate_business_summary
from urlaudit.audit.synthesis import compute_score, count_by_impact, build_violation
from urlaudit.audit.validation import validate_url
from urlaudit.billing.credits import URL_AUDIT_TOOL, deduct_credits, get_credit_history, get_user
from urlaudit.billing.trial import TrialStatus, TrialTracker
from urlaudit.schemas.audit import (
    AuditHistory,
    AuditRequest,
    AuditResult,
    CompletedAudit,
    EphemeralIdentity,
    FailedAudit,
)
from urlaudit.schemas.config import Settings
from urlaudit.shared.browser import BrowserManager
from urlaudit.shared.log import AuditLogger, get_audit_logger

ProgressCallback = Callable[[str], None]
"""Called with a short status message as each stage starts."""

UNKNOWN_ERROR = "Unknown system error"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AuditOrchestrator:
    """Runs URL accessibility audits and serves the caller's stored audits.

    The session factory, LLM client, browser factory and logger are all
    constructor arguments; nothing is read from module globals.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        llm: CompletionClient | None = None,
        browser_factory: BrowserFactory = BrowserManager,
        logger: AuditLogger | None = None,
        repository: AuditRepository | None = None,
    ) -> None:
        self.settings = settings
        self._sessions = session_factory
        self._llm = llm
        self._browser_factory = browser_factory
        self._log = logger or get_audit_logger("audit")
        self._repo = repository or AuditRepository()
        self._trial = TrialTracker(settings.trial)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run_audit(
        self,
        request: AuditRequest,
        caller: Caller,
        *,
        request_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AuditResult:
        """Audit ``request.url`` on behalf of ``caller``.

        Raises ``InvalidInput``, ``AccountNotFound``, ``InsufficientCredits``
        or ``TrialLimitExceeded`` before any browser is launched. Once the
        scan starts the call always returns a result.
        """
        log = self._log.for_request(request_id)
        created_at = _now()
        identity = EphemeralIdentity(client_id=str(uuid.uuid4()))

        def progress(msg: str) -> None:
            log.debug(msg)
            if on_progress:
                on_progress(msg)

        progress("Validating URL")
        url = validate_url(request.url)

        progress("Checking entitlement")
        async with self._sessions() as session:
            entitlement = await check_entitlement(
                session,
                caller=caller,
                unlimited_access=request.unlimited_access,
                trial=self._trial,
                credit_cost=self.settings.credit_cost,
            )
        log.info("Audit of %s starting (billing=%s)", url, entitlement.billing)

        try:
            progress("Scanning page")
            outcome = await scan_url(url, self.settings.browser, self._browser_factory)

            violations = [build_violation(raw) for raw in outcome.violations]
            counts = count_by_impact(violations)
            score = compute_score(counts)
            title = outcome.title or url

            progress("Generating AI summary")
            ai_summary = await generate_business_summary(
                self._llm, build_summary_payload(url, title, score, counts, violations),
            )

            result = CompletedAudit(
                identity=identity,
                url=url,
                title=title,
                created_at=created_at.isoformat(),
                processing_started_at=outcome.scan_started_at.isoformat(),
                processing_completed_at=_now().isoformat(),
                total_violations=counts.total,
                critical_count=counts.critical,
                serious_count=counts.serious,
                moderate_count=counts.moderate,
                minor_count=counts.minor,
                overall_score=score,
                ai_summary=ai_summary,
                violations=violations,
            )

            progress("Saving results")
            result = await self._settle(result, entitlement, caller, log)
            log.info(
                "Audit of %s completed: score=%d violations=%d",
                url, result.overall_score, result.total_violations,
            )
            return result
        except Exception as exc:
            log.exception("Audit of %s failed", url)
            return FailedAudit(
                identity=identity,
                url=url,
                created_at=created_at.isoformat(),
                error_message=str(exc) or UNKNOWN_ERROR,
            )

    async def _settle(
        self,
        result: CompletedAudit,
        entitlement: Entitlement,
        caller: Caller,
        log: AuditLogger,
    ) -> CompletedAudit:
        """Bill and store (credits), count a trial use (trial), or do nothing."""
        if entitlement.billing == "credits":
            cost = self.settings.credit_cost
            async with self._sessions() as session:
                async with session.begin():
                    await deduct_credits(
                        session,
                        caller.user_id,
                        cost,
                        tool=URL_AUDIT_TOOL,
                        description="URL Accessibility Audit",
                    )
                    audit_id = await self._repo.save_completed(
                        session, result, user_id=caller.user_id, credits_used=cost,
                    )
            log.info("Saved audit %s for %s", audit_id, caller.user_id)
            return result.as_persisted(audit_id)

        if entitlement.billing == "trial":
            async with self._sessions() as session:
                await self._trial.record(
                    session, URL_AUDIT_TOOL, caller.fingerprint, user_agent=caller.user_agent,
                )
                await session.commit()

        return result

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def get_audit_history(self, caller: Caller) -> AuditHistory:
        if not caller.is_authenticated:
            return AuditHistory()
        async with self._sessions() as session:
            return await self._repo.list_for_user(
                session, caller.user_id, limit=self.settings.history_limit,
            )

    async def get_audit(self, caller: Caller, audit_id: str) -> CompletedAudit | None:
        """The caller's audit with violations, or None (anonymous, unknown or not theirs)."""
        if not caller.is_authenticated:
            return None
        async with self._sessions() as session:
            return await self._repo.get(session, audit_id, user_id=caller.user_id)

    async def delete_audit(self, caller: Caller, audit_id: str) -> dict[str, bool]:
        if not caller.is_authenticated:
            raise NotAuthenticated("Please log in to delete audits.")
        async with self._sessions() as session:
            async with session.begin():
                deleted = await self._repo.delete(session, audit_id, user_id=caller.user_id)
        if deleted:
            self._log.info("Deleted audit %s for %s", audit_id, caller.user_id)
        return {"success": True}

    # ------------------------------------------------------------------
    # Account views
    # ------------------------------------------------------------------

    async def get_credit_summary(self, caller: Caller, *, recent: int = 10) -> dict[str, Any]:
        """Balance, lifetime totals and the latest ledger entries."""
        if not caller.is_authenticated:
            raise NotAuthenticated("Authentication required")
        async with self._sessions() as session:
            user = await get_user(session, caller.user_id)
            if user is None:
                raise AccountNotFound()
            history = await get_credit_history(session, caller.user_id, limit=recent)
        return {
            "credits": user.credits,
            "total_credits_earned": user.total_credits_earned,
            "total_credits_used": user.total_credits_used,
            "recent_transactions": [
                {
                    "type": t.type,
                    "amount": t.amount,
                    "balance_before": t.balance_before,
                    "balance_after": t.balance_after,
                    "description": t.description,
                    "tool_used": t.tool_used,
                }
                for t in history
            ],
        }

    async def get_trial_status(self, caller: Caller) -> TrialStatus | None:
        """Remaining anonymous uses; None for signed-in callers."""
        if caller.is_authenticated:
            return None
        async with self._sessions() as session:
            return await self._trial.check(session, URL_AUDIT_TOOL, caller.fingerprint)
