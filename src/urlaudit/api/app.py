"""FastAPI surface for the audit service.

Authentication is handled upstream: the proxy in front of this service
verifies the session and forwards the user id in ``X-User-Id``. Requests
without it are anonymous trial requests. ``unlimited_access`` is only
honoured alongside an ``X-Unlimited-Access-Key`` header matching the
configured key.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from urlaudit.audit.entitlement import Caller, verify_unlimited_key
from urlaudit.audit.errors import AuditError, NotAuthenticated, UnlimitedAccessDenied
from urlaudit.audit.orchestrator import AuditOrchestrator
from urlaudit.billing.credits import URL_AUDIT_TOOL
from urlaudit.db.session import create_engine, init_db, make_session_factory
from urlaudit.schemas.audit import (
    AuditHistory,
    AuditRequest,
    AuditResult,
    CompletedAudit,
    UnlimitedAccessCheck,
)
from urlaudit.schemas.config import Settings
from urlaudit.shared.llm_client import LLMClient
from urlaudit.shared.log import get_audit_logger

logger = logging.getLogger(__name__)

try:
    API_VERSION = version("urlaudit")
except PackageNotFoundError:
    API_VERSION = "0.0.0"


def client_fingerprint(request: Request) -> str | None:
    """Best-effort client IP, preferring proxy headers."""
    headers = request.headers
    if ip := headers.get("cf-connecting-ip"):
        return ip
    if ip := headers.get("x-real-ip"):
        return ip
    if forwarded := headers.get("x-forwarded-for"):
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def get_caller(request: Request) -> Caller:
    return Caller(
        user_id=request.headers.get("x-user-id") or None,
        fingerprint=client_fingerprint(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_orchestrator(request: Request) -> AuditOrchestrator:
    return request.app.state.orchestrator


def create_app(settings: Settings, orchestrator: AuditOrchestrator | None = None) -> FastAPI:
    """Build the app. Without an orchestrator, one is wired from ``settings`` at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if orchestrator is not None:
            app.state.orchestrator = orchestrator
            yield
            return

        engine = create_engine(settings.database_url)
        await init_db(engine)
        app.state.orchestrator = AuditOrchestrator(
            settings,
            make_session_factory(engine),
            llm=LLMClient(settings),
            logger=get_audit_logger("api"),
        )
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="URL Accessibility Auditor", version=API_VERSION, lifespan=lifespan)

    @app.exception_handler(AuditError)
    async def audit_error_handler(request: Request, exc: AuditError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.post("/audits", response_model=AuditResult)
    async def create_audit(
        payload: AuditRequest,
        request: Request,
        caller: Caller = Depends(get_caller),
        orch: AuditOrchestrator = Depends(get_orchestrator),
    ) -> Any:
        if payload.unlimited_access:
            presented = request.headers.get("x-unlimited-access-key")
            if not verify_unlimited_key(settings.unlimited_access_key, presented):
                raise UnlimitedAccessDenied()
        return await orch.run_audit(
            payload, caller, request_id=request.headers.get("x-request-id"),
        )

    @app.post("/verify-unlimited-access")
    async def verify_unlimited_access(body: UnlimitedAccessCheck) -> JSONResponse:
        if not body.secret_key:
            return JSONResponse(status_code=400, content={"valid": False, "message": "Secret key is required"})
        if not settings.unlimited_access_key:
            logger.error("unlimited_access_key is not configured")
            return JSONResponse(status_code=500, content={"valid": False, "message": "Server configuration error"})
        if not verify_unlimited_key(settings.unlimited_access_key, body.secret_key):
            return JSONResponse(status_code=401, content={"valid": False, "message": "Invalid secret key"})
        return JSONResponse(content={"valid": True, "message": "Access granted"})

    @app.get("/audits", response_model=AuditHistory)
    async def list_audits(
        caller: Caller = Depends(get_caller),
        orch: AuditOrchestrator = Depends(get_orchestrator),
    ) -> AuditHistory:
        if not caller.is_authenticated:
            raise NotAuthenticated("Authentication required")
        return await orch.get_audit_history(caller)

    @app.get("/audits/{audit_id}", response_model=CompletedAudit)
    async def read_audit(
        audit_id: str,
        caller: Caller = Depends(get_caller),
        orch: AuditOrchestrator = Depends(get_orchestrator),
    ) -> CompletedAudit:
        audit = await orch.get_audit(caller, audit_id)
        if audit is None:
            raise HTTPException(status_code=404, detail="Audit not found")
        return audit

    @app.delete("/audits/{audit_id}")
    async def remove_audit(
        audit_id: str,
        caller: Caller = Depends(get_caller),
        orch: AuditOrchestrator = Depends(get_orchestrator),
    ) -> dict[str, bool]:
        return await orch.delete_audit(caller, audit_id)

    @app.get("/credits")
    async def credits(
        caller: Caller = Depends(get_caller),
        orch: AuditOrchestrator = Depends(get_orchestrator),
    ) -> dict[str, Any]:
        return await orch.get_credit_summary(caller)

    @app.get("/trial-status")
    async def trial_status(
        caller: Caller = Depends(get_caller),
        orch: AuditOrchestrator = Depends(get_orchestrator),
    ) -> list[dict[str, Any]]:
        status = await orch.get_trial_status(caller)
        if status is None:
            return []
        return [{
            "tool": URL_AUDIT_TOOL,
            "allowed": status.allowed,
            "remaining": status.remaining,
            "reset_time": status.reset_time.isoformat(),
            "message": status.message,
        }]

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": API_VERSION}

    return app
