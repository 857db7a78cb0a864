"""Entitlement check: may this caller run an audit, and who pays for it."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from urlaudit.audit.errors import AccountNotFound, InsufficientCredits, TrialLimitExceeded
from urlaudit.billing.credits import URL_AUDIT_TOOL, get_user
from urlaudit.billing.trial import TrialTracker
from urlaudit.db.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Who is asking. ``user_id`` is None for anonymous callers."""

    user_id: str | None = None
    fingerprint: str | None = None  # client IP for anonymous trial counting
    user_agent: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


@dataclass(frozen=True)
class Entitlement:
    """Outcome of a passed check.

    ``billing`` says what happens after a successful scan: ``credits`` →
    deduct and persist, ``unlimited`` → neither, ``trial`` → count a use.
    """

    billing: Literal["credits", "unlimited", "trial"]
    user: User | None = None
    credits_available: int | None = None


async def check_entitlement(
    session: AsyncSession,
    *,
    caller: Caller,
    unlimited_access: bool,
    trial: TrialTracker,
    credit_cost: int,
    tool: str = URL_AUDIT_TOOL,
) -> Entitlement:
    """Raise a typed error if the caller may not audit; reserve nothing."""
    if unlimited_access:
        user = await get_user(session, caller.user_id) if caller.is_authenticated else None
        return Entitlement(
            billing="unlimited",
            user=user,
            credits_available=user.credits if user else None,
        )

    if caller.is_authenticated:
        user = await get_user(session, caller.user_id)
        if user is None:
            raise AccountNotFound()
        if user.credits < credit_cost:
            raise InsufficientCredits(required=credit_cost, available=user.credits)
        return Entitlement(billing="credits", user=user, credits_available=user.credits)

    status = await trial.check(session, tool, caller.fingerprint)
    if not status.allowed:
        logger.info("Trial denied for %s: %s", caller.fingerprint, status.message)
        raise TrialLimitExceeded(
            status.message, remaining=status.remaining, reset_time=status.reset_time,
        )
    return Entitlement(billing="trial")


def verify_unlimited_key(expected: str, presented: str | None) -> bool:
    """Constant-time check of an unlimited-access key. An unset key matches nothing."""
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode(), presented.encode())
