"""Anonymous trial quota, counted per caller fingerprint over a rolling window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from urlaudit.db.models import TrialUsage
from urlaudit.schemas.config import TrialSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialStatus:
    allowed: bool
    remaining: int
    reset_time: datetime
    message: str


def _next_midnight(now: datetime) -> datetime:
    return (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


class TrialTracker:
    """Reads and appends ``trial_usage`` rows.

    Checking is advisory: nothing is reserved, so two concurrent anonymous
    requests at the last remaining use can both pass.
    """

    def __init__(self, settings: TrialSettings) -> None:
        self._settings = settings

    async def check(
        self,
        session: AsyncSession,
        tool: str,
        fingerprint: str | None,
        *,
        now: datetime | None = None,
    ) -> TrialStatus:
        now = now or datetime.now(timezone.utc)
        reset_time = _next_midnight(now)

        if tool in self._settings.blocked_tools:
            return TrialStatus(
                allowed=False,
                remaining=0,
                reset_time=now,
                message="This tool requires authentication. Please sign in to continue.",
            )

        if not fingerprint:
            return TrialStatus(
                allowed=False,
                remaining=0,
                reset_time=now,
                message="Unable to verify trial usage. Please try again.",
            )

        since = now - timedelta(hours=self._settings.window_hours)
        used = await session.scalar(
            select(func.count(TrialUsage.id)).where(
                TrialUsage.fingerprint == fingerprint,
                TrialUsage.created_at >= since,
            )
        ) or 0

        limit = self._settings.per_fingerprint
        if used >= limit:
            return TrialStatus(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                message=(
                    f"Trial limit reached. You can try {limit} tools per day. "
                    "Limit resets at midnight."
                ),
            )

        remaining = limit - used
        return TrialStatus(
            allowed=True,
            remaining=remaining,
            reset_time=reset_time,
            message=f"{remaining} trial uses remaining today.",
        )

    async def record(
        self,
        session: AsyncSession,
        tool: str,
        fingerprint: str | None,
        *,
        user_agent: str | None = None,
    ) -> None:
        """Append one usage row. Failures are logged, never raised to the caller."""
        if not fingerprint:
            logger.warning("Could not record trial usage for %s: no caller fingerprint", tool)
            return
        try:
            session.add(TrialUsage(fingerprint=fingerprint, tool=tool, user_agent=user_agent))
            await session.flush()
        except SQLAlchemyError:
            logger.exception("Error recording trial usage for %s", tool)
            await session.rollback()
