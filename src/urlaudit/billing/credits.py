"""Credit balance and ledger operations.

Every balance change is paired with a ``CreditTransaction`` row written in
the caller's transaction. Deductions are a single conditional UPDATE so two
concurrent audits by the same user can never take the balance below zero.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from urlaudit.audit.errors import AccountNotFound, InsufficientCredits
from urlaudit.db.models import CreditTransaction, User

logger = logging.getLogger(__name__)

URL_AUDIT_TOOL = "url_accessibility_auditor"


async def get_user(session: AsyncSession, user_id: str) -> User | None:
    return await session.get(User, user_id)


async def ensure_user(
    session: AsyncSession,
    user_id: str,
    *,
    email: str = "",
    default_credits: int = 100,
) -> User:
    """Return the user row, creating it with a welcome bonus if missing."""
    user = await session.get(User, user_id)
    if user is not None:
        return user

    logger.info("User %s not found, creating with %d welcome credits", user_id, default_credits)
    user = User(
        id=user_id,
        email=email or f"{user_id}@users.invalid",
        credits=default_credits,
        total_credits_earned=default_credits,
        total_credits_used=0,
    )
    session.add(user)
    await session.flush()
    session.add(CreditTransaction(
        user_id=user_id,
        type="bonus",
        amount=default_credits,
        balance_before=0,
        balance_after=default_credits,
        description="Welcome bonus - free credits for new users",
    ))
    await session.flush()
    return user


async def deduct_credits(
    session: AsyncSession,
    user_id: str,
    amount: int,
    *,
    tool: str,
    description: str,
) -> CreditTransaction:
    """Atomically take ``amount`` credits and append a usage ledger entry.

    Raises ``InsufficientCredits`` when the conditional update matches no
    row because the balance is too low, and ``AccountNotFound`` when the
    user does not exist. The caller's transaction should be rolled back in
    either case.
    """
    stmt = (
        update(User)
        .where(User.id == user_id, User.credits >= amount)
        .values(
            credits=User.credits - amount,
            total_credits_used=User.total_credits_used + amount,
        )
    )
    result = await session.execute(stmt)

    if result.rowcount == 0:
        balance = await session.scalar(select(User.credits).where(User.id == user_id))
        if balance is None:
            raise AccountNotFound()
        raise InsufficientCredits(required=amount, available=balance)

    balance_after = await session.scalar(select(User.credits).where(User.id == user_id))
    entry = CreditTransaction(
        user_id=user_id,
        type="usage",
        amount=-amount,
        balance_before=balance_after + amount,
        balance_after=balance_after,
        description=description,
        tool_used=tool,
    )
    session.add(entry)
    await session.flush()
    logger.info("Deducted %d credits from %s (balance %d)", amount, user_id, balance_after)
    return entry


async def add_credits(
    session: AsyncSession,
    user_id: str,
    amount: int,
    description: str,
    *,
    type: str = "purchase",
) -> CreditTransaction:
    """Add credits to a user and append the matching ledger entry."""
    if amount <= 0:
        raise ValueError("amount must be positive")

    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            credits=User.credits + amount,
            total_credits_earned=User.total_credits_earned + amount,
        )
    )
    if result.rowcount == 0:
        raise AccountNotFound()

    balance_after = await session.scalar(select(User.credits).where(User.id == user_id))
    entry = CreditTransaction(
        user_id=user_id,
        type=type,
        amount=amount,
        balance_before=balance_after - amount,
        balance_after=balance_after,
        description=description,
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_credit_history(
    session: AsyncSession, user_id: str, limit: int = 50,
) -> list[CreditTransaction]:
    rows = await session.scalars(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc())
        .limit(limit)
    )
    return list(rows)
