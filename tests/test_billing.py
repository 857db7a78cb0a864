"""Tests for credit ledger operations and the anonymous trial quota."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from urlaudit.audit.errors import AccountNotFound, InsufficientCredits
from urlaudit.billing.credits import (
    URL_AUDIT_TOOL,
    add_credits,
    deduct_credits,
    ensure_user,
    get_credit_history,
    get_user,
)
from urlaudit.billing.trial import TrialTracker
from urlaudit.db.models import TrialUsage
from urlaudit.schemas.config import TrialSettings


class TestEnsureUser:
    @pytest.mark.asyncio
    async def test_creates_with_welcome_bonus(self, sessions) -> None:
        async with sessions() as session:
            async with session.begin():
                user = await ensure_user(session, "u1", default_credits=100)
            assert user.credits == 100
            history = await get_credit_history(session, "u1")
        assert len(history) == 1
        assert history[0].type == "bonus"
        assert history[0].amount == 100

    @pytest.mark.asyncio
    async def test_create_and_top_up_in_one_transaction(self, sessions) -> None:
        async with sessions() as session:
            async with session.begin():
                await ensure_user(session, "u2", default_credits=100)
                entry = await add_credits(session, "u2", 20, "Manual top-up")
            assert entry.balance_after == 120
            history = await get_credit_history(session, "u2")
        assert sorted(t.type for t in history) == ["bonus", "purchase"]

    @pytest.mark.asyncio
    async def test_existing_user_untouched(self, sessions, make_user) -> None:
        await make_user("u1", credits=7)
        async with sessions() as session:
            user = await ensure_user(session, "u1", default_credits=100)
            assert user.credits == 7


class TestDeductCredits:
    @pytest.mark.asyncio
    async def test_deducts_and_appends_usage(self, sessions, make_user) -> None:
        await make_user("u1", credits=10)
        async with sessions() as session:
            async with session.begin():
                entry = await deduct_credits(session, "u1", 5, tool=URL_AUDIT_TOOL, description="audit")

        assert entry.amount == -5
        assert entry.balance_before == 10
        assert entry.balance_after == 5
        async with sessions() as session:
            user = await get_user(session, "u1")
            assert user.credits == 5
            assert user.total_credits_used == 5

    @pytest.mark.asyncio
    async def test_exact_balance_allowed(self, sessions, make_user) -> None:
        await make_user("u1", credits=5)
        async with sessions() as session:
            async with session.begin():
                entry = await deduct_credits(session, "u1", 5, tool=URL_AUDIT_TOOL, description="audit")
        assert entry.balance_after == 0

    @pytest.mark.asyncio
    async def test_insufficient_leaves_balance(self, sessions, make_user) -> None:
        await make_user("u1", credits=4)
        async with sessions() as session:
            with pytest.raises(InsufficientCredits) as info:
                async with session.begin():
                    await deduct_credits(session, "u1", 5, tool=URL_AUDIT_TOOL, description="audit")
        assert info.value.required == 5
        assert info.value.available == 4

        async with sessions() as session:
            assert (await get_user(session, "u1")).credits == 4
            assert [t.type for t in await get_credit_history(session, "u1")] == ["bonus"]

    @pytest.mark.asyncio
    async def test_second_deduction_cannot_overdraw(self, sessions, make_user) -> None:
        await make_user("u1", credits=7)
        async with sessions() as session:
            async with session.begin():
                await deduct_credits(session, "u1", 5, tool=URL_AUDIT_TOOL, description="first")
        async with sessions() as session:
            with pytest.raises(InsufficientCredits):
                async with session.begin():
                    await deduct_credits(session, "u1", 5, tool=URL_AUDIT_TOOL, description="second")
        async with sessions() as session:
            assert (await get_user(session, "u1")).credits == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self, sessions) -> None:
        async with sessions() as session:
            with pytest.raises(AccountNotFound):
                await deduct_credits(session, "ghost", 5, tool=URL_AUDIT_TOOL, description="audit")


class TestAddCredits:
    @pytest.mark.asyncio
    async def test_adds_and_records_purchase(self, sessions, make_user) -> None:
        await make_user("u1", credits=3)
        async with sessions() as session:
            async with session.begin():
                entry = await add_credits(session, "u1", 20, "Top-up")
        assert entry.type == "purchase"
        assert entry.balance_before == 3
        assert entry.balance_after == 23

    @pytest.mark.asyncio
    async def test_rejects_non_positive(self, sessions, make_user) -> None:
        await make_user("u1")
        async with sessions() as session:
            with pytest.raises(ValueError, match="positive"):
                await add_credits(session, "u1", 0, "nothing")


class TestTrialTracker:
    @pytest.mark.asyncio
    async def test_fresh_fingerprint_allowed(self, sessions) -> None:
        tracker = TrialTracker(TrialSettings(per_fingerprint=5))
        async with sessions() as session:
            status = await tracker.check(session, URL_AUDIT_TOOL, "1.2.3.4")
        assert status.allowed
        assert status.remaining == 5

    @pytest.mark.asyncio
    async def test_limit_reached(self, sessions) -> None:
        tracker = TrialTracker(TrialSettings(per_fingerprint=2))
        async with sessions() as session:
            for _ in range(2):
                await tracker.record(session, URL_AUDIT_TOOL, "1.2.3.4")
            await session.commit()
            status = await tracker.check(session, URL_AUDIT_TOOL, "1.2.3.4")
            other = await tracker.check(session, URL_AUDIT_TOOL, "5.6.7.8")
        assert not status.allowed
        assert status.remaining == 0
        assert "Trial limit reached" in status.message
        assert other.allowed

    @pytest.mark.asyncio
    async def test_old_uses_fall_out_of_window(self, sessions) -> None:
        tracker = TrialTracker(TrialSettings(per_fingerprint=1, window_hours=24))
        old = datetime.now(timezone.utc) - timedelta(hours=30)
        async with sessions() as session:
            session.add(TrialUsage(fingerprint="1.2.3.4", tool=URL_AUDIT_TOOL, created_at=old))
            await session.commit()
            status = await tracker.check(session, URL_AUDIT_TOOL, "1.2.3.4")
        assert status.allowed

    @pytest.mark.asyncio
    async def test_reset_time_is_next_midnight(self, sessions) -> None:
        tracker = TrialTracker(TrialSettings())
        now = datetime(2030, 3, 4, 15, 30, tzinfo=timezone.utc)
        async with sessions() as session:
            status = await tracker.check(session, URL_AUDIT_TOOL, "1.2.3.4", now=now)
        assert status.reset_time == datetime(2030, 3, 5, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_missing_fingerprint_denied(self, sessions) -> None:
        async with sessions() as session:
            status = await TrialTracker(TrialSettings()).check(session, URL_AUDIT_TOOL, None)
        assert not status.allowed
        assert "Unable to verify" in status.message

    @pytest.mark.asyncio
    async def test_blocked_tool(self, sessions) -> None:
        tracker = TrialTracker(TrialSettings(blocked_tools=[URL_AUDIT_TOOL]))
        async with sessions() as session:
            status = await tracker.check(session, URL_AUDIT_TOOL, "1.2.3.4")
        assert not status.allowed
        assert "requires authentication" in status.message
