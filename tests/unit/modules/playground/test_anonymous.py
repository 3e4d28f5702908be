"""Tests for the anonymous run quota."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.exceptions.base import RateLimitError
from src.api.core.messages import MessageCode
from src.database.models import AnonymousPlaygroundUsage
from src.modules.playground.anonymous import AnonymousIdentity, AnonymousRunGate

MARCH = datetime(2026, 3, 2, tzinfo=timezone.utc)
APRIL = datetime(2026, 4, 1, tzinfo=timezone.utc)


def _identity(ip: str = "203.0.113.7", now: datetime = MARCH) -> AnonymousIdentity:
    return AnonymousIdentity.from_client(
        ip_address=ip,
        user_agent="Mozilla/5.0",
        accept_language="en-US",
        now=now,
    )


def test_identity_shares_fingerprint_within_subnet():
    first = _identity("203.0.113.7")
    second = _identity("203.0.113.200")
    other = _identity("198.51.100.7")

    assert first.fingerprint_hash == second.fingerprint_hash
    assert first.fingerprint_hash != other.fingerprint_hash
    assert first.ip_subnet == "203.0.113.0/24"
    assert first.month == "2026-03"


def test_anonymous_runs_use_cheapest_model(db_session: AsyncSession):
    gate = AnonymousRunGate(db_session)

    assert gate.resolve_model("opus") == "gpt-4o-mini"
    assert gate.resolve_model(None) == "gpt-4o-mini"


@pytest.mark.asyncio
async def test_first_run_allowed_second_rejected(db_session: AsyncSession):
    gate = AnonymousRunGate(db_session)
    identity = _identity()

    await gate.check(identity)
    await gate.record(identity, package_id=None, model="gpt-4o-mini")

    with pytest.raises(RateLimitError) as exc_info:
        await gate.check(identity)

    assert exc_info.value.message_code == MessageCode.LIMIT_EXCEEDED
    assert exc_info.value.status_code == 429
    assert exc_info.value.details["current_month"] == "2026-03"
    assert "Sign up" in exc_info.value.details["call_to_action"]


@pytest.mark.asyncio
async def test_quota_resets_each_month(db_session: AsyncSession):
    gate = AnonymousRunGate(db_session)
    await gate.record(_identity(now=MARCH), package_id=None, model="gpt-4o-mini")

    april = _identity(now=APRIL)
    await gate.check(april)
    await gate.record(april, package_id=None, model="gpt-4o-mini")

    count = await db_session.scalar(
        select(func.count()).select_from(AnonymousPlaygroundUsage)
    )
    assert count == 2


@pytest.mark.asyncio
async def test_record_over_limit_rejected(db_session: AsyncSession):
    gate = AnonymousRunGate(db_session)
    identity = _identity()
    await gate.record(identity, package_id=None, model="gpt-4o-mini")

    with pytest.raises(RateLimitError):
        await gate.record(identity, package_id=None, model="gpt-4o-mini")


@pytest.mark.asyncio
async def test_overlapping_first_runs_count_once(session_factory):
    identity = _identity()

    async with session_factory() as first, session_factory() as second:
        first_gate = AnonymousRunGate(first)
        second_gate = AnonymousRunGate(second)
        # Both attempts pass the early check before either is recorded
        await first_gate.check(identity)
        await second_gate.check(identity)

        await first_gate.record(identity, package_id=None, model="gpt-4o-mini")
        with pytest.raises(RateLimitError):
            await second_gate.record(identity, package_id=None, model="gpt-4o-mini")

    async with session_factory() as db:
        usage = (await db.execute(select(AnonymousPlaygroundUsage))).scalar_one()
    assert usage.usage_count == 1


@pytest.mark.asyncio
async def test_released_run_can_be_taken_again(db_session: AsyncSession):
    gate = AnonymousRunGate(db_session)
    identity = _identity()
    await gate.record(identity, package_id=None, model="gpt-4o-mini")

    await gate.release(identity)
    await gate.check(identity)
    await gate.record(identity, package_id=None, model="gpt-4o-mini")

    usage = (
        await db_session.execute(
            select(AnonymousPlaygroundUsage).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert usage.usage_count == 1
