"""Tests for the playground credit ledger."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.exceptions.base import (
    InsufficientCreditsError,
    NotFoundError,
    PRPMException,
    ValidationError,
)
from src.api.core.messages import MessageCode
from src.database.models import CreditTransaction, TransactionType
from src.modules.credits.ledger import CreditLedgerService
from src.utils.dates import ensure_utc
from src.utils.settings.playground import PlaygroundSettings

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def ledger(db_session: AsyncSession) -> CreditLedgerService:
    return CreditLedgerService(db_session)


async def _transactions(db: AsyncSession, user_id) -> list[CreditTransaction]:
    stmt = (
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at)
    )
    return list((await db.execute(stmt)).scalars().all())


@pytest.mark.asyncio
async def test_initialize_credits_grants_signup_bonus(
    db_session: AsyncSession, user_factory, ledger
):
    user = await user_factory.create_async(db_session)

    balance = await ledger.initialize_credits(user.id)
    await db_session.commit()

    assert balance.purchased_credits == 5
    assert balance.total == 5
    transactions = await _transactions(db_session, user.id)
    assert len(transactions) == 1
    assert transactions[0].transaction_type == TransactionType.SIGNUP.value
    assert transactions[0].amount == 5
    assert transactions[0].balance_after == 5


@pytest.mark.asyncio
async def test_initialize_credits_is_idempotent(
    db_session: AsyncSession, user_factory, ledger
):
    user = await user_factory.create_async(db_session)
    await ledger.initialize_credits(user.id)
    await ledger.initialize_credits(user.id)
    await db_session.commit()

    assert len(await _transactions(db_session, user.id)) == 1
    assert await ledger.get_available(user.id) == 5


@pytest.mark.asyncio
async def test_get_balance_missing_record(db_session: AsyncSession, user_factory, ledger):
    user = await user_factory.create_async(db_session)

    with pytest.raises(NotFoundError) as exc_info:
        await ledger.get_balance(user.id)

    assert exc_info.value.message_code == MessageCode.CREDITS_NOT_FOUND
    assert await ledger.get_available(user.id) == 0


@pytest.mark.asyncio
async def test_debit_spends_monthly_then_rollover_then_purchased(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(
        test_user,
        monthly_credits=10,
        monthly_credits_used=8,
        rollover_credits=3,
        purchased_credits=5,
    )

    transaction = await ledger.debit(test_user.id, 4)
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert balance.monthly_credits_used == 10
    assert balance.rollover_credits == 1
    assert balance.purchased_credits == 5
    assert balance.lifetime_spent == 4
    assert balance.total == 6
    assert transaction.amount == -4
    assert transaction.balance_after == 6
    assert transaction.metadata_["from_monthly"] == 2
    assert transaction.metadata_["from_rollover"] == 2
    assert transaction.metadata_["from_purchased"] == 0


@pytest.mark.asyncio
async def test_debit_reaches_purchased_credits(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(test_user, monthly_credits=2, rollover_credits=1, purchased_credits=5)

    transaction = await ledger.debit(test_user.id, 6)
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert balance.monthly_remaining == 0
    assert balance.rollover_credits == 0
    assert balance.purchased_credits == 2
    assert transaction.metadata_["from_purchased"] == 3


@pytest.mark.asyncio
async def test_debit_insufficient_leaves_balance_untouched(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(test_user, purchased_credits=2)

    with pytest.raises(InsufficientCreditsError) as exc_info:
        await ledger.debit(test_user.id, 3)

    assert exc_info.value.required_credits == 3
    assert exc_info.value.available_credits == 2
    assert exc_info.value.status_code == 402
    await db_session.rollback()

    balance = await ledger.get_balance(test_user.id)
    assert balance.purchased_credits == 2
    assert balance.version == 1
    assert await _transactions(db_session, test_user.id) == []


@pytest.mark.asyncio
async def test_debit_rejects_non_positive_amount(test_user, ledger):
    with pytest.raises(ValidationError):
        await ledger.debit(test_user.id, 0)


@pytest.mark.asyncio
async def test_debit_bumps_version(db_session: AsyncSession, test_user, set_balance, ledger):
    await set_balance(test_user, purchased_credits=5)

    await ledger.debit(test_user.id, 1)
    await ledger.debit(test_user.id, 1)
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert balance.version == 3
    assert balance.total == 3


@pytest.mark.asyncio
async def test_reserve_checks_without_holding(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(test_user, purchased_credits=4)

    reservation = await ledger.reserve(test_user.id, 4)

    assert reservation.available == 4
    assert (await ledger.get_balance(test_user.id)).total == 4
    with pytest.raises(InsufficientCreditsError):
        await ledger.reserve(test_user.id, 5)


@pytest.mark.asyncio
async def test_balance_equals_sum_of_transactions(
    db_session: AsyncSession, user_factory, ledger
):
    user = await user_factory.create_async(db_session)
    await ledger.initialize_credits(user.id)
    await ledger.add_credits(
        user.id, 100, TransactionType.PURCHASE, description="Purchased 100"
    )
    await ledger.grant_monthly_credits(user.id, now=NOW)
    await ledger.debit(user.id, 7)
    await ledger.refund_purchase(user.id, 20)
    await db_session.commit()

    transactions = await _transactions(db_session, user.id)
    balance = await ledger.get_balance(user.id)
    assert sum(t.amount for t in transactions) == balance.total
    assert balance.total == 5 + 100 + 200 - 7 - 20


@pytest.mark.asyncio
async def test_add_purchase_credits_tracks_lifetime_purchased(
    db_session: AsyncSession, test_user, ledger
):
    await ledger.add_credits(
        test_user.id, 250, TransactionType.PURCHASE, description="Purchased 250"
    )
    await ledger.add_credits(
        test_user.id, 25, TransactionType.BONUS, description="Bonus 25"
    )
    await ledger.add_credits(
        test_user.id, 10, TransactionType.ADMIN, description="Support credit"
    )
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert balance.purchased_credits == 285
    assert balance.lifetime_purchased == 275
    assert balance.lifetime_earned == 285


@pytest.mark.asyncio
async def test_grant_monthly_credits(db_session: AsyncSession, test_user, ledger):
    transaction = await ledger.grant_monthly_credits(test_user.id, now=NOW)
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert balance.monthly_credits == 200
    assert balance.monthly_credits_used == 0
    assert ensure_utc(balance.monthly_reset_at) == datetime(
        2026, 4, 15, 12, 0, tzinfo=timezone.utc
    )
    assert transaction.transaction_type == TransactionType.MONTHLY.value


@pytest.mark.asyncio
async def test_remove_monthly_credits(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(test_user, monthly_credits=200, monthly_credits_used=50)

    removed = await ledger.remove_monthly_credits(test_user.id)
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert removed == 150
    assert balance.monthly_credits == 0
    assert balance.monthly_reset_at is None


@pytest.mark.asyncio
async def test_monthly_reset_rolls_over_unused_credits(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(
        test_user,
        monthly_credits=200,
        monthly_credits_used=50,
        rollover_credits=30,
        purchased_credits=7,
        monthly_reset_at=NOW - timedelta(minutes=1),
    )

    assert await ledger.process_monthly_reset(now=NOW) == 1

    balance = await ledger.get_balance(test_user.id)
    assert balance.monthly_credits == 200
    assert balance.monthly_credits_used == 0
    assert balance.rollover_credits == 150
    assert balance.purchased_credits == 7
    assert ensure_utc(balance.rollover_expires_at) == NOW + timedelta(days=30)
    assert ensure_utc(balance.monthly_reset_at) == datetime(
        2026, 4, 15, 12, 0, tzinfo=timezone.utc
    )

    transactions = await _transactions(db_session, test_user.id)
    by_type = {t.transaction_type: t for t in transactions}
    assert by_type[TransactionType.EXPIRE.value].amount == -180
    assert by_type[TransactionType.ROLLOVER.value].amount == 150
    assert by_type[TransactionType.MONTHLY.value].amount == 200
    assert by_type[TransactionType.MONTHLY.value].balance_after == balance.total


@pytest.mark.asyncio
async def test_monthly_reset_caps_rollover(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(
        test_user,
        monthly_credits=500,
        monthly_credits_used=0,
        monthly_reset_at=NOW - timedelta(days=1),
    )

    await ledger.process_monthly_reset(now=NOW)

    balance = await ledger.get_balance(test_user.id)
    assert balance.rollover_credits == 200


@pytest.mark.asyncio
async def test_monthly_reset_skips_balances_not_due(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(
        test_user,
        monthly_credits=200,
        monthly_reset_at=NOW + timedelta(days=3),
    )

    assert await ledger.process_monthly_reset(now=NOW) == 0
    assert (await ledger.get_balance(test_user.id)).version == 1


@pytest.mark.asyncio
async def test_expire_rollover_credits(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(
        test_user,
        rollover_credits=40,
        purchased_credits=3,
        rollover_expires_at=NOW - timedelta(seconds=1),
    )

    assert await ledger.expire_rollover_credits(now=NOW) == 1

    balance = await ledger.get_balance(test_user.id)
    assert balance.rollover_credits == 0
    assert balance.rollover_expires_at is None
    assert balance.total == 3
    transactions = await _transactions(db_session, test_user.id)
    assert [t.amount for t in transactions] == [-40]


@pytest.mark.asyncio
async def test_refund_never_drives_balance_negative(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(test_user, purchased_credits=30, monthly_credits=10)

    removed = await ledger.refund_purchase(test_user.id, 50)
    await db_session.commit()

    balance = await ledger.get_balance(test_user.id)
    assert removed == 30
    assert balance.purchased_credits == 0
    assert balance.monthly_remaining == 10


@pytest.mark.asyncio
async def test_transaction_history_filters_and_paginates(
    db_session: AsyncSession, test_user, set_balance, ledger
):
    await set_balance(test_user, purchased_credits=10)
    for _ in range(3):
        await ledger.debit(test_user.id, 1)
    await ledger.add_credits(
        test_user.id, 5, TransactionType.PURCHASE, description="Purchased 5"
    )
    await db_session.commit()

    rows, total = await ledger.get_transaction_history(test_user.id, limit=2)
    assert total == 4
    assert len(rows) == 2

    spends, spend_total = await ledger.get_transaction_history(
        test_user.id, transaction_type=TransactionType.SPEND
    )
    assert spend_total == 3
    assert all(row.transaction_type == TransactionType.SPEND.value for row in spends)


@pytest.mark.asyncio
async def test_debit_retries_after_concurrent_update(
    db_session: AsyncSession, session_factory, test_user, set_balance, ledger
):
    """A stale read loses the compare-and-set and is retried on fresh data."""
    await set_balance(test_user, purchased_credits=10)

    original_get_balance = ledger.get_balance
    reads = 0

    async def racing_get_balance(user_id):
        nonlocal reads
        balance = await original_get_balance(user_id)
        reads += 1
        if reads == 1:
            async with session_factory() as other:
                await CreditLedgerService(other).debit(user_id, 3)
                await other.commit()
        return balance

    ledger.get_balance = racing_get_balance
    transaction = await ledger.debit(test_user.id, 4)
    await db_session.commit()

    assert reads == 2
    assert transaction.balance_after == 3
    assert (await original_get_balance(test_user.id)).total == 3


@pytest.mark.asyncio
async def test_debit_gives_up_after_max_attempts(
    db_session: AsyncSession, session_factory, test_user, set_balance
):
    await set_balance(test_user, purchased_credits=10)
    ledger = CreditLedgerService(db_session, PlaygroundSettings(DEBIT_MAX_ATTEMPTS=1))

    original_get_balance = ledger.get_balance

    async def racing_get_balance(user_id):
        balance = await original_get_balance(user_id)
        async with session_factory() as other:
            await CreditLedgerService(other).debit(user_id, 1)
            await other.commit()
        return balance

    ledger.get_balance = racing_get_balance
    with pytest.raises(PRPMException) as exc_info:
        await ledger.debit(test_user.id, 4)

    assert exc_info.value.message_code == MessageCode.CONFLICT
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_concurrent_debits_never_overdraw(
    session_factory, test_user, set_balance
):
    await set_balance(test_user, purchased_credits=5)

    async def spend(amount: int):
        async with session_factory() as db:
            transaction = await CreditLedgerService(db).debit(test_user.id, amount)
            await db.commit()
            return transaction

    results = await asyncio.gather(spend(3), spend(3), return_exceptions=True)

    succeeded = [r for r in results if isinstance(r, CreditTransaction)]
    rejected = [r for r in results if isinstance(r, InsufficientCreditsError)]
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert rejected[0].available_credits == 2

    async with session_factory() as db:
        balance = await CreditLedgerService(db).get_balance(test_user.id)
    assert balance.total == 2
    assert balance.lifetime_spent == 3
