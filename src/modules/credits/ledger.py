"""Per-user playground credit ledger.

The balance row is only ever changed through a compare-and-set UPDATE guarded
by its ``version`` column, so concurrent debits can never overdraw it. Every
change is mirrored by an append-only CreditTransaction.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select, update

from src.api.core.exceptions.base import (
    InsufficientCreditsError,
    NotFoundError,
    PRPMException,
    ValidationError,
)
from src.api.core.messages import MessageCode
from src.core.base import BaseService
from src.database.models import CreditBalance, CreditTransaction, TransactionType
from src.modules.credits.constants import SIGNUP_DESCRIPTION
from src.utils.dates import add_months, utcnow

_BALANCE_FIELDS = (
    "monthly_credits",
    "monthly_credits_used",
    "rollover_credits",
    "purchased_credits",
)


@dataclass(frozen=True)
class Reservation:
    """Result of a successful pre-flight balance check. Nothing is held."""

    user_id: UUID
    amount: int
    available: int
    version: int


def _total_after(balance: CreditBalance, values: dict) -> int:
    monthly, used, rollover, purchased = (
        values.get(field, getattr(balance, field)) for field in _BALANCE_FIELDS
    )
    return (monthly - used) + rollover + purchased


def split_debit(balance: CreditBalance, amount: int) -> tuple[int, int, int]:
    """Split a debit across monthly remainder, rollover, then purchased."""
    from_monthly = min(amount, balance.monthly_remaining)
    remaining = amount - from_monthly
    from_rollover = min(remaining, balance.rollover_credits)
    from_purchased = remaining - from_rollover
    return from_monthly, from_rollover, from_purchased


class CreditLedgerService(BaseService):
    """Service owning every mutation of a user's playground credits.

    Mutating methods flush but do not commit, so the caller decides the unit
    of work. The batch jobs (monthly reset and rollover expiry) commit per
    user.
    """

    async def _load(self, user_id: UUID) -> CreditBalance | None:
        # Always hit the database: the identity map copy may predate a
        # compare-and-set UPDATE issued by this or another session.
        stmt = (
            select(CreditBalance)
            .where(CreditBalance.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_balance(self, user_id: UUID) -> CreditBalance:
        balance = await self._load(user_id)
        if balance is None:
            raise NotFoundError(MessageCode.CREDITS_NOT_FOUND, resource="credits")
        return balance

    async def get_available(self, user_id: UUID) -> int:
        """Spendable credits, or 0 if the user has no credit record."""
        balance = await self._load(user_id)
        return balance.total if balance else 0

    async def initialize_credits(self, user_id: UUID) -> CreditBalance:
        """Create the credit record with the signup grant. Idempotent."""
        existing = await self._load(user_id)
        if existing is not None:
            return existing

        amount = self.settings.SIGNUP_CREDITS
        balance = CreditBalance(
            user_id=user_id,
            purchased_credits=amount,
            lifetime_earned=amount,
        )
        self.db.add(balance)
        self._record(
            user_id,
            amount=amount,
            balance_after=amount,
            transaction_type=TransactionType.SIGNUP,
            description=SIGNUP_DESCRIPTION,
        )
        await self.db.flush()

        self.logger.info("Initialized playground credits", user_id=str(user_id))
        return balance

    async def reserve(self, user_id: UUID, amount: int) -> Reservation:
        """Check that the user can currently afford ``amount``.

        Raises:
            InsufficientCreditsError: with the required and available amounts.
        """
        balance = await self._load(user_id)
        available = balance.total if balance else 0
        if available < amount:
            self.logger.warning(
                "Credit reservation rejected",
                user_id=str(user_id),
                required=amount,
                available=available,
            )
            raise InsufficientCreditsError(amount, available)
        return Reservation(
            user_id=user_id,
            amount=amount,
            available=available,
            version=balance.version if balance else 0,
        )

    async def debit(
        self,
        user_id: UUID,
        amount: int,
        session_id: UUID | None = None,
        description: str = "Playground run",
        metadata: dict | None = None,
    ) -> CreditTransaction:
        """Atomically deduct ``amount`` and append a spend transaction.

        Raises:
            ValidationError: if amount is not positive.
            InsufficientCreditsError: if a fresh read shows too few credits.
        """
        if amount <= 0:
            raise ValidationError(message="Debit amount must be positive")

        def compute(balance: CreditBalance) -> dict:
            if amount > balance.total:
                self.logger.warning(
                    "Debit rejected",
                    user_id=str(user_id),
                    required=amount,
                    available=balance.total,
                )
                raise InsufficientCreditsError(amount, balance.total)
            from_monthly, from_rollover, from_purchased = split_debit(
                balance, amount
            )
            return {
                "monthly_credits_used": balance.monthly_credits_used + from_monthly,
                "rollover_credits": balance.rollover_credits - from_rollover,
                "purchased_credits": balance.purchased_credits - from_purchased,
                "lifetime_spent": balance.lifetime_spent + amount,
            }

        balance, values = await self._mutate(user_id, compute)
        transaction = self._record(
            user_id,
            amount=-amount,
            balance_after=_total_after(balance, values),
            transaction_type=TransactionType.SPEND,
            description=description,
            metadata={
                **(metadata or {}),
                "from_monthly": values["monthly_credits_used"]
                - balance.monthly_credits_used,
                "from_rollover": balance.rollover_credits
                - values["rollover_credits"],
                "from_purchased": balance.purchased_credits
                - values["purchased_credits"],
            },
            session_id=session_id,
        )
        await self.db.flush()

        self.logger.info(
            "Credits debited",
            user_id=str(user_id),
            amount=amount,
            balance_after=transaction.balance_after,
            session_id=str(session_id) if session_id else None,
        )
        return transaction

    async def add_credits(
        self,
        user_id: UUID,
        amount: int,
        transaction_type: TransactionType,
        description: str,
        metadata: dict | None = None,
        purchase_id: UUID | None = None,
    ) -> CreditTransaction:
        """Add credits to the purchased bucket and log the grant."""
        if amount <= 0:
            raise ValidationError(message="Credit amount must be positive")

        def compute(balance: CreditBalance) -> dict:
            values = {
                "purchased_credits": balance.purchased_credits + amount,
                "lifetime_earned": balance.lifetime_earned + amount,
            }
            if transaction_type in (TransactionType.PURCHASE, TransactionType.BONUS):
                values["lifetime_purchased"] = balance.lifetime_purchased + amount
            return values

        balance, values = await self._mutate(user_id, compute)
        transaction = self._record(
            user_id,
            amount=amount,
            balance_after=_total_after(balance, values),
            transaction_type=transaction_type,
            description=description,
            metadata=metadata,
            purchase_id=purchase_id,
        )
        await self.db.flush()

        self.logger.info(
            "Credits added",
            user_id=str(user_id),
            amount=amount,
            transaction_type=TransactionType(transaction_type).value,
        )
        return transaction

    async def grant_monthly_credits(
        self, user_id: UUID, now: datetime | None = None
    ) -> CreditTransaction:
        """Start a fresh monthly allocation, e.g. on subscription renewal."""
        now = now or utcnow()
        allowance = self.settings.MONTHLY_CREDIT_ALLOWANCE

        def compute(balance: CreditBalance) -> dict:
            return {
                "monthly_credits": allowance,
                "monthly_credits_used": 0,
                "monthly_reset_at": add_months(now),
                "lifetime_earned": balance.lifetime_earned + allowance,
            }

        balance, values = await self._mutate(user_id, compute)
        transaction = self._record(
            user_id,
            amount=allowance,
            balance_after=_total_after(balance, values),
            transaction_type=TransactionType.MONTHLY,
            description=f"Monthly allocation of {allowance} playground credits",
        )
        await self.db.flush()

        self.logger.info(
            "Monthly credits granted", user_id=str(user_id), amount=allowance
        )
        return transaction

    async def remove_monthly_credits(self, user_id: UUID) -> int:
        """Drop the unused monthly allocation. Returns the credits removed."""
        removed = 0

        def compute(balance: CreditBalance) -> dict:
            nonlocal removed
            removed = balance.monthly_remaining
            return {
                "monthly_credits": 0,
                "monthly_credits_used": 0,
                "monthly_reset_at": None,
            }

        balance, values = await self._mutate(user_id, compute)
        if removed:
            self._record(
                user_id,
                amount=-removed,
                balance_after=_total_after(balance, values),
                transaction_type=TransactionType.EXPIRE,
                description="Monthly credits removed",
            )
        await self.db.flush()

        self.logger.info(
            "Monthly credits removed", user_id=str(user_id), amount=removed
        )
        return removed

    async def process_monthly_reset(self, now: datetime | None = None) -> int:
        """Roll every due balance into its next cycle.

        Unused monthly credits carry over up to ROLLOVER_CAP, previous
        rollover expires, and the monthly allowance is granted again.

        Returns:
            Number of balances reset.
        """
        now = now or utcnow()
        stmt = select(CreditBalance.user_id).where(
            CreditBalance.monthly_reset_at.is_not(None),
            CreditBalance.monthly_reset_at <= now,
        )
        user_ids = (await self.db.execute(stmt)).scalars().all()

        for user_id in user_ids:
            await self._reset_balance(user_id, now)
            await self.db.commit()

        self.logger.info("Monthly credit reset complete", balances_reset=len(user_ids))
        return len(user_ids)

    async def _reset_balance(self, user_id: UUID, now: datetime) -> None:
        allowance = self.settings.MONTHLY_CREDIT_ALLOWANCE
        carried = {}

        def compute(balance: CreditBalance) -> dict:
            unused = balance.monthly_remaining
            new_rollover = min(unused, self.settings.ROLLOVER_CAP)
            carried.update(
                unused=unused,
                old_rollover=balance.rollover_credits,
                new_rollover=new_rollover,
            )
            return {
                "monthly_credits": allowance,
                "monthly_credits_used": 0,
                "monthly_reset_at": add_months(now),
                "rollover_credits": new_rollover,
                "rollover_expires_at": (
                    now + timedelta(days=self.settings.ROLLOVER_VALIDITY_DAYS)
                    if new_rollover
                    else None
                ),
                "lifetime_earned": balance.lifetime_earned + allowance,
            }

        balance, values = await self._mutate(user_id, compute)

        # Replay the reset as ledger entries so each balance_after is exact
        running = balance.total
        expired = carried["old_rollover"] + carried["unused"]
        if expired:
            running -= expired
            self._record(
                user_id,
                amount=-expired,
                balance_after=running,
                transaction_type=TransactionType.EXPIRE,
                description="Previous cycle credits expired",
                metadata={
                    "expired_rollover": carried["old_rollover"],
                    "unused_monthly": carried["unused"],
                },
            )
        if carried["new_rollover"]:
            running += carried["new_rollover"]
            self._record(
                user_id,
                amount=carried["new_rollover"],
                balance_after=running,
                transaction_type=TransactionType.ROLLOVER,
                description=(
                    f"Rolled over {carried['new_rollover']} unused monthly credits"
                ),
                metadata={"expires_at": values["rollover_expires_at"].isoformat()},
            )
        self._record(
            user_id,
            amount=allowance,
            balance_after=_total_after(balance, values),
            transaction_type=TransactionType.MONTHLY,
            description=f"Monthly allocation of {allowance} playground credits",
        )
        await self.db.flush()

        self.logger.info(
            "Monthly credits reset",
            user_id=str(user_id),
            rollover=carried["new_rollover"],
            expired=expired,
        )

    async def expire_rollover_credits(self, now: datetime | None = None) -> int:
        """Zero out rollover credits past their expiry. Returns balances touched."""
        now = now or utcnow()
        stmt = select(CreditBalance.user_id).where(
            CreditBalance.rollover_credits > 0,
            CreditBalance.rollover_expires_at.is_not(None),
            CreditBalance.rollover_expires_at <= now,
        )
        user_ids = (await self.db.execute(stmt)).scalars().all()

        for user_id in user_ids:
            expired = 0

            def compute(balance: CreditBalance) -> dict:
                nonlocal expired
                expired = balance.rollover_credits
                return {"rollover_credits": 0, "rollover_expires_at": None}

            balance, values = await self._mutate(user_id, compute)
            if expired:
                self._record(
                    user_id,
                    amount=-expired,
                    balance_after=_total_after(balance, values),
                    transaction_type=TransactionType.EXPIRE,
                    description=f"{expired} rollover credits expired",
                )
            await self.db.commit()
            self.logger.info(
                "Rollover credits expired", user_id=str(user_id), amount=expired
            )

        return len(user_ids)

    async def refund_purchase(
        self, user_id: UUID, credits: int, purchase_id: UUID | None = None
    ) -> int:
        """Take back refunded credits the user still holds.

        Credits that were already spent are not clawed back, so the balance
        never goes negative. Returns the credits removed.
        """
        removed = 0

        def compute(balance: CreditBalance) -> dict:
            nonlocal removed
            removed = min(credits, balance.purchased_credits)
            return {"purchased_credits": balance.purchased_credits - removed}

        balance, values = await self._mutate(user_id, compute)
        if removed:
            self._record(
                user_id,
                amount=-removed,
                balance_after=_total_after(balance, values),
                transaction_type=TransactionType.REFUND,
                description=f"Refunded {removed} purchased credits",
                metadata={"requested": credits},
                purchase_id=purchase_id,
            )
        await self.db.flush()

        if removed < credits:
            self.logger.warning(
                "Refund exceeds held purchased credits",
                user_id=str(user_id),
                requested=credits,
                removed=removed,
            )
        else:
            self.logger.info("Purchase refunded", user_id=str(user_id), amount=removed)
        return removed

    async def get_transaction_history(
        self,
        user_id: UUID,
        limit: int = 50,
        offset: int = 0,
        transaction_type: TransactionType | None = None,
    ) -> tuple[list[CreditTransaction], int]:
        filters = [CreditTransaction.user_id == user_id]
        if transaction_type is not None:
            filters.append(
                CreditTransaction.transaction_type
                == TransactionType(transaction_type).value
            )

        total = await self.db.scalar(
            select(func.count()).select_from(CreditTransaction).where(*filters)
        )
        stmt = (
            select(CreditTransaction)
            .where(*filters)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id)
            .limit(limit)
            .offset(offset)
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return list(rows), total or 0

    async def _mutate(
        self, user_id: UUID, compute: Callable[[CreditBalance], dict]
    ) -> tuple[CreditBalance, dict]:
        """Read, compute new values, and compare-and-set, retrying on conflict.

        ``compute`` runs against every fresh read and may raise to abort.
        Returns the balance as read before the write plus the values written.
        """
        for attempt in range(1, self.settings.DEBIT_MAX_ATTEMPTS + 1):
            balance = await self.get_balance(user_id)
            values = compute(balance)
            stmt = (
                update(CreditBalance)
                .where(
                    CreditBalance.user_id == user_id,
                    CreditBalance.version == balance.version,
                )
                .values(**values, version=balance.version + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            if result.rowcount == 1:
                return balance, values

            self.logger.info(
                "Credit balance changed concurrently, retrying",
                user_id=str(user_id),
                attempt=attempt,
            )

        self.logger.error(
            "Credit balance update gave up after repeated conflicts",
            user_id=str(user_id),
        )
        raise PRPMException(MessageCode.CONFLICT, status.HTTP_409_CONFLICT)

    def _record(
        self,
        user_id: UUID,
        amount: int,
        balance_after: int,
        transaction_type: TransactionType,
        description: str,
        metadata: dict | None = None,
        session_id: UUID | None = None,
        purchase_id: UUID | None = None,
    ) -> CreditTransaction:
        transaction = CreditTransaction(
            user_id=user_id,
            amount=amount,
            balance_after=balance_after,
            transaction_type=TransactionType(transaction_type).value,
            description=description,
            metadata_=metadata or {},
            session_id=session_id,
            purchase_id=purchase_id,
        )
        self.db.add(transaction)
        return transaction
