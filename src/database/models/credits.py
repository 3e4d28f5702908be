"""Playground credit balance and ledger models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class TransactionType(str, Enum):
    SIGNUP = "signup"
    MONTHLY = "monthly"
    PURCHASE = "purchase"
    SPEND = "spend"
    ROLLOVER = "rollover"
    EXPIRE = "expire"
    REFUND = "refund"
    BONUS = "bonus"
    ADMIN = "admin"


class CreditBalance(Base):
    """One row per user. Mutated only through CreditLedgerService."""

    __tablename__ = "playground_credits"
    __table_args__ = (
        CheckConstraint("monthly_credits >= 0", name="monthly_non_negative"),
        CheckConstraint(
            "monthly_credits_used >= 0 AND monthly_credits_used <= monthly_credits",
            name="monthly_used_within_allocation",
        ),
        CheckConstraint("rollover_credits >= 0", name="rollover_non_negative"),
        CheckConstraint("purchased_credits >= 0", name="purchased_non_negative"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    monthly_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    monthly_credits_used: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    monthly_reset_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rollover_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rollover_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    purchased_credits: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    lifetime_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lifetime_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lifetime_purchased: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    # Compare-and-set token, bumped on every balance mutation
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="credits")

    @property
    def monthly_remaining(self) -> int:
        return self.monthly_credits - self.monthly_credits_used

    @property
    def total(self) -> int:
        """Spendable credits: monthly remainder + rollover + purchased."""
        return self.monthly_remaining + self.rollover_credits + self.purchased_credits


class CreditTransaction(Base):
    """Append-only ledger entry. Rows are never updated or deleted."""

    __tablename__ = "playground_credit_transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(
        String, nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String, nullable=False)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    session_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    purchase_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
