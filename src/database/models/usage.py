"""Playground usage analytics."""

import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PlaygroundUsage(Base):
    """One row per settled run."""

    __tablename__ = "playground_usage"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    package_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    session_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    model: Mapped[str] = mapped_column(String, nullable=False)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credits_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_api_cost_usd: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )
    input_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_length: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comparison_mode: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_custom_prompt: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
