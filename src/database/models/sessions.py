"""Playground session model."""

import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class PlaygroundSession(Base):
    __tablename__ = "playground_sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Null for custom prompt sessions
    package_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )
    package_version: Mapped[str | None] = mapped_column(String, nullable=True)
    package_name: Mapped[str | None] = mapped_column(String, nullable=True)
    # Ordered [{role, content, timestamp, tokens?}], always user/assistant pairs
    conversation: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    credits_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    model: Mapped[str] = mapped_column(String, nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_duration_ms: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    run_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_custom_prompt: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    share_token: Mapped[str | None] = mapped_column(
        String, unique=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    last_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user = relationship("User", back_populates="playground_sessions")
