"""Anonymous playground quota tracking."""

import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AnonymousPlaygroundUsage(Base):
    __tablename__ = "anonymous_playground_usage"
    __table_args__ = (UniqueConstraint("fingerprint_hash", "current_month"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    fingerprint_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    ip_subnet: Mapped[str] = mapped_column(String, nullable=False)
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
    current_month: Mapped[str] = mapped_column(String(7), nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    package_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    model: Mapped[str | None] = mapped_column(String, nullable=True)
    first_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
