"""Factory for PlaygroundSession models."""

from src.database.models import PlaygroundSession
from .base import AsyncSQLAlchemyModelFactory, UUIDFactory


class PlaygroundSessionFactory(AsyncSQLAlchemyModelFactory[PlaygroundSession]):
    """Factory for creating PlaygroundSession instances."""

    class Meta:
        model = PlaygroundSession

    id = UUIDFactory()
    model = "sonnet"
    package_version = "1.0.0"
    credits_spent = 0
    total_tokens = 0
    total_duration_ms = 0
    run_count = 0
    is_custom_prompt = False
    is_public = False
