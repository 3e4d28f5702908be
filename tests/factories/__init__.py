"""Test factories for PRPM Playground API models."""

from .base import AsyncSQLAlchemyModelFactory
from .users import UserFactory
from .packages import PackageFactory, PackageVersionFactory
from .credits import CreditBalanceFactory
from .sessions import PlaygroundSessionFactory

__all__ = [
    "AsyncSQLAlchemyModelFactory",
    "UserFactory",
    "PackageFactory",
    "PackageVersionFactory",
    "CreditBalanceFactory",
    "PlaygroundSessionFactory",
]
