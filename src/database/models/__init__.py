"""Database models for the PRPM Playground API."""

from .anonymous import AnonymousPlaygroundUsage
from .base import Base
from .credits import CreditBalance, CreditTransaction, TransactionType
from .packages import Package, PackageVersion
from .purchases import CreditPurchase, PurchaseStatus
from .sessions import PlaygroundSession
from .usage import PlaygroundUsage
from .users import User

# Export all models and enums
__all__ = [
    # Base
    "Base",
    # Enums
    "TransactionType",
    "PurchaseStatus",
    # Models
    "User",
    "Package",
    "PackageVersion",
    "CreditBalance",
    "CreditTransaction",
    "CreditPurchase",
    "PlaygroundSession",
    "PlaygroundUsage",
    "AnonymousPlaygroundUsage",
]
