"""Credits API schemas (combined models/requests)."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from src.api.core.messages import APIResponse, Paginated


class MonthlyCreditsModel(BaseModel):
    allocated: int
    used: int
    remaining: int
    reset_at: datetime | None


class RolloverCreditsModel(BaseModel):
    amount: int
    expires_at: datetime | None


class LifetimeCreditsModel(BaseModel):
    earned: int
    spent: int
    purchased: int


class CreditBalanceModel(BaseModel):
    balance: int
    monthly: MonthlyCreditsModel
    rollover: RolloverCreditsModel
    purchased: int
    lifetime: LifetimeCreditsModel


class CreditTransactionModel(BaseModel):
    id: UUID
    amount: int
    balance_after: int
    transaction_type: str
    description: str
    metadata: dict[str, Any] = Field(validation_alias="metadata_")
    session_id: UUID | None
    purchase_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditPackageModel(BaseModel):
    package: str
    credits: int
    bonus_credits: int
    total_credits: int
    price_cents: int
    popular: bool


class CreditPurchaseRequest(BaseModel):
    package: Literal["small", "medium", "large"]


class CreditPurchaseModel(BaseModel):
    client_secret: str | None
    credits: int
    price: int
    purchase_id: UUID


# Response Models
CreditBalanceResponse = APIResponse[CreditBalanceModel]
CreditHistoryResponse = APIResponse[Paginated[CreditTransactionModel]]
CreditPackagesResponse = APIResponse[list[CreditPackageModel]]
CreditPurchaseResponse = APIResponse[CreditPurchaseModel]
