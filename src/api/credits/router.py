"""Playground credits router."""

from fastapi import APIRouter, Query, Request

from src.api.core.constants import DEFAULT_HISTORY_PAGE_SIZE, MAX_HISTORY_PAGE_SIZE
from src.api.core.dependencies import (
    CreditLedgerServiceDep,
    CreditPurchaseServiceDep,
    CurrentUserDep,
)
from src.api.core.messages import APIResponse, MessageCode, Paginated, PaginationInfo
from src.database.models import TransactionType
from src.modules.credits.constants import CREDIT_PACKAGES
from .schemas import (
    CreditBalanceModel,
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditPackageModel,
    CreditPackagesResponse,
    CreditPurchaseModel,
    CreditPurchaseRequest,
    CreditPurchaseResponse,
    CreditTransactionModel,
    LifetimeCreditsModel,
    MonthlyCreditsModel,
    RolloverCreditsModel,
)

router = APIRouter(
    prefix="/playground/credits",
    tags=["credits"],
)


@router.get("", response_model=CreditBalanceResponse)
async def get_credit_balance(
    request: Request,
    current_user: CurrentUserDep,
    ledger: CreditLedgerServiceDep,
) -> CreditBalanceResponse:
    """Get the current credit balance with its monthly, rollover and purchased parts."""
    balance = await ledger.get_balance(current_user.id)
    data = CreditBalanceModel(
        balance=balance.total,
        monthly=MonthlyCreditsModel(
            allocated=balance.monthly_credits,
            used=balance.monthly_credits_used,
            remaining=balance.monthly_remaining,
            reset_at=balance.monthly_reset_at,
        ),
        rollover=RolloverCreditsModel(
            amount=balance.rollover_credits,
            expires_at=balance.rollover_expires_at,
        ),
        purchased=balance.purchased_credits,
        lifetime=LifetimeCreditsModel(
            earned=balance.lifetime_earned,
            spent=balance.lifetime_spent,
            purchased=balance.lifetime_purchased,
        ),
    )
    return APIResponse.success(message_code=MessageCode.SUCCESS, data=data)


@router.get("/history", response_model=CreditHistoryResponse)
async def get_credit_history(
    request: Request,
    current_user: CurrentUserDep,
    ledger: CreditLedgerServiceDep,
    limit: int = Query(DEFAULT_HISTORY_PAGE_SIZE, ge=1, le=MAX_HISTORY_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    type: TransactionType | None = None,
) -> CreditHistoryResponse:
    """Get the credit ledger, newest first."""
    rows, total = await ledger.get_transaction_history(
        current_user.id, limit=limit, offset=offset, transaction_type=type
    )
    items = [CreditTransactionModel.model_validate(row) for row in rows]
    pagination_info = PaginationInfo(
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(items) < total,
    )
    paginated_data = Paginated[CreditTransactionModel](
        items=items,
        pagination=pagination_info,
    )
    return APIResponse.success(message_code=MessageCode.SUCCESS, data=paginated_data)


@router.get("/packages", response_model=CreditPackagesResponse)
async def get_credit_packages() -> CreditPackagesResponse:
    """List the credit packages available for purchase."""
    packages = [
        CreditPackageModel(
            package=package.package,
            credits=package.credits,
            bonus_credits=package.bonus_credits,
            total_credits=package.total_credits,
            price_cents=package.price_cents,
            popular=package.popular,
        )
        for package in CREDIT_PACKAGES.values()
    ]
    return APIResponse.success(message_code=MessageCode.SUCCESS, data=packages)


@router.post("/purchase", response_model=CreditPurchaseResponse)
async def purchase_credits(
    request: Request,
    body: CreditPurchaseRequest,
    current_user: CurrentUserDep,
    purchase_service: CreditPurchaseServiceDep,
) -> CreditPurchaseResponse:
    """Start a credit purchase and return the PaymentIntent client secret."""
    purchase = await purchase_service.create_purchase(current_user.id, body.package)
    return APIResponse.success(
        message_code=MessageCode.CREDIT_PURCHASE_CREATED,
        data=CreditPurchaseModel(**purchase),
    )
