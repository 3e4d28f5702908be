"""Stripe webhook endpoint."""

import time

from fastapi import APIRouter, Request, status

from src.api.core.dependencies import AsyncSessionDep
from src.api.core.exceptions.base import PRPMException
from src.api.core.messages import MessageCode
from src.modules.credits.purchases import CreditPurchaseService
from src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSessionDep,
):
    """Handle Stripe webhook events for playground credit purchases."""
    payload = await request.body()

    # Security: Ensure payload is not empty and reasonable size
    if not payload:
        raise PRPMException(
            MessageCode.BAD_REQUEST,
            status.HTTP_400_BAD_REQUEST,
            details={"description": "Empty webhook payload"},
        )

    if len(payload) > 1024 * 1024:  # 1MB limit
        raise PRPMException(
            MessageCode.BAD_REQUEST,
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            details={"description": "Webhook payload too large"},
        )

    signature = request.headers.get("stripe-signature")

    if not signature:
        raise PRPMException(
            MessageCode.BAD_REQUEST,
            status.HTTP_400_BAD_REQUEST,
            details={"description": "Missing stripe-signature header"},
        )

    # Security: Validate signature format (should contain timestamp and signatures)
    if not signature.startswith("t=") or ",v" not in signature:
        raise PRPMException(
            MessageCode.BAD_REQUEST,
            status.HTTP_400_BAD_REQUEST,
            details={"description": "Invalid stripe-signature format"},
        )

    purchase_service = CreditPurchaseService(db)

    try:
        event = purchase_service.validate_webhook_signature(payload, signature)
    except ValueError as e:
        logger.warning("Webhook validation error", error=str(e))
        raise PRPMException(
            MessageCode.BAD_REQUEST,
            status.HTTP_400_BAD_REQUEST,
            details={"description": "Invalid webhook data"},
        ) from e

    # Security: Check event timestamp is recent
    event_timestamp = event.get("created", 0)
    tolerance = purchase_service.stripe_settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
    if abs(int(time.time()) - event_timestamp) > tolerance:
        logger.warning("Webhook event timestamp too old", created=event_timestamp)
        raise PRPMException(
            MessageCode.BAD_REQUEST,
            status.HTTP_400_BAD_REQUEST,
            details={"description": "Webhook event timestamp too old"},
        )

    handled = await purchase_service.handle_webhook_event(event)

    if handled:
        logger.info("Processed webhook event", event_type=event["type"])
        return {"status": "success"}
    logger.debug("Webhook event not handled", event_type=event["type"])
    return {"status": "ignored"}
