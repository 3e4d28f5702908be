"""Playground credit purchases through Stripe PaymentIntents."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import stripe  # type: ignore
from fastapi import status
from sqlalchemy import select, update
from stripe import StripeError  # type: ignore

from src.api.core.exceptions.base import PRPMException, ValidationError
from src.api.core.messages import MessageCode
from src.core.base import BaseService
from src.database.models import (
    CreditPurchase,
    PurchaseStatus,
    TransactionType,
    User,
)
from src.modules.credits.constants import (
    CREDIT_PACKAGES,
    PLAYGROUND_CREDITS_METADATA_TYPE,
    CreditPackage,
)
from src.modules.credits.ledger import CreditLedgerService
from src.utils.settings.stripe import StripeSettings


def get_credit_package(package: str) -> CreditPackage:
    credit_package = CREDIT_PACKAGES.get(package)
    if credit_package is None:
        raise ValidationError(
            message=f"Unknown credit package: {package}",
            message_code=MessageCode.INVALID_CREDIT_PACKAGE,
            details={"supported": sorted(CREDIT_PACKAGES)},
        )
    return credit_package


class CreditPurchaseService(BaseService):
    def __init__(self, db, ledger: CreditLedgerService | None = None):
        super().__init__(db)
        self.stripe_settings = StripeSettings()
        stripe.api_key = self.stripe_settings.STRIPE_SECRET_KEY.get_secret_value()
        self.ledger = ledger or CreditLedgerService(db)

    async def _find_or_create_stripe_customer(self, user: User) -> str:
        """Return the user's Stripe customer ID, creating the customer if needed."""
        if user.stripe_customer_id:
            return user.stripe_customer_id

        try:
            customer = stripe.Customer.create(
                email=user.email,
                name=user.name or None,
                metadata={"user_id": str(user.id)},
            )
        except StripeError as e:
            self.logger.error(
                "Failed to create Stripe customer", user_id=str(user.id), error=str(e)
            )
            raise PRPMException(
                MessageCode.PAYMENT_PROVIDER_ERROR, status.HTTP_502_BAD_GATEWAY
            ) from e

        user.stripe_customer_id = customer.id
        self.logger.info(
            "Created Stripe customer", user_id=str(user.id), customer_id=customer.id
        )
        return customer.id

    async def create_purchase(self, user_id: UUID, package: str) -> dict[str, Any]:
        """Create a PaymentIntent and a pending purchase row. Commits."""
        credit_package = get_credit_package(package)
        user = await self.db.get(User, user_id)
        if user is None:
            raise PRPMException(MessageCode.AUTH_REQUIRED, status.HTTP_401_UNAUTHORIZED)

        customer_id = await self._find_or_create_stripe_customer(user)
        try:
            payment_intent = stripe.PaymentIntent.create(
                amount=credit_package.price_cents,
                currency=self.stripe_settings.STRIPE_CURRENCY,
                customer=customer_id,
                automatic_payment_methods={"enabled": True},
                metadata={
                    "user_id": str(user.id),
                    "credits": str(credit_package.credits),
                    "package": credit_package.package,
                    "type": PLAYGROUND_CREDITS_METADATA_TYPE,
                },
                description=f"PRPM Playground credits ({credit_package.package})",
            )
        except StripeError as e:
            self.logger.error(
                "Failed to create PaymentIntent", user_id=str(user.id), error=str(e)
            )
            raise PRPMException(
                MessageCode.PAYMENT_PROVIDER_ERROR, status.HTTP_502_BAD_GATEWAY
            ) from e

        purchase = CreditPurchase(
            user_id=user.id,
            credits=credit_package.credits,
            bonus_credits=credit_package.bonus_credits,
            amount_cents=credit_package.price_cents,
            package_type=credit_package.package,
            stripe_payment_intent_id=payment_intent.id,
            stripe_customer_id=customer_id,
            status=PurchaseStatus.PENDING.value,
        )
        self.db.add(purchase)
        await self.db.commit()

        self.logger.info(
            "Credit purchase created",
            user_id=str(user.id),
            package=credit_package.package,
            purchase_id=str(purchase.id),
        )
        return {
            "client_secret": payment_intent.client_secret,
            "credits": credit_package.total_credits,
            "price": credit_package.price_cents,
            "purchase_id": purchase.id,
        }

    def validate_webhook_signature(self, payload: bytes, signature: str) -> dict:
        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                self.stripe_settings.STRIPE_WEBHOOK_SECRET,
                tolerance=self.stripe_settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise ValueError("Invalid webhook data") from e

    async def handle_webhook_event(self, event: dict) -> bool:
        """Dispatch a verified Stripe event. Returns False for ignored types."""
        event_type = event["type"]
        data = event["data"]["object"]

        webhook_handlers = {
            "payment_intent.succeeded": self._handle_payment_succeeded,
            "payment_intent.payment_failed": self._handle_payment_failed,
            "charge.refunded": self._handle_charge_refunded,
        }

        handler = webhook_handlers.get(event_type)
        if not handler:
            return False

        try:
            await handler(data)
        except Exception:
            await self.db.rollback()
            self.logger.error("Error handling webhook", event_type=event_type)
            raise
        return True

    async def _get_purchase(self, payment_intent_id: str) -> CreditPurchase | None:
        stmt = select(CreditPurchase).where(
            CreditPurchase.stripe_payment_intent_id == payment_intent_id
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _claim(
        self, purchase: CreditPurchase, expected: PurchaseStatus, **values
    ) -> bool:
        """Move the purchase out of ``expected`` unless another delivery already did.

        The status check and the write are one UPDATE, so of two overlapping
        deliveries of the same event only one sees ``rowcount == 1``.
        """
        stmt = (
            update(CreditPurchase)
            .where(
                CreditPurchase.id == purchase.id,
                CreditPurchase.status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def _handle_payment_succeeded(self, intent: dict) -> None:
        metadata = intent.get("metadata") or {}
        if metadata.get("type") != PLAYGROUND_CREDITS_METADATA_TYPE:
            return

        purchase = await self._get_purchase(intent["id"])
        if purchase is None:
            self.logger.warning(
                "No purchase for succeeded PaymentIntent", payment_intent=intent["id"]
            )
            return

        claimed = await self._claim(
            purchase,
            PurchaseStatus.PENDING,
            status=PurchaseStatus.SUCCEEDED.value,
            completed_at=datetime.now(timezone.utc),
        )
        if not claimed:
            self.logger.info(
                "Purchase already fulfilled", purchase_id=str(purchase.id)
            )
            return

        await self.ledger.add_credits(
            purchase.user_id,
            purchase.credits,
            TransactionType.PURCHASE,
            description=f"Purchased {purchase.credits} playground credits",
            metadata={"package": purchase.package_type},
            purchase_id=purchase.id,
        )
        if purchase.bonus_credits:
            await self.ledger.add_credits(
                purchase.user_id,
                purchase.bonus_credits,
                TransactionType.BONUS,
                description=f"Bonus {purchase.bonus_credits} credits",
                metadata={"package": purchase.package_type},
                purchase_id=purchase.id,
            )
        await self.db.commit()

        self.logger.info(
            "Credit purchase fulfilled",
            user_id=str(purchase.user_id),
            purchase_id=str(purchase.id),
            credits=purchase.credits + purchase.bonus_credits,
        )

    async def _handle_payment_failed(self, intent: dict) -> None:
        purchase = await self._get_purchase(intent["id"])
        if purchase is None:
            return

        error = intent.get("last_payment_error") or {}
        reason = error.get("message") or "Payment failed"
        claimed = await self._claim(
            purchase,
            PurchaseStatus.PENDING,
            status=PurchaseStatus.FAILED.value,
            failure_reason=reason,
            failed_at=datetime.now(timezone.utc),
        )
        await self.db.commit()

        if claimed:
            self.logger.warning(
                "Credit purchase failed", purchase_id=str(purchase.id), reason=reason
            )

    async def _handle_charge_refunded(self, charge: dict) -> None:
        """Remove refunded credits in proportion to the refunded amount."""
        payment_intent_id = charge.get("payment_intent")
        if not payment_intent_id:
            return

        purchase = await self._get_purchase(payment_intent_id)
        if purchase is None:
            return

        claimed = await self._claim(
            purchase,
            PurchaseStatus.SUCCEEDED,
            status=PurchaseStatus.REFUNDED.value,
            refunded_at=datetime.now(timezone.utc),
        )
        if not claimed:
            return

        refund_amount = charge.get("amount_refunded", 0)
        original_amount = charge.get("amount") or purchase.amount_cents
        granted = purchase.credits + purchase.bonus_credits
        credits_to_remove = granted
        if original_amount > 0 and refund_amount < original_amount:
            credits_to_remove = int(granted * refund_amount / original_amount)

        if credits_to_remove:
            await self.ledger.refund_purchase(
                purchase.user_id, credits_to_remove, purchase.id
            )
        await self.db.commit()

        self.logger.info(
            "Credit purchase refunded",
            purchase_id=str(purchase.id),
            credits_removed=credits_to_remove,
        )
