"""Tests for the Stripe webhook endpoint."""

import hashlib
import hmac
import json
import time

import pytest
from httpx import AsyncClient

from src.api.core.messages import MessageCode
from src.database.models import CreditPurchase, PurchaseStatus
from src.modules.credits.constants import PLAYGROUND_CREDITS_METADATA_TYPE
from src.modules.credits.ledger import CreditLedgerService
from src.utils.settings.stripe import StripeSettings
from tests.utils.assertions import assert_error_response


def _signed(payload: dict) -> tuple[bytes, str]:
    body = json.dumps(payload).encode()
    timestamp = int(time.time())
    signature = hmac.new(
        StripeSettings().STRIPE_WEBHOOK_SECRET.encode(),
        f"{timestamp}.{body.decode()}".encode(),
        hashlib.sha256,
    ).hexdigest()
    return body, f"t={timestamp},v1={signature}"


@pytest.mark.asyncio
async def test_webhook_rejects_missing_signature(public_client: AsyncClient):
    response = await public_client.post("/stripe/webhook", content=b"{}")

    assert_error_response(response, MessageCode.BAD_REQUEST, 400)


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(public_client: AsyncClient):
    response = await public_client.post(
        "/stripe/webhook",
        content=b'{"type": "payment_intent.succeeded"}',
        headers={"stripe-signature": "t=1,v1=deadbeef"},
    )

    body = assert_error_response(response, MessageCode.BAD_REQUEST, 400)
    assert body["details"]["description"] == "Invalid webhook data"


@pytest.mark.asyncio
async def test_webhook_grants_purchased_credits(
    public_client: AsyncClient, db_session, test_user
):
    purchase = CreditPurchase(
        user_id=test_user.id,
        credits=100,
        bonus_credits=0,
        amount_cents=500,
        package_type="small",
        stripe_payment_intent_id="pi_webhook",
        status=PurchaseStatus.PENDING.value,
    )
    db_session.add(purchase)
    await db_session.commit()

    body, signature = _signed(
        {
            "id": "evt_test",
            "object": "event",
            "created": int(time.time()),
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": "pi_webhook",
                    "object": "payment_intent",
                    "metadata": {"type": PLAYGROUND_CREDITS_METADATA_TYPE},
                }
            },
        }
    )

    response = await public_client.post(
        "/stripe/webhook",
        content=body,
        headers={"stripe-signature": signature, "content-type": "application/json"},
    )

    assert response.status_code == 200, response.text
    assert response.json() == {"status": "success"}
    balance = await CreditLedgerService(db_session).get_balance(test_user.id)
    assert balance.purchased_credits == 100
