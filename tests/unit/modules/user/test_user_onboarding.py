"""Tests for first-sight user onboarding and token handling."""

from uuid import uuid4

import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.constants import JWT_ALGORITHM
from src.api.core.exceptions.base import PRPMException
from src.api.core.messages import MessageCode
from src.database.models import User
from src.modules.credits.ledger import CreditLedgerService
from src.modules.user.auth_handlers import handle_jwt_auth
from src.modules.user.onboarding import UserOnboardingService
from tests.utils.assertions import assert_prpm_exception


@pytest.mark.asyncio
async def test_new_user_gets_signup_credits(db_session: AsyncSession):
    user_id = uuid4()

    user = await UserOnboardingService(db_session).ensure_user_onboarded(
        user_id=user_id, email="new@example.com", name="New Author"
    )

    assert user.id == user_id
    balance = await CreditLedgerService(db_session).get_balance(user_id)
    assert balance.total == 5
    assert balance.lifetime_earned == 5


@pytest.mark.asyncio
async def test_existing_user_is_not_granted_again(db_session: AsyncSession):
    user_id = uuid4()
    onboarding = UserOnboardingService(db_session)
    await onboarding.ensure_user_onboarded(user_id=user_id, email="a@example.com")

    user = await onboarding.ensure_user_onboarded(
        user_id=user_id, email="a@example.com", name="Renamed"
    )

    assert user.name == "Renamed"
    _, total = await CreditLedgerService(db_session).get_transaction_history(user_id)
    assert total == 1


@pytest.mark.asyncio
async def test_handle_jwt_auth_onboards(db_session: AsyncSession, jwt_token_factory):
    user_id = uuid4()
    token = jwt_token_factory(str(user_id), "jwt@example.com", "Jay")

    user = await handle_jwt_auth(db_session, token)

    assert user.id == user_id
    assert await db_session.get(User, user_id) is not None


@pytest.mark.asyncio
async def test_handle_jwt_auth_rejects_bad_signature(db_session: AsyncSession):
    token = jwt.encode(
        {"sub": str(uuid4()), "aud": "authenticated"},
        "not-the-secret",
        algorithm=JWT_ALGORITHM,
    )

    with pytest.raises(PRPMException) as exc_info:
        await handle_jwt_auth(db_session, token)

    assert_prpm_exception(exc_info.value, MessageCode.INVALID_TOKEN, 401)
