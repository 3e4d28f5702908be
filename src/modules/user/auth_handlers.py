"""Authentication handler for Bearer JWTs."""

from fastapi import status
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.constants import JWT_ALGORITHM
from src.api.core.exceptions.base import PRPMException
from src.api.core.messages import MessageCode
from src.database.models import User
from src.modules.user.jwt_claims import extract_user_data_from_jwt
from src.modules.user.onboarding import UserOnboardingService
from src.utils.settings.auth import AuthSettings
from src.utils.logger import get_logger

logger = get_logger(__name__)


def decode_token(token: str) -> dict:
    settings = AuthSettings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.warning("JWT decoding failed", error=str(e))
        raise PRPMException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Invalid or expired authentication token"},
        ) from e

    if not payload.get("sub"):
        raise PRPMException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Token has no subject"},
        )
    return payload


async def handle_jwt_auth(db: AsyncSession, token: str) -> User:
    """Resolve a Bearer token to a user, onboarding first-time users."""
    payload = decode_token(token)
    try:
        user_data = extract_user_data_from_jwt(payload)
    except ValueError as e:
        raise PRPMException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Token subject is not a valid user id"},
        ) from e

    onboarding = UserOnboardingService(db)
    return await onboarding.ensure_user_onboarded(
        user_id=user_data["user_id"],
        email=user_data["email"],
        name=user_data["name"],
    )
