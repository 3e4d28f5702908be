from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import redis.asyncio as redis

from src.api.core.exceptions.base import PRPMException
from src.api.core.messages import MessageCode
from src.database.models import User
from src.modules.credits.ledger import CreditLedgerService
from src.modules.credits.purchases import CreditPurchaseService
from src.modules.playground.providers import ModelClient, get_model_client
from src.modules.playground.service import PlaygroundService
from src.modules.playground.sessions import PlaygroundSessionService
from src.redis.client import get_redis_client


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


def get_session_factory(request: Request) -> async_sessionmaker:
    """Session factory for work that needs more than one concurrent session."""
    return request.app.state.session_factory


async def get_credit_ledger_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> CreditLedgerService:
    """Get credit ledger service with database session."""
    return CreditLedgerService(db)


async def get_credit_purchase_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> CreditPurchaseService:
    """Get credit purchase service with database session."""
    return CreditPurchaseService(db)


async def get_playground_session_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> PlaygroundSessionService:
    """Get playground session service with database session."""
    return PlaygroundSessionService(db)


async def get_playground_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    model_client: Annotated[ModelClient, Depends(get_model_client)],
) -> PlaygroundService:
    """Get playground service with database session and model client."""
    return PlaygroundService(db, model_client)


async def get_current_user(request: Request) -> User:
    """Dependency to get the current authenticated user.

    Assumes auth middleware has set request.state.user.
    """
    user = getattr(request.state, "user", None)
    if not user:
        raise PRPMException(MessageCode.AUTH_REQUIRED, status.HTTP_401_UNAUTHORIZED)
    return user


async def get_optional_user(request: Request) -> User | None:
    return getattr(request.state, "user", None)


AsyncSessionDep = Annotated[AsyncSession, Depends(get_db_session)]
SessionFactoryDep = Annotated[async_sessionmaker, Depends(get_session_factory)]
RedisDep = Annotated[redis.Redis, Depends(get_redis_client)]
ModelClientDep = Annotated[ModelClient, Depends(get_model_client)]
CreditLedgerServiceDep = Annotated[
    CreditLedgerService, Depends(get_credit_ledger_service)
]
CreditPurchaseServiceDep = Annotated[
    CreditPurchaseService, Depends(get_credit_purchase_service)
]
PlaygroundSessionServiceDep = Annotated[
    PlaygroundSessionService, Depends(get_playground_session_service)
]
PlaygroundServiceDep = Annotated[PlaygroundService, Depends(get_playground_service)]

CurrentUserDep = Annotated[User, Depends(get_current_user)]
OptionalUserDep = Annotated[User | None, Depends(get_optional_user)]
