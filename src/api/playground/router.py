"""Playground domain router."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from src.api.core.constants import (
    ANONYMOUS_RUN_RATE_LIMIT,
    ANONYMOUS_RUN_WINDOW_SECONDS,
    DEFAULT_SESSION_PAGE_SIZE,
    MAX_SESSION_PAGE_SIZE,
)
from src.api.core.decorators.rate_limit import rate_limit
from src.api.core.dependencies import (
    CurrentUserDep,
    PlaygroundServiceDep,
    PlaygroundSessionServiceDep,
    RedisDep,
    SessionFactoryDep,
)
from src.api.core.messages import APIResponse, MessageCode, Paginated, PaginationInfo
from src.modules.playground.anonymous import AnonymousIdentity
from src.utils.logger import get_client_ip
from src.utils.settings.playground import PlaygroundSettings
from .schemas import (
    AnonymousRunRequest,
    AnonymousRunResult,
    PlaygroundCompareRequest,
    PlaygroundCompareResult,
    PlaygroundEstimateRequest,
    PlaygroundEstimateResult,
    PlaygroundRunRequest,
    PlaygroundRunResult,
    PlaygroundSessionListResponse,
    PlaygroundSessionModel,
    PlaygroundSessionResponse,
    SharedSessionModel,
    SharedSessionResponse,
    ShareSessionModel,
    ShareSessionResponse,
)

router = APIRouter(
    prefix="/playground",
    tags=["playground"],
)

_settings = PlaygroundSettings()


@router.post("/estimate", response_model=PlaygroundEstimateResult)
async def estimate_run(
    request: Request,
    body: PlaygroundEstimateRequest,
    current_user: CurrentUserDep,
    playground_service: PlaygroundServiceDep,
) -> PlaygroundEstimateResult:
    """Quote the credit cost of a run without executing it."""
    return await playground_service.estimate(current_user.id, body)


@router.post("/run", response_model=PlaygroundRunResult)
@rate_limit(_settings.RUN_RATE_LIMIT, _settings.RUN_RATE_LIMIT_WINDOW_SECONDS)
async def run_package(
    request: Request,
    body: PlaygroundRunRequest,
    current_user: CurrentUserDep,
    playground_service: PlaygroundServiceDep,
    redis_client: RedisDep,
) -> PlaygroundRunResult:
    """Run a package against a model and debit the cost."""
    return await playground_service.run(current_user.id, body)


@router.post("/compare", response_model=PlaygroundCompareResult)
@rate_limit(_settings.RUN_RATE_LIMIT, _settings.RUN_RATE_LIMIT_WINDOW_SECONDS)
async def compare_packages(
    request: Request,
    body: PlaygroundCompareRequest,
    current_user: CurrentUserDep,
    playground_service: PlaygroundServiceDep,
    session_factory: SessionFactoryDep,
    redis_client: RedisDep,
) -> PlaygroundCompareResult:
    """Run two packages, or one package against no prompt, side by side."""
    return await playground_service.compare(current_user.id, body, session_factory)


@router.post("/anonymous-run", response_model=AnonymousRunResult)
@rate_limit(ANONYMOUS_RUN_RATE_LIMIT, ANONYMOUS_RUN_WINDOW_SECONDS)
async def anonymous_run(
    request: Request,
    body: AnonymousRunRequest,
    playground_service: PlaygroundServiceDep,
    redis_client: RedisDep,
) -> AnonymousRunResult:
    """One free run per month for visitors without an account."""
    identity = AnonymousIdentity.from_client(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        accept_language=request.headers.get("accept-language"),
    )
    return await playground_service.run_anonymous(identity, body)


@router.get("/sessions", response_model=PlaygroundSessionListResponse)
async def list_sessions(
    request: Request,
    current_user: CurrentUserDep,
    session_service: PlaygroundSessionServiceDep,
    limit: int = Query(DEFAULT_SESSION_PAGE_SIZE, ge=1, le=MAX_SESSION_PAGE_SIZE),
    offset: int = Query(0, ge=0),
) -> PlaygroundSessionListResponse:
    """List the user's sessions, most recently active first."""
    sessions, total = await session_service.list_sessions(
        current_user.id, limit=limit, offset=offset
    )
    items = [PlaygroundSessionModel.model_validate(session) for session in sessions]
    pagination_info = PaginationInfo(
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(items) < total,
    )
    paginated_data = Paginated[PlaygroundSessionModel](
        items=items,
        pagination=pagination_info,
    )
    return APIResponse.success(message_code=MessageCode.SUCCESS, data=paginated_data)


@router.get("/sessions/{session_id}", response_model=PlaygroundSessionResponse)
async def get_session(
    request: Request,
    session_id: UUID,
    current_user: CurrentUserDep,
    session_service: PlaygroundSessionServiceDep,
) -> PlaygroundSessionResponse:
    session = await session_service.get_session(current_user.id, session_id)
    return APIResponse.success(
        message_code=MessageCode.SUCCESS,
        data=PlaygroundSessionModel.model_validate(session),
    )


@router.delete("/sessions/{session_id}", response_model=APIResponse[None])
async def delete_session(
    request: Request,
    session_id: UUID,
    current_user: CurrentUserDep,
    session_service: PlaygroundSessionServiceDep,
) -> APIResponse[None]:
    await session_service.delete_session(current_user.id, session_id)
    return APIResponse.success(message_code=MessageCode.SESSION_DELETED)


@router.post("/sessions/{session_id}/share", response_model=ShareSessionResponse)
async def share_session(
    request: Request,
    session_id: UUID,
    current_user: CurrentUserDep,
    session_service: PlaygroundSessionServiceDep,
) -> ShareSessionResponse:
    """Make a session publicly viewable by its share token."""
    share_token = await session_service.share_session(current_user.id, session_id)
    return APIResponse.success(
        message_code=MessageCode.SESSION_SHARED,
        data=ShareSessionModel(session_id=session_id, share_token=share_token),
    )


@router.get("/shared/{share_token}", response_model=SharedSessionResponse)
async def get_shared_session(
    share_token: str,
    session_service: PlaygroundSessionServiceDep,
) -> SharedSessionResponse:
    """Public view of a shared session."""
    session = await session_service.get_shared_session(share_token)
    return APIResponse.success(
        message_code=MessageCode.SUCCESS,
        data=SharedSessionModel.model_validate(session),
    )
