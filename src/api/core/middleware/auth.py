import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from src.api.core.constants import (
    OPTIONAL_AUTH_PATHS,
    SKIP_AUTH_PATHS,
    SKIP_AUTH_PATTERNS,
)
from src.api.core.exceptions.base import PRPMException
from src.api.core.messages import MessageCode
from src.modules.user.auth_handlers import handle_jwt_auth
from src.utils.path_helpers import path_matches, path_matches_pattern

logger = structlog.get_logger(__name__)


def _error_response(exc: PRPMException) -> JSONResponse:
    # Exceptions raised here would bypass the app's exception handlers
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response_dict(),
        headers=exc.headers,
    )


async def auth_middleware(request: Request, call_next):
    """
    Resolve the Bearer JWT to a user and store it on request.state.user.

    Public paths skip authentication. Optional paths authenticate only when
    an Authorization header is present.
    """
    request.state.user = None
    path = request.url.path

    if request.method == "OPTIONS" or (
        path_matches(path, SKIP_AUTH_PATHS)
        or path_matches_pattern(path, SKIP_AUTH_PATTERNS, request.method)
    ):
        logger.debug("Skipping auth for path", path=path)
        return await call_next(request)

    authorization = request.headers.get("Authorization", "")
    if not authorization:
        if path_matches(path, OPTIONAL_AUTH_PATHS):
            return await call_next(request)
        logger.debug("No authentication provided - rejecting request", path=path)
        return _error_response(
            PRPMException(
                MessageCode.AUTH_REQUIRED,
                status.HTTP_401_UNAUTHORIZED,
                {"description": "Authorization header with Bearer token required"},
            )
        )

    auth_parts = authorization.split(" ")
    if len(auth_parts) != 2 or auth_parts[0].lower() != "bearer":
        return _error_response(
            PRPMException(
                MessageCode.INVALID_TOKEN,
                status.HTTP_401_UNAUTHORIZED,
                {"description": "Authorization header must be 'Bearer <token>'"},
            )
        )

    session_factory = request.app.state.session_factory
    try:
        async with session_factory() as db:
            user = await handle_jwt_auth(db, auth_parts[1])
    except PRPMException as e:
        logger.debug(
            "Authentication rejected",
            message_code=e.message_code.value,
            status_code=e.status_code,
        )
        return _error_response(e)

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.id))

    return await call_next(request)
