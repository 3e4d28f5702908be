from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.core.constants import API_VERSION_HEADER
from src.api.core.exceptions.base import PRPMException
from src.api.core.messages import MessageCode
from src.utils.logger import get_logger
from src.utils.settings.app import AppSettings

logger = get_logger(__name__)

# The API only serves JSON, so nothing may be framed, scripted or embedded
API_CONTENT_SECURITY_POLICY = "default-src 'none'; frame-ancestors 'none'"

_BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=()",
    "X-Permitted-Cross-Domain-Policies": "none",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response without touching CORS headers."""

    def __init__(self, app, is_production: bool = False):
        super().__init__(app)
        self.is_production = is_production
        self.headers = {**_BASE_HEADERS, API_VERSION_HEADER: AppSettings().API_VERSION}
        if is_production:
            self.headers["Content-Security-Policy"] = API_CONTENT_SECURITY_POLICY

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        for key, value in self.headers.items():
            response.headers.setdefault(key, value)
        if self.is_production and request.url.scheme == "https":
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response


class PayloadSizeMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body size is over the limit."""

    def __init__(self, app, max_request_size: int | None = None):
        super().__init__(app)
        self.max_request_size = max_request_size or AppSettings().MAX_REQUEST_SIZE

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("Content-Length")
        if content_length and int(content_length) > self.max_request_size:
            logger.warning(
                "Request too large",
                content_length=content_length,
                max_request_size=self.max_request_size,
            )
            exc = PRPMException(
                MessageCode.REQUEST_TOO_LARGE,
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                details={"max_request_size": self.max_request_size},
            )
            return JSONResponse(
                status_code=exc.status_code, content=exc.to_response_dict()
            )

        return await call_next(request)
