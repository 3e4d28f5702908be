"""Global exception handlers for the FastAPI application."""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..messages import MessageCode, get_default_message
from src.utils.logger import get_logger
from src.utils.settings.playground import PlaygroundSettings

logger = get_logger(__name__)


class PRPMException(Exception):
    """Base exception for the PRPM API with unified message codes."""

    def __init__(
        self,
        message_code: MessageCode,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict | None = None,
        headers: dict | None = None,
        message: str | None = None,
    ):
        self.message_code = message_code
        self.status_code = status_code
        self.message: str = message or get_default_message(message_code)
        self.details = details or {}
        self.headers = headers or {}
        super().__init__(self.message)

    @property
    def error(self) -> str:
        """Stable machine-readable error code."""
        return self.message_code.value.lower()

    def to_response_dict(self) -> dict:
        """Convert exception to API response format."""
        return {
            "error": self.error,
            "message_code": self.message_code,
            "message": self.message,
            "details": self.details,
        }


class InsufficientCreditsError(PRPMException):
    """Balance does not cover the cost of a run."""

    def __init__(self, required_credits: int, available_credits: int):
        self.required_credits = required_credits
        self.available_credits = available_credits
        super().__init__(
            MessageCode.INSUFFICIENT_CREDITS,
            status.HTTP_402_PAYMENT_REQUIRED,
            message=(
                f"Insufficient credits. Need {required_credits} "
                f"but have {available_credits}"
            ),
        )

    def to_response_dict(self) -> dict:
        body = super().to_response_dict()
        body.update(
            required_credits=self.required_credits,
            available_credits=self.available_credits,
            purchase_url=PlaygroundSettings().PURCHASE_URL,
        )
        return body


class UnsafePromptError(PRPMException):
    """Custom prompt rejected by the safety validator."""

    def __init__(self, validation_result: dict):
        self.validation_result = validation_result
        super().__init__(MessageCode.UNSAFE_PROMPT, status.HTTP_400_BAD_REQUEST)

    def to_response_dict(self) -> dict:
        body = super().to_response_dict()
        body["validation_result"] = self.validation_result
        return body


class RateLimitError(PRPMException):
    def __init__(
        self,
        message_code: MessageCode = MessageCode.LIMIT_EXCEEDED,
        details: dict | None = None,
        headers: dict | None = None,
    ):
        super().__init__(
            message_code, status.HTTP_429_TOO_MANY_REQUESTS, details, headers
        )


class ValidationError(PRPMException):
    def __init__(
        self,
        message: str,
        message_code: MessageCode = MessageCode.VALIDATION_ERROR,
        details: dict | None = None,
    ):
        super().__init__(
            message_code, status.HTTP_400_BAD_REQUEST, details, message=message
        )


class ProviderError(PRPMException):
    """Model provider call failed. Runs that end here are never charged."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(
            MessageCode.PROVIDER_ERROR,
            status.HTTP_502_BAD_GATEWAY,
            {"provider": provider, "reason": reason},
        )


class NotFoundError(PRPMException):
    def __init__(
        self,
        message_code: MessageCode = MessageCode.NOT_FOUND,
        resource: str | None = None,
    ):
        details = {"resource": resource} if resource else None
        super().__init__(message_code, status.HTTP_404_NOT_FOUND, details)

    @property
    def error(self) -> str:
        return "not_found"


def _serializable_errors(errors: list) -> list[dict]:
    serializable = []
    for error in errors:
        error_dict = {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        serializable.append(error_dict)
    return serializable


def _first_error_message(errors: list[dict]) -> str:
    if not errors:
        return get_default_message(MessageCode.VALIDATION_ERROR)
    first = errors[0]
    # Drop the "body" prefix so the field path reads naturally
    loc = [str(part) for part in first["loc"] if part != "body"]
    if loc:
        return f"{'.'.join(loc)}: {first['msg']}"
    return str(first["msg"])


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""

    @app.exception_handler(PRPMException)
    async def prpm_exception_handler(
        request: Request, exc: PRPMException
    ) -> JSONResponse:
        """Handle custom PRPM exceptions."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "PRPM exception",
            message_code=exc.message_code.value,
            status_code=exc.status_code,
            path=request.url.path,
            method=request.method,
            details=exc.details,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle Starlette HTTP exceptions (includes FastAPI's HTTPException)."""
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
            method=request.method,
        )

        message_code = (
            MessageCode.NOT_FOUND
            if exc.status_code == status.HTTP_404_NOT_FOUND
            else MessageCode.BAD_REQUEST
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": message_code.value.lower(),
                "message_code": message_code,
                "message": str(exc.detail),
                "details": {},
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors."""
        errors = _serializable_errors(exc.errors())

        logger.warning(
            "Validation error occurred",
            path=request.url.path,
            method=request.method,
            error_count=len(errors),
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "validation_error",
                "message_code": MessageCode.VALIDATION_ERROR,
                "message": _first_error_message(errors),
                "details": {"validation_errors": errors},
            },
        )

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: PydanticValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors raised outside request parsing."""
        errors = _serializable_errors(exc.errors())

        logger.warning(
            "Pydantic validation error occurred",
            path=request.url.path,
            method=request.method,
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "validation_error",
                "message_code": MessageCode.VALIDATION_ERROR,
                "message": _first_error_message(errors),
                "details": {"validation_errors": errors},
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        """Handle SQLAlchemy database errors."""
        logger.error(
            "Database error",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exception_type=type(exc).__name__,
        )

        if isinstance(exc, IntegrityError):
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "error": "conflict",
                    "message_code": MessageCode.CONFLICT,
                    "message": get_default_message(MessageCode.CONFLICT),
                    "details": {},
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message_code": MessageCode.INTERNAL_ERROR,
                "message": "Database error occurred",
                "details": {},
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle all other unhandled exceptions."""
        if isinstance(exc, PRPMException):
            return await prpm_exception_handler(request, exc)

        logger.error(
            "Unhandled exception",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exception_type=type(exc).__name__,
            traceback=traceback.format_exc(),
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message_code": MessageCode.INTERNAL_ERROR,
                "message": "Internal server error",
                "details": {"error_type": type(exc).__name__},
            },
        )
