"""Centralized message codes and default messages for API responses."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel


class MessageCode(str, Enum):
    """Centralized message codes for API responses."""

    # Success codes
    SUCCESS = "SUCCESS"
    CREATED = "CREATED"
    DELETED = "DELETED"

    # Authentication & Authorization
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    FORBIDDEN = "FORBIDDEN"
    VERIFIED_AUTHOR_REQUIRED = "VERIFIED_AUTHOR_REQUIRED"

    # Credit management
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    CREDITS_NOT_FOUND = "CREDITS_NOT_FOUND"
    CREDIT_PURCHASE_CREATED = "CREDIT_PURCHASE_CREATED"
    INVALID_CREDIT_PACKAGE = "INVALID_CREDIT_PACKAGE"

    # Playground
    PLAYGROUND_RUN_COMPLETED = "PLAYGROUND_RUN_COMPLETED"
    PACKAGE_NOT_FOUND = "PACKAGE_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_DELETED = "SESSION_DELETED"
    SESSION_SHARED = "SESSION_SHARED"
    CONVERSATION_LIMIT_REACHED = "CONVERSATION_LIMIT_REACHED"
    UNSAFE_PROMPT = "UNSAFE_PROMPT"

    # Rate limiting
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"

    # Service Errors
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"


# Default messages for each message code
DEFAULT_MESSAGES = {
    # Success messages
    MessageCode.SUCCESS: "Operation completed successfully",
    MessageCode.CREATED: "Resource created successfully",
    MessageCode.DELETED: "Resource deleted successfully",
    # Authentication & Authorization
    MessageCode.AUTH_REQUIRED: "Authentication required",
    MessageCode.INVALID_TOKEN: "Invalid authentication token",
    MessageCode.FORBIDDEN: "Access denied",
    MessageCode.VERIFIED_AUTHOR_REQUIRED: "Custom prompts are only available to verified authors. Link your GitHub account to get verified.",
    # Credit management
    MessageCode.INSUFFICIENT_CREDITS: "Insufficient credits",
    MessageCode.CREDITS_NOT_FOUND: "No credit record found for user",
    MessageCode.CREDIT_PURCHASE_CREATED: "Credit purchase initiated",
    MessageCode.INVALID_CREDIT_PACKAGE: "Unknown credit package",
    # Playground
    MessageCode.PLAYGROUND_RUN_COMPLETED: "Playground run completed",
    MessageCode.PACKAGE_NOT_FOUND: "Package not found",
    MessageCode.SESSION_NOT_FOUND: "Playground session not found",
    MessageCode.SESSION_DELETED: "Playground session deleted",
    MessageCode.SESSION_SHARED: "Playground session shared",
    MessageCode.CONVERSATION_LIMIT_REACHED: "Conversation turn limit reached for this session",
    MessageCode.UNSAFE_PROMPT: "Custom prompt failed security validation",
    # Rate limiting
    MessageCode.LIMIT_EXCEEDED: "You have already used your free playground run for this month.",
    MessageCode.RATE_LIMIT_EXCEEDED: "Rate limit exceeded",
    # Validation errors
    MessageCode.VALIDATION_ERROR: "Validation failed",
    MessageCode.REQUEST_TOO_LARGE: "Request too large",
    # Service Errors
    MessageCode.PROVIDER_ERROR: "Model provider request failed. You have not been charged.",
    MessageCode.PAYMENT_PROVIDER_ERROR: "Payment provider request failed",
    # Generic errors
    MessageCode.INTERNAL_ERROR: "Internal server error",
    MessageCode.BAD_REQUEST: "Bad request",
    MessageCode.NOT_FOUND: "Resource not found",
    MessageCode.CONFLICT: "Data integrity constraint violated",
}

T = TypeVar("T")


class PaginationInfo(BaseModel):
    """Common pagination information."""

    total: int
    limit: int
    offset: int
    has_more: bool


class Paginated(BaseModel, Generic[T]):
    """Generic paginated response wrapper."""

    items: list[T]
    pagination: PaginationInfo


class APIResponse(BaseModel, Generic[T]):
    """Base API response model with consistent structure and proper typing."""

    message_code: MessageCode
    message: str
    data: T | None = None

    @classmethod
    def success(
        cls,
        message_code: MessageCode = MessageCode.SUCCESS,
        message: str | None = None,
        data: T | None = None,
    ) -> "APIResponse[T]":
        """Create a success response."""
        return cls(
            message_code=message_code,
            message=message or DEFAULT_MESSAGES.get(message_code, "Success"),
            data=data,
        )


def get_default_message(message_code: MessageCode) -> str:
    """Get default message for a message code."""
    return DEFAULT_MESSAGES.get(message_code, "Operation completed")
