"""Playground API schemas (combined models/requests)."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.api.core.constants import (
    MAX_CUSTOM_PROMPT_LENGTH,
    MAX_INPUT_LENGTH,
    MIN_CUSTOM_PROMPT_LENGTH,
)
from src.api.core.messages import APIResponse, Paginated
from src.modules.credits.constants import DEFAULT_MODEL, MODEL_COST_PROFILES


def _validate_model(value: str) -> str:
    if value not in MODEL_COST_PROFILES:
        supported = ", ".join(sorted(MODEL_COST_PROFILES))
        raise ValueError(f"Unsupported model '{value}'. Supported: {supported}")
    return value


class PlaygroundEstimateRequest(BaseModel):
    package_id: UUID
    package_version: str | None = None
    input: str = Field(min_length=1, max_length=MAX_INPUT_LENGTH)
    model: str = DEFAULT_MODEL
    session_id: UUID | None = None
    use_no_prompt: bool = False

    _check_model = field_validator("model")(_validate_model)


class PlaygroundRunRequest(BaseModel):
    package_id: UUID
    package_version: str | None = None
    input: str = Field(min_length=1, max_length=MAX_INPUT_LENGTH)
    model: str = DEFAULT_MODEL
    session_id: UUID | None = None
    use_no_prompt: bool = False

    _check_model = field_validator("model")(_validate_model)


class PlaygroundCompareRequest(BaseModel):
    package_a_id: UUID
    # Omitted: compare package A against the same model with no prompt
    package_b_id: UUID | None = None
    input: str = Field(min_length=1, max_length=MAX_INPUT_LENGTH)
    model: str = DEFAULT_MODEL

    _check_model = field_validator("model")(_validate_model)


class AnonymousRunRequest(BaseModel):
    package_id: UUID
    input: str = Field(min_length=1, max_length=MAX_INPUT_LENGTH)
    model: str | None = None


class CustomPromptRunRequest(BaseModel):
    custom_prompt: str = Field(
        min_length=MIN_CUSTOM_PROMPT_LENGTH, max_length=MAX_CUSTOM_PROMPT_LENGTH
    )
    input: str = Field(min_length=1, max_length=MAX_INPUT_LENGTH)
    model: str = DEFAULT_MODEL
    session_id: UUID | None = None

    _check_model = field_validator("model")(_validate_model)


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    tokens: int | None = None


class PlaygroundEstimateResult(BaseModel):
    estimated_credits: int
    estimated_tokens: int
    model: str
    can_afford: bool
    current_balance: int


class PlaygroundRunResult(BaseModel):
    session_id: UUID
    response: str
    conversation: list[ConversationMessage]
    credits_spent: int
    credits_remaining: int
    tokens_used: int
    duration_ms: int
    model: str


class CustomPromptRunResult(PlaygroundRunResult):
    is_custom_prompt: bool = True
    warnings: list[str] = []
    validation_score: int = 100


class ComparisonSide(BaseModel):
    package_id: UUID
    use_no_prompt: bool
    status: Literal["succeeded", "failed"]
    result: PlaygroundRunResult | None = None
    error: dict[str, Any] | None = None


class PlaygroundCompareResult(BaseModel):
    a: ComparisonSide
    b: ComparisonSide
    total_credits_spent: int
    credits_remaining: int


class AnonymousRunResult(BaseModel):
    response: str
    model: str
    tokens_used: int


class PlaygroundSessionModel(BaseModel):
    id: UUID
    package_id: UUID | None
    package_version: str | None
    package_name: str | None
    conversation: list[ConversationMessage]
    credits_spent: int
    model: str
    total_tokens: int
    total_duration_ms: int
    run_count: int
    is_custom_prompt: bool
    is_public: bool
    share_token: str | None
    created_at: datetime
    updated_at: datetime
    last_run_at: datetime | None

    model_config = {"from_attributes": True}


class SharedSessionModel(BaseModel):
    id: UUID
    package_id: UUID | None
    package_version: str | None
    package_name: str | None
    conversation: list[ConversationMessage]
    model: str
    run_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class ShareSessionModel(BaseModel):
    session_id: UUID
    share_token: str


class PromptIssue(BaseModel):
    severity: Literal["critical", "high", "medium", "low"]
    type: str
    description: str
    suggestion: str | None = None


class PromptValidationResult(BaseModel):
    safe: bool
    score: int
    issues: list[PromptIssue]
    recommendations: list[str]


class ValidatePromptRequest(BaseModel):
    custom_prompt: str = Field(min_length=1, max_length=MAX_CUSTOM_PROMPT_LENGTH)


class SafetyGuidelinesModel(BaseModel):
    guidelines: list[str]
    examples: dict[str, list[str]]
    limits: dict[str, Any]


class CustomPromptInfoModel(BaseModel):
    available: bool
    verified_author: bool | None
    cost_multiplier: float
    max_output_tokens: int
    timeout_seconds: float
    max_turns: int
    min_prompt_length: int
    max_prompt_length: int
    max_input_length: int
    models: list[str]


# Response Models
PlaygroundSessionResponse = APIResponse[PlaygroundSessionModel]
PlaygroundSessionListResponse = APIResponse[Paginated[PlaygroundSessionModel]]
SharedSessionResponse = APIResponse[SharedSessionModel]
ShareSessionResponse = APIResponse[ShareSessionModel]
CustomPromptInfoResponse = APIResponse[CustomPromptInfoModel]
SafetyGuidelinesResponse = APIResponse[SafetyGuidelinesModel]
