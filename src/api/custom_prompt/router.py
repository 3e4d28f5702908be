"""Custom prompt router for verified authors."""

from fastapi import APIRouter, Request

from src.api.core.constants import (
    MAX_CUSTOM_PROMPT_LENGTH,
    MAX_INPUT_LENGTH,
    MIN_CUSTOM_PROMPT_LENGTH,
)
from src.api.core.decorators.rate_limit import rate_limit
from src.api.core.dependencies import (
    CurrentUserDep,
    OptionalUserDep,
    PlaygroundServiceDep,
    RedisDep,
)
from src.api.core.messages import APIResponse, MessageCode
from src.api.playground.schemas import (
    CustomPromptInfoModel,
    CustomPromptInfoResponse,
    CustomPromptRunRequest,
    CustomPromptRunResult,
    PromptValidationResult,
    SafetyGuidelinesModel,
    SafetyGuidelinesResponse,
    ValidatePromptRequest,
)
from src.modules.credits.constants import MODEL_COST_PROFILES
from src.modules.playground.prompt_safety import (
    SAFETY_GUIDELINES,
    validate_custom_prompt,
)
from src.utils.logger import get_logger
from src.utils.settings.playground import PlaygroundSettings

router = APIRouter(
    prefix="/custom-prompt",
    tags=["custom-prompt"],
)

logger = get_logger(__name__)

_settings = PlaygroundSettings()


@router.post("/validate", response_model=PromptValidationResult)
@rate_limit(_settings.RUN_RATE_LIMIT, _settings.RUN_RATE_LIMIT_WINDOW_SECONDS)
async def validate_prompt(
    request: Request,
    body: ValidatePromptRequest,
    current_user: CurrentUserDep,
    redis_client: RedisDep,
) -> PromptValidationResult:
    """Check a custom prompt against the safety rules without running it."""
    result = validate_custom_prompt(body.custom_prompt)
    logger.info(
        "Custom prompt validation",
        user_id=str(current_user.id),
        prompt_length=len(body.custom_prompt),
        safe=result.safe,
        score=result.score,
        issue_count=len(result.issues),
    )
    return result


@router.post("/run", response_model=CustomPromptRunResult)
@rate_limit(_settings.RUN_RATE_LIMIT, _settings.RUN_RATE_LIMIT_WINDOW_SECONDS)
async def run_custom_prompt(
    request: Request,
    body: CustomPromptRunRequest,
    current_user: CurrentUserDep,
    playground_service: PlaygroundServiceDep,
    redis_client: RedisDep,
) -> CustomPromptRunResult:
    """Run an author's own prompt in the sandbox. Verified authors only."""
    return await playground_service.run_custom_prompt(current_user, body)


@router.get("/info", response_model=CustomPromptInfoResponse)
async def custom_prompt_info(
    request: Request,
    current_user: OptionalUserDep,
) -> CustomPromptInfoResponse:
    """Describe custom prompt limits and pricing."""
    data = CustomPromptInfoModel(
        available=bool(current_user and current_user.verified_author),
        verified_author=current_user.verified_author if current_user else None,
        cost_multiplier=_settings.CUSTOM_PROMPT_MULTIPLIER,
        max_output_tokens=_settings.CUSTOM_PROMPT_MAX_OUTPUT_TOKENS,
        timeout_seconds=_settings.CUSTOM_PROMPT_TIMEOUT_SECONDS,
        max_turns=_settings.CUSTOM_PROMPT_MAX_TURNS,
        min_prompt_length=MIN_CUSTOM_PROMPT_LENGTH,
        max_prompt_length=MAX_CUSTOM_PROMPT_LENGTH,
        max_input_length=MAX_INPUT_LENGTH,
        models=sorted(MODEL_COST_PROFILES),
    )
    return APIResponse.success(message_code=MessageCode.SUCCESS, data=data)


@router.get("/safety-guidelines", response_model=SafetyGuidelinesResponse)
async def safety_guidelines() -> SafetyGuidelinesResponse:
    """Rules a custom prompt must follow, with good and bad examples."""
    data = SafetyGuidelinesModel(
        guidelines=SAFETY_GUIDELINES["guidelines"],
        examples=SAFETY_GUIDELINES["examples"],
        limits={
            **SAFETY_GUIDELINES["limits"],
            "max_tokens_output": _settings.CUSTOM_PROMPT_MAX_OUTPUT_TOKENS,
        },
    )
    return APIResponse.success(message_code=MessageCode.SUCCESS, data=data)
