"""Credit cost estimation.

All functions here are pure: for a fixed model and settings the same input
always produces the same quote.
"""

import math
from typing import Iterable, Mapping

from src.api.core.exceptions.base import ValidationError
from src.api.core.messages import MessageCode
from src.modules.credits.constants import MODEL_COST_PROFILES, ModelCostProfile
from src.utils.settings.playground import PlaygroundSettings


def get_profile(model: str) -> ModelCostProfile:
    profile = MODEL_COST_PROFILES.get(model)
    if profile is None:
        raise ValidationError(
            message=f"Unsupported model: {model}",
            details={"model": model, "supported": sorted(MODEL_COST_PROFILES)},
        )
    return profile


def cheapest_model() -> str:
    """Model with the lowest credit multiplier."""
    return min(
        MODEL_COST_PROFILES.values(), key=lambda profile: profile.credit_multiplier
    ).model


def history_chars(history: Iterable[Mapping] | None) -> int:
    if not history:
        return 0
    return sum(len(message.get("content") or "") for message in history)


def estimate_tokens(
    prompt_length: int,
    input_length: int,
    history: Iterable[Mapping] | None = None,
    settings: PlaygroundSettings | None = None,
) -> int:
    """Estimate total tokens for a run, including the response buffer."""
    settings = settings or PlaygroundSettings()
    chars = prompt_length + input_length + history_chars(history)
    return math.ceil(chars / settings.CHARS_PER_TOKEN * settings.RESPONSE_TOKEN_BUFFER)


def _price(
    profile: ModelCostProfile,
    tokens: int,
    custom_prompt: bool,
    settings: PlaygroundSettings,
) -> int:
    units = math.ceil(tokens / settings.TOKENS_PER_CREDIT)
    multiplier = profile.credit_multiplier
    if custom_prompt:
        multiplier *= settings.CUSTOM_PROMPT_MULTIPLIER
    return max(1, math.ceil(units * multiplier))


def estimate_credits(
    model: str,
    input_text: str,
    prompt: str = "",
    history: Iterable[Mapping] | None = None,
    custom_prompt: bool = False,
    settings: PlaygroundSettings | None = None,
) -> int:
    """Quote the credit cost of a run.

    Empty input is free. Any non-empty input costs at least one credit, and
    the quote never decreases as input grows.

    Raises:
        ValidationError: if the estimated token count exceeds the per-request
            maximum, or the model is unknown.
    """
    settings = settings or PlaygroundSettings()
    profile = get_profile(model)
    if not input_text:
        return 0

    tokens = estimate_tokens(len(prompt), len(input_text), history, settings)
    if tokens > settings.MAX_TOKENS_PER_REQUEST:
        raise ValidationError(
            message=(
                f"Request too large: estimated {tokens} tokens exceeds the "
                f"maximum of {settings.MAX_TOKENS_PER_REQUEST}"
            ),
            message_code=MessageCode.REQUEST_TOO_LARGE,
            details={
                "estimated_tokens": tokens,
                "max_tokens": settings.MAX_TOKENS_PER_REQUEST,
            },
        )
    return _price(profile, tokens, custom_prompt, settings)


def credits_for_tokens(
    model: str,
    tokens_used: int,
    custom_prompt: bool = False,
    settings: PlaygroundSettings | None = None,
) -> int:
    """Price the actual token count reported by the provider."""
    settings = settings or PlaygroundSettings()
    return _price(get_profile(model), tokens_used, custom_prompt, settings)


def estimate_api_cost_usd(model: str, input_tokens: int, output_tokens: int) -> float:
    profile = get_profile(model)
    cost = (
        input_tokens * profile.input_cost_per_million
        + output_tokens * profile.output_cost_per_million
    ) / 1_000_000
    return round(cost, 6)
