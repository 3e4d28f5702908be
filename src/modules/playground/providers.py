"""Clients for the LLM providers that execute playground runs."""

from dataclasses import dataclass

import anthropic
import openai

from src.api.core.exceptions.base import ProviderError
from src.modules.credits.estimator import get_profile
from src.utils.logger import get_logger
from src.utils.settings.providers import ProviderSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    text: str
    input_tokens: int
    output_tokens: int
    provider_model: str

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelClient:
    """Sends a conversation to the provider that serves ``model``.

    Every failure mode (transport, timeout, non-2xx, missing key, malformed
    payload) surfaces as ProviderError so callers never settle a failed run.
    """

    def __init__(self, settings: ProviderSettings | None = None):
        self.settings = settings or ProviderSettings()
        self._anthropic: anthropic.AsyncAnthropic | None = None
        self._openai: openai.AsyncOpenAI | None = None

    def anthropic_client(self) -> anthropic.AsyncAnthropic:
        if self._anthropic is None:
            api_key = self.settings.ANTHROPIC_API_KEY.get_secret_value()
            if not api_key:
                raise ProviderError("anthropic", "provider not configured")
            self._anthropic = anthropic.AsyncAnthropic(
                api_key=api_key,
                base_url=self.settings.ANTHROPIC_BASE_URL,
                max_retries=self.settings.PROVIDER_MAX_RETRIES,
            )
        return self._anthropic

    def openai_client(self) -> openai.AsyncOpenAI:
        if self._openai is None:
            api_key = self.settings.OPENAI_API_KEY.get_secret_value()
            if not api_key:
                raise ProviderError("openai", "provider not configured")
            self._openai = openai.AsyncOpenAI(
                api_key=api_key,
                base_url=self.settings.OPENAI_BASE_URL,
                max_retries=self.settings.PROVIDER_MAX_RETRIES,
            )
        return self._openai

    async def complete(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        timeout: float,
    ) -> CompletionResult:
        profile = get_profile(model)
        provider = profile.provider
        if provider == "anthropic":
            call = self._complete_anthropic
        else:
            call = self._complete_openai

        try:
            return await call(
                profile.provider_model_id, system_prompt, messages, max_tokens, timeout
            )
        except (anthropic.APITimeoutError, openai.APITimeoutError) as e:
            logger.error("Provider request timed out", provider=provider)
            raise ProviderError(provider, "timeout") from e
        except (anthropic.APIStatusError, openai.APIStatusError) as e:
            logger.error(
                "Provider returned an error",
                provider=provider,
                status_code=e.status_code,
                error=str(e)[:500],
            )
            raise ProviderError(provider, f"HTTP {e.status_code}") from e
        except (anthropic.APIConnectionError, openai.APIConnectionError) as e:
            logger.error("Provider request failed", provider=provider, error=str(e))
            raise ProviderError(provider, "unavailable") from e
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            logger.error("Unexpected provider payload", provider=provider, error=str(e))
            raise ProviderError(provider, "malformed response") from e

    async def _complete_anthropic(
        self,
        model_id: str,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        timeout: float,
    ) -> CompletionResult:
        client = self.anthropic_client()
        extra = {"system": system_prompt} if system_prompt else {}
        message = await client.messages.create(
            model=model_id,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
            **extra,
        )
        text = "".join(
            block.text for block in message.content if block.type == "text"
        )
        return CompletionResult(
            text=text,
            input_tokens=int(message.usage.input_tokens),
            output_tokens=int(message.usage.output_tokens),
            provider_model=message.model or model_id,
        )

    async def _complete_openai(
        self,
        model_id: str,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        timeout: float,
    ) -> CompletionResult:
        client = self.openai_client()
        chat = [{"role": "system", "content": system_prompt}] if system_prompt else []
        completion = await client.chat.completions.create(
            model=model_id,
            max_tokens=max_tokens,
            messages=chat + messages,
            timeout=timeout,
        )
        return CompletionResult(
            text=completion.choices[0].message.content or "",
            input_tokens=int(completion.usage.prompt_tokens),
            output_tokens=int(completion.usage.completion_tokens),
            provider_model=completion.model or model_id,
        )


async def get_model_client() -> ModelClient:
    """Get model client for dependency injection."""
    return ModelClient()
