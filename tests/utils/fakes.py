"""In-memory stand-ins for external services."""

from src.api.core.exceptions.base import ProviderError
from src.modules.playground.providers import CompletionResult, ModelClient


class FakeModelClient(ModelClient):
    """Returns a canned completion and records every call."""

    def __init__(
        self,
        text: str = "Looks good to me.",
        input_tokens: int = 120,
        output_tokens: int = 80,
        error: ProviderError | None = None,
    ):
        super().__init__()
        self.text = text
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = error
        self.calls: list[dict] = []

    async def complete(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int,
        timeout: float,
    ) -> CompletionResult:
        self.calls.append(
            {
                "model": model,
                "system_prompt": system_prompt,
                "messages": messages,
                "max_tokens": max_tokens,
                "timeout": timeout,
            }
        )
        if self.error is not None:
            raise self.error
        return CompletionResult(
            text=self.text,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            provider_model=model,
        )
