"""Tests for provider calls and error mapping."""

from types import SimpleNamespace

import httpx
import openai
import pytest
from pydantic import SecretStr

from src.api.core.exceptions.base import ProviderError
from src.modules.playground.providers import ModelClient
from src.utils.settings.providers import ProviderSettings

MESSAGES = [{"role": "user", "content": "hi"}]


@pytest.fixture
def configured_client() -> ModelClient:
    return ModelClient(
        ProviderSettings(
            ANTHROPIC_API_KEY=SecretStr("sk-ant-test"),
            OPENAI_API_KEY=SecretStr("sk-openai-test"),
        )
    )


def _recorder(response=None, error: Exception | None = None):
    """Stand-in for an SDK ``create`` coroutine that records its arguments."""
    calls: list[dict] = []

    async def create(**kwargs):
        calls.append(kwargs)
        if error is not None:
            raise error
        return response

    return create, calls


def _stub_anthropic(client: ModelClient, **kwargs) -> list[dict]:
    create, calls = _recorder(**kwargs)
    client._anthropic = SimpleNamespace(messages=SimpleNamespace(create=create))
    return calls


def _stub_openai(client: ModelClient, **kwargs) -> list[dict]:
    create, calls = _recorder(**kwargs)
    client._openai = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=create))
    )
    return calls


def _anthropic_message(blocks, input_tokens=12, output_tokens=3):
    return SimpleNamespace(
        model="claude-3-5-sonnet-20241022",
        content=[SimpleNamespace(type="text", text=text) for text in blocks],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def _openai_completion(text: str):
    return SimpleNamespace(
        model="gpt-4o-mini",
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=20, completion_tokens=4),
    )


@pytest.mark.asyncio
async def test_anthropic_completion(configured_client):
    calls = _stub_anthropic(
        configured_client, response=_anthropic_message(["Hello ", "there"])
    )

    result = await configured_client.complete(
        model="sonnet",
        system_prompt="Be brief.",
        messages=MESSAGES,
        max_tokens=256,
        timeout=5,
    )

    assert result.text == "Hello there"
    assert result.tokens_used == 15
    assert result.provider_model == "claude-3-5-sonnet-20241022"
    assert calls[0]["system"] == "Be brief."
    assert calls[0]["model"] == "claude-3-5-sonnet-20241022"
    assert calls[0]["max_tokens"] == 256
    assert calls[0]["timeout"] == 5


@pytest.mark.asyncio
async def test_anthropic_omits_empty_system_prompt(configured_client):
    calls = _stub_anthropic(
        configured_client, response=_anthropic_message([], input_tokens=1, output_tokens=0)
    )

    await configured_client.complete(
        model="sonnet",
        system_prompt="",
        messages=MESSAGES,
        max_tokens=256,
        timeout=5,
    )

    assert "system" not in calls[0]


@pytest.mark.asyncio
async def test_openai_completion(configured_client):
    calls = _stub_openai(configured_client, response=_openai_completion("Bonjour"))

    result = await configured_client.complete(
        model="gpt-4o-mini",
        system_prompt="Answer in French.",
        messages=MESSAGES,
        max_tokens=128,
        timeout=5,
    )

    assert result.text == "Bonjour"
    assert result.input_tokens == 20
    assert result.output_tokens == 4
    assert calls[0]["messages"][0] == {"role": "system", "content": "Answer in French."}
    assert calls[0]["messages"][1:] == MESSAGES


@pytest.mark.asyncio
async def test_missing_api_key_is_provider_error():
    client = ModelClient(ProviderSettings(ANTHROPIC_API_KEY=SecretStr("")))

    with pytest.raises(ProviderError) as exc_info:
        await client.complete(
            model="sonnet",
            system_prompt="",
            messages=MESSAGES,
            max_tokens=16,
            timeout=5,
        )

    assert exc_info.value.reason == "provider not configured"


@pytest.mark.asyncio
async def test_malformed_payload_is_provider_error(configured_client):
    _stub_openai(configured_client, response=SimpleNamespace(unexpected=True))

    with pytest.raises(ProviderError) as exc_info:
        await configured_client.complete(
            model="gpt-4o",
            system_prompt="",
            messages=MESSAGES,
            max_tokens=16,
            timeout=5,
        )

    assert exc_info.value.provider == "openai"
    assert exc_info.value.reason == "malformed response"


@pytest.mark.asyncio
async def test_timeout_is_provider_error(configured_client):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    _stub_openai(configured_client, error=openai.APITimeoutError(request=request))

    with pytest.raises(ProviderError) as exc_info:
        await configured_client.complete(
            model="gpt-4o",
            system_prompt="",
            messages=MESSAGES,
            max_tokens=16,
            timeout=5,
        )

    assert exc_info.value.reason == "timeout"


@pytest.mark.asyncio
async def test_error_status_is_provider_error(configured_client):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(503, request=request)
    _stub_openai(
        configured_client,
        error=openai.APIStatusError("overloaded", response=response, body=None),
    )

    with pytest.raises(ProviderError) as exc_info:
        await configured_client.complete(
            model="gpt-4o",
            system_prompt="",
            messages=MESSAGES,
            max_tokens=16,
            timeout=5,
        )

    assert exc_info.value.reason == "HTTP 503"
