"""Tests for generation providers and provider chain resolution."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import openai
import pytest

from docgen.core.config import Settings
from docgen.core.errors import ProviderError, ProviderErrorKind
from docgen.core.providers import AnthropicProvider, OpenAIProvider, classify_sdk_error, resolve_providers

REQUEST = httpx.Request("POST", "https://api.example.test/v1/messages")


def _status_error(cls, status: int):
    return cls("error", response=httpx.Response(status, request=REQUEST), body=None)


@pytest.mark.parametrize(
    "exc,kind",
    [
        (asyncio.TimeoutError(), ProviderErrorKind.TIMEOUT),
        (anthropic.APITimeoutError(request=REQUEST), ProviderErrorKind.TIMEOUT),
        (openai.APITimeoutError(request=REQUEST), ProviderErrorKind.TIMEOUT),
        (_status_error(anthropic.RateLimitError, 429), ProviderErrorKind.QUOTA),
        (_status_error(openai.RateLimitError, 429), ProviderErrorKind.QUOTA),
        (_status_error(anthropic.AuthenticationError, 401), ProviderErrorKind.AUTH),
        (_status_error(openai.PermissionDeniedError, 403), ProviderErrorKind.AUTH),
        (_status_error(anthropic.InternalServerError, 500), ProviderErrorKind.UNKNOWN),
        (ValueError("bad"), ProviderErrorKind.UNKNOWN),
    ],
)
def test_classify_sdk_error(exc, kind):
    assert classify_sdk_error(exc) == kind


def test_classify_by_status_code_attribute():
    exc = Exception("quota")
    exc.status_code = 429

    assert classify_sdk_error(exc) == ProviderErrorKind.QUOTA


def _settings(**overrides) -> Settings:
    values = {
        "ANTHROPIC_API_KEY": None,
        "OPENAI_API_KEY": None,
        "PROVIDER_ORDER": "anthropic,openai",
    }
    values.update(overrides)
    return Settings(**values)


def test_resolve_providers_default_order():
    providers = resolve_providers(_settings(ANTHROPIC_API_KEY="sk-ant-test", OPENAI_API_KEY="sk-test"))

    assert [p.name for p in providers] == ["anthropic", "openai"]


def test_resolve_providers_custom_order():
    providers = resolve_providers(
        _settings(ANTHROPIC_API_KEY="sk-ant-test", OPENAI_API_KEY="sk-test", PROVIDER_ORDER="openai, anthropic")
    )

    assert [p.name for p in providers] == ["openai", "anthropic"]


def test_resolve_providers_skips_missing_keys():
    providers = resolve_providers(_settings(OPENAI_API_KEY="sk-test"))

    assert [p.name for p in providers] == ["openai"]


def test_resolve_providers_ignores_unknown_and_duplicates():
    providers = resolve_providers(
        _settings(ANTHROPIC_API_KEY="sk-ant-test", PROVIDER_ORDER="gemini,anthropic,anthropic")
    )

    assert [p.name for p in providers] == ["anthropic"]


def test_resolve_providers_empty():
    assert resolve_providers(_settings()) == []


def _anthropic_message(text: str):
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.usage.input_tokens = 120
    response.usage.output_tokens = 40
    return response


@pytest.mark.asyncio
async def test_anthropic_generate():
    provider = AnthropicProvider(api_key="sk-ant-test", model="claude-sonnet-4-5-20250929")
    provider._client = MagicMock()
    provider._client.messages.create = AsyncMock(return_value=_anthropic_message('{"answer": "x"}'))

    result = await provider.generate("system", "user", 800, 0.0, 1.0)

    assert result.text == '{"answer": "x"}'
    assert result.provider == "anthropic"
    assert (result.input_tokens, result.output_tokens) == (120, 40)
    kwargs = provider._client.messages.create.call_args.kwargs
    assert kwargs["max_tokens"] == 800
    assert kwargs["temperature"] == 0.0
    assert "top_p" not in kwargs
    assert kwargs["system"][0]["text"] == "system"
    assert kwargs["messages"] == [{"role": "user", "content": "user"}]


@pytest.mark.asyncio
async def test_anthropic_timeout_maps_to_timeout():
    provider = AnthropicProvider(api_key="sk-ant-test", model="claude-sonnet-4-5-20250929", timeout_seconds=0.01)

    async def slow(**kwargs):
        await asyncio.sleep(1)

    provider._client = MagicMock()
    provider._client.messages.create = slow

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("system", "user", 800, 0.0, 1.0)

    assert exc_info.value.kind == ProviderErrorKind.TIMEOUT
    assert exc_info.value.provider == "anthropic"


@pytest.mark.asyncio
async def test_anthropic_empty_text_is_unknown_error():
    provider = AnthropicProvider(api_key="sk-ant-test", model="claude-sonnet-4-5-20250929")
    provider._client = MagicMock()
    provider._client.messages.create = AsyncMock(return_value=_anthropic_message("   "))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("system", "user", 800, 0.0, 1.0)

    assert exc_info.value.kind == ProviderErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_openai_generate():
    provider = OpenAIProvider(api_key="sk-test", model="gpt-4o-mini")
    message = MagicMock()
    message.message.content = '{"answer": "x"}'
    response = MagicMock()
    response.choices = [message]
    response.usage.prompt_tokens = 100
    response.usage.completion_tokens = 20
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(return_value=response)

    result = await provider.generate("system", "user", 800, 0.3, 0.9)

    assert result.text == '{"answer": "x"}'
    assert (result.input_tokens, result.output_tokens) == (100, 20)
    kwargs = provider._client.chat.completions.create.call_args.kwargs
    assert kwargs["top_p"] == 0.9
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_openai_rate_limit_maps_to_quota():
    provider = OpenAIProvider(api_key="sk-test", model="gpt-4o-mini")
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock(side_effect=_status_error(openai.RateLimitError, 429))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("system", "user", 800, 0.3, 0.9)

    assert exc_info.value.kind == ProviderErrorKind.QUOTA
