"""Generation providers and the provider registry.

Every provider exposes one coroutine::

    await provider.generate(system_text, user_text, max_tokens, temperature, top_p)
        -> GenerationResult

and raises ProviderError(kind) on failure. SDK exceptions are mapped onto
TIMEOUT / QUOTA / AUTH / UNKNOWN; the per-call timeout maps to TIMEOUT.
Providers never retry; the dispatcher moves on to the next one instead.
"""

import asyncio
import time
from typing import Protocol

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from docgen.core.config import Settings
from docgen.core.errors import ProviderError, ProviderErrorKind
from docgen.core.logging import get_logger
from docgen.core.schemas_agent import GenerationResult

logger = get_logger(__name__)


class GenerationProvider(Protocol):
    name: str
    model: str

    async def generate(
        self,
        system_text: str,
        user_text: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
    ) -> GenerationResult: ...


def classify_sdk_error(exc: Exception) -> ProviderErrorKind:
    """Map an Anthropic/OpenAI SDK exception onto a provider error kind."""
    if isinstance(exc, (asyncio.TimeoutError, anthropic.APITimeoutError, openai.APITimeoutError)):
        return ProviderErrorKind.TIMEOUT
    if isinstance(exc, (anthropic.RateLimitError, openai.RateLimitError)):
        return ProviderErrorKind.QUOTA
    if isinstance(
        exc,
        (
            anthropic.AuthenticationError,
            anthropic.PermissionDeniedError,
            openai.AuthenticationError,
            openai.PermissionDeniedError,
        ),
    ):
        return ProviderErrorKind.AUTH
    status = getattr(exc, "status_code", None)
    if status == 429:
        return ProviderErrorKind.QUOTA
    if status in (401, 403):
        return ProviderErrorKind.AUTH
    return ProviderErrorKind.UNKNOWN


class AnthropicProvider:
    name = "anthropic"

    def __init__(self, api_key: str, model: str, timeout_seconds: float = 60.0):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = AsyncAnthropic(api_key=api_key, max_retries=0)

    async def generate(
        self,
        system_text: str,
        user_text: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
    ) -> GenerationResult:
        # Current Claude models reject temperature and top_p together; temperature wins
        t0 = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=[{"type": "text", "text": system_text, "cache_control": {"type": "ephemeral"}}],
                    messages=[{"role": "user", "content": user_text}],
                ),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            raise ProviderError(self.name, classify_sdk_error(e), str(e)) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        if not text.strip():
            raise ProviderError(self.name, ProviderErrorKind.UNKNOWN, "empty response")

        return GenerationResult(
            text=text,
            provider=self.name,
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: str, model: str, timeout_seconds: float = 60.0):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = AsyncOpenAI(api_key=api_key, max_retries=0)

    async def generate(
        self,
        system_text: str,
        user_text: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
    ) -> GenerationResult:
        t0 = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    top_p=top_p,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system_text},
                        {"role": "user", "content": user_text},
                    ],
                ),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            raise ProviderError(self.name, classify_sdk_error(e), str(e)) from e

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            raise ProviderError(self.name, ProviderErrorKind.UNKNOWN, "empty response")

        usage = response.usage
        return GenerationResult(
            text=text,
            provider=self.name,
            model=self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )


def resolve_providers(settings: Settings) -> list[GenerationProvider]:
    """
    Build the ordered provider chain from configuration.

    Providers appear in PROVIDER_ORDER order, skipping any whose API key is
    absent or whose name is not recognised. An empty list sends every request
    straight to the synthetic fallback.
    """
    flags = settings.provider_flags
    providers: list[GenerationProvider] = []
    for name in dict.fromkeys(settings.provider_order):
        if name not in flags:
            logger.warning(f"Unknown provider '{name}' in PROVIDER_ORDER, skipping")
            continue
        if not flags[name]:
            continue
        if name == "anthropic":
            providers.append(
                AnthropicProvider(settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_MODEL, settings.PROVIDER_TIMEOUT_SECONDS)
            )
        else:
            providers.append(
                OpenAIProvider(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.PROVIDER_TIMEOUT_SECONDS)
            )

    if providers:
        logger.info(f"Provider chain: {' -> '.join(p.name for p in providers)}")
    else:
        logger.warning("No generation providers configured; all requests will use synthetic fallback")
    return providers
