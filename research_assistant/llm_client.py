"""OpenRouter-backed language model used by the extraction passes."""
from __future__ import annotations

import time
from typing import Any, Protocol

from openai import AsyncOpenAI

from research_assistant.config import ResearchConfig
from research_assistant.models.errors import ProviderError
from research_assistant.services.credentials import OPENROUTER_API_KEY, CredentialProvider
from research_assistant.services.env_safety import sanitize_ssl_keylogfile
from research_assistant.services.logger import log_llm_call


class LanguageModel(Protocol):
    async def invoke(self, prompt: str) -> str: ...


def temperature_for_model(model: str, default: float) -> float:
    # Some OpenAI GPT-5-compatible gateways reject anything but temperature=1.
    if "gpt-5" in (model or "").lower():
        return 1
    return default


class OpenRouterLanguageModel:
    """Single-prompt chat completion over the OpenAI-compatible OpenRouter API.

    The client is created lazily so a missing key only fails the call that
    needs it, which every extraction pass already turns into a fallback.
    """

    def __init__(self, config: ResearchConfig, credentials: CredentialProvider, *, client: Any | None = None):
        self.config = config
        self._credentials = credentials
        self._client = client

    @property
    def model(self) -> str:
        return self.config.model

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        api_key = self._credentials.get(OPENROUTER_API_KEY)
        if not api_key:
            raise ProviderError("openrouter", "OpenRouter API key is not configured")

        sanitize_ssl_keylogfile()
        self._client = AsyncOpenAI(api_key=api_key, base_url=self.config.llm_base_url)
        return self._client

    async def invoke(self, prompt: str) -> str:
        client = self._get_client()
        start = time.monotonic()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.config.llm_max_tokens,
                temperature=temperature_for_model(self.model, self.config.llm_temperature),
            )
        except Exception as e:
            log_llm_call(
                model=self.model,
                caller="OpenRouterLanguageModel.invoke",
                duration_ms=int((time.monotonic() - start) * 1000),
                status="error",
                error=str(e),
            )
            raise ProviderError("openrouter", str(e)) from e

        usage = getattr(response, "usage", None)
        log_llm_call(
            model=self.model,
            caller="OpenRouterLanguageModel.invoke",
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        return getattr(choices[0].message, "content", None) or ""
