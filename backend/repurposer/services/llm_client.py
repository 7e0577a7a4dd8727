from __future__ import annotations

import logging
from typing import Protocol

from openai import (
    APIError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
    OpenAIError,
    RateLimitError,
)

from backend.repurposer.errors import MalformedResponse, ProviderError

LOGGER = logging.getLogger("repurposer.llm")

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TEMPERATURE = 0.8
DEFAULT_MAX_TOKENS = 4000
EMPTY_RESPONSE_MESSAGE = "AI returned an empty response"


class ChatCompletionClient(Protocol):
    def complete(self, *, model: str, system_prompt: str, user_prompt: str) -> str:
        ...


class OpenAIChatClient:
    """Chat-completion client for any OpenAI-compatible endpoint (OpenRouter by default)."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout_seconds: float = 60.0,
    ) -> None:
        # Retries are owned by the primary/fallback policy in ContentGenerator.
        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=max(1.0, timeout_seconds),
            max_retries=0,
        )
        self._temperature = temperature
        self._max_tokens = max(1, max_tokens)

    def complete(self, *, model: str, system_prompt: str, user_prompt: str) -> str:
        try:
            completion = self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except AuthenticationError as exc:
            raise ProviderError(
                "Invalid API key. Please check your OPENAI_API_KEY / OpenRouter key."
            ) from exc
        except RateLimitError as exc:
            raise ProviderError("AI rate limit exceeded. Please try again in a few minutes.") from exc
        except APITimeoutError as exc:
            raise ProviderError("AI provider timed out. Please try again.") from exc
        except APIError as exc:
            LOGGER.warning("llm provider error model=%s error_type=%s", model, type(exc).__name__)
            raise ProviderError(f"AI provider request failed: {exc.message}") from exc
        except OpenAIError as exc:
            raise ProviderError(f"AI provider request failed: {exc}") from exc

        choices = completion.choices or []
        text = choices[0].message.content if choices else None
        if text is None or not text.strip():
            raise MalformedResponse(EMPTY_RESPONSE_MESSAGE)
        return text
