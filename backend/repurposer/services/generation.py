from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, get_args

from pydantic import ValidationError

from backend.repurposer.errors import GenerationError, MalformedResponse, MisconfiguredCredentials
from backend.repurposer.models.content import (
    PLATFORM_ORDER,
    ExtractedContent,
    Platform,
    RequestOptions,
)
from backend.repurposer.models.repurpose_contracts import (
    META_DESCRIPTION_MAX_CHARS,
    RepurposedContent,
)
from backend.repurposer.services.llm_client import ChatCompletionClient
from backend.repurposer.services.prompt_builder import (
    PLATFORM_OUTPUT_KEYS,
    PromptPair,
    build_prompts,
)
from backend.repurposer.telemetry import TelemetryClient

LOGGER = logging.getLogger("repurposer.generation")

DEFAULT_PRIMARY_MODEL = "google/gemini-2.0-flash-001"
PLACEHOLDER_TEXT = "Content generation incomplete"
MISSING_CREDENTIALS_MESSAGE = (
    "OPENAI_API_KEY is not configured. Please set it in your environment variables."
)
INVALID_JSON_MESSAGE = "AI returned invalid JSON"


class ContentGenerator:
    """Turns extracted content into per-platform copy with one primary and one fallback call.

    Model output that parses but misses the expected shape is never an error: each
    requested platform is salvaged field by field instead.
    """

    def __init__(
        self,
        *,
        client: ChatCompletionClient | None,
        primary_model: str = DEFAULT_PRIMARY_MODEL,
        fallback_model: str | None = None,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._client = client
        self._primary_model = primary_model.strip() or DEFAULT_PRIMARY_MODEL
        self._fallback_model = fallback_model.strip() if fallback_model else None
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    @property
    def primary_model(self) -> str:
        return self._primary_model

    @property
    def fallback_model(self) -> str | None:
        return self._fallback_model

    def generate(self, content: ExtractedContent, options: RequestOptions) -> RepurposedContent:
        client = self._client
        if client is None:
            raise MisconfiguredCredentials(MISSING_CREDENTIALS_MESSAGE)

        prompts = build_prompts(content, options)
        LOGGER.info(
            "generating content model=%s fallback=%s platforms=%s",
            self._primary_model,
            self._fallback_model or "none",
            ",".join(options.ordered_platforms()),
        )
        try:
            return self._generate_with_model(client, self._primary_model, prompts, options)
        except GenerationError as exc:
            fallback = self._fallback_model
            if fallback is None or fallback == self._primary_model:
                raise
            LOGGER.warning(
                "primary model failed; switching to fallback primary=%s fallback=%s error=%s",
                self._primary_model,
                fallback,
                exc,
            )
            return self._generate_with_model(client, fallback, prompts, options)

    def _generate_with_model(
        self,
        client: ChatCompletionClient,
        model: str,
        prompts: PromptPair,
        options: RequestOptions,
    ) -> RepurposedContent:
        response_text = client.complete(
            model=model,
            system_prompt=prompts.system_prompt,
            user_prompt=prompts.user_prompt,
        )
        parsed = parse_model_output(response_text)

        platforms = options.ordered_platforms()
        validated = validate_model_output(parsed, platforms)
        salvaged = validated is None
        if validated is None:
            validated = salvage_model_output(parsed, platforms)

        self._telemetry.emit(
            "repurpose.generate.finish",
            model=model,
            platforms=platforms,
            salvaged=salvaged,
        )
        return validated


def parse_model_output(response_text: str) -> object:
    try:
        return json.loads(response_text)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(INVALID_JSON_MESSAGE) from exc


def validate_model_output(
    parsed: object,
    platforms: tuple[Platform, ...],
) -> RepurposedContent | None:
    if not isinstance(parsed, dict):
        LOGGER.warning("model output is not a JSON object type=%s", type(parsed).__name__)
        return None

    selected: dict[str, Any] = {}
    for platform in platforms:
        key = PLATFORM_OUTPUT_KEYS[platform]
        if parsed.get(key) is None:
            LOGGER.warning("model output missing requested key key=%s", key)
            return None
        selected[key] = parsed[key]

    try:
        return RepurposedContent.model_validate(selected)
    except ValidationError as exc:
        LOGGER.warning(
            "model output failed validation errors=%s",
            [".".join(str(part) for part in error["loc"]) for error in exc.errors()],
        )
        return None


def salvage_model_output(parsed: object, platforms: tuple[Platform, ...]) -> RepurposedContent:
    raw: Mapping[str, object] = parsed if isinstance(parsed, dict) else {}
    fields = {
        PLATFORM_OUTPUT_KEYS[platform]: _SALVAGERS[platform](raw) for platform in platforms
    }
    return RepurposedContent.model_validate(fields)


def _salvage_linkedin(raw: Mapping[str, object]) -> dict[str, str]:
    return {
        field_name: _nested_string(raw, "linkedin", field_name) or PLACEHOLDER_TEXT
        for field_name in ("educational", "controversial", "personal")
    }


def _salvage_twitter(raw: Mapping[str, object]) -> list[str]:
    return [_array_string(raw, "twitter_hooks", index) or PLACEHOLDER_TEXT for index in range(3)]


def _salvage_seo(raw: Mapping[str, object]) -> str:
    value = raw.get("meta_description")
    if isinstance(value, str) and value[:META_DESCRIPTION_MAX_CHARS]:
        return value[:META_DESCRIPTION_MAX_CHARS]
    return PLACEHOLDER_TEXT


def _salvage_youtube(raw: Mapping[str, object]) -> dict[str, str]:
    return {
        field_name: _nested_string(raw, "youtube", field_name) or PLACEHOLDER_TEXT
        for field_name in ("title", "description")
    }


_SALVAGERS: Mapping[Platform, Callable[[Mapping[str, object]], object]] = {
    "linkedin": _salvage_linkedin,
    "twitter": _salvage_twitter,
    "seo": _salvage_seo,
    "youtube": _salvage_youtube,
}

if set(_SALVAGERS) != set(get_args(Platform)) or set(PLATFORM_ORDER) != set(_SALVAGERS):
    raise RuntimeError("salvage handlers must cover exactly the supported platforms")


def _nested_string(raw: Mapping[str, object], key: str, field_name: str) -> str | None:
    nested = raw.get(key)
    if not isinstance(nested, dict):
        return None
    value = nested.get(field_name)
    if isinstance(value, str) and value:
        return value
    return None


def _array_string(raw: Mapping[str, object], key: str, index: int) -> str | None:
    values = raw.get(key)
    if not isinstance(values, list) or index >= len(values):
        return None
    value = values[index]
    if isinstance(value, str) and value:
        return value
    return None
