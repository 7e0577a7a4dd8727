from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import pytest

from backend.repurposer.errors import (
    MalformedResponse,
    MisconfiguredCredentials,
    ProviderError,
)
from backend.repurposer.models.content import ExtractedContent, RequestOptions
from backend.repurposer.services.generation import (
    PLACEHOLDER_TEXT,
    ContentGenerator,
    salvage_model_output,
    validate_model_output,
)
from backend.repurposer.telemetry import TelemetryClient

_FULL_OUTPUT: dict[str, Any] = {
    "linkedin": {
        "educational": "Lesson post",
        "controversial": "Hot take post",
        "personal": "Story post",
    },
    "twitter_hooks": ["Hook one", "Hook two", "Hook three"],
    "meta_description": "A concise description of the article.",
    "youtube": {"title": "Video title", "description": "Video description"},
}


class _ScriptedClient:
    def __init__(self, *outcomes: str | Exception) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, str]] = []

    def complete(self, *, model: str, system_prompt: str, user_prompt: str) -> str:
        self.calls.append(
            {"model": model, "system_prompt": system_prompt, "user_prompt": user_prompt}
        )
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def _content() -> ExtractedContent:
    return ExtractedContent(
        title="Why Small Teams Ship Faster",
        content="Small teams ship faster.",
        word_count=4,
        excerpt="Small teams ship faster...",
        strategy="readability",
    )


def test_generate_returns_requested_platforms_only() -> None:
    client = _ScriptedClient(json.dumps(_FULL_OUTPUT))
    generator = ContentGenerator(client=client, primary_model="test/primary")

    result = generator.generate(
        _content(),
        RequestOptions(platforms=frozenset({"linkedin", "seo"})),
    )

    assert result.linkedin is not None
    assert result.linkedin.educational == "Lesson post"
    assert result.meta_description == "A concise description of the article."
    assert result.twitter_hooks is None
    assert result.youtube is None
    assert [call["model"] for call in client.calls] == ["test/primary"]


def test_missing_client_raises_misconfigured_credentials() -> None:
    generator = ContentGenerator(client=None)

    with pytest.raises(MisconfiguredCredentials) as exc_info:
        generator.generate(_content(), RequestOptions())

    assert "OPENAI_API_KEY" in exc_info.value.message


def test_primary_failure_retries_once_with_fallback() -> None:
    client = _ScriptedClient(ProviderError("primary down"), json.dumps(_FULL_OUTPUT))
    generator = ContentGenerator(
        client=client,
        primary_model="test/primary",
        fallback_model="test/fallback",
    )

    result = generator.generate(_content(), RequestOptions())

    assert [call["model"] for call in client.calls] == ["test/primary", "test/fallback"]
    assert client.calls[0]["user_prompt"] == client.calls[1]["user_prompt"]
    assert result.youtube is not None
    assert result.youtube.title == "Video title"


def test_fallback_failure_is_surfaced() -> None:
    client = _ScriptedClient(
        MalformedResponse("AI returned an empty response"),
        ProviderError("fallback down"),
    )
    generator = ContentGenerator(
        client=client,
        primary_model="test/primary",
        fallback_model="test/fallback",
    )

    with pytest.raises(ProviderError) as exc_info:
        generator.generate(_content(), RequestOptions())

    assert exc_info.value.message == "fallback down"
    assert len(client.calls) == 2


@pytest.mark.parametrize("fallback_model", [None, "test/primary"])
def test_no_second_call_without_a_distinct_fallback(fallback_model: str | None) -> None:
    client = _ScriptedClient(ProviderError("primary down"))
    generator = ContentGenerator(
        client=client,
        primary_model="test/primary",
        fallback_model=fallback_model,
    )

    with pytest.raises(ProviderError):
        generator.generate(_content(), RequestOptions())

    assert len(client.calls) == 1


def test_invalid_json_triggers_fallback_and_then_fails() -> None:
    client = _ScriptedClient("not json at all", "{still not json")
    generator = ContentGenerator(
        client=client,
        primary_model="test/primary",
        fallback_model="test/fallback",
    )

    with pytest.raises(MalformedResponse) as exc_info:
        generator.generate(_content(), RequestOptions())

    assert exc_info.value.message == "AI returned invalid JSON"
    assert exc_info.value.status_code == 500
    assert len(client.calls) == 2


def test_wrong_shape_is_salvaged_without_fallback() -> None:
    client = _ScriptedClient(json.dumps({"meta_description": "x" * 300, "extra": 1}))
    sink = _CaptureSink()
    generator = ContentGenerator(
        client=client,
        primary_model="test/primary",
        fallback_model="test/fallback",
        telemetry=TelemetryClient(enabled=True, sink=sink),
    )

    result = generator.generate(
        _content(),
        RequestOptions(platforms=frozenset({"seo", "twitter"})),
    )

    assert len(client.calls) == 1
    assert result.meta_description == "x" * 160
    assert result.twitter_hooks == (PLACEHOLDER_TEXT, PLACEHOLDER_TEXT, PLACEHOLDER_TEXT)
    assert result.linkedin is None
    assert sink.events == [
        (
            "repurpose.generate.finish",
            {"model": "test/primary", "platforms": "twitter,seo", "salvaged": True},
        )
    ]


def test_salvage_of_empty_object_fills_only_requested_platform() -> None:
    result = salvage_model_output({}, ("seo",))

    assert result.meta_description == PLACEHOLDER_TEXT
    assert result.linkedin is None
    assert result.twitter_hooks is None
    assert result.youtube is None


def test_salvage_keeps_usable_fields_and_fills_the_rest() -> None:
    result = salvage_model_output(
        {
            "linkedin": {"educational": "Kept", "controversial": "", "personal": 3},
            "twitter_hooks": ["First", None],
            "youtube": "not an object",
        },
        ("linkedin", "twitter", "youtube"),
    )

    assert result.linkedin is not None
    assert result.linkedin.educational == "Kept"
    assert result.linkedin.controversial == PLACEHOLDER_TEXT
    assert result.linkedin.personal == PLACEHOLDER_TEXT
    assert result.twitter_hooks == ("First", PLACEHOLDER_TEXT, PLACEHOLDER_TEXT)
    assert result.youtube is not None
    assert result.youtube.title == PLACEHOLDER_TEXT
    assert result.meta_description is None


def test_salvage_of_non_object_json_uses_placeholders() -> None:
    result = salvage_model_output(["a", "b"], ("youtube",))

    assert result.youtube is not None
    assert result.youtube.description == PLACEHOLDER_TEXT


def test_validate_model_output_requires_requested_keys() -> None:
    assert validate_model_output({"linkedin": _FULL_OUTPUT["linkedin"]}, ("linkedin", "seo")) is None
    assert validate_model_output({"twitter_hooks": ["only", "two"]}, ("twitter",)) is None
    assert validate_model_output("text", ("seo",)) is None

    validated = validate_model_output(_FULL_OUTPUT, ("youtube",))
    assert validated is not None
    assert validated.youtube is not None
    assert validated.linkedin is None
