from __future__ import annotations

from backend.repurposer.models.content import ExtractedContent, RequestOptions
from backend.repurposer.services.prompt_builder import (
    AUDIENCE_INSTRUCTIONS,
    LENGTH_INSTRUCTIONS,
    TONE_INSTRUCTIONS,
    build_prompts,
    expected_json_shape,
)


def _content(**overrides: object) -> ExtractedContent:
    values: dict[str, object] = {
        "title": "Why Small Teams Ship Faster",
        "content": "## Intro\n\nSmall teams ship faster.",
        "word_count": 5,
        "excerpt": "Small teams ship faster...",
        "strategy": "readability",
    }
    values.update(overrides)
    return ExtractedContent(**values)  # type: ignore[arg-type]


def test_seo_only_request_mentions_only_meta_description() -> None:
    prompts = build_prompts(_content(), RequestOptions(platforms=frozenset({"seo"})))

    assert '"meta_description"' in prompts.system_prompt
    for other_key in ('"linkedin"', '"twitter_hooks"', '"youtube"'):
        assert other_key not in prompts.system_prompt
    assert "1. One SEO-optimized meta description" in prompts.user_prompt
    assert "LinkedIn posts:" not in prompts.user_prompt
    assert "2." not in prompts.user_prompt


def test_tasks_are_numbered_in_canonical_platform_order() -> None:
    prompts = build_prompts(
        _content(),
        RequestOptions(platforms=frozenset({"youtube", "twitter"})),
    )

    twitter_index = prompts.user_prompt.index("1. Three Twitter/X thread opening tweets")
    youtube_index = prompts.user_prompt.index("2. One YouTube video")
    assert twitter_index < youtube_index
    assert prompts.user_prompt.rstrip().endswith("Return ONLY the JSON object, no other text.")


def test_system_prompt_carries_tone_audience_and_length() -> None:
    options = RequestOptions(tone="bold", audience="B2B", length="short")

    prompts = build_prompts(_content(), options)

    assert f"TONE: {TONE_INSTRUCTIONS['bold']}" in prompts.system_prompt
    assert f"AUDIENCE: {AUDIENCE_INSTRUCTIONS['B2B']}" in prompts.system_prompt
    assert f"LENGTH: {LENGTH_INSTRUCTIONS['short']}" in prompts.system_prompt


def test_metadata_block_uses_placeholders_when_missing() -> None:
    prompts = build_prompts(_content(), RequestOptions())

    assert "Site Name: Unknown" in prompts.user_prompt
    assert "Author: Unknown" in prompts.user_prompt
    assert "Published Date: Unknown" in prompts.user_prompt
    assert "Keywords: None" in prompts.user_prompt


def test_metadata_block_includes_known_values_and_content() -> None:
    prompts = build_prompts(
        _content(
            author="Dana Writer",
            site_name="Example Engineering",
            date="2024-03-01",
            keywords=("teams", "delivery"),
        ),
        RequestOptions(),
    )

    assert "Title: Why Small Teams Ship Faster" in prompts.user_prompt
    assert "Author: Dana Writer" in prompts.user_prompt
    assert "Site Name: Example Engineering" in prompts.user_prompt
    assert "Published Date: 2024-03-01" in prompts.user_prompt
    assert "Keywords: teams, delivery" in prompts.user_prompt
    assert "## Intro\n\nSmall teams ship faster." in prompts.user_prompt


def test_expected_json_shape_follows_canonical_order() -> None:
    shape = expected_json_shape(["youtube", "linkedin", "seo", "twitter"])

    keys = ['"linkedin"', '"twitter_hooks"', '"meta_description"', '"youtube"']
    positions = [shape.index(key) for key in keys]
    assert positions == sorted(positions)
    assert shape.startswith("{\n") and shape.endswith("\n}")
