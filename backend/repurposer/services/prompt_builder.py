from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import get_args

from backend.repurposer.models.content import (
    PLATFORM_ORDER,
    Audience,
    ExtractedContent,
    Length,
    Platform,
    RequestOptions,
    Tone,
)

TONE_INSTRUCTIONS: Mapping[Tone, str] = {
    "professional": (
        "Write in a polished, authoritative professional tone. Focus on expertise, insights, "
        "and business value. Avoid slang."
    ),
    "bold": (
        "Write in a bold, provocative, attention-grabbing tone. Use strong opinions, hot takes, "
        "and challenge conventional wisdom. Be contrarian but substantive."
    ),
    "analytical": (
        "Write in a data-driven, analytical tone. Focus on frameworks, mental models, "
        "evidence-based insights, and logical reasoning. Be precise and structured."
    ),
    "casual": (
        "Write in a friendly, conversational, and relatable tone. Use simple language, humor if "
        "appropriate, and speak directly to the reader like a peer."
    ),
}

AUDIENCE_INSTRUCTIONS: Mapping[Audience, str] = {
    "B2B": (
        "Target a business audience (engineers, executives, founders). Focus on ROI, "
        "efficiency, scalability, and strategic value."
    ),
    "B2C": (
        "Target a general consumer audience. Focus on lifestyle, personal benefits, emotional "
        "connection, and ease of use."
    ),
    "general": (
        "Target a broad, general audience. Avoid jargon, keep concepts accessible, and focus on "
        "clear communication."
    ),
}

LENGTH_INSTRUCTIONS: Mapping[Length, str] = {
    "short": (
        "Keep all content concise. LinkedIn posts under 600 characters. Twitter hooks under "
        "200 characters. YouTube description under 150 words."
    ),
    "medium": (
        "Use medium-length content. LinkedIn posts 800-1200 characters. Twitter hooks 200-280 "
        "characters. YouTube description 150-250 words."
    ),
    "long": (
        "Create detailed, long-form content. LinkedIn posts 1200-2000 characters. Twitter hooks "
        "can use full 280 characters. YouTube description 250-350 words."
    ),
}

# Output key each platform populates in the model's JSON object.
PLATFORM_OUTPUT_KEYS: Mapping[Platform, str] = {
    "linkedin": "linkedin",
    "twitter": "twitter_hooks",
    "seo": "meta_description",
    "youtube": "youtube",
}

# PLATFORM_JSON_SHAPES and PLATFORM_TASKS must be extended together with Platform.
PLATFORM_JSON_SHAPES: Mapping[Platform, str] = {
    "linkedin": (
        '"linkedin": { "educational": "LinkedIn post with educational angle", '
        '"controversial": "LinkedIn post with contrarian/controversial take", '
        '"personal": "LinkedIn post with personal story hook" }'
    ),
    "twitter": (
        '"twitter_hooks": ["Curiosity-driven tweet", "Bold claim tweet", '
        '"Data-backed insight tweet"]'
    ),
    "seo": '"meta_description": "SEO meta description, strictly under 160 characters"',
    "youtube": (
        '"youtube": { "title": "High CTR YouTube title", '
        '"description": "YouTube description 150-300 words" }'
    ),
}

PLATFORM_TASKS: Mapping[Platform, str] = {
    "linkedin": (
        "Three LinkedIn posts:\n"
        "   - Educational angle: teach the reader something valuable from the blog\n"
        "   - Contrarian/controversial take: challenge a common belief related to the topic\n"
        "   - Personal story hook: frame it as a personal insight or lesson learned"
    ),
    "twitter": (
        "Three Twitter/X thread opening tweets:\n"
        "   - Curiosity-driven: make people want to read more\n"
        "   - Bold claim: make a strong statement that demands attention\n"
        "   - Data-backed insight: lead with a compelling stat or finding from the content"
    ),
    "seo": (
        "One SEO-optimized meta description (strictly under 160 characters). "
        "Use the target keywords if they are relevant."
    ),
    "youtube": (
        "One YouTube video:\n"
        "   - Title: optimized for high CTR, use power words\n"
        "   - Description: 150-300 words, include key points and a call to action. "
        "Mention the original article source if relevant."
    ),
}

SYSTEM_PROMPT_RULES: tuple[str, ...] = (
    "Avoid generic AI tone at all costs",
    "Write like a real human who actively posts on LinkedIn and X (Twitter)",
    "Create strong hooks that stop the scroll",
    'Avoid clichés like "game-changer", "unlock", "dive in", "in today\'s world"',
    "Avoid emojis unless they feel completely natural",
    "Create tension, curiosity, or insight in every piece",
    "Each piece must feel native to its platform",
    "Use the provided metadata (Author, Date, Site Name, Keywords) to contextualize the content.",
    "If the author is known, mimic their potential voice or credit them appropriately where natural.",
)


def _check_platform_tables() -> None:
    expected = set(get_args(Platform))
    tables: dict[str, Iterable[str]] = {
        "PLATFORM_ORDER": PLATFORM_ORDER,
        "PLATFORM_OUTPUT_KEYS": PLATFORM_OUTPUT_KEYS,
        "PLATFORM_JSON_SHAPES": PLATFORM_JSON_SHAPES,
        "PLATFORM_TASKS": PLATFORM_TASKS,
    }
    for table_name, keys in tables.items():
        if set(keys) != expected:
            raise RuntimeError(
                f"{table_name} must cover exactly the platforms: {', '.join(sorted(expected))}"
            )


_check_platform_tables()


@dataclass(frozen=True)
class PromptPair:
    system_prompt: str
    user_prompt: str


def build_prompts(content: ExtractedContent, options: RequestOptions) -> PromptPair:
    platforms = options.ordered_platforms()
    return PromptPair(
        system_prompt=build_system_prompt(options),
        user_prompt=build_user_prompt(content, platforms),
    )


def expected_json_shape(platforms: Iterable[Platform]) -> str:
    requested = set(platforms)
    shapes = [PLATFORM_JSON_SHAPES[platform] for platform in PLATFORM_ORDER if platform in requested]
    return "{\n  " + ",\n  ".join(shapes) + "\n}"


def build_system_prompt(options: RequestOptions) -> str:
    rules = "\n".join(f"- {rule}" for rule in SYSTEM_PROMPT_RULES)
    return (
        "You are an elite content strategist and social media expert.\n"
        "You transform blog posts into high-performing platform-native content.\n"
        "\n"
        "CRITICAL RULES:\n"
        f"{rules}\n"
        "\n"
        f"TONE: {TONE_INSTRUCTIONS[options.tone]}\n"
        "\n"
        f"AUDIENCE: {AUDIENCE_INSTRUCTIONS[options.audience]}\n"
        "\n"
        f"LENGTH: {LENGTH_INSTRUCTIONS[options.length]}\n"
        "\n"
        "OUTPUT FORMAT:\n"
        "You MUST return valid JSON with ONLY these keys populated (based on requested platforms):\n"
        f"{expected_json_shape(options.platforms)}\n"
    )


def build_user_prompt(content: ExtractedContent, platforms: Iterable[Platform]) -> str:
    requested = set(platforms)
    ordered = [platform for platform in PLATFORM_ORDER if platform in requested]
    tasks = "\n\n".join(
        f"{index}. {PLATFORM_TASKS[platform]}" for index, platform in enumerate(ordered, start=1)
    )
    keywords = ", ".join(content.keywords) if content.keywords else "None"
    return (
        "BLOG METADATA:\n"
        f"Title: {content.title}\n"
        f"Site Name: {content.site_name or 'Unknown'}\n"
        f"Author: {content.author or 'Unknown'}\n"
        f"Published Date: {content.date or 'Unknown'}\n"
        f"Keywords: {keywords}\n"
        "\n"
        "BLOG EXCERPT:\n"
        f"{content.excerpt}\n"
        "\n"
        "BLOG CONTENT:\n"
        f"{content.content}\n"
        "\n"
        "TASK:\n"
        "Generate platform-native content from this blog post, using the metadata to add "
        "context and authority:\n"
        "\n"
        f"{tasks}\n"
        "\n"
        "Return ONLY the JSON object, no other text."
    )
