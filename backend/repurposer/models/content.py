from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, get_args

Tone = Literal["professional", "bold", "analytical", "casual"]
Audience = Literal["B2B", "B2C", "general"]
Length = Literal["short", "medium", "long"]
Platform = Literal["linkedin", "twitter", "youtube", "seo"]

TONES: tuple[Tone, ...] = get_args(Tone)
AUDIENCES: tuple[Audience, ...] = get_args(Audience)
LENGTHS: tuple[Length, ...] = get_args(Length)
# Prompt sections and JSON keys are always emitted in this order.
PLATFORM_ORDER: tuple[Platform, ...] = ("linkedin", "twitter", "seo", "youtube")

MAX_WORDS = 6000


@dataclass(frozen=True)
class ExtractedContent:
    title: str
    content: str
    word_count: int
    excerpt: str
    strategy: str
    author: str | None = None
    keywords: tuple[str, ...] | None = None
    date: str | None = None
    site_name: str | None = None


@dataclass(frozen=True)
class RequestOptions:
    tone: Tone = "professional"
    audience: Audience = "general"
    length: Length = "medium"
    platforms: frozenset[Platform] = frozenset(PLATFORM_ORDER)

    def __post_init__(self) -> None:
        if not self.platforms:
            raise ValueError("At least one platform must be requested")
        unknown = set(self.platforms) - set(get_args(Platform))
        if unknown:
            raise ValueError(f"Unsupported platforms: {', '.join(sorted(unknown))}")

    def ordered_platforms(self) -> tuple[Platform, ...]:
        return tuple(platform for platform in PLATFORM_ORDER if platform in self.platforms)
