from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from backend.repurposer.models.content import (
    PLATFORM_ORDER,
    Audience,
    Length,
    Platform,
    RequestOptions,
    Tone,
)

META_DESCRIPTION_MAX_CHARS = 160

NonEmptyText = Annotated[str, StringConstraints(min_length=1)]
MetaDescriptionText = Annotated[
    str, StringConstraints(min_length=1, max_length=META_DESCRIPTION_MAX_CHARS)
]


def _default_platforms() -> list[Platform]:
    return list(PLATFORM_ORDER)


class RepurposeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(max_length=2048)
    tone: Tone = "professional"
    audience: Audience = "general"
    length: Length = "medium"
    platforms: list[Platform] = Field(default_factory=_default_platforms)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("URL is required")
        if any(ord(character) < 32 for character in normalized):
            raise ValueError("URL contains control characters")
        return normalized

    @field_validator("platforms")
    @classmethod
    def _dedupe_platforms(cls, value: list[Platform]) -> list[Platform]:
        if not value:
            raise ValueError("At least one platform is required")
        return [platform for platform in PLATFORM_ORDER if platform in set(value)]

    def to_options(self) -> RequestOptions:
        return RequestOptions(
            tone=self.tone,
            audience=self.audience,
            length=self.length,
            platforms=frozenset(self.platforms),
        )


class LinkedInContent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    educational: NonEmptyText
    controversial: NonEmptyText
    personal: NonEmptyText


class YouTubeContent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    title: NonEmptyText
    description: NonEmptyText


class RepurposedContent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    linkedin: LinkedInContent | None = None
    twitter_hooks: tuple[NonEmptyText, NonEmptyText, NonEmptyText] | None = None
    meta_description: MetaDescriptionText | None = None
    youtube: YouTubeContent | None = None


class RepurposeResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    data: RepurposedContent | None = None
    error: str | None = None
    stack: str | None = None


class AnalyticsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_requests: int
    successful_requests: int
