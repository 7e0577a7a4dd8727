from __future__ import annotations

from functools import lru_cache

from backend.repurposer.config import AppSettings, load_settings
from backend.repurposer.services.analytics import AnalyticsCounters
from backend.repurposer.services.content_extractor import ContentExtractor
from backend.repurposer.services.fetcher import HtmlFetcher
from backend.repurposer.services.generation import ContentGenerator
from backend.repurposer.services.llm_client import OpenAIChatClient
from backend.repurposer.services.rate_limiter import FixedWindowRateLimiter
from backend.repurposer.services.repurpose_service import RepurposeService
from backend.repurposer.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_content_generator() -> ContentGenerator:
    settings = get_settings()
    client: OpenAIChatClient | None = None
    if settings.openai_api_key is not None:
        client = OpenAIChatClient(
            api_key=settings.openai_api_key,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    return ContentGenerator(
        client=client,
        primary_model=settings.ai_model_primary,
        fallback_model=settings.ai_model_fallback,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_repurpose_service() -> RepurposeService:
    settings = get_settings()
    return RepurposeService(
        fetcher=HtmlFetcher(
            timeout_seconds=settings.fetch_timeout_seconds,
            max_bytes=settings.fetch_max_bytes,
            user_agent=settings.fetch_user_agent,
        ),
        extractor=ContentExtractor(),
        generator=get_content_generator(),
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_rate_limiter() -> FixedWindowRateLimiter:
    settings = get_settings()
    return FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


@lru_cache(maxsize=1)
def get_analytics() -> AnalyticsCounters:
    return AnalyticsCounters()


def reset_cached_dependencies() -> None:
    get_repurpose_service.cache_clear()
    get_content_generator.cache_clear()
    get_rate_limiter.cache_clear()
    get_analytics.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
