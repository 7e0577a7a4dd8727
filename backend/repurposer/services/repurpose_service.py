from __future__ import annotations

import logging
from time import perf_counter

from backend.repurposer.errors import ExtractionFailed, RepurposerError
from backend.repurposer.models.content import ExtractedContent, RequestOptions
from backend.repurposer.models.repurpose_contracts import RepurposedContent
from backend.repurposer.services.content_extractor import ContentExtractor
from backend.repurposer.services.fetcher import HtmlFetcher
from backend.repurposer.services.generation import ContentGenerator
from backend.repurposer.services.url_validator import validate_url
from backend.repurposer.telemetry import TelemetryClient

LOGGER = logging.getLogger("repurposer.pipeline")


class RepurposeService:
    """Runs validate, fetch, extract and generate strictly in sequence for one URL."""

    def __init__(
        self,
        *,
        fetcher: HtmlFetcher,
        extractor: ContentExtractor,
        generator: ContentGenerator,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._generator = generator
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def repurpose(self, url: str, options: RequestOptions) -> RepurposedContent:
        extracted = self.extract_only(url)
        started_at = perf_counter()
        result = self._generator.generate(extracted, options)
        LOGGER.info(
            "content generated platforms=%s duration_ms=%s",
            ",".join(options.ordered_platforms()),
            int((perf_counter() - started_at) * 1000),
        )
        return result

    def extract_only(self, url: str) -> ExtractedContent:
        normalized_url = validate_url(url)
        started_at = perf_counter()
        html_text = self._fetcher.fetch(normalized_url)
        try:
            extracted = self._extractor.extract(html_text, normalized_url)
        except RepurposerError:
            raise
        except Exception as exc:
            LOGGER.exception("unexpected extraction error url=%s", normalized_url)
            raise ExtractionFailed(f"Content extraction failed: {type(exc).__name__}") from exc

        self._telemetry.emit(
            "repurpose.extract.finish",
            url=normalized_url,
            strategy=extracted.strategy,
            word_count=extracted.word_count,
            duration_ms=int((perf_counter() - started_at) * 1000),
        )
        return extracted
