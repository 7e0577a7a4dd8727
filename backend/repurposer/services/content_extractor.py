from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, replace

from bs4 import BeautifulSoup
from lxml.etree import ParserError
from readability import Document
from readability.readability import Unparseable

from backend.repurposer.errors import ExtractionFailed
from backend.repurposer.models.content import MAX_WORDS, ExtractedContent
from backend.repurposer.services.markdown import (
    count_words,
    html_to_markdown,
    strip_tags,
    truncate_to_words,
)

LOGGER = logging.getLogger("repurposer.extractor")

MIN_CONTENT_WORDS = 500
MIN_FALLBACK_WORDS = 100
EXCERPT_CHARS = 200
MAX_TITLE_CHARS = 300
UNTITLED = "Untitled"

STRATEGY_READABILITY = "readability"
STRATEGY_SELECTORS = "selectors"

EXTRACTION_FAILED_MESSAGE = (
    "Could not extract meaningful content from this URL. "
    "The page might be dynamic or require JavaScript rendering."
)

BOILERPLATE_SELECTORS: tuple[str, ...] = (
    "script",
    "style",
    "nav",
    "footer",
    "header",
    "form",
    "iframe",
    "aside",
    ".comments",
    "#comments",
    ".sidebar",
    ".advertisement",
    ".ad",
    ".ads",
    '[role="banner"]',
    '[role="navigation"]',
    '[role="complementary"]',
    ".social-share",
    ".related-posts",
    ".newsletter",
    ".popup",
    ".modal",
)

CONTENT_SELECTORS: tuple[str, ...] = (
    "article",
    '[role="main"]',
    "main",
    ".post-content",
    ".entry-content",
    ".article-content",
    ".content",
    ".post-body",
    "#content",
)

@dataclass(frozen=True)
class _StrategyResult:
    title: str
    content: str
    word_count: int
    excerpt: str
    author: str | None


@dataclass(frozen=True)
class _CascadeStage:
    strategy: str
    min_words: int


# Ordered: the first stage whose strategy meets its word floor wins. The last stage
# lets a short readability result through when the selector fallback found nothing.
EXTRACTION_CASCADE: tuple[_CascadeStage, ...] = (
    _CascadeStage(strategy=STRATEGY_READABILITY, min_words=MIN_CONTENT_WORDS),
    _CascadeStage(strategy=STRATEGY_SELECTORS, min_words=MIN_FALLBACK_WORDS),
    _CascadeStage(strategy=STRATEGY_READABILITY, min_words=MIN_FALLBACK_WORDS),
)


@dataclass(frozen=True)
class PageMetadata:
    title: str | None
    site_name: str | None
    date: str | None
    keywords: tuple[str, ...] | None
    author: str | None
    description: str | None


class ContentExtractor:
    def __init__(self, *, cascade: tuple[_CascadeStage, ...] = EXTRACTION_CASCADE) -> None:
        self._cascade = cascade
        self._strategies: dict[str, Callable[[BeautifulSoup, str], _StrategyResult | None]] = {
            STRATEGY_READABILITY: self._extract_with_readability,
            STRATEGY_SELECTORS: self._extract_with_selectors,
        }

    def extract(self, html_text: str, url: str) -> ExtractedContent:
        document = BeautifulSoup(html_text, "lxml")
        cleaned = _without_boilerplate(document)
        results: dict[str, _StrategyResult | None] = {}
        for stage in self._cascade:
            if stage.strategy not in results:
                results[stage.strategy] = self._strategies[stage.strategy](cleaned, url)
            result = results[stage.strategy]
            if result is None or result.word_count < stage.min_words:
                continue
            LOGGER.info(
                "extraction strategy selected url=%s strategy=%s word_count=%s min_words=%s",
                url,
                stage.strategy,
                result.word_count,
                stage.min_words,
            )
            metadata = extract_page_metadata(document)
            return _overlay_metadata(result, metadata, strategy=stage.strategy)

        LOGGER.info(
            "extraction failed url=%s word_counts=%s",
            url,
            {name: (result.word_count if result else None) for name, result in results.items()},
        )
        raise ExtractionFailed(EXTRACTION_FAILED_MESSAGE)

    def _extract_with_readability(self, cleaned: BeautifulSoup, url: str) -> _StrategyResult | None:
        try:
            document = Document(str(cleaned), url=url)
            summary_html = document.summary(html_partial=True)
            title = document.title()
        except (Unparseable, ParserError, ValueError) as exc:
            LOGGER.debug("readability parse failed url=%s error=%s", url, exc)
            return None

        plain_text = _collapse_whitespace(BeautifulSoup(summary_html, "lxml").get_text(" "))
        if not plain_text:
            return None

        if title.strip() == "[no-title]":
            title = ""
        return _StrategyResult(
            title=title.strip(),
            content=truncate_to_words(html_to_markdown(summary_html), MAX_WORDS),
            word_count=count_words(plain_text),
            excerpt=_excerpt_from_text(plain_text),
            author=None,
        )

    def _extract_with_selectors(self, soup: BeautifulSoup, url: str) -> _StrategyResult | None:
        _ = url
        title = (
            _element_text(soup.select_one("h1"))
            or _element_text(soup.select_one("title"))
            or _meta_content(soup, 'meta[property="og:title"]')
            or ""
        )
        description = _meta_content(soup, 'meta[name="description"]') or _meta_content(
            soup, 'meta[property="og:description"]'
        )
        author = (
            _meta_content(soup, 'meta[name="author"]')
            or _element_text(soup.select_one('[rel~="author"]'))
            or _element_text(soup.select_one(".author"))
        )

        content_html = _select_content_html(soup)
        plain_text = strip_tags(content_html)
        if not plain_text:
            return None

        return _StrategyResult(
            title=title[:MAX_TITLE_CHARS],
            content=truncate_to_words(html_to_markdown(content_html), MAX_WORDS),
            word_count=count_words(plain_text),
            excerpt=description or _excerpt_from_text(plain_text),
            author=author,
        )


def extract_page_metadata(document: BeautifulSoup) -> PageMetadata:
    """Read title, byline and publishing hints from the unmodified page.

    ``<meta>`` entries are keyed by ``property`` or ``name`` (case-insensitive) and
    the first value for a key wins. Visible fallbacks are the ``<title>``, the
    first ``<h1>``, the first ``<time datetime>`` and ``rel=author`` or
    ``.author`` elements that actually contain text.
    """
    meta, article_tags = _collect_meta(document)

    keywords: tuple[str, ...] | None = None
    raw_keywords = meta.get("keywords")
    if raw_keywords is not None:
        keywords = tuple(part.strip() for part in raw_keywords.split(",") if part.strip())
    if not keywords:
        keywords = tuple(article_tags) or None

    time_element = document.select_one("time[datetime]")
    return PageMetadata(
        title=(
            meta.get("og:title")
            or _element_text(document.title)
            or _element_text(document.select_one("h1"))
        ),
        site_name=meta.get("og:site_name") or meta.get("application-name"),
        date=(
            meta.get("article:published_time")
            or meta.get("date")
            or (_normalize_optional_text(time_element.get("datetime")) if time_element else None)
        ),
        keywords=keywords,
        author=(
            meta.get("author")
            or meta.get("article:author")
            or _first_text(document, '[rel~="author"]')
            or _first_text(document, ".author")
        ),
        description=meta.get("description") or meta.get("og:description"),
    )


def _collect_meta(document: BeautifulSoup) -> tuple[dict[str, str], list[str]]:
    meta: dict[str, str] = {}
    article_tags: list[str] = []
    for element in document.find_all("meta"):
        key = _normalize_optional_text(element.get("property") or element.get("name"))
        value = _normalize_optional_text(element.get("content"))
        if key is None or value is None:
            continue
        lowered = key.lower()
        if lowered == "article:tag":
            article_tags.append(value)
        meta.setdefault(lowered, value)
    return meta, article_tags


def _first_text(document: BeautifulSoup, selector: str) -> str | None:
    for element in document.select(selector):
        text = _element_text(element)
        if text is not None:
            return text
    return None



def _overlay_metadata(
    result: _StrategyResult,
    metadata: PageMetadata,
    *,
    strategy: str,
) -> ExtractedContent:
    extracted = ExtractedContent(
        title=result.title or metadata.title or UNTITLED,
        content=result.content,
        word_count=min(result.word_count, MAX_WORDS),
        excerpt=result.excerpt or metadata.description or "",
        strategy=strategy,
        author=result.author or metadata.author,
        keywords=metadata.keywords,
        date=metadata.date,
        site_name=metadata.site_name,
    )
    if not extracted.title.strip():
        extracted = replace(extracted, title=UNTITLED)
    return extracted


def _without_boilerplate(document: BeautifulSoup) -> BeautifulSoup:
    soup = copy.copy(document)
    for selector in BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            if not element.decomposed:
                element.decompose()
    return soup


def _select_content_html(soup: BeautifulSoup) -> str:
    for selector in CONTENT_SELECTORS:
        for element in soup.select(selector):
            if element.get_text(strip=True):
                return element.decode_contents()
    if soup.body is not None:
        return soup.body.decode_contents()
    return str(soup)


def _meta_content(soup: BeautifulSoup, selector: str) -> str | None:
    element = soup.select_one(selector)
    if element is None:
        return None
    content = element.get("content")
    if isinstance(content, list):
        content = " ".join(content)
    return _normalize_optional_text(content)


def _element_text(element: object) -> str | None:
    get_text = getattr(element, "get_text", None)
    if not callable(get_text):
        return None
    return _normalize_optional_text(_collapse_whitespace(str(get_text(" "))))


def _excerpt_from_text(plain_text: str) -> str:
    return plain_text[:EXCERPT_CHARS] + "..."


def _collapse_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized
