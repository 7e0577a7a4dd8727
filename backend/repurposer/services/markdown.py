from __future__ import annotations

import re
from typing import Any

from bs4 import BeautifulSoup, Comment
from markdownify import MarkdownConverter

_BLOCK_TAGS: tuple[str, ...] = (
    "script",
    "style",
    "nav",
    "footer",
    "form",
    "header",
    "aside",
    "iframe",
)
_WHITESPACE_PATTERN = re.compile(r"\s+")


class ArticleConverter(MarkdownConverter):
    """Markdown for prompts: fenced code keeps its layout and images are dropped."""

    def convert_pre(self, el: Any, text: str, *args: Any, **kwargs: Any) -> str:
        code = el.find("code")
        language = ""
        if code is not None:
            for css_class in code.get("class") or ():
                if css_class.startswith("language-"):
                    language = css_class[len("language-") :]
                    break
            body = code.get_text()
        else:
            body = el.get_text()
        return f"\n\n```{language}\n{body.strip(chr(10))}\n```\n\n"

    def convert_img(self, el: Any, text: str, *args: Any, **kwargs: Any) -> str:
        return ""


_CONVERTER = ArticleConverter(heading_style="ATX", bullets="-")


def strip_tags(html_text: str) -> str:
    """Flatten an HTML fragment into a single line of plain text."""
    soup = _parse_without_blocks(html_text)
    return _WHITESPACE_PATTERN.sub(" ", soup.get_text(" ")).strip()


def html_to_markdown(html_text: str) -> str:
    soup = _parse_without_blocks(html_text)
    markdown = _CONVERTER.convert_soup(soup.body or soup)
    markdown = _normalize_lines(markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def truncate_to_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "..."


def count_words(text: str) -> int:
    return len(text.split())


def _parse_without_blocks(html_text: str) -> BeautifulSoup:
    soup = BeautifulSoup(html_text, "lxml")
    for element in soup.find_all(list(_BLOCK_TAGS)):
        element.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    return soup


def _normalize_lines(markdown: str) -> str:
    normalized: list[str] = []
    in_code_block = False
    for line in markdown.split("\n"):
        stripped = line.strip()
        if stripped.startswith("```"):
            in_code_block = not in_code_block
            normalized.append(stripped)
            continue
        if in_code_block:
            normalized.append(line.rstrip())
            continue
        normalized.append(_WHITESPACE_PATTERN.sub(" ", stripped))
    return "\n".join(normalized)
