from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from threading import Event
from time import monotonic
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import HTTPRedirectHandler, Request, build_opener

from backend.repurposer.errors import (
    FetchFailed,
    FetchTimeout,
    HttpError,
    TooLarge,
    UnsupportedContentType,
)
from backend.repurposer.services.url_validator import validate_url

LOGGER = logging.getLogger("repurposer.fetcher")

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE_HEADER = "en-US,en;q=0.5"
HTML_CONTENT_TYPES: tuple[str, ...] = ("text/html", "application/xhtml")

TIMEOUT_MESSAGE = "Request timed out. The URL took too long to respond."
TOO_LARGE_MESSAGE = "Content too large (max 5MB)"
NOT_HTML_MESSAGE = "URL does not point to an HTML page"

_READ_CHUNK_BYTES = 64 * 1024


class PublicRedirectHandler(HTTPRedirectHandler):
    """Follow redirects only when the target passes the same URL checks as the request."""

    def redirect_request(
        self,
        req: Request,
        fp: Any,
        code: int,
        msg: str,
        headers: Any,
        newurl: str,
    ) -> Request | None:
        LOGGER.debug("fetch redirect status=%s target=%s", code, newurl)
        validate_url(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)


def open_url(request: Request, *, timeout: float) -> Any:
    opener = build_opener(PublicRedirectHandler())
    return opener.open(request, timeout=timeout)


class HtmlFetcher:
    """Download one HTML page within a single wall-clock deadline.

    The deadline covers DNS, connect, redirects, headers and body. The download
    runs on a worker thread so a server that trickles bytes cannot hold the
    caller past ``timeout_seconds``; the worker notices the cancellation at its
    next read and stops. Log context bound by the caller is carried onto the
    worker thread.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._timeout_seconds = max(1.0, timeout_seconds)
        self._max_bytes = max(1, max_bytes)
        self._user_agent = user_agent.strip() or DEFAULT_USER_AGENT

    def fetch(self, url: str) -> str:
        deadline = monotonic() + self._timeout_seconds
        cancelled = Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="repurposer-fetch")
        try:
            context = contextvars.copy_context()
            future = executor.submit(context.run, self._download, url, deadline, cancelled)
            return future.result(timeout=self._timeout_seconds)
        except TimeoutError as exc:
            cancelled.set()
            LOGGER.info(
                "fetch deadline exceeded url=%s timeout_seconds=%s",
                url,
                self._timeout_seconds,
            )
            raise FetchTimeout(TIMEOUT_MESSAGE) from exc
        finally:
            executor.shutdown(wait=False)

    def _download(self, url: str, deadline: float, cancelled: Event) -> str:
        request = Request(
            url,
            headers={
                "User-Agent": self._user_agent,
                "Accept": ACCEPT_HEADER,
                "Accept-Language": ACCEPT_LANGUAGE_HEADER,
            },
            method="GET",
        )
        try:
            with open_url(request, timeout=_remaining(deadline)) as response:
                status = int(getattr(response, "status", 200) or 200)
                if not 200 <= status < 300:
                    reason = getattr(response, "reason", "") or ""
                    raise HttpError(f"HTTP {status}: {reason}".rstrip(), http_status=status)
                self._check_headers(response.headers)
                body = self._read_body(response, deadline=deadline, cancelled=cancelled)
                charset = response.headers.get_content_charset() or "utf-8"
        except HTTPError as exc:
            status_code = int(exc.code)
            reason = str(exc.reason or "")
            LOGGER.info("fetch http error url=%s status=%s", url, status_code)
            raise HttpError(f"HTTP {status_code}: {reason}".rstrip(), http_status=status_code) from exc
        except TimeoutError as exc:
            LOGGER.info("fetch timed out url=%s", url)
            raise FetchTimeout(TIMEOUT_MESSAGE) from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                LOGGER.info("fetch timed out url=%s", url)
                raise FetchTimeout(TIMEOUT_MESSAGE) from exc
            LOGGER.info("fetch network error url=%s reason=%s", url, exc.reason)
            raise FetchFailed(f"Failed to fetch URL: {exc.reason}") from exc
        except (OSError, ValueError) as exc:
            LOGGER.info("fetch failed url=%s error_type=%s", url, type(exc).__name__)
            raise FetchFailed(f"Failed to fetch URL: {exc}") from exc

        return _decode_body(body, charset)

    def _check_headers(self, headers: Any) -> None:
        content_type = str(headers.get("Content-Type") or "").lower()
        if not any(allowed in content_type for allowed in HTML_CONTENT_TYPES):
            raise UnsupportedContentType(NOT_HTML_MESSAGE)

        declared_length = headers.get("Content-Length")
        if declared_length is None:
            return
        try:
            length = int(str(declared_length).strip())
        except ValueError:
            return
        if length > self._max_bytes:
            raise TooLarge(TOO_LARGE_MESSAGE)

    def _read_body(self, response: Any, *, deadline: float, cancelled: Event) -> bytes:
        chunks: list[bytes] = []
        total = 0
        while True:
            if cancelled.is_set() or monotonic() > deadline:
                raise TimeoutError("fetch deadline exceeded")
            # read1 returns whatever one socket read produced, so a trickling
            # server still lets the loop come back to the deadline check.
            chunk = response.read1(_READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if total > self._max_bytes:
                raise TooLarge(TOO_LARGE_MESSAGE)
            chunks.append(chunk)
        return b"".join(chunks)


def _remaining(deadline: float) -> float:
    remaining = deadline - monotonic()
    if remaining <= 0:
        raise TimeoutError("fetch deadline exceeded")
    return remaining


def _decode_body(body: bytes, charset: str) -> str:
    try:
        return body.decode(charset, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
