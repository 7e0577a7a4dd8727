from __future__ import annotations


class RepurposerError(Exception):
    """Base class for pipeline failures that carry a user-facing message."""

    code = "repurposer_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidURL(RepurposerError):
    code = "invalid_url"
    status_code = 400


class BlockedHost(RepurposerError):
    code = "blocked_host"
    status_code = 400


class FetchError(RepurposerError):
    code = "fetch_failed"
    status_code = 422


class FetchTimeout(FetchError):
    code = "fetch_timeout"


class HttpError(FetchError):
    code = "fetch_http_error"

    def __init__(self, message: str, *, http_status: int) -> None:
        super().__init__(message)
        self.http_status = http_status


class UnsupportedContentType(FetchError):
    code = "unsupported_content_type"


class TooLarge(FetchError):
    code = "content_too_large"


class FetchFailed(FetchError):
    code = "fetch_network_error"


class ExtractionFailed(RepurposerError):
    code = "extraction_failed"
    status_code = 422


class MisconfiguredCredentials(RepurposerError):
    code = "misconfigured_credentials"
    status_code = 500


class GenerationError(RepurposerError):
    code = "generation_failed"
    status_code = 500


class MalformedResponse(GenerationError):
    code = "malformed_response"


class ProviderError(GenerationError):
    code = "provider_error"
