from __future__ import annotations

import logging
import math
import traceback
from collections.abc import Mapping
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.repurposer.config import AppSettings
from backend.repurposer.dependencies import (
    get_analytics,
    get_rate_limiter,
    get_repurpose_service,
    get_settings,
)
from backend.repurposer.errors import MisconfiguredCredentials, RepurposerError
from backend.repurposer.models.repurpose_contracts import (
    AnalyticsResponse,
    RepurposeRequest,
    RepurposeResponse,
)
from backend.repurposer.services.analytics import AnalyticsCounters
from backend.repurposer.services.rate_limiter import FixedWindowRateLimiter
from backend.repurposer.services.repurpose_service import RepurposeService
from backend.repurposer.services.url_validator import validate_url

LOGGER = logging.getLogger("repurposer.api")

router = APIRouter()

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."
UNAVAILABLE_MESSAGE = "Content generation is temporarily unavailable."


def client_identifier(headers: Mapping[str, str]) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded and forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return "unknown"


def error_response(
    *,
    status_code: int,
    message: str,
    settings: AppSettings,
    exc: BaseException | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    stack: str | None = None
    if exc is not None and not settings.is_production:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    body = RepurposeResponse(success=False, error=message, stack=stack)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


@router.post(
    "/api/repurpose",
    response_model=RepurposeResponse,
    tags=["repurpose"],
    operation_id="repurpose_url",
)
def repurpose_url(
    payload: RepurposeRequest,
    request: Request,
    service: Annotated[RepurposeService, Depends(get_repurpose_service)],
    limiter: Annotated[FixedWindowRateLimiter, Depends(get_rate_limiter)],
    analytics: Annotated[AnalyticsCounters, Depends(get_analytics)],
    settings: Annotated[AppSettings, Depends(get_settings)],
) -> JSONResponse:
    try:
        url = validate_url(payload.url)
    except RepurposerError as exc:
        return error_response(status_code=exc.status_code, message=exc.message, settings=settings)

    decision = limiter.take(client_identifier(request.headers))
    if not decision.allowed:
        reset_minutes = max(1, math.ceil(decision.retry_after_seconds / 60))
        return error_response(
            status_code=429,
            message=(
                f"Rate limit exceeded. You can make {decision.limit} requests per hour. "
                f"Try again in {reset_minutes} minutes."
            ),
            settings=settings,
            headers={
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(decision.reset_at * 1000)),
                "Retry-After": str(decision.retry_after_seconds),
            },
        )

    context_tokens = bind_contextvars(repurpose_url=url)
    try:
        data = service.repurpose(url, payload.to_options())
    except MisconfiguredCredentials as exc:
        analytics.record(success=False)
        LOGGER.error("llm credentials are not configured")
        message = UNAVAILABLE_MESSAGE if settings.is_production else exc.message
        return error_response(status_code=exc.status_code, message=message, settings=settings, exc=exc)
    except RepurposerError as exc:
        analytics.record(success=False)
        LOGGER.info("repurpose failed code=%s status=%s", exc.code, exc.status_code)
        return error_response(
            status_code=exc.status_code,
            message=exc.message,
            settings=settings,
            exc=exc,
        )
    except Exception as exc:
        analytics.record(success=False)
        LOGGER.exception("critical error in repurpose endpoint")
        return error_response(
            status_code=500,
            message=UNEXPECTED_ERROR_MESSAGE,
            settings=settings,
            exc=exc,
        )
    finally:
        reset_contextvars(**context_tokens)

    analytics.record(success=True)
    body = RepurposeResponse(success=True, data=data)
    return JSONResponse(
        status_code=200,
        content=body.model_dump(mode="json", exclude_none=True),
        headers={"X-RateLimit-Remaining": str(decision.remaining)},
    )


@router.get(
    "/api/analytics",
    response_model=AnalyticsResponse,
    tags=["system"],
    operation_id="get_analytics",
)
def read_analytics(
    analytics: Annotated[AnalyticsCounters, Depends(get_analytics)],
) -> AnalyticsResponse:
    snapshot = analytics.snapshot()
    return AnalyticsResponse(
        total_requests=snapshot.total_requests,
        successful_requests=snapshot.successful_requests,
    )
