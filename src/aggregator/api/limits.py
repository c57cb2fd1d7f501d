"""Per-client request limits for the token routes (slowapi).

``/api/tokens`` and ``/api/tokens/filter`` share one budget; ``/search``
has its own, tighter one. Clients are keyed by remote address. Limits are
read per request, so ``configure_limits`` applies to an already-decorated
router.
"""

from __future__ import annotations

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from aggregator.config import ApiSettings

log = structlog.get_logger(__name__)

API_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
SEARCH_LIMIT_MESSAGE = "Too many search requests, please try again later."

limiter = Limiter(key_func=get_remote_address)

_limits: dict[str, str] = {}


def configure_limits(settings: ApiSettings) -> None:
    """Apply limit settings and clear all counters."""
    _limits["api"] = f"{settings.rate_limit_max} per {settings.rate_limit_window} seconds"
    _limits["search"] = (
        f"{settings.search_rate_limit_max} per {settings.search_rate_limit_window} seconds"
    )
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()


def api_limit() -> str:
    return _limits["api"]


def search_limit() -> str:
    return _limits["search"]


async def rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        client=get_remote_address(request),
    )
    return JSONResponse(status_code=429, content={"success": False, "error": exc.detail})


configure_limits(ApiSettings())
