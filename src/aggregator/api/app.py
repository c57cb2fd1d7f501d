"""FastAPI application factory with token routes, health check and WebSocket hub."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from aggregator.api.limits import configure_limits, limiter, rate_limit_exceeded
from aggregator.api.routes import tokens, ws
from aggregator.api.routes.ws import SubscriptionHub
from aggregator.config import ApiSettings

log = structlog.get_logger(__name__)


def create_app(
    lifespan: Any = None,
    hub: SubscriptionHub | None = None,
    settings: ApiSettings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
                  main.py uses it to wire and tear down components.
        hub: WebSocket hub; a fresh one is created when omitted.
        settings: CORS origins and per-client rate limits. Rate-limit
                  counters are process-wide and reset here.

    Returns:
        Configured FastAPI application. ``app.state.orchestrator`` must be
        set (by the lifespan or a test) before token routes are called.
    """
    settings = settings or ApiSettings()
    app = FastAPI(title="Memecoin Aggregator", lifespan=lifespan)

    configure_limits(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.hub = hub or SubscriptionHub()
    app.state.started_at = time.monotonic()
    app.state.orchestrator = None

    app.include_router(tokens.router, prefix="/api/tokens")
    app.include_router(ws.router)

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        orchestrator = request.app.state.orchestrator
        return JSONResponse(
            content={
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.monotonic() - request.app.state.started_at, 1),
                "providers": orchestrator.provider_names if orchestrator else [],
                "ws_clients": len(request.app.state.hub.connections),
            }
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        log.error("unhandled_request_error", path=request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    return app
