"""FastAPI application exposing the AMM options engine."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from ..observability.metrics import (
    RATE_LIMIT_REJECTIONS,
    REQUEST_COUNT,
    REQUEST_ERRORS,
    REQUEST_LATENCY,
)
from .config import get_settings
from .middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware, ensure_request_id, track_request_duration
from .routes import amm, analytics, pricing

LOGGER = logging.getLogger(__name__)
START_TIME = time.time()
API_VERSION = "1.0.0"


def _create_rate_limit_handler() -> Callable[[Request, Exception], Awaitable[JSONResponse]]:
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        route = getattr(request.scope.get("route"), "path", request.url.path)
        RATE_LIMIT_REJECTIONS.labels(route=route).inc()
        response = JSONResponse(status_code=429, content={"detail": "Rate limit exceeded"})
        response.headers.setdefault("X-Request-ID", ensure_request_id(request))
        return response

    return handler


def create_app() -> FastAPI:
    settings = get_settings()
    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])

    app = FastAPI(
        title="Options AMM Pricing Engine",
        version=API_VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    app.state.settings = settings
    app.state.limiter = limiter

    app.add_exception_handler(RateLimitExceeded, _create_rate_limit_handler())
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts))
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Accept-Language", "X-Request-ID"],
    )

    app.include_router(pricing.router, prefix="/api/v1")
    app.include_router(amm.router, prefix="/api/v1")
    app.include_router(analytics.router, prefix="/api/v1")

    @app.middleware("http")
    async def _request_metrics(request: Request, call_next):
        request_id = ensure_request_id(request)
        method = request.method
        recorder = track_request_duration(request)
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            route = getattr(request.scope.get("route"), "path", request.url.path)
            REQUEST_LATENCY.labels(method=method, route=route).observe(time.perf_counter() - start)
            REQUEST_ERRORS.labels(method=method, route=route, status_code="500").inc()
            REQUEST_COUNT.labels(method=method, route=route, status_code="500").inc()
            recorder(500)
            raise

        route = getattr(request.scope.get("route"), "path", request.url.path)
        status_code = str(response.status_code)
        REQUEST_LATENCY.labels(method=method, route=route).observe(time.perf_counter() - start)
        REQUEST_COUNT.labels(method=method, route=route, status_code=status_code).inc()
        if response.status_code >= 500:
            REQUEST_ERRORS.labels(method=method, route=route, status_code=status_code).inc()
        response.headers.setdefault("X-Request-ID", request_id)
        recorder(response.status_code)
        return response

    @app.get("/metrics", tags=["monitoring"], include_in_schema=False)
    @limiter.exempt
    async def metrics(request: Request) -> Response:
        """Expose Prometheus metrics for scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz", tags=["monitoring"])
    @limiter.exempt
    async def healthz(request: Request) -> dict[str, object]:
        """Expose the readiness of the service."""

        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": app.version,
            "environment": settings.environment,
            "uptime_seconds": round(max(0.0, time.time() - START_TIME), 3),
        }

    @app.exception_handler(Exception)
    async def global_error(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled exception: %s", exc)
        response = JSONResponse(status_code=500, content={"error": "Internal server error"})
        response.headers.setdefault("X-Request-ID", ensure_request_id(request))
        return response

    return app


app = create_app()
