"""FastAPI application factory for the clinic push service.

Run with: uvicorn clinic.main:app --reload
"""

from __future__ import annotations

import traceback
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app as make_metrics_app
from sqlalchemy import text

from clinic.api.push import router as push_router
from clinic.api.settings import router as settings_router
from clinic.common.config import get_settings
from clinic.common.database import _get_engine
from clinic.common.exceptions import ClinicBaseException
from clinic.common.logging import get_logger
from clinic.common.metrics import set_app_info
from clinic.common.middleware import (
    PrometheusMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    request_id_var,
)

logger = get_logger("SYSTEM")

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    if not settings.vapid_configured:
        logger.warning(
            "VAPID keys not configured; /api/push/send will fail",
            extra={"data": {"has_public_key": bool(settings.vapid_public_key)}},
        )
    yield
    await _get_engine().dispose()
    logger.info("Database engine disposed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=VERSION,
        description="Web push notifications for clinic appointments",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last added = outermost = runs first on request
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ─── Exception Handlers ───

    @app.exception_handler(ClinicBaseException)
    async def clinic_exception_handler(request: Request, exc: ClinicBaseException) -> JSONResponse:
        """Answer clinic errors with their code and status."""
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"{type(exc).__name__}: {exc}",
            extra={"data": {"path": str(request.url), "context": exc.context}},
        )
        return JSONResponse(
            status_code=exc.http_status,
            content={"error": exc.code, "message": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: log the traceback, answer 500."""
        rid = request_id_var.get("")
        logger.error(
            f"Unhandled {type(exc).__name__}: {exc}",
            extra={
                "data": {
                    "path": str(request.url),
                    "request_id": rid,
                    "traceback": traceback.format_exc(),
                }
            },
        )
        body: dict = {
            "error": "internal_error",
            "message": "An unexpected error occurred",
        }
        if rid:
            body["request_id"] = rid
        return JSONResponse(status_code=500, content=body)

    # ─── Health / Readiness ───

    @app.get("/health")
    async def health_check() -> dict:
        """Liveness probe."""
        return {"status": "ok", "version": VERSION}

    @app.get("/ready")
    async def readiness_check() -> JSONResponse:
        """Readiness probe: database reachable, signing identity present."""
        checks: dict[str, str] = {}
        all_ok = True

        try:
            async with _get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as exc:
            checks["database"] = f"error: {type(exc).__name__}"
            all_ok = False

        checks["vapid"] = "ok" if get_settings().vapid_configured else "missing"

        return JSONResponse(
            status_code=200 if all_ok else 503,
            content={
                "status": "ok" if all_ok else "degraded",
                "version": VERSION,
                "checks": checks,
            },
        )

    # ─── Prometheus Metrics ───

    app.mount("/metrics", make_metrics_app())
    set_app_info(version=VERSION, environment=settings.environment)

    # ─── Router Mounting ───

    app.include_router(push_router, prefix="/api/push", tags=["push"])
    app.include_router(settings_router, prefix="/api/settings", tags=["settings"])

    logger.info("App started", extra={"data": {"version": VERSION}})

    return app


app = create_app()
