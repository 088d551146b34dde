# backend/app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import WorkflowError
from .logging_config import configure_logging
from .middleware.rate_limit import RateLimitMiddleware, TokenBucketLimiter, parse_trusted_proxies
from .middleware.request_id import RequestIDMiddleware, get_request_id
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.auth import router as auth_router
from .routers.health import router as health_router
from .routers.metrics import router as metrics_router
from .routers.notifications import router as notifications_router
from .routers.ops import router as ops_router
from .routers.properties import router as properties_router
from .services.runtime_metrics import METRICS
from .workers.reminder_scheduler import ReminderScheduler

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    scheduler = None
    if settings.reminder_scheduler_enabled:
        scheduler = ReminderScheduler()
        scheduler.start()
    app.state.reminder_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


async def _workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    METRICS.inc(f"workflow_errors_{exc.code}_total")
    if exc.status_code >= 500:
        log.error("workflow error", extra={"status": exc.code})
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.code, "detail": exc.detail, "request_id": get_request_id()},
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # same envelope as engine-side ValidationError
    return JSONResponse(
        status_code=422,
        content={
            "ok": False,
            "error": "validation_error",
            "detail": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()],
            "request_id": get_request_id(),
        },
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Rentflow", version=settings.app_version, lifespan=lifespan)

    app.add_exception_handler(WorkflowError, _workflow_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # last added runs first: request id wraps everything else
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=TokenBucketLimiter(
                capacity=settings.rate_limit_burst,
                refill_per_minute=settings.rate_limit_per_minute,
                idle_seconds=settings.rate_limit_idle_seconds,
            ),
            exempt_paths={f"{API_PREFIX}/health", f"{API_PREFIX}/metrics"},
            trusted_proxies=parse_trusted_proxies(settings.rate_limit_trusted_proxies),
        )
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(metrics_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(properties_router, prefix=API_PREFIX)
    app.include_router(notifications_router, prefix=API_PREFIX)
    app.include_router(ops_router, prefix=API_PREFIX)
    return app


app = create_app()
