"""
Main FastAPI application
"""

import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time
from prometheus_client import make_asgi_app, Counter, Histogram
import uuid

from gymbook.config import settings
from gymbook.core.database import init_db, close_db
from gymbook.core.exceptions import GymBookException
from gymbook.core.logging import setup_logging
from gymbook.core.messages import get_error_message, resolve_language
from gymbook.api.deps import uow_factory
from gymbook.api.v1.api import api_router
from gymbook.schemas.response import ErrorResponse, ErrorDetail
from gymbook.services.maintenance import run_periodic_sweep

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Prometheus metrics - use try/except to avoid duplicate registration
try:
    REQUEST_COUNT = Counter(
        "app_requests_total",
        "Total requests",
        ["method", "endpoint", "status"]
    )
    REQUEST_DURATION = Histogram(
        "app_request_duration_seconds",
        "Request duration",
        ["method", "endpoint"]
    )
except ValueError:
    # Metrics already registered, get them from registry
    from prometheus_client import REGISTRY
    REQUEST_COUNT = REGISTRY._names_to_collectors["app_requests_total"]
    REQUEST_DURATION = REGISTRY._names_to_collectors["app_request_duration_seconds"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()

    if settings.LOCK_BACKEND == "redis":
        from gymbook.core.redis import init_redis
        await init_redis()

    sweep_task = None
    if settings.WAITLIST_SWEEP_ENABLED:
        sweep_task = asyncio.create_task(run_periodic_sweep(uow_factory))
        logger.info(f"Waiting list sweep every {settings.WAITLIST_SWEEP_INTERVAL_SECONDS}s")

    yield

    logger.info("Shutting down application")

    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass

    await close_db()

    if settings.LOCK_BACKEND == "redis":
        from gymbook.core.redis import close_redis
        await close_redis()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Gym class booking with capacity control and waiting lists",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request tracking middleware
@app.middleware("http")
async def track_requests(request: Request, call_next):
    """
    Track request metrics and add request ID
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Route template keeps label cardinality bounded
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).inc()

    REQUEST_DURATION.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(duration)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(duration)

    return response


@app.exception_handler(GymBookException)
async def gymbook_exception_handler(request: Request, exc: GymBookException):
    """
    Render business-rule errors in the caller's language
    """
    lang = resolve_language(request.headers.get("Accept-Language"), settings.DEFAULT_LANGUAGE)
    message = exc.message if lang == "en" else get_error_message(exc.code, lang, exc.details)
    body = ErrorResponse(error=ErrorDetail(code=exc.code, message=message, details=exc.details))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc):
    logger.error(f"Internal server error: {exc}", exc_info=True)
    lang = resolve_language(request.headers.get("Accept-Language"), settings.DEFAULT_LANGUAGE)
    body = ErrorResponse(error=ErrorDetail(
        code="INTERNAL_ERROR",
        message=get_error_message("INTERNAL_ERROR", lang)
    ))
    return JSONResponse(status_code=500, content=body.model_dump(mode="json"))


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.APP_ENV,
        "api_docs": "/docs" if settings.DEBUG else None
    }


app.include_router(api_router, prefix=settings.API_PREFIX)

if settings.PROMETHEUS_ENABLED:
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gymbook.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
