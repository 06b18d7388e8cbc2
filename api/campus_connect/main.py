from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.sdk.trace import TracerProvider
from starlette.requests import Request

from campus_connect.api.router import api_router
from campus_connect.core.config import get_settings
from campus_connect.core.errors import install_error_handlers
from campus_connect.core.ratelimit import rate_limit_middleware
from campus_connect.core.telemetry import (
    configure_api_logging,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from campus_connect.services.repository import get_repository

settings = get_settings()
_tracer_provider: TracerProvider | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("api starting environment=%s", settings.environment)
    try:
        yield
    finally:
        # Uvicorn has already drained in-flight requests; release the pool within the grace period.
        await get_repository().close(timeout=settings.shutdown_grace_seconds)
        get_repository.cache_clear()
        shutdown_api_telemetry(app, _tracer_provider)
        logger.info("api stopped")


configure_api_logging()
app = FastAPI(title=settings.app_name, lifespan=lifespan)
_tracer_provider = setup_api_telemetry(app, settings)
install_error_handlers(app)

app.middleware("http")(rate_limit_middleware)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(api_router)
