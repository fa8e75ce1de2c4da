"""
WhatsApp Booking API

FastAPI application entry point: Twilio webhook, health probes and the
background reminder worker.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from app.config import settings
from app.api.routes import health, whatsapp
from app.core.scheduling.sql_store import get_entity_store
from app.infra.database import init_db, close_db
from app.infra.redis import RedisClient
from app.infra.reminders import get_reminder_scheduler
from app.infra.twilio import get_whatsapp_client


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


logger = logging.getLogger(__name__)


async def _check_redis() -> None:
    """Sessions and reminders fall back to memory when Redis is unreachable."""
    if settings.session_backend != "redis":
        logger.info("Using in-memory sessions and reminder queue")
        return

    if await RedisClient.get_client():
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable - sessions and reminders kept in memory")


async def _stop_worker(task: asyncio.Task) -> None:
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    logger.info("Reminder worker stopped")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the reminder worker; release HTTP, Redis and database clients on exit."""
    setup_logging()
    logger.info(
        f"Starting {settings.app_name} in {settings.app_env} mode "
        f"(timezone {settings.timezone}, business {settings.default_business_id})"
    )
    health.set_start_time()

    # Development only; production schemas come from migrations
    if settings.is_development:
        try:
            await init_db()
            logger.info("Database tables initialized")
        except Exception as e:
            logger.warning(f"Database init skipped: {e}")

    await _check_redis()

    if not settings.twilio_configured:
        logger.warning("Twilio credentials missing - outbound messages will only be logged")

    worker = asyncio.create_task(get_reminder_scheduler().run(get_entity_store()))
    logger.info(f"Application ready at http://{settings.host}:{settings.port}")

    yield

    logger.info("Shutting down application...")
    await _stop_worker(worker)
    await get_whatsapp_client().close()
    await RedisClient.close()
    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title="WhatsApp Booking API",
    description="""
    Conversational appointment booking over WhatsApp.

    ## Features
    - 📅 Book, cancel and list appointments by chatting
    - 🕐 Slot generation from weekly employee availability
    - 🔔 Reminders 24h and 2h before each appointment
    """,
    version=health.VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    # Twilio retries non-2xx webhooks; a 422 here means the payload lacked From
    logger.warning(f"Rejected {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "Validation error", "detail": exc.errors()},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    detail = str(exc) if settings.is_development else "Internal server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "detail": detail},
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Log request duration in debug mode."""
    started = time.perf_counter()
    try:
        return await call_next(request)
    finally:
        if settings.debug:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(f"{request.method} {request.url.path} took {elapsed_ms:.1f}ms")


app.include_router(health.router)
app.include_router(whatsapp.router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Service name plus the paths Twilio and the load balancer call."""
    return {
        "name": settings.app_name,
        "version": health.VERSION,
        "environment": settings.app_env,
        "webhook": "/webhooks/whatsapp",
        "health": "/health/ready",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
