"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4
import asyncio
import hashlib

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from wakecall import __version__
from wakecall.auth.router import router as auth_router
from wakecall.billing.router import router as billing_router
from wakecall.billing.router import webhook_router as billing_webhook_router
from wakecall.calls.router import router as calls_router
from wakecall.calls.scheduler import CallScheduler, CallSchedulerConfig
from wakecall.config import get_settings
from wakecall.personalization.router import router as personalization_router
from wakecall.schedules.router import router as schedules_router
from wakecall.shared.database import DatabaseManager, get_database_manager
from wakecall.shared.exceptions import AppException
from wakecall.shared.logging import correlation_id_var, get_logger, setup_logging
from wakecall.telephony.factory import get_telephony_config, get_telephony_provider
from wakecall.telephony.webhooks.router import router as telephony_webhooks_router
from wakecall.voice.tts import get_speech_synthesizer
from wakecall.voices.router import router as voices_router

# Every table must be mapped before create_all / the first query.
import wakecall.billing.models  # noqa: F401
import wakecall.calls.models  # noqa: F401
import wakecall.personalization.models  # noqa: F401
import wakecall.schedules.models  # noqa: F401

logger = get_logger(__name__)

AUDIO_CLEANUP_INTERVAL_SECONDS = 24 * 60 * 60


def _advisory_lock_id(key: str) -> int:
    """Derive a stable signed bigint lock id from an arbitrary string key."""
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    # Use 63-bit positive space to avoid signed bigint surprises.
    return int.from_bytes(digest, "big", signed=False) & 0x7FFF_FFFF_FFFF_FFFF


async def _scheduler_loop(db: DatabaseManager, cfg: CallSchedulerConfig) -> None:
    provider = get_telephony_provider()
    telephony_cfg = get_telephony_config()
    while True:
        try:
            async with db.session() as session:
                scheduler = CallScheduler(
                    session=session,
                    telephony_provider=provider,
                    telephony_config=telephony_cfg,
                    config=cfg,
                )
                await scheduler.run_once()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduler tick failed")

        await asyncio.sleep(cfg.interval_seconds)


async def _scheduler_supervisor(app: FastAPI) -> None:
    """Run the scheduler loop only on the process that becomes DB lock leader.

    On PostgreSQL the leader holds a session-level advisory lock, which makes
    the scheduler safe under `uvicorn --workers N` and multiple replicas. Other
    databases are assumed to be single-process.
    """
    settings = get_settings()
    db = get_database_manager()
    cfg = CallSchedulerConfig.from_settings(settings)

    lock_id = _advisory_lock_id(settings.scheduler_lock_key)
    retry_sleep = 5

    logger.info(
        "Scheduler supervisor starting",
        extra={
            "interval_seconds": cfg.interval_seconds,
            "lock_id": lock_id,
            "postgres": db.is_postgres,
        },
    )

    if not db.is_postgres:
        await _scheduler_loop(db, cfg)
        return

    while True:
        try:
            # Dedicated connection used to hold the advisory lock.
            async with db.engine.connect() as conn:
                res = await conn.execute(
                    text("SELECT pg_try_advisory_lock(:lock_id)"),
                    {"lock_id": lock_id},
                )
                acquired = bool(res.scalar())

                if not acquired:
                    logger.info(
                        "Scheduler leader lock busy; standby",
                        extra={"lock_id": lock_id, "sleep_seconds": retry_sleep},
                    )
                    await asyncio.sleep(retry_sleep)
                    continue

                logger.info("Scheduler leader lock acquired", extra={"lock_id": lock_id})
                await _scheduler_loop(db, cfg)

        except asyncio.CancelledError:
            logger.info("Scheduler supervisor cancelled; stopping")
            raise
        except Exception:
            logger.exception(
                "Scheduler supervisor error; retrying",
                extra={"sleep_seconds": retry_sleep},
            )
            await asyncio.sleep(retry_sleep)


async def _audio_cleanup_loop() -> None:
    synthesizer = get_speech_synthesizer()
    while True:
        try:
            await synthesizer.cleanup()
        except OSError:
            logger.exception("Audio cache cleanup failed")
        await asyncio.sleep(AUDIO_CLEANUP_INTERVAL_SECONDS)


async def _stop(task: asyncio.Task[None] | None, name: str) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("Background task stopped", extra={"task": name})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info("Application starting", extra={"env": settings.app_env, "version": __version__})
    await get_database_manager().create_all()

    scheduler_task: asyncio.Task[None] | None = None
    if settings.scheduler_enabled:
        scheduler_task = asyncio.create_task(_scheduler_supervisor(app))
        logger.info("Scheduler enabled; background task created")
    cleanup_task = asyncio.create_task(_audio_cleanup_loop())
    app.state.scheduler_task = scheduler_task
    app.state.cleanup_task = cleanup_task

    yield

    logger.info("Shutting down application")
    await _stop(scheduler_task, "scheduler")
    await _stop(cleanup_task, "audio_cleanup")

    await get_database_manager().close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Wakecall API",
        description="Personalized wake-up phone calls",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    @app.exception_handler(AppException)
    async def _app_exception(_: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                }
            },
        )

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    @app.middleware("http")
    async def correlation_id(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        token = correlation_id_var.set(request.headers.get("X-Request-ID") or uuid4().hex)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = correlation_id_var.get() or ""
            return response
        finally:
            correlation_id_var.reset(token)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth_router)
    app.include_router(personalization_router)
    app.include_router(voices_router)
    app.include_router(schedules_router)
    app.include_router(calls_router)
    app.include_router(billing_router)
    app.include_router(telephony_webhooks_router)
    app.include_router(billing_webhook_router)

    @app.get("/api/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": __version__}

    audio_dir = Path(settings.audio_cache_dir)
    audio_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/audio", StaticFiles(directory=audio_dir, check_dir=False), name="audio")

    return app


app = create_app()
