"""FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .config.database import close_db, create_engine, create_session_factory, init_db
from .config.redis import close_redis, create_redis
from .config.storage import get_queue_client, get_storage_client
from .core.exceptions import UploadError
from .middleware.rate_limit import limiter
from .repositories.queue_repo import QueueRepository
from .repositories.storage_repo import StorageRepository
from .routers import files, uploads
from .tasks.reconciler import EventReconciler
from .utils.logger import configure_logging, get_logger

# Configure logging
configure_logging()
logger = get_logger(__name__)


async def _stop_reconciler(app: FastAPI) -> None:
    reconciler = getattr(app.state, "reconciler", None)
    task = getattr(app.state, "reconciler_task", None)
    if reconciler is None or task is None:
        return
    reconciler.shutdown()
    try:
        # A long-poll receive may still be in flight; don't wait it out
        await asyncio.wait_for(task, timeout=2.0)
    except asyncio.TimeoutError:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create shared handles at startup, close them at shutdown."""
    # Startup
    logger.info("Starting application", version=settings.app_version)
    engine = create_engine(settings.database_url, echo=settings.debug)
    session_factory = create_session_factory(engine)
    await init_db(engine)
    app.state.engine = engine
    app.state.session_factory = session_factory

    app.state.redis = create_redis(settings.redis_url)
    app.state.storage_repo = StorageRepository(
        get_storage_client(settings), settings.s3_bucket_name
    )

    if settings.reconciler_enabled and settings.sqs_queue_url:
        queue_repo = QueueRepository(get_queue_client(settings), settings.sqs_queue_url)
        await queue_repo.check_access()
        reconciler = EventReconciler(
            queue_repo,
            session_factory,
            batch_size=settings.reconciler_batch_size,
            wait_time=settings.reconciler_wait_time_seconds,
            poll_interval=settings.reconciler_poll_interval,
            error_delay=settings.reconciler_error_delay,
        )
        app.state.reconciler = reconciler
        app.state.reconciler_task = asyncio.create_task(reconciler.run())
    else:
        logger.warning("Event reconciler disabled, uploads are confirmed by complete only")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await _stop_reconciler(app)
    await close_redis(app.state.redis)
    await close_db(engine)


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Chunked multipart uploads to S3 with asynchronous storage-event confirmation",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


# Exception handlers
@app.exception_handler(UploadError)
async def upload_exception_handler(request: Request, exc: UploadError):
    """Render domain errors with their status code."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        exc.message,
        code=exc.code.value,
        path=request.url.path,
        **exc.context,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed request fields are a 400, never retried."""
    logger.error("Missing or invalid fields in request", path=request.url.path, errors=exc.errors())
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "errorType": "validation error",
            "error": "Missing or invalid required fields",
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Keep the ``success`` flag on framework-raised errors too."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


# Health check endpoint
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include routers
app.include_router(uploads.router)
app.include_router(files.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
