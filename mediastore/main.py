"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

The storage adapter is built inside the factory, so a missing bucket
fails at startup rather than on the first request.

For local development:
    uvicorn mediastore.main:create_app --factory --reload

For production:
    gunicorn 'mediastore.main:create_app()' -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from . import __version__
from .api.dependencies import build_storage_adapter
from .api.routes import health, media
from .config.settings import Settings, get_settings
from .core.errors import DomainMismatchError, ObjectNotFoundError, StorageError
from .core.paths import strip_trailing_slash

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Translate storage errors into HTTP responses.

    The serve handler and the adapter only raise typed errors; this is
    the one place that decides status codes and bodies.
    """

    @app.exception_handler(ObjectNotFoundError)
    async def not_found_handler(request: Request, exc: ObjectNotFoundError):
        logger.info("File not found", extra={"path": request.url.path, "key": exc.key})
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "File not found", "code": "STATIC_FILE_NOT_FOUND"},
        )

    @app.exception_handler(DomainMismatchError)
    async def domain_mismatch_handler(request: Request, exc: DomainMismatchError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "Storage error",
            extra={
                "path": request.url.path,
                "kind": exc.kind.value,
                "key": exc.key,
                "error": exc.message,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Storage error. Please try again later."},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error. Please contact support if this persists."},
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to use instead of the environment (tests)
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    adapter = build_storage_adapter(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "mediastore starting",
            extra={
                "version": __version__,
                "bucket": adapter.config.bucket,
                "mock_mode": settings.storage_mock_mode,
            }
        )
        yield
        await adapter.close()
        logger.info("mediastore shutting down")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Media storage over an S3-compatible bucket.

        - `POST /api/v1/media` stores an upload and returns its public URL
        - Images also get WebP variants under `size/w<width>/`
        - Stored objects are streamed back under the serve mount
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.storage_adapter = adapter
    app.dependency_overrides[get_settings] = lambda: settings

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        media.router,
        prefix="/api/v1/media",
        tags=["Media"],
    )

    mount = strip_trailing_slash(settings.serve_mount)
    app.add_api_route(
        f"{mount}/{{path:path}}",
        adapter.serve(),
        methods=["GET"],
        include_in_schema=False,
        name="serve_media",
    )

    register_exception_handlers(app)

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
            "serve_mount": mount,
        }
    )

    return app


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mediastore.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
