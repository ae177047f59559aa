"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because
tests build their own instances with overridden dependencies.

For local development:
    B2_MOCK_MODE=true uvicorn shared_gallery.main:app --reload

For production:
    gunicorn shared_gallery.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.errors import GalleryAPIError
from .api.routes import health, images, upload
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs the storage mode on startup and warns loudly when credentials
    are missing. The app still starts; gallery endpoints answer 500 with
    an explanation until the configuration is fixed.
    """
    settings = get_settings()

    logger.info(
        "Shared Gallery API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {"b2": settings.b2_mock_mode},
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.warning(
            "Backblaze B2 is not fully configured",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Shared Gallery API shutting down")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Shared photo and video gallery backed by Backblaze B2.

        Everyone who can reach this API sees, uploads and deletes the
        same gallery. There is no authentication.

        ## Uploading

        - Small files: `POST /api/upload` with one or more `file` fields.
        - Large files: `POST /api/upload/start`, then for each 8 MiB chunk
          `POST /api/upload/url` and PUT the chunk to the returned URL,
          then `POST /api/upload/complete` (or `/api/upload/abort`).
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        images.router,
        prefix="/api",
        tags=["Gallery"],
    )

    app.include_router(
        upload.router,
        prefix="/api",
        tags=["Upload"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Shared Gallery API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(GalleryAPIError)
    async def gallery_error_handler(request: Request, exc: GalleryAPIError):
        """Render gallery errors as {"error": message}."""
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """
        Malformed bodies are client errors like any other missing field.

        FastAPI would answer 422 with a detail list; the gallery API
        answers 400 with a single message.
        """
        errors = exc.errors()
        message = "Invalid request."
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"Invalid request: {location}: {first.get('msg')}" if location else f"Invalid request: {first.get('msg')}"

        logger.warning(
            "Rejected malformed request",
            extra={"path": request.url.path, "error_count": len(errors)}
        )
        return _error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        We log the full error server-side but return a generic message.
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

        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error. Check server logs for details.",
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "shared_gallery.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
