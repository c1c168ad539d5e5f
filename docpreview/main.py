"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from docpreview.api.v1.endpoints import health
from docpreview.api.v1.router import api_router
from docpreview.container import ServiceContainer, build_container
from docpreview.core.config import Settings, load_settings
from docpreview.core.exceptions import AppError
from docpreview.utils.logging import get_logger
from docpreview.utils.responses import error_response

LOGGER = get_logger(__name__)


class RootResponse(BaseModel):
    """Root endpoint response payload."""

    message: str = Field(..., description="Service status message")
    version: str = Field(..., description="Running application version")
    docs: str = Field(..., description="Path to the interactive API docs")
    health: str = Field(..., description="Path to the health check endpoint")


def create_app(container: Optional[ServiceContainer] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the application.

    Args:
        container: Pre-built services (tests); built from settings at startup otherwise
        settings: Settings to use when no container is given
    """
    settings = container.settings if container else (settings or load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        owns_container = container is None
        services = container or build_container(settings)
        LOGGER.info(
            "Starting application",
            extra={
                "app_name": settings.app_name,
                "version": settings.app_version,
                "environment": settings.environment,
            },
        )

        if owns_container:
            try:
                await services.database.connect()
                await services.database.create_tables()
            except Exception as e:
                LOGGER.error(f"Database initialization failed: {e}", exc_info=True)

        app.state.container = services

        yield

        # Shutdown
        LOGGER.info("Shutting down application")
        if owns_container:
            try:
                await services.close()
            except Exception as e:
                LOGGER.error("Error closing services", exc_info=True, extra={"error": str(e)})

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Document preview generation and delivery service",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500 and exc.status_code != 503:
            LOGGER.error(
                f"Unhandled application error: {exc.message}",
                exc_info=exc.original_error or exc,
                extra={"path": request.url.path, "code": exc.code},
            )
            return error_response("Internal server error", exc.code, exc.status_code)
        return error_response(exc.message, exc.code, exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        LOGGER.error(
            f"Unexpected error: {exc}",
            exc_info=exc,
            extra={"path": request.url.path},
        )
        return error_response("Internal server error", "INTERNAL_ERROR", 500)

    # Correlation ID middleware
    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid4()))
        request.state.correlation_id = correlation_id
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    # CORS middleware - added last to ensure it wraps all other middleware/responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    # Include routers
    app.include_router(api_router, prefix=settings.api_v1_prefix)
    app.include_router(health.router, prefix="/health", tags=["Health"])

    @app.get(
        "/",
        response_model=RootResponse,
        tags=["Root"],
        summary="Root endpoint",
        description="Get basic information about the API",
        operation_id="get_public_root_metadata",
    )
    async def root() -> RootResponse:
        return RootResponse(
            message="Server is running",
            version=settings.app_version,
            docs="/docs",
            health="/health",
        )

    return app


def main() -> None:
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
