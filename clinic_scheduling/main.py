"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_scheduling.api.v1.router import api_router
from clinic_scheduling.core.config import settings
from clinic_scheduling.core.logging import setup_logging
from clinic_scheduling.services.scheduling import SchedulerService

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting Clinic Scheduling API (env={settings.env})")
    yield
    # Shutdown
    logger.info(
        f"Shutting down Clinic Scheduling API "
        f"({len(app.state.scheduler.get_all_appointments())} appointments in memory)"
    )


def create_app(scheduler: SchedulerService | None = None) -> FastAPI:
    """Build the API application around a scheduler service.

    Args:
        scheduler: Service to expose; a fresh in-memory one by default

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Clinic Scheduling API",
        description="Physician appointment scheduling and availability search",
        version="0.1.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )
    app.state.scheduler = scheduler or SchedulerService()

    # CORS middleware (configure appropriately for production)
    if settings.is_dev:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["http://localhost:3000", "http://localhost:3001"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unhandled exceptions."""
        logger.exception(f"Unhandled exception: {exc}")

        # Don't expose internal errors in production
        if settings.is_prod:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Internal server error"},
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc)},
        )

    app.include_router(api_router, prefix="/api/v1")

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        """Root endpoint with service info."""
        return {
            "service": "Clinic Scheduling API",
            "version": "0.1.0",
            "docs": "/docs" if settings.is_dev else "Disabled in production",
        }

    return app


app = create_app()
