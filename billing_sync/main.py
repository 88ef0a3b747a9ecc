"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from billing_sync.errors import BillingError
from billing_sync.logging_config import configure_logging, get_logger
from billing_sync.middleware import ContextMiddleware, RequestLoggingMiddleware

# Initialize logger
logger = get_logger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Handles startup and shutdown events.
    """
    logger.info("billing_sync_starting", version=VERSION)
    try:
        logger.info("billing_sync_started", status="ready")
        yield
    finally:
        logger.info("billing_sync_shutting_down")
        from billing_sync.dependencies import reset_services

        reset_services()
        logger.info("billing_sync_stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    app = FastAPI(
        title="Billing Sync",
        description="Stripe subscription sync, verification and billing callables",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    allowed_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(ContextMiddleware)

    # Register routers
    from billing_sync.api.admin import router as admin_router
    from billing_sync.api.callables import router as callables_router
    from billing_sync.api.oauth import router as oauth_router
    from billing_sync.api.webhooks import router as webhooks_router

    app.include_router(callables_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)
    app.include_router(oauth_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Health check endpoint."""
        logger.debug("root_endpoint_called")
        return {
            "service": "billing-sync",
            "status": "running",
            "version": VERSION,
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Detailed health check."""
        from billing_sync.config import ConfigurationError, get_config

        try:
            config = get_config()
            config_status = f"loaded ({config.config_path})"
            stripe_status = "configured" if config.stripe_secret_key else "missing_secret_key"
        except ConfigurationError:
            config_status = "missing"
            stripe_status = "unknown"

        return {
            "status": "healthy",
            "config": config_status,
            "stripe": stripe_status,
        }

    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
        """Render client-facing errors in the callable error shape."""
        logger.info(
            "callable_error",
            status=exc.status,
            message=exc.message,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_payload())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": {"status": "INTERNAL", "message": "An unexpected error occurred"}},
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app


# Create app instance
app = create_app()
