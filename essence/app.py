"""
ESSENCE Voice Legacy API Application Factory.

Features:
- Dependency injection
- Middleware stack (correlation ids, CORS, metrics, auth)
- Graceful shutdown
- Health checks
- Error handling
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from essence import __version__
from essence.core.config import Settings, get_settings
from essence.core.dependencies import Container, build_container
from essence.core.errors import EssenceError, ValidationError, error_handler
from essence.core.logging import get_logger, setup_logging
from essence.core.metrics import MetricsMiddleware, get_metrics
from essence.core.tracing import CorrelationIdMiddleware
from essence.middleware.auth import AuthMiddleware, JWTValidator

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    testing: bool = False,
    container: Optional[Container] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Optional settings override
        testing: If True, initialization failures are not fatal and docs are on
        container: Optional pre-built container (tests override the provider)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    # Setup logging first
    setup_logging(
        level=settings.log_level,
        json_format=not settings.debug,
        service_name=settings.service_name,
    )

    app = FastAPI(
        title="ESSENCE Voice Legacy API",
        description="Preserve a loved one's voice and hear new messages in it",
        version=__version__,
        docs_url="/docs" if settings.debug or testing else None,
        redoc_url="/redoc" if settings.debug or testing else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.testing = testing
    app.state.container = container or build_container(settings)

    # Add middleware (order matters - last added = first executed)
    _add_middleware(app, settings)

    _add_routes(app)

    _add_error_handlers(app)

    logger.info(
        "Application created",
        extra={
            "debug": settings.debug,
            "testing": testing,
        },
    )

    return app


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings
    container: Container = app.state.container

    logger.info("Starting ESSENCE Voice API")

    get_metrics().set_service_info(
        version=__version__,
        environment=settings.environment,
    )

    try:
        await container.initialize_all()
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        if not (settings.debug or app.state.testing):
            raise

    logger.info("ESSENCE Voice API started successfully")

    yield

    logger.info("Shutting down ESSENCE Voice API")

    # Graceful shutdown with timeout
    try:
        await asyncio.wait_for(container.shutdown(), timeout=30.0)
        logger.info("Graceful shutdown completed")
    except asyncio.TimeoutError:
        logger.warning("Shutdown timed out, forcing exit")


def _add_middleware(app: FastAPI, settings: Settings) -> None:
    """Add middleware stack to application."""

    # Authentication (innermost)
    app.add_middleware(
        AuthMiddleware,
        jwt_validator=JWTValidator(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
        ),
    )

    # Metrics
    app.add_middleware(MetricsMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ids wrap everything so every log line carries one
    app.add_middleware(CorrelationIdMiddleware)


def _add_routes(app: FastAPI) -> None:
    """Add API routes to application."""
    from essence.routes import health, messages, profiles, recordings, training

    app.include_router(health.router, tags=["Health"])
    app.include_router(profiles.router, prefix="/v1", tags=["Profiles"])
    app.include_router(recordings.router, prefix="/v1", tags=["Recordings"])
    app.include_router(messages.router, prefix="/v1", tags=["Messages"])
    app.include_router(training.router, prefix="/v1", tags=["Training"])


def _add_error_handlers(app: FastAPI) -> None:
    """Add error handlers to application."""

    @app.exception_handler(EssenceError)
    async def essence_error_handler(request: Request, exc: EssenceError):
        return await error_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return await error_handler(request, ValidationError(details={"errors": errors}))

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        return await error_handler(request, exc)
