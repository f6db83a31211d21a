"""FastAPI application factory and server entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from lesson_ai_system import __version__
from lesson_ai_system.config.settings import Settings, get_settings
from lesson_ai_system.exceptions import AppException, format_validation_errors
from lesson_ai_system.telemetry.logger import setup_logging

from .dependencies import AppContainer, build_container, get_rate_limit_key
from .middleware.request_id import RequestIdMiddleware
from .routes import api_router, health

logger = structlog.get_logger(__name__)


def error_body(message: str, code: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """The one error shape clients ever see."""
    body: Dict[str, Any] = {"status": "error", "message": message, "code": code}
    if details:
        body["details"] = details
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    container: AppContainer = app.state.container
    logger.info(
        "Starting Lesson AI System",
        version=__version__,
        environment=container.settings.environment,
        providers=container.registry.names(),
    )
    await container.startup()

    yield

    logger.info("Shutting down Lesson AI System")
    await container.shutdown()


def create_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_rate_limit_key,
        default_limits=[f"{settings.rate_limit_requests}/minute"],
        enabled=settings.rate_limit_enabled,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Render application errors."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed",
            path=request.url.path,
            status_code=exc.status_code,
            code=exc.error_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.error_code, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        errors = format_validation_errors(exc.errors())
        logger.warning("Validation error", path=request.url.path, errors=errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("Invalid input", "VALIDATION_ERROR", {"errors": errors}),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=error_body(f"Rate limit exceeded: {exc.detail}", "RATE_LIMIT_EXCEEDED"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception("Unexpected error", path=request.url.path, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("Internal server error", "INTERNAL_ERROR"),
        )


def create_app(
    settings: Optional[Settings] = None, container: Optional[AppContainer] = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (container.settings if container else get_settings())
    setup_logging(level=settings.log_level, format=settings.log_format)

    app = FastAPI(
        title=settings.app_name,
        description="AI-assisted lesson generation with provider routing, caching and safety review",
        version=__version__,
        redoc_url="/redoc" if not settings.environment == "production" else None,
        lifespan=lifespan,
    )
    app.state.container = container or build_container(settings)

    # Add rate limiting
    app.state.limiter = create_limiter(settings)

    # Add middleware (order matters - reverse order of execution)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": f"{settings.app_name} API",
            "version": __version__,
            "docs": "/docs",
            "health": f"{settings.api_prefix}/health",
        }

    return app


def start_server(
    host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None
) -> None:
    """Start the server programmatically."""
    settings = get_settings()
    reload = settings.reload if reload is None else reload
    uvicorn.run(
        "lesson_ai_system.server.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
        reload=reload and settings.is_development,
        access_log=settings.is_development,
    )


if __name__ == "__main__":
    start_server()
