"""
FastAPI Application Factory
===========================

Entry point of the identity sync service, the piece between the browser
(holding the identity provider session) and the application backend.

Architecture:
    Browser → Identity sync (this service) → Backend (/profile, /api/v1/auth/users/oauth-login)

Routers:
    - /, /sso-callback, /oauth-callback : sign-in completion and home
    - /profile                          : backend session verification
    - /sign-in                          : sign-in actions
    - /health                           : health check
    Any other path redirects home.

Running the Service:
    Development:
        uvicorn identity_sync.main:app --reload --port 5173

    With custom log level:
        LOG_LEVEL=DEBUG uvicorn identity_sync.main:app --reload
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from . import __version__
from .auth.routes import build_auth_router
from .config import Settings, get_settings, validate_configuration
from .gateway.client import create_backend_client
from .models import ErrorResponse, HealthResponse


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class AppState:
    """
    Application state container.

    Holds the resources shared across requests.
    """

    def __init__(self):
        self.backend_client: Optional[httpx.AsyncClient] = None
        self.settings: Optional[Settings] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: load configuration, report configuration problems, open the
    shared backend HTTP client.
    Shutdown: close the backend HTTP client.
    """
    app_state: AppState = app.state.app_state
    settings = app_state.settings or get_settings()
    app_state.settings = settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("identity_sync.main")

    report = validate_configuration(settings)
    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    if app_state.backend_client is None:
        app_state.backend_client = create_backend_client(settings)

    logger.info(
        "Identity sync service started",
        extra={"backend_url": settings.backend_service_url_str, "version": __version__},
    )

    yield

    logger.info("Shutting down identity sync service")
    if app_state.backend_client is not None:
        await app_state.backend_client.aclose()
        app_state.backend_client = None
    logger.info("Identity sync service shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with lifespan
    management, CORS, the auth routes, health check, the home redirect for
    unknown paths and the global exception handler.

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Identity Sync Service",
        description="Synchronizes identity provider sessions with the application backend",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app_state = AppState()
    app_state.settings = settings
    app.state.app_state = app_state

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", service="identity-sync", version=__version__)

    app.include_router(build_auth_router(settings))

    @app.get("/{path:path}", include_in_schema=False)
    async def redirect_home(path: str) -> RedirectResponse:
        """Unrecognized paths go home."""
        return RedirectResponse(settings.HOME_ROUTE, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("identity_sync.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )

        body = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
            detail=str(exc) if settings.LOG_LEVEL == "DEBUG" else None,
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "identity_sync.main:app",
        host=settings.SERVICE_HOST,
        port=settings.SERVICE_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
