"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan context manager runs on startup / shutdown.
  3. Routers are registered with their URL prefixes.
  4. Exception handlers turn domain errors into {"detail", "error", "retryable"}.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 4           # production (no --reload)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal.api.routes import auth, companies, dashboards, powerbi, user_dashboards, users
from portal.core.config import settings
from portal.core.errors import PortalError, ValidationError
from portal.core.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from portal.db.session import engine
from portal.services.powerbi_service import PowerBIClient, PowerBIConfig

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup:
      - Configure structured logging
      - Build the Power BI client from settings

    Shutdown:
      - Close the Power BI HTTP client
      - Dispose the async engine (graceful connection pool drain)
    """
    configure_logging()
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
    )
    app.state.powerbi = PowerBIClient(PowerBIConfig.from_settings(settings))
    yield
    logger.info("Shutting down, disposing DB engine")
    await app.state.powerbi.aclose()
    await engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-tenant BI portal backend: companies, users, dashboards, "
            "per-user dashboard grants and Power BI embedding."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = bind_request_context(
            request.method, request.url.path, request.headers.get("x-request-id")
        )
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(auth.me_router)
    app.include_router(companies.router)
    app.include_router(users.router)
    app.include_router(dashboards.router)
    app.include_router(user_dashboards.router)
    app.include_router(powerbi.router)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
        log = logger.warning if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            path=request.url.path,
            error=exc.kind,
            detail=exc.message,
            **exc.context,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError("Request validation failed")
        content = error.to_dict()
        content["errors"] = jsonable_encoder(exc.errors())
        return JSONResponse(status_code=error.status_code, content=content)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "error": "internal", "retryable": False},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health(request: Request) -> dict:
        powerbi_client = getattr(request.app.state, "powerbi", None)
        return {
            "status": "ok",
            "app": settings.APP_NAME,
            "env": settings.APP_ENV,
            "powerbi_configured": bool(powerbi_client and powerbi_client.is_configured()),
        }

    return app


app = create_application()
