"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application().
  2. lifespan context manager runs on startup / shutdown.
  3. Routers are registered with their URL prefixes.
  4. Exception handlers turn TenancyError into JSON with a stable error code
     and normalise unexpected errors.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 4           # production (no --reload)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crm_saas.api.routes import auth, invitations, saas_admin, tenants, workspace
from crm_saas.core.config import settings
from crm_saas.core.exceptions import ErrorKind, TenancyError
from crm_saas.core.logging import clear_request_context, configure_logging, get_logger
from crm_saas.db.session import engine

logger = get_logger(__name__)

ERROR_STATUS = {
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.unauthorized: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.forbidden: status.HTTP_403_FORBIDDEN,
    ErrorKind.payment_required: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.limit_exceeded: status.HTTP_403_FORBIDDEN,
    ErrorKind.bad_request: status.HTTP_400_BAD_REQUEST,
    ErrorKind.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging

    Shutdown:
      - Dispose the async engine (graceful connection pool drain)
    """
    configure_logging()
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
        base_domain=settings.BASE_DOMAIN,
    )
    yield
    logger.info("Shutting down, disposing DB engine")
    await engine.dispose()


def create_application() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-tenant CRM SaaS backend: subdomain-routed tenants, "
            "role-based membership, invitations and usage limits."
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

    # ── Request context ──────────────────────────────────────────────────────
    @app.middleware("http")
    async def reset_log_context(request: Request, call_next):
        clear_request_context()
        return await call_next(request)

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(tenants.router)
    app.include_router(workspace.router)
    app.include_router(invitations.router)
    app.include_router(saas_admin.router)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(TenancyError)
    async def tenancy_error_handler(
        request: Request, exc: TenancyError
    ) -> JSONResponse:
        status_code = ERROR_STATUS[exc.kind]
        log = logger.error if status_code >= 500 else logger.info
        log(
            "Request rejected",
            path=request.url.path,
            kind=exc.kind.value,
            code=exc.code,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                **exc.details,
                "error": exc.code,
                "kind": exc.kind.value,
                "detail": exc.message,
            },
        )

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
            content={"detail": "Internal server error"},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
