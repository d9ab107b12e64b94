"""
Main FastAPI Application

Entry point for the tenantgate API.
create_app() wires settings, the Database, the token service, the audit
emitter and the purge DependencyCounter onto app.state, then registers
middleware, routes and error handlers.

Route families (all under /api/v1):
    /auth/...                 sessions
    /platform/tenants/...     platform admin
    /t/{tenant_slug}/...      tenant scoped, by slug
    /tenants/{tenant_id}/...  tenant scoped, by id
"""
from typing import Callable, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sqlalchemy.orm import Session
import time
from contextlib import asynccontextmanager

from tenantgate import __version__
from tenantgate.api.errors import error_response
from tenantgate.config import Settings, get_settings
from tenantgate.core.exceptions import ConfigurationError, ServiceError
from tenantgate.core.tokens import TokenService
from tenantgate.database import Database
from tenantgate.middleware.rate_limit import RateLimitMiddleware
from tenantgate.services.audit import AuditEmitter, AuditSink, LoggingAuditSink
from tenantgate.services.tenants import DependencyCounter, SqlDependencyCounter
from tenantgate.utils.logging import setup_logging, get_logger

# Import routers
from tenantgate.api.endpoints import auth, invites, members, platform, tenant_settings

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    audit_sinks: Optional[Iterable[AuditSink]] = None,
    dependency_counter_factory: Optional[Callable[[Session], DependencyCounter]] = SqlDependencyCounter,
    redis_client=None,
) -> FastAPI:
    """
    Build the application.

    Tests pass their own settings, an in-memory Database and a recording
    audit sink. A Database passed in is left open at shutdown; one created
    here is disposed.
    """
    settings = settings or get_settings()

    if dependency_counter_factory is None:
        raise ConfigurationError("create_app() needs a DependencyCounter factory for tenant purge")

    setup_logging(
        log_level=settings.LOG_LEVEL,
        json_format=settings.is_production
    )

    owns_database = database is None
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

        # Deployed databases are migrated; only local environments self-create
        if settings.ENVIRONMENT in ("development", "test"):
            logger.warning("Initializing database tables")
            database.create_all()

        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application")
        if owns_database:
            database.dispose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="tenantgate",
        description="Sessions, tenant resolution, RBAC and invites for a multi-tenant SaaS backend",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.token_service = TokenService(settings)
    app.state.audit = AuditEmitter(audit_sinks if audit_sinks is not None else [LoggingAuditSink()])
    app.state.dependency_counter_factory = dependency_counter_factory

    # ========================================================================
    # MIDDLEWARE CONFIGURATION
    # ========================================================================

    # Credentials (the refresh cookie) require explicit origins, never "*"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.ALLOWED_HOSTS != ["*"]:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add X-Process-Time header to track request duration."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    if settings.RATE_LIMIT_ENABLED:
        app.add_middleware(RateLimitMiddleware, settings=settings, redis_client=redis_client)

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        """Typed failures from the services. Status, code and message come from the class."""
        if exc.status_code >= 500:
            logger.error(f"Service error: {exc.code}", extra={"path": request.url.path})
        return error_response(exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        SECURITY: Don't expose internal errors in production.
        Log full details but return generic error to client.
        """
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
            exc_info=True,
            extra={
                "path": request.url.path,
                "method": request.method,
            }
        )

        if settings.DEBUG:
            return JSONResponse(
                status_code=500,
                content={
                    "detail": str(exc),
                    "type": type(exc).__name__,
                }
            )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "type": "internal_error"
            }
        )

    # ========================================================================
    # ROUTES
    # ========================================================================

    @app.get("/health", tags=["health"])
    async def health_check():
        """Health check endpoint for load balancers."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": __version__
        }

    @app.get("/", tags=["root"])
    async def root():
        return {
            "message": "tenantgate API",
            "version": __version__,
            "health": "/health"
        }

    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(platform.router, prefix=API_PREFIX)
    for tenant_prefix in ("/t/{tenant_slug}", "/tenants/{tenant_id}"):
        app.include_router(members.router, prefix=API_PREFIX + tenant_prefix)
        app.include_router(invites.router, prefix=API_PREFIX + tenant_prefix)
        app.include_router(tenant_settings.router, prefix=API_PREFIX + tenant_prefix)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tenantgate.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
