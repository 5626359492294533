"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (schema bootstrap, mail
workers, engine disposal). Middleware, CORS, error handlers, and
routers are all registered here.

Every error leaves the app as {"error": "..."}: ServiceError subclasses
carry their own status, request validation failures become 400
"invalid payload", and plain HTTPExceptions (404 for unknown routes,
405) are reshaped to the same body.
"""

from contextlib import asynccontextmanager
from typing import Callable, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pulseforge import __version__
from pulseforge.api import api_router
from pulseforge.api.health import router as health_router
from pulseforge.config import settings, split_csv
from pulseforge.errors import ServiceError
from pulseforge.logconfig import configure_logging
from pulseforge.notifications import Mailer, MailQueue

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "pulseforge.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from pulseforge.db.bootstrap import ensure_schema
    from pulseforge.db.engine import engine

    if app.state.run_bootstrap:
        await ensure_schema(engine, app.state.system_admins)

    app.state.mail_queue.start()

    yield

    logger.info("pulseforge.shutdown")
    await app.state.mail_queue.stop()
    await engine.dispose()


# ─── Error handlers ──────────────────────────────────────


async def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request.failed", error=exc.message, status=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "invalid payload", "detail": detail})


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.unhandled_error", error=str(exc))
    return JSONResponse(status_code=500, content={"error": "internal error"})


def create_app(
    *,
    session_factory: Optional[Callable] = None,
    system_admins: Optional[frozenset[str]] = None,
    mailer: Optional[Mailer] = None,
    mail_queue: Optional[MailQueue] = None,
    run_bootstrap: bool = True,
) -> FastAPI:
    """Build and return the FastAPI application.

    Everything optional defaults to the process-wide settings; tests pass
    their own session factory, allow-list, and mailer.
    """
    configure_logging(settings.log_level, json_logs=settings.environment != "development")

    app = FastAPI(
        title="PulseForge",
        description="Multi-tenant workspace backend — organizations, projects, tasks, issues",
        version=__version__,
        lifespan=lifespan,
    )

    # Built once; read-only for the life of the process.
    app.state.system_admins = (
        system_admins if system_admins is not None else settings.system_admins
    )
    app.state.mailer = mailer or Mailer(settings)
    app.state.mail_queue = mail_queue or MailQueue(
        app.state.mailer,
        maxsize=settings.mail_queue_size,
        workers=settings.mail_workers,
    )
    app.state.run_bootstrap = run_bootstrap

    app.add_exception_handler(ServiceError, _service_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(Exception, _unhandled_error)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → AuditLog → handler

    from pulseforge.middleware.audit import AuditLogMiddleware
    from pulseforge.middleware.request_id import RequestIdMiddleware

    app.add_middleware(AuditLogMiddleware, session_factory=session_factory)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=split_csv(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=split_csv(settings.cors_allow_methods),
        allow_headers=split_csv(settings.cors_allow_headers),
        max_age=12 * 3600,
    )
    app.add_middleware(RequestIdMiddleware)

    # Mount API routes
    app.include_router(api_router)
    app.include_router(health_router, tags=["health"])

    return app


# Default app instance (used by uvicorn: pulseforge.main:app)
app = create_app()
