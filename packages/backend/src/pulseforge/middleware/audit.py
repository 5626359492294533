"""Audit-log middleware — one system_logs row per authenticated request.

Learn: Authentication runs inside the route's dependencies, i.e. *after*
middleware has handed the request on. So the audit middleware cannot
know the caller up front; it waits for the response and then looks at
`request.state.tenant_context`, which get_tenant_context() sets once a
token has been verified. No context means the request never got past
the token check (or was an open route), and nothing is recorded.

The row is written through a fresh session from the configured factory,
never the request's session: the handler's transaction is finished by
then, and a failing audit insert must not touch it. Persistence errors
are logged and swallowed; the client always gets the handler's response.
A handler that raises is recorded as a 500 and the exception re-raised.
"""

import time
from typing import Callable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from pulseforge.services.audit_service import record_request

logger = structlog.get_logger()

HEALTH_PATHS = ("/health", "/api/v1/health")


def is_health_path(path: str) -> bool:
    return any(path == p or path.startswith(p + "/") for p in HEALTH_PATHS)


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Persist method, path, status and latency for authenticated calls."""

    def __init__(self, app, session_factory: Optional[Callable] = None):
        super().__init__(app)
        self._session_factory = session_factory

    @property
    def session_factory(self) -> Callable:
        if self._session_factory is None:
            from pulseforge.db.engine import async_session_factory
            self._session_factory = async_session_factory
        return self._session_factory

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            # Unhandled errors surface here and are answered with 500 by the
            # outermost error middleware, after this one has returned.
            await self._record(request, 500, start)
            raise

        await self._record(request, response.status_code, start)
        return response

    async def _record(self, request: Request, status_code: int, start: float) -> None:
        latency_ms = int((time.perf_counter() - start) * 1000)

        path = request.url.path
        if not path.strip() or is_health_path(path):
            return

        ctx = getattr(request.state, "tenant_context", None)
        if ctx is None or not (ctx.tenant_slug or ctx.email):
            return

        try:
            async with self.session_factory() as session:
                await record_request(
                    session,
                    method=request.method,
                    path=path,
                    status_code=status_code,
                    latency_ms=latency_ms,
                    tenant_slug=ctx.tenant_slug,
                    user_email=ctx.email,
                    role=ctx.role,
                )
        except Exception as e:
            logger.warning(
                "audit.persist_failed",
                method=request.method,
                path=path,
                error=str(e),
            )
