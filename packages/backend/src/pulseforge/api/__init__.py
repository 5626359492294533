"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. Health and auth routers are
open (no auth required; /auth/me declares its own dependency).

The system router is gated by require_system_admin, which depends on
get_tenant_context, so the role check always sees a verified token.
"""

from fastapi import APIRouter, Depends

from pulseforge.api.auth import router as auth_router
from pulseforge.api.health import router as health_router
from pulseforge.api.issues import router as issues_router
from pulseforge.api.projects import router as projects_router
from pulseforge.api.system import router as system_router
from pulseforge.api.tasks import router as tasks_router
from pulseforge.api.workspace import router as workspace_router
from pulseforge.auth.dependencies import get_tenant_context, require_system_admin

# Tenant-scoped routers require a valid session token
_auth = [Depends(get_tenant_context)]
_system_admin = [Depends(require_system_admin)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid JWT
api_router.include_router(projects_router, tags=["projects"], dependencies=_auth)
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
api_router.include_router(issues_router, tags=["issues", "forum"], dependencies=_auth)
api_router.include_router(workspace_router, tags=["users", "updates", "mail"], dependencies=_auth)

# System-admin routes — require the system_admin role
api_router.include_router(system_router, tags=["system"], dependencies=_system_admin)
