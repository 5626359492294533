"""FastAPI auth dependencies — tenant scoping and the role gate.

Learn: These are used as Depends() in route handlers and router groups.
Instead of a string-keyed per-request registry, the validated claims
become an explicit TenantContext value that handlers receive as a
parameter. The context is also stashed on `request.state` so the audit
middleware (which runs outside the dependency system) can read it after
the handler returns.

Rejection stages for get_tenant_context:

    no Authorization header          → 400 missing authorization header
    header without "Bearer " scheme  → 401 invalid authorization scheme
    signature/issuer/expiry failure  → 401 invalid token
    no tenant claim                  → 401 tenant claim missing
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from pulseforge.auth.jwt import TokenError, verify_token
from pulseforge.db.models import ORG_ADMIN, SYSTEM_ADMIN
from pulseforge.errors import Forbidden, MissingCredentials, Unauthorized

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class TenantContext:
    """The authenticated identity making the request.

    All tenant-scoped queries filter by `tenant_slug`.
    """

    tenant_slug: str
    user_public_id: str
    email: str
    role: str
    name: str = ""

    @property
    def is_system_admin(self) -> bool:
        return self.role == SYSTEM_ADMIN


def context_from_claims(payload: dict) -> TenantContext:
    """Build a TenantContext from verified claims. Raises Unauthorized."""
    tenant_slug = payload.get("tenant_id")
    if not isinstance(tenant_slug, str) or not tenant_slug:
        raise Unauthorized("tenant claim missing")

    def _str(key: str) -> str:
        value = payload.get(key)
        return value if isinstance(value, str) else ""

    return TenantContext(
        tenant_slug=tenant_slug,
        user_public_id=_str("sub"),
        email=_str("email"),
        role=_str("role") or ORG_ADMIN,
        name=_str("name"),
    )


async def get_tenant_context(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> TenantContext:
    """Validate the bearer token and return the request's TenantContext."""
    if not authorization:
        raise MissingCredentials()

    if not authorization.startswith(BEARER_PREFIX):
        raise Unauthorized("invalid authorization scheme")

    try:
        payload = verify_token(authorization[len(BEARER_PREFIX):].strip())
    except TokenError:
        raise Unauthorized("invalid token")

    ctx = context_from_claims(payload)
    request.state.tenant_context = ctx
    return ctx


async def require_system_admin(
    ctx: TenantContext = Depends(get_tenant_context),
) -> TenantContext:
    """Role gate — only system_admin passes."""
    if not ctx.is_system_admin:
        raise Forbidden("system admin access required")
    return ctx


def get_system_admins(request: Request) -> frozenset[str]:
    """The allow-list built once in create_app()."""
    return request.app.state.system_admins
