"""JWT session token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. A session
token is never stored. It is valid as long as the HMAC signature checks
out and `exp` is in the future.

The claims carry everything downstream code needs (tenant slug, tenant
name/logo, email, name, role), so authenticated requests never look the
user up again:

    sub          user public id (7 digits)
    tenant_id    tenant slug
    tenant_name, tenant_logo, email, name, role
    iss, iat, exp

Verification pins the algorithm list to the configured HMAC algorithm,
which rejects `alg: none` and RS/HS key-confusion tokens outright.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from pulseforge.config import settings


class TokenError(Exception):
    """Raised when token verification fails."""


@dataclass(frozen=True)
class SessionClaims:
    """Identity snapshot embedded in a session token."""

    user_public_id: str
    tenant_slug: str
    email: str
    name: str
    tenant_name: str
    tenant_logo: str
    role: str


def create_session_token(
    claims: SessionClaims,
    *,
    secret: Optional[str] = None,
    issuer: Optional[str] = None,
    ttl_hours: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    """Sign a session token. Overrides default to the app settings."""
    issued = now or datetime.now(timezone.utc)
    ttl = ttl_hours if ttl_hours is not None else settings.jwt_ttl_hours
    payload = {
        "sub": claims.user_public_id,
        "tenant_id": claims.tenant_slug,
        "tenant_name": claims.tenant_name,
        "tenant_logo": claims.tenant_logo,
        "email": claims.email,
        "name": claims.name,
        "role": claims.role,
        "iss": issuer or settings.jwt_issuer,
        "iat": issued,
        "exp": issued + timedelta(hours=ttl),
    }
    return jwt.encode(
        payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


def verify_token(
    token: str,
    *,
    secret: Optional[str] = None,
    issuer: Optional[str] = None,
) -> dict:
    """Verify and decode a session token.

    Returns the payload dict on success.
    Raises TokenError on bad signature, wrong algorithm, wrong issuer,
    missing registered claims, or expiry.
    """
    try:
        return jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=issuer or settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"invalid token: {e}")
