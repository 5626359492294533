"""Pydantic schemas for registration, login, and password reset."""

from pydantic import BaseModel, Field

from pulseforge.schemas.common import EMAIL_PATTERN, SLUG_PATTERN, Lowered, Trimmed


class RegisterRequest(BaseModel):
    tenant_slug: Lowered = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    tenant_name: Trimmed = Field(..., min_length=1, max_length=200)
    tenant_logo_data: Trimmed = ""
    tenant_logo_url: Trimmed = ""
    name: Trimmed = Field(..., min_length=1, max_length=200)
    email: Lowered = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)

    @property
    def tenant_logo(self) -> str:
        """Uploaded data URL wins over the legacy URL field."""
        return self.tenant_logo_data or self.tenant_logo_url


class LoginRequest(BaseModel):
    tenant_slug: Lowered = ""
    email: Lowered = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    tenant_slug: Lowered = ""
    email: Lowered = Field(..., pattern=EMAIL_PATTERN)


class AuthUser(BaseModel):
    id: str
    name: str
    email: str
    tenant_slug: str
    tenant_name: str
    tenant_logo: str
    role: str


class AuthResponse(BaseModel):
    token: str
    user: AuthUser


class ResetAccepted(BaseModel):
    status: str = "if the account exists, a reset email has been sent"


class MeRead(BaseModel):
    """The authenticated TenantContext, echoed back."""

    tenant_slug: str
    user_public_id: str
    email: str
    role: str
    name: str

    model_config = {"from_attributes": True}
