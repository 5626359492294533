"""Pydantic schemas for tenants (system admin) and tenant members."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from pulseforge.schemas.common import SLUG_PATTERN, Lowered, Trimmed


class TenantCreate(BaseModel):
    slug: Lowered = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    name: Trimmed = Field(..., min_length=1, max_length=200)
    logo_url: Trimmed = ""


class TenantUpdate(BaseModel):
    """Partial update; omitted fields are left alone."""

    slug: Optional[Lowered] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    name: Optional[Trimmed] = Field(None, min_length=1, max_length=200)
    logo_url: Optional[Trimmed] = None


class TenantRead(BaseModel):
    id: int
    slug: str
    name: str
    logo_url: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantUserRead(BaseModel):
    id: str  # public id
    name: str
    email: str
    role: str
