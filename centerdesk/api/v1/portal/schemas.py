from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from centerdesk.core.enums import PortalEntityType


class PortalTokenGenerateRequest(BaseModel):
    entity_type: PortalEntityType
    entity_id: UUID
    expires_in_days: int = Field(30, ge=1, le=365)


class PortalTokenGenerateResponse(BaseModel):
    success: bool = True
    token: str
    portal_url: str
    expires_at: datetime
    expires_in_days: int


class PortalTokenValidateRequest(BaseModel):
    token: str = Field(..., min_length=1)
    entity_type: Optional[PortalEntityType] = None


class PortalTokenValidateResponse(BaseModel):
    """Invalid tokens are reported with valid=False and a reason, not an HTTP error."""

    valid: bool
    error: Optional[str] = None
    entity_type: Optional[PortalEntityType] = None
    entity_id: Optional[UUID] = None
    center_id: Optional[UUID] = None
    entity_name: Optional[str] = None
    entity_email: Optional[str] = None
    expires_at: Optional[datetime] = None


class PortalTokenRevokeRequest(BaseModel):
    entity_type: PortalEntityType
    entity_id: UUID
    revoke_all: bool = True
    token_id: Optional[UUID] = None


class PortalTokenRevokeResponse(BaseModel):
    success: bool = True
    revoked_count: int
