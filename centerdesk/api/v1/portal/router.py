"""Portal link management. validate-token is public: the portal pages call it with the link token."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.dependencies import client_ip
from centerdesk.auth.rbac import require_roles
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import UserRole
from centerdesk.core.exceptions import ServiceError
from centerdesk.db.session import get_db

from .schemas import (
    PortalTokenGenerateRequest,
    PortalTokenGenerateResponse,
    PortalTokenRevokeRequest,
    PortalTokenRevokeResponse,
    PortalTokenValidateRequest,
    PortalTokenValidateResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/portal", tags=["portal"])

token_managers = require_roles(UserRole.CENTER_ADMIN)


def _request_ip(request: Request):
    return client_ip(request.headers.get("x-forwarded-for"), request.headers.get("x-real-ip"))


@router.post("/generate-token", response_model=PortalTokenGenerateResponse)
async def generate_token(
    payload: PortalTokenGenerateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(token_managers),
) -> PortalTokenGenerateResponse:
    try:
        return await service.generate_token(db, current_user, payload, ip_address=_request_ip(request))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/validate-token", response_model=PortalTokenValidateResponse)
async def validate_token(
    payload: PortalTokenValidateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> PortalTokenValidateResponse:
    return await service.validate_token(
        db, payload.token, payload.entity_type, ip_address=_request_ip(request)
    )


@router.post("/revoke-token", response_model=PortalTokenRevokeResponse)
async def revoke_token(
    payload: PortalTokenRevokeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(token_managers),
) -> PortalTokenRevokeResponse:
    try:
        return await service.revoke_tokens(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
