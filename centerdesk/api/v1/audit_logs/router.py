"""Audit log router: center log, platform-wide log, single entry with diff."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.rbac import require_roles, require_super_admin
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import AuditAction, AuditEntityType, UserRole
from centerdesk.core.exceptions import ServiceError
from centerdesk.db.session import get_db

from .schemas import AuditLogDetail, AuditLogFilters, AuditLogPage
from . import service

router = APIRouter(prefix="/api/v1/audit-logs", tags=["audit-logs"])

audit_viewers = require_roles(UserRole.CENTER_ADMIN, UserRole.ADMIN)


def audit_filters(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=200),
    action: Optional[AuditAction] = Query(None),
    entity_type: Optional[AuditEntityType] = Query(None),
    user_id: Optional[UUID] = Query(None),
    center_id: Optional[UUID] = Query(None, description="Super admin listing only"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> AuditLogFilters:
    return AuditLogFilters(
        page=page,
        limit=limit,
        action=action,
        entity_type=entity_type,
        user_id=user_id,
        center_id=center_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("", response_model=AuditLogPage)
async def list_audit_logs(
    filters: AuditLogFilters = Depends(audit_filters),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(audit_viewers),
) -> AuditLogPage:
    return await service.get_audit_logs(db, current_user.center_id, filters)


@router.get("/all", response_model=AuditLogPage)
async def list_all_audit_logs(
    filters: AuditLogFilters = Depends(audit_filters),
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_super_admin),
) -> AuditLogPage:
    return await service.get_all_audit_logs(db, filters)


@router.get("/{log_id}", response_model=AuditLogDetail)
async def get_audit_log(
    log_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(audit_viewers),
) -> AuditLogDetail:
    try:
        return await service.get_audit_log(db, current_user.center_id, log_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
