"""
Audit logging for create/update/delete operations, plus the field-level diff shown in the
audit log viewer. Writing an entry never raises: failures are logged and reported.
"""

import json
import logging
import math
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.models import User
from centerdesk.core.config import settings
from centerdesk.core.exceptions import ServiceError
from centerdesk.core.models import AuditLog, Center

from .schemas import (
    AuditLogDetail,
    AuditLogEntry,
    AuditLogFilters,
    AuditLogPage,
    AuditLogResponse,
    AuditLogResult,
    FieldChange,
)

logger = logging.getLogger(__name__)

# Bookkeeping keys never shown as changes
EXCLUDED_DIFF_FIELDS = frozenset({"id", "created_at", "updated_at", "center_id"})

ACTION_LABELS = {
    "create": "Created",
    "update": "Updated",
    "delete": "Deleted",
}

ENTITY_LABELS = {
    "student": "Student",
    "teacher": "Teacher",
    "payment": "Payment",
    "user": "User",
    "subject": "Subject",
    "fee": "Fee",
    "hostel_block": "Hostel Block",
    "hostel_room": "Hostel Room",
    "hostel_allocation": "Room Allocation",
    "vehicle": "Vehicle",
    "transport_route": "Transport Route",
    "book": "Book",
    "book_borrowing": "Book Borrowing",
    "center": "Center",
}

_MISSING = object()


def format_audit_action(action: str) -> str:
    return ACTION_LABELS.get(action, action)


def format_entity_type(entity_type: str) -> str:
    return ENTITY_LABELS.get(entity_type, entity_type)


def _serialize(value: Any) -> Optional[str]:
    # A missing key serialises differently from an explicit null
    if value is _MISSING:
        return None
    return json.dumps(value, default=str)


def calculate_diff(
    old_values: Optional[Dict[str, Any]],
    new_values: Optional[Dict[str, Any]],
) -> List[FieldChange]:
    """
    Fields whose JSON value differs between two snapshots, in first-seen key order.

    Keys present on one side only are reported with None on the other side.
    id, created_at, updated_at and center_id are never reported.
    """
    if not old_values and not new_values:
        return []

    old_values = old_values or {}
    new_values = new_values or {}
    keys = list(dict.fromkeys([*old_values.keys(), *new_values.keys()]))

    changes: List[FieldChange] = []
    for key in keys:
        if key in EXCLUDED_DIFF_FIELDS:
            continue
        old_val = old_values.get(key, _MISSING)
        new_val = new_values.get(key, _MISSING)
        if _serialize(old_val) != _serialize(new_val):
            changes.append(
                FieldChange(
                    field=key,
                    old_value=None if old_val is _MISSING else old_val,
                    new_value=None if new_val is _MISSING else new_val,
                )
            )
    return changes


def snapshot(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """JSON-safe dict of the given attributes. Decimals are kept as strings to avoid float drift."""
    return jsonable_encoder(
        {name: getattr(obj, name) for name in fields},
        custom_encoder={Decimal: str},
    )


async def create_audit_log(
    db: AsyncSession,
    entry: AuditLogEntry,
    *,
    commit: bool = False,
) -> AuditLogResult:
    """Append one audit log entry. Caller must commit unless commit=True."""
    try:
        db.add(
            AuditLog(
                center_id=entry.center_id,
                user_id=entry.user_id,
                action=entry.action.value,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                old_values=entry.old_values,
                new_values=entry.new_values,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
            )
        )
        if commit:
            await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating audit log for %s %s: %s", entry.entity_type, entry.entity_id, e)
        return AuditLogResult(success=False, error=str(e) or "Failed to create audit log")
    return AuditLogResult(success=True)


def _to_response(log: AuditLog, user_name, user_email, center_name=None) -> AuditLogResponse:
    return AuditLogResponse(
        id=log.id,
        center_id=log.center_id,
        user_id=log.user_id,
        action=log.action,
        action_label=format_audit_action(log.action),
        entity_type=log.entity_type,
        entity_label=format_entity_type(log.entity_type),
        entity_id=log.entity_id,
        old_values=log.old_values,
        new_values=log.new_values,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
        created_at=log.created_at,
        user_name=user_name,
        user_email=user_email,
        center_name=center_name,
    )


def _apply_filters(stmt, filters: AuditLogFilters):
    if filters.action is not None:
        stmt = stmt.where(AuditLog.action == filters.action.value)
    if filters.entity_type is not None:
        stmt = stmt.where(AuditLog.entity_type == filters.entity_type.value)
    if filters.user_id is not None:
        stmt = stmt.where(AuditLog.user_id == filters.user_id)
    if filters.start_date is not None:
        stmt = stmt.where(AuditLog.created_at >= filters.start_date)
    if filters.end_date is not None:
        stmt = stmt.where(AuditLog.created_at <= filters.end_date)
    return stmt


async def _paginate(
    db: AsyncSession,
    filters: AuditLogFilters,
    center_id: Optional[UUID],
) -> Tuple[List[tuple], int, int]:
    limit = filters.limit or settings.audit_page_size

    count_stmt = _apply_filters(select(func.count(AuditLog.id)), filters)
    stmt = _apply_filters(
        select(AuditLog, User.full_name, User.email, Center.name)
        .outerjoin(User, AuditLog.user_id == User.id)
        .outerjoin(Center, AuditLog.center_id == Center.id),
        filters,
    )
    if center_id is not None:
        count_stmt = count_stmt.where(AuditLog.center_id == center_id)
        stmt = stmt.where(AuditLog.center_id == center_id)

    total = (await db.execute(count_stmt)).scalar() or 0
    stmt = (
        stmt.order_by(AuditLog.created_at.desc())
        .offset((filters.page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()
    return rows, total, limit


async def get_audit_logs(
    db: AsyncSession,
    center_id: UUID,
    filters: AuditLogFilters,
) -> AuditLogPage:
    """Audit logs of one center, newest first."""
    try:
        rows, total, limit = await _paginate(db, filters, center_id)
    except SQLAlchemyError:
        logger.exception("Error fetching audit logs for center %s", center_id)
        return AuditLogPage(data=[], total=0, page=filters.page, total_pages=0)
    return AuditLogPage(
        data=[_to_response(log, name, email) for log, name, email, _ in rows],
        total=total,
        page=filters.page,
        total_pages=math.ceil(total / limit),
    )


async def get_all_audit_logs(db: AsyncSession, filters: AuditLogFilters) -> AuditLogPage:
    """Audit logs across centers (super admin), optionally narrowed to filters.center_id."""
    try:
        rows, total, limit = await _paginate(db, filters, filters.center_id)
    except SQLAlchemyError:
        logger.exception("Error fetching all audit logs")
        return AuditLogPage(data=[], total=0, page=filters.page, total_pages=0)
    return AuditLogPage(
        data=[_to_response(log, name, email, center_name) for log, name, email, center_name in rows],
        total=total,
        page=filters.page,
        total_pages=math.ceil(total / limit),
    )


async def get_audit_log(db: AsyncSession, center_id: UUID, log_id: UUID) -> AuditLogDetail:
    row = (
        await db.execute(
            select(AuditLog, User.full_name, User.email)
            .outerjoin(User, AuditLog.user_id == User.id)
            .where(AuditLog.id == log_id, AuditLog.center_id == center_id)
        )
    ).first()
    if not row:
        raise ServiceError("Audit log not found", status.HTTP_404_NOT_FOUND)
    log, name, email = row
    base = _to_response(log, name, email)
    return AuditLogDetail(
        **base.model_dump(),
        changes=calculate_diff(log.old_values, log.new_values),
    )
