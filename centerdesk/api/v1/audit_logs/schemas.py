"""Audit log schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from centerdesk.core.enums import AuditAction, AuditEntityType


class AuditLogEntry(BaseModel):
    """Input for create_audit_log. entity_type is free text so bulk/system entries can be logged."""

    center_id: UUID
    user_id: Optional[UUID] = None
    action: AuditAction
    entity_type: str
    entity_id: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditLogResult(BaseModel):
    success: bool
    error: Optional[str] = None


class FieldChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class AuditLogFilters(BaseModel):
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1, le=200)
    action: Optional[AuditAction] = None
    entity_type: Optional[AuditEntityType] = None
    user_id: Optional[UUID] = None
    center_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditLogResponse(BaseModel):
    id: UUID
    center_id: UUID
    user_id: Optional[UUID] = None
    action: str
    action_label: str
    entity_type: str
    entity_label: str
    entity_id: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    center_name: Optional[str] = None


class AuditLogDetail(AuditLogResponse):
    changes: List[FieldChange] = Field(default_factory=list)


class AuditLogPage(BaseModel):
    data: List[AuditLogResponse]
    total: int
    page: int
    total_pages: int
