"""Fees router: monthly generation, student fee summary, outstanding fees."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.dependencies import require_center
from centerdesk.auth.rbac import require_roles
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import UserRole
from centerdesk.core.exceptions import ServiceError
from centerdesk.db.session import get_db

from .schemas import (
    BulkFeeGenerationResult,
    FeeGenerateRequest,
    FeeGenerationResult,
    FeeSummary,
    StudentFeeResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])

fee_managers = require_roles(UserRole.CENTER_ADMIN, UserRole.ADMIN)


@router.post("/generate", response_model=BulkFeeGenerationResult)
async def generate_fees_for_center(
    payload: FeeGenerateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(fee_managers),
) -> BulkFeeGenerationResult:
    return await service.generate_fees_for_all_students(
        db, current_user.center_id, payload.start_month, payload.end_month
    )


@router.post("/generate/{student_id}", response_model=FeeGenerationResult)
async def generate_fees_for_student(
    student_id: UUID,
    payload: FeeGenerateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(fee_managers),
) -> FeeGenerationResult:
    try:
        await service.get_center_student(db, current_user.center_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await service.generate_monthly_fees(
        db, current_user.center_id, student_id, payload.start_month, payload.end_month
    )


@router.get("/student/{student_id}", response_model=FeeSummary)
async def get_student_fees(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> FeeSummary:
    try:
        return await service.get_student_fee_summary(db, current_user.center_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/outstanding", response_model=List[StudentFeeResponse])
async def list_outstanding_fees(
    overdue_only: bool = Query(False, description="Only fees whose due date has passed"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(fee_managers),
) -> List[StudentFeeResponse]:
    return await service.list_outstanding_fees(db, current_user.center_id, overdue_only=overdue_only)
