from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.dependencies import require_center
from centerdesk.auth.rbac import require_roles
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import UserRole
from centerdesk.core.exceptions import ServiceError
from centerdesk.db.session import get_db

from .schemas import (
    PaymentCreate,
    PaymentDetail,
    PaymentResponse,
    PaymentReverseRequest,
    PaymentReverseResponse,
    RecordPaymentResponse,
    RefundCreate,
    RefundCreateResponse,
    RefundPage,
    RefundResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])

payment_managers = require_roles(UserRole.CENTER_ADMIN, UserRole.ADMIN)


@router.post("", response_model=RecordPaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(payment_managers),
) -> RecordPaymentResponse:
    try:
        return await service.record_payment(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{payment_id}/reverse", response_model=PaymentReverseResponse)
async def reverse_payment(
    payment_id: UUID,
    payload: PaymentReverseRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.CENTER_ADMIN)),
) -> PaymentReverseResponse:
    try:
        return await service.reverse_payment(db, current_user, payment_id, payload.reason)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[PaymentResponse])
async def list_payments(
    student_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> List[PaymentResponse]:
    return await service.list_payments(db, current_user.center_id, student_id)


@router.get("/refunds", response_model=RefundPage)
async def list_refunds(
    student_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> RefundPage:
    return await service.list_refunds(db, current_user.center_id, student_id, page, limit)


@router.get("/{payment_id}", response_model=PaymentDetail)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> PaymentDetail:
    try:
        return await service.get_payment(db, current_user.center_id, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{payment_id}/refunds",
    response_model=RefundCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_refund(
    payment_id: UUID,
    payload: RefundCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.CENTER_ADMIN)),
) -> RefundCreateResponse:
    try:
        return await service.create_refund(db, current_user, payment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{payment_id}/refunds", response_model=List[RefundResponse])
async def list_payment_refunds(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> List[RefundResponse]:
    try:
        return await service.list_payment_refunds(db, current_user.center_id, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
