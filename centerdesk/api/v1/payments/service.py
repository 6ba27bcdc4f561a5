"""
Payments: record a payment and allocate it across outstanding fees in the same transaction,
reverse a payment by undoing its allocations, and refund part or all of a payment.
"""

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.currency import format_currency, to_decimal
from centerdesk.core.enums import AuditAction, AuditEntityType, PaymentStatus, RefundReason
from centerdesk.core.exceptions import ServiceError
from centerdesk.core.models import Payment, PaymentAllocation, PaymentReversal, Refund, Student, StudentFee

from centerdesk.api.v1.audit_logs import service as audit_service
from centerdesk.api.v1.audit_logs.schemas import AuditLogEntry
from centerdesk.api.v1.fees import service as fee_service

from .schemas import (
    PaymentAllocationResponse,
    PaymentCreate,
    PaymentDetail,
    PaymentResponse,
    PaymentReverseResponse,
    RecordPaymentResponse,
    RefundCreate,
    RefundCreateResponse,
    RefundPage,
    RefundResponse,
)

logger = logging.getLogger(__name__)

PAYMENT_AUDIT_FIELDS = ("student_id", "amount", "payment_method", "reference", "status", "payment_date")


async def _get_center_payment(
    db: AsyncSession, center_id: UUID, payment_id: UUID, *, for_update: bool = False
) -> Payment:
    stmt = select(Payment).where(Payment.id == payment_id, Payment.center_id == center_id)
    if for_update:
        stmt = stmt.with_for_update()
    payment = (await db.execute(stmt)).scalar_one_or_none()
    if not payment:
        raise ServiceError("Payment not found", status.HTTP_404_NOT_FOUND)
    return payment


async def record_payment(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: PaymentCreate,
) -> RecordPaymentResponse:
    """Create the payment row, allocate it oldest fee first, and audit it; all or nothing."""
    center_id = current_user.center_id
    await fee_service.get_center_student(db, center_id, payload.student_id)

    payment = Payment(
        center_id=center_id,
        student_id=payload.student_id,
        amount=payload.amount,
        payment_method=payload.payment_method.value,
        reference=(payload.reference or "").strip() or None,
        status=PaymentStatus.completed.value,
        notes=payload.notes,
        payment_date=payload.payment_date or date.today(),
        recorded_by=current_user.id,
    )
    try:
        db.add(payment)
        await db.flush()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error recording payment for student %s", payload.student_id)
        raise ServiceError("Failed to record payment", status.HTTP_500_INTERNAL_SERVER_ERROR)

    result = await fee_service.allocate_payment(
        db, center_id, payload.student_id, payload.amount, payment.id, commit=False
    )
    if not result.success:
        # allocate_payment already rolled back the payment row with its own changes
        raise ServiceError(result.error or "Failed to allocate payment", status.HTTP_500_INTERNAL_SERVER_ERROR)

    new_values = audit_service.snapshot(payment, PAYMENT_AUDIT_FIELDS)
    new_values["allocated_fees"] = len(result.allocations)
    new_values["remaining_credit"] = str(result.remaining_credit)
    await audit_service.create_audit_log(
        db,
        AuditLogEntry(
            center_id=center_id,
            user_id=current_user.id,
            action=AuditAction.create,
            entity_type=AuditEntityType.payment.value,
            entity_id=str(payment.id),
            new_values=new_values,
        ),
    )
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error committing payment for student %s", payload.student_id)
        raise ServiceError("Failed to record payment", status.HTTP_500_INTERNAL_SERVER_ERROR)
    await db.refresh(payment)

    logger.info(
        "Payment %s of %s allocated to %d fee(s), credit %s",
        payment.id,
        format_currency(payment.amount),
        len(result.allocations),
        format_currency(result.remaining_credit),
    )
    return RecordPaymentResponse(
        success=True,
        payment=PaymentResponse.model_validate(payment),
        allocations=result.allocations,
        remaining_credit=result.remaining_credit,
    )


async def reverse_payment(
    db: AsyncSession,
    current_user: CurrentUser,
    payment_id: UUID,
    reason: str,
) -> PaymentReverseResponse:
    """
    Undo a payment: subtract each allocation from its fee (never below zero), recompute fee
    status, mark the payment reversed and keep a reversal record. One transaction.
    """
    center_id = current_user.center_id
    payment = await _get_center_payment(db, center_id, payment_id)
    if payment.status == PaymentStatus.reversed.value:
        raise ServiceError("Payment has already been reversed", status.HTTP_400_BAD_REQUEST)

    now = datetime.utcnow()
    try:
        allocations = (
            await db.execute(
                select(PaymentAllocation).where(PaymentAllocation.payment_id == payment_id)
            )
        ).scalars().all()
        for allocation in allocations:
            fee = await db.get(StudentFee, allocation.fee_id, with_for_update=True)
            if fee is None:
                logger.warning("Fee %s of payment %s no longer exists", allocation.fee_id, payment_id)
                continue
            new_paid = max(to_decimal(fee.amount_paid) - to_decimal(allocation.amount), to_decimal(0))
            fee.amount_paid = new_paid
            fee.status = fee_service.compute_fee_status(fee.amount_due, new_paid).value

        old_status = payment.status
        payment.status = PaymentStatus.reversed.value
        payment.notes = f"{payment.notes or ''}\n\n[REVERSED] {now.isoformat()}: {reason}".strip()

        reversal = PaymentReversal(
            original_payment_id=payment.id,
            center_id=center_id,
            student_id=payment.student_id,
            amount=payment.amount,
            reason=reason,
            reversed_by=current_user.id,
            reversed_at=now,
        )
        db.add(reversal)
        await db.flush()

        await audit_service.create_audit_log(
            db,
            AuditLogEntry(
                center_id=center_id,
                user_id=current_user.id,
                action=AuditAction.update,
                entity_type=AuditEntityType.payment.value,
                entity_id=str(payment.id),
                old_values={"status": old_status},
                new_values={"status": payment.status, "reversal_reason": reason},
            ),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Payment reversal failed for %s", payment_id)
        raise ServiceError("Failed to reverse payment", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return PaymentReverseResponse(
        success=True,
        message="Payment reversed successfully",
        payment_id=payment.id,
        reversal_id=reversal.id,
    )


async def list_payments(
    db: AsyncSession,
    center_id: UUID,
    student_id: Optional[UUID] = None,
) -> List[PaymentResponse]:
    stmt = select(Payment).where(Payment.center_id == center_id)
    if student_id is not None:
        stmt = stmt.where(Payment.student_id == student_id)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    result = await db.execute(stmt)
    return [PaymentResponse.model_validate(p) for p in result.scalars().all()]


async def get_payment(db: AsyncSession, center_id: UUID, payment_id: UUID) -> PaymentDetail:
    payment = await _get_center_payment(db, center_id, payment_id)
    rows = (
        await db.execute(
            select(PaymentAllocation, StudentFee.fee_month, StudentFee.fee_type)
            .join(StudentFee, PaymentAllocation.fee_id == StudentFee.id)
            .where(PaymentAllocation.payment_id == payment_id)
            .order_by(StudentFee.fee_month.asc())
        )
    ).all()
    base = PaymentResponse.model_validate(payment)
    return PaymentDetail(
        **base.model_dump(),
        allocations=[
            PaymentAllocationResponse(
                fee_id=allocation.fee_id,
                fee_month=fee_month,
                fee_type=fee_type,
                amount=to_decimal(allocation.amount),
            )
            for allocation, fee_month, fee_type in rows
        ],
    )


# --- Refunds ---
async def _refunded_total(db: AsyncSession, payment_id: UUID) -> Decimal:
    amounts = (
        await db.execute(select(Refund.amount).where(Refund.original_payment_id == payment_id))
    ).scalars().all()
    return sum((to_decimal(a) for a in amounts), Decimal("0"))


async def create_refund(
    db: AsyncSession,
    current_user: CurrentUser,
    payment_id: UUID,
    payload: RefundCreate,
) -> RefundCreateResponse:
    """
    Refund part or all of a payment. The running total of refunds against a payment never
    exceeds its amount. Fee rows are not touched; optionally marks the student withdrawn.
    """
    notes = (payload.reason_notes or "").strip() or None
    if payload.reason == RefundReason.other and not notes:
        raise ServiceError('Notes are required when reason is "Other"', status.HTTP_400_BAD_REQUEST)

    center_id = current_user.center_id
    payment = await _get_center_payment(db, center_id, payment_id, for_update=True)
    if payment.status == PaymentStatus.reversed.value:
        raise ServiceError("Cannot refund a reversed payment", status.HTTP_400_BAD_REQUEST)

    remaining = to_decimal(payment.amount) - await _refunded_total(db, payment_id)
    if payload.amount > remaining:
        if remaining <= 0:
            raise ServiceError("This payment has already been fully refunded", status.HTTP_400_BAD_REQUEST)
        raise ServiceError(
            f"Refund amount cannot exceed {format_currency(remaining)} (remaining refundable amount)",
            status.HTTP_400_BAD_REQUEST,
        )

    try:
        refund = Refund(
            center_id=center_id,
            student_id=payment.student_id,
            original_payment_id=payment.id,
            amount=payload.amount,
            reason=payload.reason.value,
            reason_notes=notes,
            student_status_updated=payload.update_student_status,
            processed_by=current_user.id,
            refund_date=datetime.utcnow(),
        )
        db.add(refund)
        if payload.update_student_status:
            student = await db.get(Student, payment.student_id)
            if student is not None:
                student.status = "withdrawn"
        await db.flush()

        await audit_service.create_audit_log(
            db,
            AuditLogEntry(
                center_id=center_id,
                user_id=current_user.id,
                action=AuditAction.create,
                entity_type=AuditEntityType.refund.value,
                entity_id=str(refund.id),
                new_values={
                    "amount": str(payload.amount),
                    "reason": payload.reason.value,
                    "reason_notes": notes,
                    "original_payment_id": str(payment.id),
                    "student_id": str(payment.student_id),
                    "student_status_updated": payload.update_student_status,
                },
            ),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error creating refund for payment %s", payment_id)
        raise ServiceError("Failed to create refund record", status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Refund %s of %s against payment %s", refund.id, format_currency(refund.amount), payment_id)
    return RefundCreateResponse(
        success=True,
        message="Refund processed successfully",
        refund=RefundResponse.model_validate(refund),
        remaining_refundable=remaining - payload.amount,
    )


async def list_payment_refunds(db: AsyncSession, center_id: UUID, payment_id: UUID) -> List[RefundResponse]:
    await _get_center_payment(db, center_id, payment_id)
    result = await db.execute(
        select(Refund)
        .where(Refund.original_payment_id == payment_id)
        .order_by(Refund.refund_date.desc())
    )
    return [RefundResponse.model_validate(r) for r in result.scalars().all()]


async def list_refunds(
    db: AsyncSession,
    center_id: UUID,
    student_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> RefundPage:
    """Refunds of one center, newest first."""
    stmt = select(Refund).where(Refund.center_id == center_id)
    count_stmt = select(func.count(Refund.id)).where(Refund.center_id == center_id)
    if student_id is not None:
        stmt = stmt.where(Refund.student_id == student_id)
        count_stmt = count_stmt.where(Refund.student_id == student_id)

    total = (await db.execute(count_stmt)).scalar() or 0
    result = await db.execute(
        stmt.order_by(Refund.refund_date.desc()).offset((page - 1) * limit).limit(limit)
    )
    return RefundPage(
        data=[RefundResponse.model_validate(r) for r in result.scalars().all()],
        total=total,
        page=page,
        total_pages=math.ceil(total / limit),
    )
