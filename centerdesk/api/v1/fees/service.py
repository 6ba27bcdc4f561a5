"""
Fees service: monthly tuition generation from subject enrollments, FIFO payment allocation,
per-student summaries.

generate_* and allocate_payment report failures in their result instead of raising:
database errors roll back the whole call, are logged, and come back as success=False.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.core.config import settings
from centerdesk.core.currency import format_currency, to_decimal
from centerdesk.core.enums import FeeStatus, FeeType
from centerdesk.core.exceptions import ServiceError
from centerdesk.core.models import (
    PaymentAllocation,
    Student,
    StudentFee,
    StudentSubjectEnrollment,
    Subject,
)

from .schemas import (
    AllocationResult,
    BulkFeeGenerationResult,
    FeeAllocation,
    FeeGenerationResult,
    FeeSummary,
    StudentFeeResponse,
)

logger = logging.getLogger(__name__)


# --- Month helpers ---
def first_of_month(value: date) -> date:
    return value.replace(day=1)


def month_range(start_month: date, end_month: date) -> List[date]:
    """Every first-of-month from start to end inclusive. Empty when start is after end."""
    current = first_of_month(start_month)
    end = first_of_month(end_month)
    months: List[date] = []
    while current <= end:
        months.append(current)
        if current.month == 12:
            current = current.replace(year=current.year + 1, month=1)
        else:
            current = current.replace(month=current.month + 1)
    return months


def due_date_for(fee_month: date) -> date:
    return fee_month.replace(day=settings.fee_due_day)


def compute_fee_status(amount_due, amount_paid) -> FeeStatus:
    due = to_decimal(amount_due)
    paid = to_decimal(amount_paid)
    if paid >= due:
        return FeeStatus.paid
    if paid > 0:
        return FeeStatus.partial
    return FeeStatus.unpaid


def plan_allocation(fees: Sequence, amount) -> Tuple[List[Tuple[object, Decimal]], Decimal]:
    """
    FIFO plan: walk fees oldest fee_month first and take min(remaining, balance) from each.

    Returns ([(fee, allocated)], remaining). Fees with no positive balance are skipped.
    """
    remaining = to_decimal(amount)
    plan: List[Tuple[object, Decimal]] = []
    for fee in sorted(fees, key=lambda f: f.fee_month):
        if remaining <= 0:
            break
        balance = to_decimal(fee.amount_due) - to_decimal(fee.amount_paid)
        allocated = min(remaining, balance)
        if allocated > 0:
            plan.append((fee, allocated))
            remaining -= allocated
    return plan, remaining


def _fee_to_response(fee: StudentFee) -> StudentFeeResponse:
    amount_due = to_decimal(fee.amount_due)
    amount_paid = to_decimal(fee.amount_paid)
    return StudentFeeResponse(
        id=fee.id,
        center_id=fee.center_id,
        student_id=fee.student_id,
        fee_month=fee.fee_month,
        fee_type=fee.fee_type,
        amount_due=amount_due,
        amount_paid=amount_paid,
        balance=amount_due - amount_paid,
        status=fee.status,
        due_date=fee.due_date,
        created_at=fee.created_at,
        updated_at=fee.updated_at,
    )


async def get_center_student(db: AsyncSession, center_id: UUID, student_id: UUID) -> Student:
    student = (
        await db.execute(
            select(Student).where(Student.id == student_id, Student.center_id == center_id)
        )
    ).scalar_one_or_none()
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    return student


# --- Generation ---
async def _monthly_tuition(db: AsyncSession, student_id: UUID) -> Decimal:
    # Summed in Python so the total stays Decimal on every backend
    fees = (
        await db.execute(
            select(Subject.monthly_fee)
            .select_from(StudentSubjectEnrollment)
            .join(Subject, StudentSubjectEnrollment.subject_id == Subject.id)
            .where(
                StudentSubjectEnrollment.student_id == student_id,
                StudentSubjectEnrollment.is_active.is_(True),
            )
        )
    ).scalars().all()
    return sum((to_decimal(f) for f in fees), Decimal("0"))


async def generate_monthly_fees(
    db: AsyncSession,
    center_id: UUID,
    student_id: UUID,
    start_month: date,
    end_month: date,
) -> FeeGenerationResult:
    """
    Create one unpaid tuition fee per month in range that the student does not already have.
    amount_due is the summed monthly_fee of the student's active enrollments; nothing is
    billed when that sum is zero. Inserted in one transaction.
    """
    try:
        monthly_tuition = await _monthly_tuition(db, student_id)
        months = month_range(start_month, end_month)
        if monthly_tuition <= 0 or not months:
            return FeeGenerationResult(success=True, fees_generated=0)

        existing = (
            await db.execute(
                select(StudentFee.fee_month).where(
                    StudentFee.student_id == student_id,
                    StudentFee.fee_type == FeeType.tuition.value,
                    StudentFee.fee_month.in_(months),
                )
            )
        ).scalars().all()
        existing_months = set(existing)

        records = [
            StudentFee(
                center_id=center_id,
                student_id=student_id,
                fee_month=month,
                fee_type=FeeType.tuition.value,
                amount_due=monthly_tuition,
                amount_paid=Decimal("0"),
                status=FeeStatus.unpaid.value,
                due_date=due_date_for(month),
            )
            for month in months
            if month not in existing_months
        ]
        if not records:
            return FeeGenerationResult(success=True, fees_generated=0)

        db.add_all(records)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Error generating fees for student %s", student_id)
        return FeeGenerationResult(success=False, fees_generated=0, error=str(e) or "Failed to generate fees")

    logger.info("Generated %d fee(s) for student %s", len(records), student_id)
    return FeeGenerationResult(success=True, fees_generated=len(records))


async def generate_fees_for_all_students(
    db: AsyncSession,
    center_id: UUID,
    start_month: date,
    end_month: date,
) -> BulkFeeGenerationResult:
    """Run generate_monthly_fees for every active student; one student's failure does not stop the rest."""
    try:
        student_ids = (
            await db.execute(
                select(Student.id).where(
                    Student.center_id == center_id,
                    Student.status == "active",
                )
            )
        ).scalars().all()
    except SQLAlchemyError as e:
        logger.exception("Error loading students for center %s", center_id)
        return BulkFeeGenerationResult(success=False, errors=[str(e) or "Failed to generate fees"])

    total = 0
    errors: List[str] = []
    for student_id in student_ids:
        result = await generate_monthly_fees(db, center_id, student_id, start_month, end_month)
        if result.success:
            total += result.fees_generated
        else:
            errors.append(f"Student {student_id}: {result.error}")

    return BulkFeeGenerationResult(
        success=not errors,
        students_processed=len(student_ids),
        total_fees_generated=total,
        errors=errors,
    )


async def create_one_off_fee(
    db: AsyncSession,
    center_id: UUID,
    student_id: UUID,
    fee_type: FeeType,
    amount: Decimal,
    fee_month: Optional[date] = None,
) -> StudentFee:
    """Add a single fee row (e.g. registration) for the month. Caller must commit."""
    month = first_of_month(fee_month or date.today())
    fee = StudentFee(
        center_id=center_id,
        student_id=student_id,
        fee_month=month,
        fee_type=fee_type.value,
        amount_due=amount,
        amount_paid=Decimal("0"),
        status=FeeStatus.unpaid.value,
        due_date=due_date_for(month),
    )
    db.add(fee)
    return fee


# --- Allocation ---
async def allocate_payment(
    db: AsyncSession,
    center_id: UUID,
    student_id: UUID,
    payment_amount,
    payment_id: Optional[UUID] = None,
    *,
    commit: bool = True,
) -> AllocationResult:
    """
    Apply a payment to the student's outstanding fees, oldest fee_month first.

    Outstanding rows are locked for the duration of the transaction. A fully paid
    registration fee marks the student as registration-paid. With commit=False the caller
    owns the transaction (e.g. to record the payment row atomically with its allocations).
    Any failure rolls back every fee update.
    """
    amount = to_decimal(payment_amount)
    allocations: List[FeeAllocation] = []
    try:
        outstanding = (
            await db.execute(
                select(StudentFee)
                .where(
                    StudentFee.center_id == center_id,
                    StudentFee.student_id == student_id,
                    StudentFee.status != FeeStatus.paid.value,
                )
                .order_by(StudentFee.fee_month.asc(), StudentFee.created_at.asc())
                .with_for_update()
            )
        ).scalars().all()

        plan, remaining = plan_allocation(outstanding, amount)
        for fee, allocated in plan:
            fee.amount_paid = to_decimal(fee.amount_paid) + allocated
            fee.status = compute_fee_status(fee.amount_due, fee.amount_paid).value
            if payment_id is not None:
                db.add(PaymentAllocation(payment_id=payment_id, fee_id=fee.id, amount=allocated))

            if fee.fee_type == FeeType.registration.value and fee.status == FeeStatus.paid.value:
                student = await db.get(Student, student_id)
                if student is not None:
                    student.registration_fee_paid = True
                    student.registration_fee_paid_date = datetime.utcnow()

            allocations.append(
                FeeAllocation(fee_id=fee.id, month=fee.fee_month, amount_allocated=allocated)
            )

        await db.flush()
        if commit:
            await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Error allocating payment %s for student %s", payment_id, student_id)
        return AllocationResult(
            success=False,
            allocations=[],
            remaining_credit=amount,
            error=str(e) or "Failed to allocate payment",
        )

    return AllocationResult(success=True, allocations=allocations, remaining_credit=remaining)


# --- Reads ---
async def get_student_fee_summary(
    db: AsyncSession,
    center_id: UUID,
    student_id: UUID,
) -> FeeSummary:
    await get_center_student(db, center_id, student_id)
    fees = (
        await db.execute(
            select(StudentFee)
            .where(StudentFee.student_id == student_id, StudentFee.center_id == center_id)
            .order_by(StudentFee.fee_month.asc(), StudentFee.created_at.asc())
        )
    ).scalars().all()

    total_due = sum((to_decimal(f.amount_due) for f in fees), Decimal("0"))
    total_paid = sum((to_decimal(f.amount_paid) for f in fees), Decimal("0"))
    outstanding = total_due - total_paid
    return FeeSummary(
        student_id=student_id,
        currency=settings.currency_code,
        total_due=total_due,
        total_paid=total_paid,
        outstanding_balance=outstanding,
        outstanding_display=format_currency(outstanding),
        fees=[_fee_to_response(f) for f in fees],
    )


async def list_outstanding_fees(
    db: AsyncSession,
    center_id: UUID,
    overdue_only: bool = False,
) -> List[StudentFeeResponse]:
    stmt = select(StudentFee).where(
        StudentFee.center_id == center_id,
        StudentFee.status != FeeStatus.paid.value,
    )
    if overdue_only:
        stmt = stmt.where(StudentFee.due_date < date.today())
    stmt = stmt.order_by(StudentFee.fee_month.asc(), StudentFee.student_id)
    result = await db.execute(stmt)
    return [_fee_to_response(f) for f in result.scalars().all()]
