"""Students: create/update with audit trail, and bulk import of validated CSV rows."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import AuditAction, AuditEntityType, FeeType
from centerdesk.core.exceptions import ServiceError
from centerdesk.core.models import Center, Student
from centerdesk.core.phone import validate_phone_fields

from centerdesk.api.v1.audit_logs import service as audit_service
from centerdesk.api.v1.audit_logs.schemas import AuditLogEntry
from centerdesk.api.v1.fees import service as fee_service

from .csv_parser import row_errors
from .schemas import (
    ImportedStudent,
    StudentCreate,
    StudentImportResponse,
    StudentImportRow,
    StudentResponse,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

# Import rows arrive from the client's preview step and are checked again here
IMPORT_CHECKED_FIELDS = ("first_name", "last_name", "email", "phone", "parent_phone", "parent_email")

AUDITED_FIELDS = (
    "first_name",
    "surname",
    "full_name",
    "email",
    "phone",
    "date_of_birth",
    "gender",
    "grade",
    "parent_name",
    "parent_phone",
    "parent_email",
    "address",
    "status",
)


def full_name_for(first_name: str, surname: str) -> str:
    return f"{surname} {first_name}".strip()


def _check_phones(phone: Optional[str], parent_phone: Optional[str]) -> None:
    errors = validate_phone_fields(
        {"Phone number": phone or "", "Parent phone": parent_phone or ""}
    )
    if errors:
        raise ServiceError("; ".join(errors.values()), status.HTTP_400_BAD_REQUEST)


async def get_student(db: AsyncSession, center_id: UUID, student_id: UUID) -> StudentResponse:
    student = await fee_service.get_center_student(db, center_id, student_id)
    return StudentResponse.model_validate(student)


async def list_students(
    db: AsyncSession,
    center_id: UUID,
    status_filter: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = select(Student).where(Student.center_id == center_id)
    if status_filter:
        stmt = stmt.where(Student.status == status_filter)
    stmt = stmt.order_by(Student.surname, Student.first_name)
    result = await db.execute(stmt)
    return [StudentResponse.model_validate(s) for s in result.scalars().all()]


async def create_student(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: StudentCreate,
) -> StudentResponse:
    _check_phones(payload.phone, payload.parent_phone)
    center_id = current_user.center_id
    await check_student_capacity(db, center_id, 1)

    data = payload.model_dump(exclude={"registration_fee"})
    if data.get("gender") is not None:
        data["gender"] = payload.gender.value
    student = Student(
        center_id=center_id,
        full_name=full_name_for(payload.first_name, payload.surname),
        status="active",
        **data,
    )
    db.add(student)
    await db.flush()

    if payload.registration_fee is not None:
        await fee_service.create_one_off_fee(
            db, center_id, student.id, FeeType.registration, payload.registration_fee
        )

    await audit_service.create_audit_log(
        db,
        AuditLogEntry(
            center_id=center_id,
            user_id=current_user.id,
            action=AuditAction.create,
            entity_type=AuditEntityType.student.value,
            entity_id=str(student.id),
            new_values=audit_service.snapshot(student, AUDITED_FIELDS),
        ),
    )
    await db.commit()
    await db.refresh(student)
    return StudentResponse.model_validate(student)


async def update_student(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: UUID,
    payload: StudentUpdate,
) -> StudentResponse:
    center_id = current_user.center_id
    student = await fee_service.get_center_student(db, center_id, student_id)
    changes = payload.model_dump(exclude_unset=True)
    _check_phones(changes.get("phone"), changes.get("parent_phone"))

    before = audit_service.snapshot(student, AUDITED_FIELDS)
    for field, value in changes.items():
        if field == "gender" and value is not None:
            value = value.value
        setattr(student, field, value)
    if "first_name" in changes or "surname" in changes:
        student.full_name = full_name_for(student.first_name, student.surname)
    after = audit_service.snapshot(student, AUDITED_FIELDS)

    if audit_service.calculate_diff(before, after):
        await audit_service.create_audit_log(
            db,
            AuditLogEntry(
                center_id=center_id,
                user_id=current_user.id,
                action=AuditAction.update,
                entity_type=AuditEntityType.student.value,
                entity_id=str(student.id),
                old_values=before,
                new_values=after,
            ),
        )
    await db.commit()
    await db.refresh(student)
    return StudentResponse.model_validate(student)


async def check_student_capacity(db: AsyncSession, center_id: UUID, requested: int) -> None:
    """Raise when adding `requested` active students would exceed the center's plan."""
    center = await db.get(Center, center_id)
    if not center:
        raise ServiceError("Center not found", status.HTTP_404_NOT_FOUND)
    if center.student_limit == -1:
        return
    current = (
        await db.execute(
            select(func.count(Student.id)).where(
                Student.center_id == center_id,
                Student.status == "active",
            )
        )
    ).scalar() or 0
    available = max(center.student_limit - current, 0)
    if requested > available:
        raise ServiceError(
            f"Cannot import {requested} students. You have {available} slots available "
            f"on your {center.subscription_tier} plan.",
            status.HTTP_400_BAD_REQUEST,
        )


async def import_students(
    db: AsyncSession,
    current_user: CurrentUser,
    rows: List[StudentImportRow],
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> StudentImportResponse:
    """Bulk insert validated rows as active students and log one audit entry for the batch."""
    center_id = current_user.center_id
    for index, row in enumerate(rows, start=1):
        errors = row_errors(row.model_dump(include=set(IMPORT_CHECKED_FIELDS)))
        if errors:
            raise ServiceError(f"Row {index}: {'; '.join(errors)}", status.HTTP_400_BAD_REQUEST)
    await check_student_capacity(db, center_id, len(rows))

    students = [
        Student(
            center_id=center_id,
            full_name=full_name_for(row.first_name, row.last_name),
            first_name=row.first_name,
            surname=row.last_name,
            email=row.email,
            phone=row.phone,
            date_of_birth=row.date_of_birth,
            gender=row.gender.value if row.gender else None,
            grade=row.grade,
            parent_name=row.parent_name,
            parent_phone=row.parent_phone,
            parent_email=row.parent_email,
            address=row.address,
            status="active",
        )
        for row in rows
    ]
    try:
        db.add_all(students)
        await db.flush()
        await audit_service.create_audit_log(
            db,
            AuditLogEntry(
                center_id=center_id,
                user_id=current_user.id,
                action=AuditAction.create,
                entity_type=AuditEntityType.student.value,
                entity_id="bulk-import",
                new_values={
                    "count": len(students),
                    "students": ", ".join(s.full_name for s in students),
                },
                ip_address=ip_address,
                user_agent=user_agent,
            ),
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error importing %d students for center %s", len(rows), center_id)
        raise ServiceError("Failed to import students", status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Imported %d students for center %s", len(students), center_id)
    return StudentImportResponse(
        success=True,
        imported=len(students),
        students=[
            ImportedStudent(id=s.id, first_name=s.first_name, surname=s.surname)
            for s in students
        ],
    )
