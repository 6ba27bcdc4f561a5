"""Students router: CRUD and CSV/Excel bulk import."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.dependencies import client_ip, require_center
from centerdesk.auth.rbac import require_roles
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import UserRole
from centerdesk.core.exceptions import ServiceError
from centerdesk.db.session import get_db

from .csv_parser import generate_csv_template, parse_csv
from .excel import XLSX_MEDIA_TYPE, build_import_template_xlsx, parse_xlsx
from .schemas import (
    CSVPreviewRequest,
    ParsedCSV,
    StudentCreate,
    StudentImportRequest,
    StudentImportResponse,
    StudentResponse,
    StudentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])

student_managers = require_roles(UserRole.CENTER_ADMIN, UserRole.ADMIN)


# --- Import ---
@router.get("/import/template")
async def download_import_template() -> Response:
    return Response(
        content=generate_csv_template(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="student_import_template.csv"'},
    )


@router.post(
    "/import/preview",
    response_model=ParsedCSV,
    dependencies=[Depends(student_managers)],
)
async def preview_import(payload: CSVPreviewRequest) -> ParsedCSV:
    return parse_csv(payload.content)


@router.get("/import/template.xlsx")
async def download_import_template_xlsx() -> Response:
    """Excel version of the template, with a gender dropdown. Upload it via POST /import/preview-excel."""
    return Response(
        content=build_import_template_xlsx(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="student_import_template.xlsx"'},
    )


@router.post(
    "/import/preview-excel",
    response_model=ParsedCSV,
    dependencies=[Depends(student_managers)],
)
async def preview_import_excel(
    file: UploadFile = File(..., description="Excel file (.xlsx) with a header row"),
) -> ParsedCSV:
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an Excel file (.xlsx)")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    return parse_xlsx(content)


@router.post("/import", response_model=StudentImportResponse)
async def import_students(
    payload: StudentImportRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(student_managers),
) -> StudentImportResponse:
    try:
        return await service.import_students(
            db,
            current_user,
            payload.students,
            ip_address=client_ip(
                request.headers.get("x-forwarded-for"), request.headers.get("x-real-ip")
            ),
            user_agent=request.headers.get("user-agent"),
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Students ---
@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(student_managers),
) -> StudentResponse:
    try:
        return await service.create_student(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> List[StudentResponse]:
    return await service.list_students(db, current_user.center_id, status_filter)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> StudentResponse:
    try:
        return await service.get_student(db, current_user.center_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(student_managers),
) -> StudentResponse:
    try:
        return await service.update_student(db, current_user, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
