"""Student and bulk-import schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from centerdesk.core.enums import Gender


# --- CSV import ---
class StudentImportRow(BaseModel):
    """One validated CSV row, ready for bulk insert."""

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    grade: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    address: Optional[str] = None


class ImportRowError(BaseModel):
    row: int  # 0 = whole file, otherwise spreadsheet row (header is row 1)
    message: str


class ParsedCSV(BaseModel):
    data: List[StudentImportRow]
    errors: List[ImportRowError]
    headers: List[str]


class CSVPreviewRequest(BaseModel):
    content: str


class StudentImportRequest(BaseModel):
    students: List[StudentImportRow] = Field(..., min_length=1)


class ImportedStudent(BaseModel):
    id: UUID
    first_name: str
    surname: str


class StudentImportResponse(BaseModel):
    success: bool
    imported: int
    students: List[ImportedStudent]


# --- Student ---
class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    surname: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    grade: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[EmailStr] = None
    address: Optional[str] = None
    registration_fee: Optional[Decimal] = Field(None, gt=0, description="Creates an unpaid registration fee")


class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    surname: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    grade: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[EmailStr] = None
    address: Optional[str] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive|withdrawn)$")


class StudentResponse(BaseModel):
    id: UUID
    center_id: UUID
    first_name: str
    surname: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    grade: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    address: Optional[str] = None
    status: str
    registration_fee_paid: bool
    registration_fee_paid_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
