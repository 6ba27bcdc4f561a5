"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from centerdesk.core.enums import FeeStatus


class FeeGenerateRequest(BaseModel):
    start_month: date = Field(..., description="First month to bill; normalised to the 1st")
    end_month: date = Field(..., description="Last month to bill (inclusive); normalised to the 1st")


class StudentFeeResponse(BaseModel):
    id: UUID
    center_id: UUID
    student_id: UUID
    fee_month: date
    fee_type: str
    amount_due: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: FeeStatus
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FeeGenerationResult(BaseModel):
    success: bool
    fees_generated: int = 0
    error: Optional[str] = None


class BulkFeeGenerationResult(BaseModel):
    success: bool
    students_processed: int = 0
    total_fees_generated: int = 0
    errors: List[str] = Field(default_factory=list)


class FeeAllocation(BaseModel):
    fee_id: UUID
    month: date
    amount_allocated: Decimal


class AllocationResult(BaseModel):
    """Outcome of applying one payment. sum(allocations) + remaining_credit == payment amount."""

    success: bool
    allocations: List[FeeAllocation] = Field(default_factory=list)
    remaining_credit: Decimal = Decimal("0")
    error: Optional[str] = None


class FeeSummary(BaseModel):
    student_id: UUID
    currency: str
    total_due: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
    outstanding_display: str
    fees: List[StudentFeeResponse]
