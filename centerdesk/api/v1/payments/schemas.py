"""Payment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from centerdesk.api.v1.fees.schemas import FeeAllocation
from centerdesk.core.enums import PaymentMethod, PaymentStatus, RefundReason


class PaymentCreate(BaseModel):
    student_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class PaymentReverseRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    id: UUID
    center_id: UUID
    student_id: UUID
    amount: Decimal
    payment_method: str
    reference: Optional[str] = None
    status: PaymentStatus
    notes: Optional[str] = None
    payment_date: date
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentAllocationResponse(BaseModel):
    fee_id: UUID
    fee_month: date
    fee_type: str
    amount: Decimal


class PaymentDetail(PaymentResponse):
    allocations: List[PaymentAllocationResponse] = Field(default_factory=list)


class RecordPaymentResponse(BaseModel):
    success: bool
    payment: PaymentResponse
    allocations: List[FeeAllocation]
    remaining_credit: Decimal


class PaymentReverseResponse(BaseModel):
    success: bool
    message: str
    payment_id: UUID
    reversal_id: UUID


class RefundCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    reason: RefundReason
    reason_notes: Optional[str] = None
    update_student_status: bool = False


class RefundResponse(BaseModel):
    id: UUID
    center_id: UUID
    student_id: UUID
    original_payment_id: UUID
    amount: Decimal
    reason: RefundReason
    reason_notes: Optional[str] = None
    student_status_updated: bool
    processed_by: Optional[UUID] = None
    refund_date: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class RefundCreateResponse(BaseModel):
    success: bool
    message: str
    refund: RefundResponse
    remaining_refundable: Decimal


class RefundPage(BaseModel):
    data: List[RefundResponse]
    total: int
    page: int
    total_pages: int
