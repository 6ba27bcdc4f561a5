from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from centerdesk.core.enums import ReferralStatus


class ReferralResponse(BaseModel):
    id: UUID
    referred_email: str
    referred_center_id: Optional[UUID] = None
    status: ReferralStatus
    created_at: datetime

    class Config:
        from_attributes = True


class ReferralStats(BaseModel):
    total_referrals: int
    successful_referrals: int
    pending_referrals: int


class ReferralOverview(BaseModel):
    referral_code: str
    referral_code_id: UUID
    referrals: List[ReferralResponse]
    free_months_balance: int
    stats: ReferralStats


class ReferralCodeValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)


class ReferralCodeValidateResponse(BaseModel):
    valid: bool
    error: Optional[str] = None
    code: Optional[str] = None
    referrer_name: Optional[str] = None


class ApplyReferralRequest(BaseModel):
    referral_code: str = Field(..., min_length=1, max_length=20)
    referred_email: EmailStr


class ApplyReferralResponse(BaseModel):
    success: bool
    referral: ReferralResponse
    message: str
