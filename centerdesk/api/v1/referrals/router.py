from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.dependencies import require_center
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.exceptions import ServiceError
from centerdesk.db.session import get_db

from .schemas import (
    ApplyReferralRequest,
    ApplyReferralResponse,
    ReferralCodeValidateRequest,
    ReferralCodeValidateResponse,
    ReferralOverview,
)
from . import service

router = APIRouter(prefix="/api/v1/referrals", tags=["referrals"])


@router.get("", response_model=ReferralOverview)
async def get_referrals(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_center),
) -> ReferralOverview:
    try:
        return await service.get_referral_overview(db, current_user.center_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# Public: used on the sign-up page before an account exists
@router.post("/validate", response_model=ReferralCodeValidateResponse)
async def validate_referral_code(
    payload: ReferralCodeValidateRequest,
    db: AsyncSession = Depends(get_db),
) -> ReferralCodeValidateResponse:
    return await service.validate_referral_code(db, payload.code)


@router.post("", response_model=ApplyReferralResponse)
async def apply_referral_code(
    payload: ApplyReferralRequest,
    db: AsyncSession = Depends(get_db),
) -> ApplyReferralResponse:
    try:
        return await service.apply_referral_code(db, payload.referral_code, payload.referred_email)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
