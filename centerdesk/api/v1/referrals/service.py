"""Center referral program: each center shares a code; prospective centers sign up with it."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.core.enums import ReferralStatus
from centerdesk.core.exceptions import ServiceError
from centerdesk.core.models import Center, Referral, ReferralCode

from .code import generate_center_referral_code
from .schemas import (
    ApplyReferralResponse,
    ReferralCodeValidateResponse,
    ReferralOverview,
    ReferralResponse,
    ReferralStats,
)

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5
SUCCESSFUL_STATUSES = {ReferralStatus.completed.value, ReferralStatus.rewarded.value}


async def _get_code(db: AsyncSession, code: str) -> Optional[ReferralCode]:
    result = await db.execute(
        select(ReferralCode).where(ReferralCode.code == code.strip().upper())
    )
    return result.scalar_one_or_none()


async def get_or_create_referral_code(db: AsyncSession, center: Center) -> ReferralCode:
    """Return the center's code, generating one on first use. Retries on code collisions."""
    existing = (
        await db.execute(select(ReferralCode).where(ReferralCode.center_id == center.id))
    ).scalar_one_or_none()
    if existing:
        return existing

    center_id, center_name = center.id, center.name
    for attempt in range(MAX_CODE_ATTEMPTS):
        referral_code = ReferralCode(
            center_id=center_id,
            code=generate_center_referral_code(center_name),
        )
        db.add(referral_code)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("Referral code collision for center %s (attempt %d)", center_id, attempt + 1)
            continue
        await db.refresh(referral_code)
        return referral_code

    raise ServiceError(
        "Could not generate a unique referral code",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def get_referral_overview(db: AsyncSession, center_id: UUID) -> ReferralOverview:
    center = await db.get(Center, center_id)
    if not center:
        raise ServiceError("Center not found", status.HTTP_404_NOT_FOUND)
    free_months = center.referral_free_months or 0

    referral_code = await get_or_create_referral_code(db, center)
    referrals = (
        await db.execute(
            select(Referral)
            .where(Referral.referrer_center_id == center_id)
            .order_by(Referral.created_at.desc())
        )
    ).scalars().all()

    return ReferralOverview(
        referral_code=referral_code.code,
        referral_code_id=referral_code.id,
        referrals=[ReferralResponse.model_validate(r) for r in referrals],
        free_months_balance=free_months,
        stats=ReferralStats(
            total_referrals=len(referrals),
            successful_referrals=sum(1 for r in referrals if r.status in SUCCESSFUL_STATUSES),
            pending_referrals=sum(1 for r in referrals if r.status == ReferralStatus.pending.value),
        ),
    )


async def validate_referral_code(db: AsyncSession, code: str) -> ReferralCodeValidateResponse:
    referral_code = await _get_code(db, code)
    if not referral_code:
        return ReferralCodeValidateResponse(valid=False, error="Invalid referral code")
    if not referral_code.is_active:
        return ReferralCodeValidateResponse(valid=False, error="This referral code is no longer active")

    center = await db.get(Center, referral_code.center_id)
    return ReferralCodeValidateResponse(
        valid=True,
        code=referral_code.code,
        referrer_name=center.name if center else "A tutorial center",
    )


async def apply_referral_code(db: AsyncSession, code: str, email: str) -> ApplyReferralResponse:
    """Record a pending referral of `email` by the center owning `code`."""
    referral_code = await _get_code(db, code)
    if not referral_code:
        raise ServiceError("Invalid referral code", status.HTTP_400_BAD_REQUEST)
    if not referral_code.is_active:
        raise ServiceError("This referral code is no longer active", status.HTTP_400_BAD_REQUEST)

    email = email.strip().lower()
    already = (
        await db.execute(select(Referral.id).where(Referral.referred_email == email))
    ).scalar_one_or_none()
    if already:
        raise ServiceError("This email has already been referred", status.HTTP_400_BAD_REQUEST)

    referral = Referral(
        referral_code_id=referral_code.id,
        referrer_center_id=referral_code.center_id,
        referred_email=email,
        status=ReferralStatus.pending.value,
    )
    try:
        db.add(referral)
        referral_code.total_referrals = (referral_code.total_referrals or 0) + 1
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("This email has already been referred", status.HTTP_400_BAD_REQUEST)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error creating referral for code %s", code)
        raise ServiceError("Failed to apply referral code", status.HTTP_500_INTERNAL_SERVER_ERROR)
    await db.refresh(referral)

    return ApplyReferralResponse(
        success=True,
        referral=ReferralResponse.model_validate(referral),
        message="Referral code applied! You'll both receive credits when you subscribe.",
    )
