"""Issue, validate and revoke portal access tokens for students and teachers."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth import portal_tokens
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import PortalEntityType
from centerdesk.core.exceptions import PortalTokenError, ServiceError
from centerdesk.core.models import PortalAccessToken, Student, Teacher

from .schemas import (
    PortalTokenGenerateRequest,
    PortalTokenGenerateResponse,
    PortalTokenRevokeRequest,
    PortalTokenRevokeResponse,
    PortalTokenValidateResponse,
)

logger = logging.getLogger(__name__)

# Parents have no table of their own; their tokens verify but never resolve to an entity
ENTITY_MODELS = {
    PortalEntityType.student: Student,
    PortalEntityType.teacher: Teacher,
}


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _invalid(error: str) -> PortalTokenValidateResponse:
    return PortalTokenValidateResponse(valid=False, error=error)


def _entity_response(
    entity_type: PortalEntityType,
    entity,
    expires_at: Optional[datetime],
) -> PortalTokenValidateResponse:
    if entity.status != "active":
        return _invalid("Account is inactive")
    return PortalTokenValidateResponse(
        valid=True,
        entity_type=entity_type,
        entity_id=entity.id,
        center_id=entity.center_id,
        entity_name=entity.full_name or "",
        entity_email=entity.email,
        expires_at=expires_at,
    )


async def generate_token(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: PortalTokenGenerateRequest,
    ip_address: Optional[str] = None,
) -> PortalTokenGenerateResponse:
    """Issue a new token for a student or teacher, revoking any still-active ones."""
    model = ENTITY_MODELS.get(payload.entity_type)
    if model is None:
        raise ServiceError("Invalid entity type", status.HTTP_400_BAD_REQUEST)

    center_id = current_user.center_id
    entity = (
        await db.execute(
            select(model).where(model.id == payload.entity_id, model.center_id == center_id)
        )
    ).scalar_one_or_none()
    if not entity:
        raise ServiceError(f"{payload.entity_type.value.capitalize()} not found", status.HTTP_404_NOT_FOUND)

    try:
        token = portal_tokens.generate_portal_token(
            payload.entity_type, payload.entity_id, center_id, payload.expires_in_days
        )
    except PortalTokenError as e:
        logger.error("Portal token generation unavailable: %s", e)
        raise ServiceError("Portal tokens are not configured", status.HTTP_503_SERVICE_UNAVAILABLE)

    expires_at = datetime.utcnow() + timedelta(days=payload.expires_in_days)
    try:
        await db.execute(
            update(PortalAccessToken)
            .where(
                PortalAccessToken.entity_type == payload.entity_type.value,
                PortalAccessToken.entity_id == payload.entity_id,
                PortalAccessToken.is_revoked.is_(False),
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        db.add(
            PortalAccessToken(
                center_id=center_id,
                entity_type=payload.entity_type.value,
                entity_id=payload.entity_id,
                token_hash=portal_tokens.hash_token(token),
                expires_at=expires_at,
                created_by=current_user.id,
                created_ip=ip_address,
            )
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error storing portal token for %s %s", payload.entity_type.value, payload.entity_id)
        raise ServiceError("Failed to generate token", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return PortalTokenGenerateResponse(
        token=token,
        portal_url=portal_tokens.build_portal_url(payload.entity_type, token),
        expires_at=expires_at,
        expires_in_days=payload.expires_in_days,
    )


async def _validate_legacy_token(
    db: AsyncSession,
    token: str,
    entity_type: Optional[PortalEntityType],
) -> PortalTokenValidateResponse:
    for candidate_type, model in ENTITY_MODELS.items():
        if entity_type is not None and entity_type != candidate_type:
            continue
        entity = (
            await db.execute(select(model).where(model.portal_token == token))
        ).scalar_one_or_none()
        if entity:
            return _entity_response(candidate_type, entity, None)
    return _invalid("Invalid or expired token")


async def validate_token(
    db: AsyncSession,
    token: str,
    entity_type: Optional[PortalEntityType] = None,
    ip_address: Optional[str] = None,
) -> PortalTokenValidateResponse:
    """
    Resolve a portal link to its student or teacher.

    Checks run in order: token shape, signature and expiry, expected entity type, the stored
    token record (revoked or expired), then the entity itself (exists in its center, active).
    """
    if portal_tokens.is_legacy_token(token):
        return await _validate_legacy_token(db, token, entity_type)

    if not portal_tokens.is_valid_token_format(token):
        return _invalid("Invalid token format")

    decoded = portal_tokens.verify_portal_token(token)
    if decoded is None:
        return _invalid("Invalid or expired token")

    token_type = PortalEntityType(decoded["type"])
    if entity_type is not None and token_type != entity_type:
        return _invalid("Token type mismatch")

    try:
        entity_id = UUID(decoded["entityId"])
        center_id = UUID(decoded["centerId"])
    except ValueError:
        return _invalid("Invalid or expired token")

    record = (
        await db.execute(
            select(PortalAccessToken)
            .where(PortalAccessToken.token_hash == portal_tokens.hash_token(token))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()

    now = datetime.utcnow()
    if record is None:
        logger.warning("Valid portal token not found in database for %s %s", token_type.value, entity_id)
    else:
        if record.is_revoked:
            return _invalid("Token has been revoked")
        if _naive_utc(record.expires_at) < now:
            return _invalid("Token has expired")
        record_id = record.id
        record.last_used_at = now
        record.last_ip = ip_address
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Could not record portal token use %s", record_id)

    model = ENTITY_MODELS.get(token_type)
    entity = None
    if model is not None:
        entity = (
            await db.execute(
                select(model).where(model.id == entity_id, model.center_id == center_id)
            )
        ).scalar_one_or_none()
    if entity is None:
        return _invalid("Entity not found")

    return _entity_response(token_type, entity, portal_tokens.token_expiration_date(decoded))


async def revoke_tokens(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: PortalTokenRevokeRequest,
) -> PortalTokenRevokeResponse:
    """Revoke every active token of an entity, or a single one when revoke_all is off."""
    stmt = update(PortalAccessToken).where(
        PortalAccessToken.entity_type == payload.entity_type.value,
        PortalAccessToken.entity_id == payload.entity_id,
        PortalAccessToken.center_id == current_user.center_id,
        PortalAccessToken.is_revoked.is_(False),
    )
    if not payload.revoke_all and payload.token_id is not None:
        stmt = stmt.where(PortalAccessToken.id == payload.token_id)

    try:
        result = await db.execute(
            stmt.values(is_revoked=True).execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error revoking portal tokens for %s %s", payload.entity_type.value, payload.entity_id)
        raise ServiceError("Failed to revoke tokens", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return PortalTokenRevokeResponse(revoked_count=result.rowcount or 0)
