"""
Signed access tokens for the student, teacher and parent portals.

Portal users have no login: a center admin hands out a link containing one of these tokens.
Tokens are HS256 JWTs signed with PORTAL_JWT_SECRET, separate from the staff JWT secret.
Only the sha256 hash of a token is ever stored.
"""

import hashlib
import math
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from jose import JWTError, jwt

from centerdesk.core.config import settings
from centerdesk.core.enums import PortalEntityType
from centerdesk.core.exceptions import PortalTokenError

PORTAL_TOKEN_ALGORITHM = "HS256"
MIN_SECRET_LENGTH = 32

_BASE64URL_PART = re.compile(r"^[A-Za-z0-9_-]+$")


def _get_secret() -> str:
    secret = settings.portal_jwt_secret
    if not secret:
        raise PortalTokenError("PORTAL_JWT_SECRET is not configured")
    if len(secret) < MIN_SECRET_LENGTH:
        raise PortalTokenError(f"PORTAL_JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters")
    return secret


def is_portal_tokens_configured() -> bool:
    try:
        _get_secret()
    except PortalTokenError:
        return False
    return True


def generate_portal_token(
    entity_type: PortalEntityType,
    entity_id: UUID,
    center_id: UUID,
    expires_in_days: Optional[int] = None,
) -> str:
    """Sign a portal token for one student, teacher or parent of a center."""
    secret = _get_secret()
    if expires_in_days is None:
        expires_in_days = settings.portal_token_expire_days
    now = datetime.now(timezone.utc)
    claims = {
        "type": PortalEntityType(entity_type).value,
        "entityId": str(entity_id),
        "centerId": str(center_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=expires_in_days)).timestamp()),
        # Keeps tokens issued within the same second distinct
        "jti": generate_token_id(),
    }
    return jwt.encode(claims, secret, algorithm=PORTAL_TOKEN_ALGORITHM)


def verify_portal_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decoded claims of a valid token, or None.

    None covers a bad signature, an expired token, missing claims, an unknown entity type and
    an unconfigured secret alike; callers only need to know the link does not work.
    """
    try:
        payload = jwt.decode(token, _get_secret(), algorithms=[PORTAL_TOKEN_ALGORITHM])
    except (JWTError, PortalTokenError):
        return None

    if not payload.get("type") or not payload.get("entityId") or not payload.get("centerId"):
        return None
    if payload["type"] not in {t.value for t in PortalEntityType}:
        return None
    return payload


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_token_id() -> str:
    return secrets.token_hex(16)


def is_valid_token_format(token: str) -> bool:
    """Cheap header.payload.signature shape check before verifying."""
    parts = token.split(".")
    if len(parts) != 3:
        return False
    return all(_BASE64URL_PART.match(part) for part in parts)


def is_legacy_token(token: str) -> bool:
    """Older portal links carry a bare UUID stored on the student/teacher row."""
    try:
        UUID(token)
    except ValueError:
        return False
    return True


def token_expiration_date(payload: Dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)


def token_remaining_days(payload: Dict[str, Any], now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    remaining = (token_expiration_date(payload) - now).total_seconds()
    return max(0, math.floor(remaining / 86400))


def is_token_expiring_soon(
    payload: Dict[str, Any],
    days_threshold: int = 7,
    now: Optional[datetime] = None,
) -> bool:
    now = now or datetime.now(timezone.utc)
    return token_expiration_date(payload) <= now + timedelta(days=days_threshold)


def build_portal_url(entity_type: PortalEntityType, token: str, base_url: Optional[str] = None) -> str:
    """Parents share one portal page; students and teachers get the token in the path."""
    base = (base_url if base_url is not None else settings.app_url).rstrip("/")
    entity_type = PortalEntityType(entity_type)
    if entity_type == PortalEntityType.parent:
        return f"{base}/parent"
    return f"{base}/{entity_type.value}/{token}"
