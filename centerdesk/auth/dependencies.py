from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from centerdesk.auth.models import User
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.config import settings
from centerdesk.db.session import get_db


# Staff tokens are issued by the account service; this API only verifies them
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated staff user from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    if not user_id_str:
        raise credentials_exception

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or user.status != "active":
        raise credentials_exception

    return CurrentUser(
        id=user.id,
        center_id=user.center_id,
        role=user.role,
        full_name=user.full_name,
    )


async def require_center(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: the caller must belong to a center."""
    if current_user.center_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User not associated with a center",
        )
    return current_user


def client_ip(forwarded_for: Optional[str], real_ip: Optional[str]) -> Optional[str]:
    """First address of X-Forwarded-For, else X-Real-IP."""
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or None
    return real_ip or None
