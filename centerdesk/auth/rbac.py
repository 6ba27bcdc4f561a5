from fastapi import Depends, HTTPException, status

from centerdesk.auth.dependencies import get_current_user, require_center
from centerdesk.auth.schemas import CurrentUser
from centerdesk.core.enums import UserRole


async def require_super_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require the platform super admin role. Used for cross-center views (e.g. all audit logs)."""
    if current_user.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a super admin can perform this action",
        )
    return current_user


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting an endpoint to center users holding one of `roles`.
    Super admins attached to a center always pass.

    Example:
        Depends(require_roles(UserRole.CENTER_ADMIN, UserRole.ADMIN))
    """
    allowed = {r.value for r in roles} | {UserRole.SUPER_ADMIN.value}

    async def _checker(current_user: CurrentUser = Depends(require_center)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker
