import logging

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole

logger = logging.getLogger(__name__)


def require_roles(*allowed_roles: UserRole):
    """
    Dependency factory to gate a route on the caller's role.

    Example:
        Depends(require_roles(UserRole.SYSTEM_ADMIN, UserRole.ASSISTANT_MANAGER))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            logger.warning(
                "Forbidden: role %s not in %s",
                current_user.role.value,
                [r.value for r in allowed_roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden: You do not have permission to access this resource",
            )
        return current_user

    return _checker


SCHEDULE_MANAGERS = (UserRole.SYSTEM_ADMIN, UserRole.ASSISTANT_MANAGER)
SCHEDULE_VIEWERS = (
    UserRole.SYSTEM_ADMIN,
    UserRole.ASSISTANT_MANAGER,
    UserRole.ADMIN_SUPERVISOR,
    UserRole.DEPARTMENT_HEAD,
    UserRole.TEACHER,
)
SWAP_PARTICIPANTS = (UserRole.SYSTEM_ADMIN, UserRole.ASSISTANT_MANAGER, UserRole.DEPARTMENT_HEAD)
