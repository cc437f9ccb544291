from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.models import Department


async def department_of(db: AsyncSession, user: Optional[User]) -> Optional[int]:
    """
    Department a user belongs to.
    Direct assignment (users.department_id) wins; otherwise the department the user heads.
    Returns None for users with neither (admins, parents, unassigned teachers).
    """
    if user is None:
        return None
    if user.department_id is not None:
        return user.department_id
    result = await db.execute(
        select(Department.id).where(Department.head_user_id == user.id).limit(1)
    )
    return result.scalar_one_or_none()


async def department_of_user_id(db: AsyncSession, user_id: Optional[int]) -> Optional[int]:
    if user_id is None:
        return None
    return await department_of(db, await db.get(User, user_id))


def department_expr(user_entity):
    """SQL counterpart of department_of() for a (possibly aliased) User entity in a query."""
    headed = (
        select(Department.id)
        .where(Department.head_user_id == user_entity.id)
        .limit(1)
        .scalar_subquery()
    )
    return func.coalesce(user_entity.department_id, headed)
