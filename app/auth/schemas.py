from typing import Optional

from pydantic import BaseModel

from app.core.enums import UserRole


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for authorization checks.
    department_id is resolved once per request (direct assignment, else headship).
    """

    id: int
    role: UserRole
    department_id: Optional[int] = None
