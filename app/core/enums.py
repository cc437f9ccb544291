from enum import Enum


class UserRole(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    ASSISTANT_MANAGER = "assistant_manager"
    ADMIN_SUPERVISOR = "admin_supervisor"
    DEPARTMENT_HEAD = "department_head"
    TEACHER = "teacher"
    PARENT = "parent"


# Roles with school-wide override authority over schedules and substitutions
ADMIN_ROLES = (UserRole.SYSTEM_ADMIN, UserRole.ASSISTANT_MANAGER)


class SwapRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED_BY_HEAD1 = "approved_by_head1"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubstitutionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
