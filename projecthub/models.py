from enum import Enum


# Enums
class UserRole(str, Enum):
    superadmin = "superadmin"
    admin = "admin"
    manager = "manager"
    user = "user"


class UserStatus(str, Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"


class PlanName(str, Enum):
    basic = "BASIC"
    pro = "PRO"
    platinum = "PLATINUM"


class ProjectStatus(str, Enum):
    planned = "PLANNED"
    active = "ACTIVE"
    completed = "COMPLETED"
    on_hold = "ON_HOLD"


class TaskStatus(str, Enum):
    pending = "PENDING"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"


class ResourceStatus(str, Enum):
    active = "ACTIVE"
    deleted = "DELETED"


class EntityType(str, Enum):
    """Entity types that write activity log entries."""
    risk = "RISK"
    budget = "BUDGET"


# Soft-delete marker shared by risks and resources
DELETED_STATUS = "DELETED"

# Roles that can be assigned through the API (superadmin only via bootstrap)
ASSIGNABLE_ROLES = (UserRole.admin.value, UserRole.manager.value, UserRole.user.value)
