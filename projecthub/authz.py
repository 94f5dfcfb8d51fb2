"""
projecthub/authz.py

Authorization policy: single source of truth for "may this principal perform
this action?".

Every route consults this module (directly or through
dependencies.require_action); no handler carries its own role checks.

Rules combine the role hierarchy with per-user permission strings:
- superadmin passes every rule
- admin passes permission checks inside its own company
- manager/user need one of the rule's permission strings
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from projecthub.auth_context import Principal
from projecthub.errors import Forbidden
from projecthub.rbac import Permission, Role


# ============================================================================
# Actions
# ============================================================================

class Action(str, Enum):
    """Actions the policy decides on."""

    COMPANY_CREATE = "company:create"
    COMPANY_LIST = "company:list"
    COMPANY_UPDATE = "company:update"
    COMPANY_DELETE = "company:delete"
    COMPANY_PLAN_READ = "company:plan:read"
    USER_STATUS_TOGGLE = "user:status:toggle"

    USER_CREATE = "user:create"
    USER_LIST = "user:list"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"

    PROJECT_CREATE = "project:create"
    PROJECT_LIST = "project:list"
    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"

    TASK_CREATE = "task:create"
    TASK_LIST = "task:list"
    TASK_READ = "task:read"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"

    RESOURCE_CREATE = "resource:create"
    RESOURCE_LIST = "resource:list"
    RESOURCE_READ = "resource:read"
    RESOURCE_UPDATE = "resource:update"
    RESOURCE_DELETE = "resource:delete"

    RISK_CREATE = "risk:create"
    RISK_LIST = "risk:list"
    RISK_READ = "risk:read"
    RISK_UPDATE = "risk:update"
    RISK_DELETE = "risk:delete"

    BUDGET_CREATE = "budget:create"
    BUDGET_LIST = "budget:list"
    BUDGET_READ = "budget:read"
    BUDGET_UPDATE = "budget:update"
    BUDGET_DELETE = "budget:delete"

    ACTIVITY_LIST = "activity:list"


@dataclass(frozen=True)
class Rule:
    """
    roles: roles granted outright (superadmin is always granted)
    permissions: any one of these grants the action to other roles
    """
    roles: FrozenSet[str]
    permissions: Tuple[str, ...] = ()


def _rule(*roles: str, permissions: Tuple[str, ...] = ()) -> Rule:
    return Rule(roles=frozenset(roles), permissions=permissions)


SUPERADMIN_ONLY = _rule()
ADMIN_ONLY = _rule(Role.ADMIN)
ANY_MEMBER = _rule(Role.ADMIN, Role.MANAGER, Role.USER)

ACTION_RULES: Dict[Action, Rule] = {
    # Company management
    Action.COMPANY_CREATE: SUPERADMIN_ONLY,
    Action.COMPANY_LIST: SUPERADMIN_ONLY,
    Action.COMPANY_UPDATE: SUPERADMIN_ONLY,
    Action.COMPANY_DELETE: SUPERADMIN_ONLY,
    Action.USER_STATUS_TOGGLE: SUPERADMIN_ONLY,
    Action.COMPANY_PLAN_READ: ADMIN_ONLY,

    # User administration (create is additionally seat-limited)
    Action.USER_CREATE: ADMIN_ONLY,
    Action.USER_LIST: ADMIN_ONLY,
    Action.USER_READ: ADMIN_ONLY,
    Action.USER_UPDATE: ADMIN_ONLY,
    Action.USER_DELETE: ADMIN_ONLY,

    # Projects (lists are narrowed by projecthub.tenant, not denied)
    Action.PROJECT_CREATE: _rule(Role.ADMIN, permissions=(Permission.CREATE_PROJECTS,)),
    Action.PROJECT_UPDATE: _rule(Role.ADMIN, permissions=(Permission.EDIT_PROJECTS,)),
    Action.PROJECT_DELETE: _rule(Role.ADMIN, permissions=(Permission.DELETE_PROJECTS,)),
    Action.PROJECT_LIST: ANY_MEMBER,
    Action.PROJECT_READ: ANY_MEMBER,

    # Tasks: delete has no permission escape hatch
    Action.TASK_CREATE: _rule(Role.ADMIN, permissions=(Permission.ASSIGN_TASKS,)),
    Action.TASK_UPDATE: _rule(Role.ADMIN, permissions=(Permission.ASSIGN_TASKS,)),
    Action.TASK_DELETE: ADMIN_ONLY,
    Action.TASK_LIST: ANY_MEMBER,
    Action.TASK_READ: ANY_MEMBER,

    # Resources
    Action.RESOURCE_LIST: _rule(
        Role.ADMIN, permissions=(Permission.VIEW_RESOURCES, Permission.MANAGE_TEAM_RESOURCES)
    ),
    Action.RESOURCE_READ: _rule(
        Role.ADMIN, permissions=(Permission.VIEW_RESOURCES, Permission.MANAGE_TEAM_RESOURCES)
    ),
    Action.RESOURCE_CREATE: _rule(Role.ADMIN, permissions=(Permission.MANAGE_TEAM_RESOURCES,)),
    Action.RESOURCE_UPDATE: _rule(Role.ADMIN, permissions=(Permission.MANAGE_TEAM_RESOURCES,)),
    Action.RESOURCE_DELETE: _rule(Role.ADMIN, permissions=(Permission.MANAGE_TEAM_RESOURCES,)),

    # Risks
    Action.RISK_CREATE: _rule(Role.ADMIN, permissions=(Permission.CREATE_RISKS,)),
    Action.RISK_UPDATE: _rule(Role.ADMIN, permissions=(Permission.EDIT_RISKS,)),
    Action.RISK_DELETE: _rule(Role.ADMIN, permissions=(Permission.DELETE_RISKS,)),
    Action.RISK_LIST: ANY_MEMBER,
    Action.RISK_READ: ANY_MEMBER,

    # Budgets
    Action.BUDGET_CREATE: _rule(Role.ADMIN, permissions=(Permission.CREATE_BUDGETS,)),
    Action.BUDGET_UPDATE: _rule(Role.ADMIN, permissions=(Permission.EDIT_BUDGETS,)),
    Action.BUDGET_DELETE: _rule(Role.ADMIN, permissions=(Permission.DELETE_BUDGETS,)),
    Action.BUDGET_LIST: ANY_MEMBER,
    Action.BUDGET_READ: ANY_MEMBER,

    # Activity log
    Action.ACTIVITY_LIST: _rule(Role.ADMIN, Role.MANAGER),
}


# ============================================================================
# Decisions
# ============================================================================

@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = "allowed"
REASON_SUPERADMIN_REQUIRED = "superadmin_required"
REASON_ROLE_NOT_ALLOWED = "role_not_allowed"
REASON_CROSS_TENANT = "cross_tenant"
REASON_UNKNOWN_ACTION = "unknown_action"


def missing_permission_reason(permission: str) -> str:
    return f"missing_permission:{permission}"


def can(principal: Principal, action: Action, target_company_id: Optional[int] = None) -> Decision:
    """
    Decide whether `principal` may perform `action`.

    Args:
        principal: Verified request principal
        action: Action being attempted
        target_company_id: Company that owns the target, when the caller names
            one explicitly (e.g. a company id in the path)

    Returns:
        Decision with a stable reason string
    """
    rule = ACTION_RULES.get(action)
    if rule is None:
        return Decision(False, REASON_UNKNOWN_ACTION)

    if principal.is_superadmin:
        return Decision(True, ALLOWED)

    if target_company_id is not None and principal.company_id != target_company_id:
        return Decision(False, REASON_CROSS_TENANT)

    if principal.role in rule.roles and principal.role == Role.ADMIN:
        return Decision(True, ALLOWED)

    # Non-admin roles must be listed on the rule AND, when the rule names
    # permissions, hold one of them.
    if rule.permissions:
        if any(principal.has_permission(p) for p in rule.permissions):
            return Decision(True, ALLOWED)
        if not rule.roles:
            return Decision(False, REASON_SUPERADMIN_REQUIRED)
        return Decision(False, missing_permission_reason(rule.permissions[0]))

    if principal.role in rule.roles:
        return Decision(True, ALLOWED)

    if not rule.roles:
        return Decision(False, REASON_SUPERADMIN_REQUIRED)
    return Decision(False, REASON_ROLE_NOT_ALLOWED)


def require(principal: Principal, action: Action, target_company_id: Optional[int] = None) -> None:
    """
    Enforce `can`; raise Forbidden carrying the reason on denial.

    Raises:
        Forbidden(403): action not permitted
    """
    decision = can(principal, action, target_company_id)
    if not decision.allowed:
        print(f"[AUTHZ] Denied: user_id={principal.user_id}, role={principal.role}, "
              f"action={action.value}, reason={decision.reason}")
        raise Forbidden(_denial_message(action, decision.reason), details=decision.reason)


def _denial_message(action: Action, reason: str) -> str:
    if reason == REASON_SUPERADMIN_REQUIRED:
        return "Only superadmin can perform this action"
    if reason == REASON_CROSS_TENANT:
        return "Access to another company is not allowed"
    if reason.startswith("missing_permission:"):
        return f"Permission '{reason.split(':', 1)[1]}' required"
    return "Insufficient permissions"


# ============================================================================
# List narrowing helpers (used by projecthub.tenant)
# ============================================================================

def sees_all_projects(principal: Principal) -> bool:
    """Admin and manager see every company project; user only its own."""
    return principal.role in (Role.SUPERADMIN, Role.ADMIN, Role.MANAGER)


def sees_all_tasks(principal: Principal) -> bool:
    return (
        principal.role in (Role.SUPERADMIN, Role.ADMIN)
        or principal.has_permission(Permission.ASSIGN_TASKS)
    )


def sees_all_resources(principal: Principal) -> bool:
    return principal.role in (Role.SUPERADMIN, Role.ADMIN)
