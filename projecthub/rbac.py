"""
projecthub/rbac.py

Roles, the role hierarchy and permission-string decoding.

Roles: superadmin > admin > manager > user.
Permissions are free-form strings ("Create Projects", "Assign Tasks", ...)
granted per user independently of the role. They are compared by exact,
case-sensitive membership.

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

import json
from typing import Any, Tuple


# ============================================================================
# Role Definitions
# ============================================================================

class Role:
    """Role constants for RBAC."""
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


ROLE_HIERARCHY = {
    "superadmin": 4,
    "admin": 3,
    "manager": 2,
    "user": 1,
}


def role_level(role: str) -> int:
    """Numeric level for a role (higher = more privileged), 0 if unknown."""
    return ROLE_HIERARCHY.get(role.lower() if role else "", 0)


def role_at_least(user_role: str, required_role: str) -> bool:
    """
    Check if user_role meets or exceeds required_role in hierarchy.

    Example:
        role_at_least("admin", "manager") -> True
        role_at_least("user", "manager") -> False
    """
    return role_level(user_role) >= role_level(required_role)


# ============================================================================
# Permission Strings
# ============================================================================

class Permission:
    """Permission strings understood by the authorization policy."""
    CREATE_PROJECTS = "Create Projects"
    EDIT_PROJECTS = "Edit Projects"
    DELETE_PROJECTS = "Delete Projects"

    ASSIGN_TASKS = "Assign Tasks"

    VIEW_RESOURCES = "View Resources"
    MANAGE_TEAM_RESOURCES = "Manage Team Resources"

    CREATE_RISKS = "Create Risks"
    EDIT_RISKS = "Edit Risks"
    DELETE_RISKS = "Delete Risks"

    CREATE_BUDGETS = "Create Budgets"
    EDIT_BUDGETS = "Edit Budgets"
    DELETE_BUDGETS = "Delete Budgets"


# Decoding outcome for anything that is not a clean list of strings.
NO_PERMISSIONS: Tuple[str, ...] = ()


def decode_permissions(raw: Any) -> Tuple[str, ...]:
    """
    Decode a stored permission field into the canonical ordered tuple.

    Accepts an already-decoded list/tuple of strings or a JSON-encoded list of
    strings. None or an empty string means no permissions. Any other shape
    (invalid JSON, a non-list, a non-string item) decodes to NO_PERMISSIONS:
    a broken field never grants anything.
    """
    if raw is None:
        return NO_PERMISSIONS

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        if not raw.strip():
            return NO_PERMISSIONS
        try:
            raw = json.loads(raw)
        except ValueError:
            print("[RBAC] Undecodable permission field - treating as no permissions")
            return NO_PERMISSIONS

    if not isinstance(raw, (list, tuple)):
        print(f"[RBAC] Permission field is {type(raw).__name__}, not a list - treating as no permissions")
        return NO_PERMISSIONS

    if not all(isinstance(item, str) for item in raw):
        print("[RBAC] Permission list contains non-string items - treating as no permissions")
        return NO_PERMISSIONS

    # Keep first occurrence order, drop duplicates
    return tuple(dict.fromkeys(raw))


def encode_permissions(permissions: Any) -> str:
    """Encode permissions for storage (always a JSON list of strings)."""
    return json.dumps(list(decode_permissions(permissions)))


def has_permission(permissions: Tuple[str, ...], permission: str) -> bool:
    return permission in permissions
