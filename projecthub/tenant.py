"""
projecthub/tenant.py

Tenant guardrails.

Every company-owned query goes through these helpers. A row of another
company is reported exactly like a missing row, so callers can never probe
for the existence of foreign ids.

- scope_for / scoped_where: the WHERE predicate for a principal
- fetch_scoped: single-row lookup that raises NotFound
- require_project_in_company / require_user_in_company: write-time checks on
  foreign keys
- assert_rows_scoped: post-query check (DEV warns, STAGING/PROD fail fast)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.engine import Connection

from projecthub import config
from projecthub.auth_context import Principal
from projecthub.authz import sees_all_projects, sees_all_resources, sees_all_tasks
from projecthub.db import fetch_one
from projecthub.errors import CrossTenantReference, Forbidden, NotFound, ProjectHubError
from projecthub.models import DELETED_STATUS


@dataclass(frozen=True)
class Entity:
    """A company-owned table."""
    table: str
    label: str
    soft_deleted: bool = False


PROJECTS = Entity("projects", "Project")
TASKS = Entity("tasks", "Task")
RESOURCES = Entity("resources", "Resource", soft_deleted=True)
RISKS = Entity("risks", "Risk", soft_deleted=True)
BUDGETS = Entity("budgets", "Budget")
USERS = Entity("users", "User")

ENTITIES = {e.table: e for e in (PROJECTS, TASKS, RESOURCES, RISKS, BUDGETS, USERS)}


@dataclass(frozen=True)
class TenantScope:
    """
    Immutable query scope derived from a principal.

    self_only narrows the rows further to those tied to the principal
    through a task assignment.
    """
    company_id: int
    user_id: int
    self_only: bool = False

    def __post_init__(self):
        if not self.company_id or self.company_id < 1:
            raise ValueError(f"Invalid company_id: {self.company_id}")


def require_company_id(principal: Principal) -> int:
    """Company context of the principal, or Forbidden when there is none."""
    if principal.company_id is None:
        print(f"[TENANT] No company context for user_id={principal.user_id}, role={principal.role}")
        raise Forbidden("A company context is required for this operation",
                        details="tenant_context_required")
    return principal.company_id


def scope_for(principal: Principal, entity: Entity) -> TenantScope:
    company_id = require_company_id(principal)

    if entity is PROJECTS:
        self_only = not sees_all_projects(principal)
    elif entity is TASKS:
        self_only = not sees_all_tasks(principal)
    elif entity is RESOURCES:
        self_only = not sees_all_resources(principal)
    else:
        self_only = False

    return TenantScope(company_id=company_id, user_id=principal.user_id, self_only=self_only)


def company_scope(principal: Principal) -> TenantScope:
    """Whole-company scope, used by writes the policy already allowed."""
    return TenantScope(company_id=require_company_id(principal), user_id=principal.user_id)


def scoped_where(scope: TenantScope, entity: Entity, alias: str = "") -> Tuple[str, Dict[str, Any]]:
    """
    Build the tenant predicate for `entity`.

    Returns:
        (sql, params) where sql is safe to join with AND
    """
    a = f"{alias}." if alias else ""
    clauses = [f"{a}company_id = :scope_company_id"]
    params: Dict[str, Any] = {"scope_company_id": scope.company_id}

    if entity.soft_deleted:
        clauses.append(f"{a}status <> '{DELETED_STATUS}'")

    if scope.self_only:
        params["scope_user_id"] = scope.user_id
        if entity is TASKS:
            clauses.append(f"{a}assigned_to = :scope_user_id")
        elif entity is PROJECTS:
            clauses.append(
                "EXISTS (SELECT 1 FROM tasks st WHERE st.project_id = "
                f"{a}id AND st.company_id = :scope_company_id AND st.assigned_to = :scope_user_id)"
            )
        elif entity is RESOURCES:
            clauses.append(
                "EXISTS (SELECT 1 FROM tasks st WHERE st.project_id = "
                f"{a}project_id AND st.company_id = :scope_company_id AND st.assigned_to = :scope_user_id)"
            )

    return " AND ".join(clauses), params


def fetch_scoped(conn: Connection, entity: Entity, row_id: int, scope: TenantScope) -> Dict[str, Any]:
    """
    Load one row visible to `scope`.

    Raises:
        NotFound: absent, foreign, soft-deleted or outside the self-scope
    """
    where, params = scoped_where(scope, entity)
    params["row_id"] = row_id
    row = fetch_one(conn, f"SELECT * FROM {entity.table} WHERE id = :row_id AND {where}", params)
    if row is None:
        raise NotFound(f"{entity.label} not found")
    assert_row_scoped(row, scope.company_id, label=f"{entity.table}:{row_id}")
    return row


# ---------------------------------------------------------
# Foreign key checks (write time)
# ---------------------------------------------------------
def require_project_in_company(conn: Connection, project_id: Any, company_id: int) -> Dict[str, Any]:
    project = None
    if project_id is not None:
        project = fetch_one(
            conn,
            "SELECT id, company_id, name FROM projects WHERE id = :id AND company_id = :company_id",
            {"id": project_id, "company_id": company_id},
        )
    if project is None:
        print(f"[TENANT] Rejected project reference {project_id} for company_id={company_id}")
        raise CrossTenantReference("Project not found in your company", details="project_id")
    return project


def require_user_in_company(conn: Connection, user_id: Any, company_id: int) -> Dict[str, Any]:
    user = None
    if user_id is not None:
        user = fetch_one(
            conn,
            "SELECT id, company_id, role FROM users WHERE id = :id AND company_id = :company_id",
            {"id": user_id, "company_id": company_id},
        )
    if user is None:
        print(f"[TENANT] Rejected user reference {user_id} for company_id={company_id}")
        raise CrossTenantReference("Assigned user not found in your company", details="assigned_to")
    return user


# ---------------------------------------------------------
# Post-query guardrails
# ---------------------------------------------------------
def _isolation_violation(label: str, detail: str) -> None:
    error_msg = f"[TENANT] Tenant isolation violation{f' in {label}' if label else ''}"
    if config.IS_DEV:
        print(f"{error_msg}: {detail} (DEV warning)")
        return
    print(f"{error_msg}: {detail} (PRODUCTION - failing fast)")
    raise ProjectHubError("Tenant isolation violation detected - this is a server error")


def assert_rows_scoped(rows: List[Mapping[str, Any]], company_id: int, label: str = "") -> None:
    """
    Check that every returned row belongs to `company_id`.

    Raises:
        ProjectHubError(500): mismatch outside DEV
        RuntimeError: company_id missing from the SELECT (a query bug)
    """
    if not rows:
        return

    mismatches = []
    for i, row in enumerate(rows):
        if "company_id" not in row:
            msg = f"[TENANT] Query missing company_id in SELECT for {label or 'unknown endpoint'}"
            print(f"ERROR: {msg} (row {i})")
            raise RuntimeError(msg)
        if row["company_id"] != company_id:
            mismatches.append({"index": i, "expected": company_id, "found": row["company_id"]})

    if mismatches:
        _isolation_violation(label, f"found {len(mismatches)} row(s) with mismatched company_id {mismatches[:3]}")


def assert_row_scoped(row: Optional[Mapping[str, Any]], company_id: int, label: str = "") -> None:
    if row is None:
        return
    found = row.get("company_id")
    if found is not None and found != company_id:
        _isolation_violation(label, f"expected company_id={company_id}, found={found}")
