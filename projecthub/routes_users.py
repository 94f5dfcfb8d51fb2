"""
projecthub/routes_users.py

User administration within a company.

Security guarantees:
- Admins manage users of their own company only (company from the token)
- The superadmin may act on any company; creation needs an explicit companyId
- Creating a user, or moving one to another role, takes a seat and is
  checked against the plan caps in the same transaction
- Status is not editable here (see the company status toggle)
- The primary admin keeps the admin role, and its email stays in sync with
  the company admin email
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.config import IS_DEV
from projecthub.db import Database, execute, fetch_all, fetch_one, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.errors import Conflict, EmailTaken, NotFound, ValidationFailed
from projecthub.models import UserRole, UserStatus
from projecthub.rbac import encode_permissions
from projecthub.schemas import MessageResponse, UserCreateRequest, UserResponse, UserUpdateRequest, update_values
from projecthub.seats import check_seat_available
from projecthub.security import ensure_email_free, hash_password, public_user
from projecthub.status_cascade import is_primary_admin
from projecthub.tenant import assert_rows_scoped


router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


def _load_user(conn: Connection, principal: Principal, user_id: int) -> Dict[str, Any]:
    """A non-superadmin user visible to the principal, or NotFound."""
    sql = "SELECT * FROM users WHERE id = :id AND role <> :superadmin"
    params: Dict[str, Any] = {"id": user_id, "superadmin": UserRole.superadmin.value}
    if not principal.is_superadmin:
        sql += " AND company_id = :company_id"
        params["company_id"] = principal.company_id
    user = fetch_one(conn, sql, params)
    if not user:
        raise NotFound("User not found")
    return user


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    request: UserCreateRequest,
    principal: Principal = Depends(require_action(Action.USER_CREATE)),
    db: Database = Depends(get_database),
) -> UserResponse:
    """
    Create a user in the caller's company.

    Raises:
        ValidationFailed(400): superadmin did not name a company
        NotFound(404): company does not exist
        Conflict(409): email already registered
        SeatLimitExceeded(403): no free seat for the role
    """
    if principal.is_superadmin:
        if request.company_id is None:
            raise ValidationFailed("companyId is required", details="company_id")
        company_id = request.company_id
    else:
        company_id = principal.company_id

    password_hash = hash_password(request.password)
    now = now_iso()

    try:
        with db.transaction() as conn:
            ensure_email_free(conn, request.email)
            # Locks the company row until commit
            check_seat_available(conn, company_id, request.role)
            user = insert_row(conn, "users", {
                "company_id": company_id,
                "name": request.name,
                "email": request.email,
                "password_hash": password_hash,
                "role": request.role,
                "status": UserStatus.active.value,
                "permissions": encode_permissions(request.permissions),
                "created_at": now,
                "updated_at": now,
            })
    except IntegrityError:
        # Lost a race with a concurrent creation of the same email
        print(f"[USERS] Duplicate email rejected by constraint, company_id={company_id}")
        raise EmailTaken()

    if IS_DEV:
        print(f"[USERS] Created user_id={user['id']} role={user['role']} company_id={company_id}")

    return UserResponse(**public_user(user))


@router.get("", response_model=List[UserResponse])
def list_users(
    company_id: Optional[int] = Query(None, alias="companyId", ge=1),
    principal: Principal = Depends(require_action(Action.USER_LIST)),
    db: Database = Depends(get_database),
) -> List[UserResponse]:
    """Users of the caller's company. The superadmin may filter by companyId."""
    sql = "SELECT * FROM users WHERE role <> :superadmin"
    params: Dict[str, Any] = {"superadmin": UserRole.superadmin.value}

    if not principal.is_superadmin:
        company_id = principal.company_id
    if company_id is not None:
        sql += " AND company_id = :company_id"
        params["company_id"] = company_id

    with db.connect() as conn:
        users = fetch_all(conn, sql + " ORDER BY id", params)

    if not principal.is_superadmin:
        assert_rows_scoped(users, principal.company_id, label="GET /api/users")

    return [UserResponse(**public_user(user)) for user in users]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.USER_READ)),
    db: Database = Depends(get_database),
) -> UserResponse:
    with db.connect() as conn:
        user = _load_user(conn, principal, user_id)
    return UserResponse(**public_user(user))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    request: UserUpdateRequest,
    user_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.USER_UPDATE)),
    db: Database = Depends(get_database),
) -> UserResponse:
    """
    Update name, email, password, role or permissions.

    A role change takes a seat of the new role and is checked like a creation.
    The primary admin keeps the admin role; a new email for the primary admin
    is copied to the company's admin email in the same transaction.

    Raises:
        Conflict(409): email taken, or role change of the primary admin
    """
    changes = update_values(request, required=("name", "email", "password", "role", "permissions"))

    try:
        with db.transaction() as conn:
            user = _load_user(conn, principal, user_id)
            company = fetch_one(conn, "SELECT * FROM companies WHERE id = :id", {"id": user["company_id"]})
            primary = company is not None and is_primary_admin(user, company)

            values: Dict[str, Any] = {}
            if "name" in changes:
                values["name"] = changes["name"]
            if "email" in changes and changes["email"] != user["email"]:
                ensure_email_free(conn, changes["email"], exclude_id=user_id)
                values["email"] = changes["email"]
            if "password" in changes:
                values["password_hash"] = hash_password(changes["password"])
            if "permissions" in changes:
                values["permissions"] = encode_permissions(changes["permissions"])
            if "role" in changes and changes["role"] != user["role"]:
                if primary:
                    raise Conflict("The primary admin's role cannot be changed", details="primary_admin_role")
                check_seat_available(conn, user["company_id"], changes["role"])
                values["role"] = changes["role"]

            if values:
                values["updated_at"] = now_iso()
            user = update_row(conn, "users", user_id, values)

            if primary and "email" in values:
                update_row(conn, "companies", company["id"], {
                    "admin_email": values["email"],
                    "updated_at": values["updated_at"],
                })
                print(f"[USERS] Primary admin email changed for company_id={company['id']}")
    except IntegrityError:
        print(f"[USERS] Duplicate email rejected by constraint, user_id={user_id}")
        raise EmailTaken()

    if IS_DEV:
        print(f"[USERS] Updated user_id={user_id}: {sorted(k for k in values if k != 'password_hash')}")

    return UserResponse(**public_user(user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.USER_DELETE)),
    db: Database = Depends(get_database),
) -> MessageResponse:
    """Delete a user and unassign their tasks."""
    if user_id == principal.user_id:
        raise Conflict("You cannot delete your own account", details="self_delete")

    with db.transaction() as conn:
        user = _load_user(conn, principal, user_id)
        execute(
            conn,
            "UPDATE tasks SET assigned_to = NULL, updated_at = :now "
            "WHERE assigned_to = :user_id AND company_id = :company_id",
            {"now": now_iso(), "user_id": user_id, "company_id": user["company_id"]},
        )
        execute(conn, "DELETE FROM users WHERE id = :id", {"id": user_id})

    print(f"[USERS] Deleted user_id={user_id} from company_id={user['company_id']} "
          f"by user_id={principal.user_id}")
    return MessageResponse(message="User deleted successfully")
