"""
projecthub/routes_companies.py

Company management (superadmin) and the plan view for company admins.

Security guarantees:
- Create/list/update/delete and the user status toggle are superadmin only
- An admin reads the plan of its own company only; any other id is 404
- Creating a company also creates its primary admin in the same transaction
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.exc import IntegrityError

from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.config import IS_DEV
from projecthub.db import Database, execute, fetch_all, fetch_one, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.errors import EmailTaken, NotFound
from projecthub.models import UserRole, UserStatus
from projecthub.schemas import (
    CompanyCreateRequest,
    CompanyCreateResponse,
    CompanyPlanResponse,
    CompanyResponse,
    CompanyUpdateRequest,
    CompanyWithUsersResponse,
    MessageResponse,
    StatusToggleRequest,
    StatusToggleResponse,
)
from projecthub.seats import caps_for_company, check_seat_available, effective_caps, normalize_plan, seat_usage
from projecthub.security import ensure_email_free, hash_password, public_user
from projecthub.status_cascade import toggle_user_status


router = APIRouter(
    prefix="/api/companies",
    tags=["companies"],
)

# Child tables removed with their company, leaves first
OWNED_TABLES = ("activity_logs", "budgets", "risks", "resources", "tasks", "projects", "users")


@router.post("", response_model=CompanyCreateResponse, status_code=201)
def create_company(
    request: CompanyCreateRequest,
    principal: Principal = Depends(require_action(Action.COMPANY_CREATE)),
    db: Database = Depends(get_database),
) -> CompanyCreateResponse:
    """
    Create a company and its primary admin.

    Requested seat caps are clamped to the plan ceilings; missing or
    non-numeric values take the ceiling.

    Raises:
        ValidationFailed(400): invalid plan or password
        Conflict(409): admin email already registered
    """
    plan = normalize_plan(request.plan)
    caps = effective_caps(plan, request.max_admins, request.max_managers, request.max_users)
    password_hash = hash_password(request.admin_password)
    now = now_iso()

    try:
        with db.transaction() as conn:
            ensure_email_free(conn, request.admin_email)

            company = insert_row(conn, "companies", {
                "name": request.company_name,
                "plan": plan,
                "admin_name": request.admin_name,
                "admin_email": request.admin_email,
                "max_admins": caps.max_admins,
                "max_managers": caps.max_managers,
                "max_users": caps.max_users,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            })

            # The primary admin takes the first admin seat
            check_seat_available(conn, company["id"], UserRole.admin.value)
            admin = insert_row(conn, "users", {
                "company_id": company["id"],
                "name": request.admin_name,
                "email": request.admin_email,
                "password_hash": password_hash,
                "role": UserRole.admin.value,
                "status": UserStatus.active.value,
                "permissions": "[]",
                "created_at": now,
                "updated_at": now,
            })
    except IntegrityError:
        print("[COMPANIES] Duplicate admin email rejected by constraint")
        raise EmailTaken()

    print(f"[COMPANIES] Created company_id={company['id']} plan={plan} "
          f"by user_id={principal.user_id}")

    return CompanyCreateResponse(company=company, admin=public_user(admin))


@router.get("", response_model=List[CompanyWithUsersResponse])
def list_companies(
    principal: Principal = Depends(require_action(Action.COMPANY_LIST)),
    db: Database = Depends(get_database),
) -> List[CompanyWithUsersResponse]:
    with db.connect() as conn:
        companies = fetch_all(conn, "SELECT * FROM companies ORDER BY id")
        users = fetch_all(conn, "SELECT * FROM users WHERE company_id IS NOT NULL ORDER BY id")

    by_company = {}
    for user in users:
        by_company.setdefault(user["company_id"], []).append(public_user(user))

    return [
        CompanyWithUsersResponse(**company, users=by_company.get(company["id"], []))
        for company in companies
    ]


@router.get("/plan/{company_id}", response_model=CompanyPlanResponse)
def get_company_plan(
    company_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.COMPANY_PLAN_READ)),
    db: Database = Depends(get_database),
) -> CompanyPlanResponse:
    """Plan, seat caps and seats in use. Admins only see their own company."""
    if not principal.is_superadmin and principal.company_id != company_id:
        raise NotFound("Company not found")

    with db.connect() as conn:
        company = fetch_one(conn, "SELECT * FROM companies WHERE id = :id", {"id": company_id})
        if not company:
            raise NotFound("Company not found")
        usage = seat_usage(conn, company_id)

    return CompanyPlanResponse(
        id=company["id"],
        name=company["name"],
        plan=company["plan"],
        max_admins=company["max_admins"],
        max_managers=company["max_managers"],
        max_users=company["max_users"],
        seats_used=usage,
    )


@router.patch("/{company_id}", response_model=CompanyResponse)
def update_company(
    request: CompanyUpdateRequest,
    company_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.COMPANY_UPDATE)),
    db: Database = Depends(get_database),
) -> CompanyResponse:
    """
    Update name, plan, seat caps or the active flag.

    Caps are re-derived whenever the plan or a cap is sent. Lowering a cap
    never removes existing users; it only blocks new ones.
    """
    fields = request.model_fields_set

    with db.transaction() as conn:
        company = fetch_one(conn, "SELECT * FROM companies WHERE id = :id", {"id": company_id})
        if not company:
            raise NotFound("Company not found")

        values = {}
        if "company_name" in fields and request.company_name is not None:
            values["name"] = request.company_name
        if "is_active" in fields and request.is_active is not None:
            values["is_active"] = request.is_active

        cap_fields = {"max_admins", "max_managers", "max_users"}
        if "plan" in fields and request.plan is not None:
            # A new plan starts from its ceilings unless caps are sent with it
            plan = normalize_plan(request.plan)
            caps = effective_caps(plan, request.max_admins, request.max_managers, request.max_users)
            values["plan"] = plan
        elif fields & cap_fields:
            current = caps_for_company(company)
            caps = effective_caps(
                company["plan"],
                request.max_admins if "max_admins" in fields else current.max_admins,
                request.max_managers if "max_managers" in fields else current.max_managers,
                request.max_users if "max_users" in fields else current.max_users,
            )
        else:
            caps = None

        if caps is not None:
            values.update(
                max_admins=caps.max_admins,
                max_managers=caps.max_managers,
                max_users=caps.max_users,
            )

        if values:
            values["updated_at"] = now_iso()
        company = update_row(conn, "companies", company_id, values)

    if IS_DEV:
        print(f"[COMPANIES] Updated company_id={company_id}: {sorted(values)}")

    return CompanyResponse(**company)


@router.delete("/{company_id}", response_model=MessageResponse)
def delete_company(
    company_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.COMPANY_DELETE)),
    db: Database = Depends(get_database),
) -> MessageResponse:
    """Delete the company and every row it owns, all or nothing."""
    with db.transaction() as conn:
        if not fetch_one(conn, "SELECT id FROM companies WHERE id = :id", {"id": company_id}):
            raise NotFound("Company not found")
        for table in OWNED_TABLES:
            execute(conn, f"DELETE FROM {table} WHERE company_id = :company_id", {"company_id": company_id})
        execute(conn, "DELETE FROM companies WHERE id = :id", {"id": company_id})

    print(f"[COMPANIES] Deleted company_id={company_id} by user_id={principal.user_id}")
    return MessageResponse(message="Company deleted successfully")


@router.put("/{company_id}/user/{user_id}", response_model=StatusToggleResponse)
def set_user_status(
    request: StatusToggleRequest,
    company_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.USER_STATUS_TOGGLE)),
    db: Database = Depends(get_database),
) -> StatusToggleResponse:
    """
    Set a user ACTIVE/INACTIVE. For the company's primary admin the status
    is applied to every user of the company.
    """
    result = toggle_user_status(db, company_id, user_id, request.status)
    return StatusToggleResponse(
        user=result["user"],
        is_primary_admin=result["isPrimaryAdmin"],
        cascaded=result["cascaded"],
    )
