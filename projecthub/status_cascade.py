# projecthub/status_cascade.py
# Cascading user status: toggling a company's primary admin toggles everyone

from __future__ import annotations

from typing import Any, Dict

from projecthub.config import IS_DEV
from projecthub.db import Database, execute, fetch_one, now_iso
from projecthub.errors import NotFound, ValidationFailed
from projecthub.models import UserRole, UserStatus
from projecthub.security import public_user

VALID_STATUSES = (UserStatus.active.value, UserStatus.inactive.value)


def is_primary_admin(user: Dict[str, Any], company: Dict[str, Any]) -> bool:
    """The admin whose email is the company's admin email."""
    return (
        user["role"] == UserRole.admin.value
        and (user["email"] or "").lower() == (company["admin_email"] or "").lower()
    )


def toggle_user_status(db: Database, company_id: int, user_id: int, status: str) -> Dict[str, Any]:
    """
    Set a user's status; for the primary admin, apply it to the whole company.

    The target update and the cascade run in one transaction owned here, so a
    failure part-way leaves every status unchanged.

    Returns:
        {"user": <public user>, "isPrimaryAdmin": bool, "cascaded": <other users updated>}

    Raises:
        ValidationFailed: status not ACTIVE/INACTIVE
        NotFound: company missing, or user missing / in another company
    """
    if status not in VALID_STATUSES:
        raise ValidationFailed("Status must be ACTIVE or INACTIVE")

    with db.transaction() as conn:
        company = fetch_one(
            conn,
            "SELECT id, admin_email FROM companies WHERE id = :id",
            {"id": company_id},
        )
        if not company:
            raise NotFound("Company not found")

        user = fetch_one(
            conn,
            "SELECT * FROM users WHERE id = :id AND company_id = :company_id",
            {"id": user_id, "company_id": company_id},
        )
        if not user:
            raise NotFound("User not found")

        now = now_iso()
        execute(
            conn,
            "UPDATE users SET status = :status, updated_at = :now WHERE id = :id",
            {"status": status, "now": now, "id": user_id},
        )
        user["status"] = status
        user["updated_at"] = now

        primary = is_primary_admin(user, company)
        cascaded = 0
        if primary:
            cascaded = execute(
                conn,
                "UPDATE users SET status = :status, updated_at = :now "
                "WHERE company_id = :company_id AND id <> :id",
                {"status": status, "now": now, "company_id": company_id, "id": user_id},
            )
            print(f"[STATUS] Primary admin of company_id={company_id} set {status}; "
                  f"cascaded to {cascaded} user(s)")
        elif IS_DEV:
            print(f"[STATUS] user_id={user_id} in company_id={company_id} set {status}")

    return {"user": public_user(user), "isPrimaryAdmin": primary, "cascaded": cascaded}
