"""
projecthub/seats.py

Plan-based seat limits.

Each company has a per-role cap on users (admins, managers, users). The cap
is what the company asked for, clamped to its plan's ceiling. Seat checks run
inside the caller's transaction, after locking the company row, so two
concurrent creations cannot both take the last seat.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.engine import Connection

from projecthub.config import IS_DEV
from projecthub.db import execute, fetch_count, fetch_one
from projecthub.errors import NotFound, SeatLimitExceeded, ValidationFailed
from projecthub.models import ASSIGNABLE_ROLES, PlanName, UserRole


@dataclass(frozen=True)
class SeatCaps:
    max_admins: int
    max_managers: int
    max_users: int

    def for_role(self, role: str) -> int:
        if role == UserRole.admin.value:
            return self.max_admins
        if role == UserRole.manager.value:
            return self.max_managers
        if role == UserRole.user.value:
            return self.max_users
        raise ValidationFailed(f"Role '{role}' does not occupy a seat")


PLAN_SEAT_LIMITS: Dict[str, SeatCaps] = {
    PlanName.basic.value: SeatCaps(max_admins=2, max_managers=5, max_users=15),
    PlanName.pro.value: SeatCaps(max_admins=5, max_managers=8, max_users=20),
    PlanName.platinum.value: SeatCaps(max_admins=7, max_managers=10, max_users=25),
}


def normalize_plan(plan: Optional[str]) -> str:
    """Upper-case plan name, BASIC when absent."""
    selected = (plan or PlanName.basic.value).strip().upper()
    if selected not in PLAN_SEAT_LIMITS:
        raise ValidationFailed("Invalid plan. Must be BASIC, PRO, or PLATINUM")
    return selected


def _requested(value: Any) -> Optional[int]:
    """Positive integer request, or None meaning 'use the ceiling'."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            number = int(float(value))
        except (TypeError, ValueError, OverflowError):
            # inf and nan have no integer value
            return None
    return number if number > 0 else None


def _clamp(value: Any, ceiling: int) -> int:
    requested = _requested(value)
    return ceiling if requested is None else min(requested, ceiling)


def effective_caps(
    plan: Optional[str],
    max_admins: Any = None,
    max_managers: Any = None,
    max_users: Any = None,
) -> SeatCaps:
    """
    Clamp requested caps to the plan ceilings.

    Example:
        effective_caps("PRO")                  -> SeatCaps(5, 8, 20)
        effective_caps("PRO", max_admins=10)   -> SeatCaps(5, 8, 20)
        effective_caps("BASIC", max_users="3") -> SeatCaps(2, 5, 3)
    """
    ceiling = PLAN_SEAT_LIMITS[normalize_plan(plan)]
    return SeatCaps(
        max_admins=_clamp(max_admins, ceiling.max_admins),
        max_managers=_clamp(max_managers, ceiling.max_managers),
        max_users=_clamp(max_users, ceiling.max_users),
    )


def caps_for_company(company: Dict[str, Any]) -> SeatCaps:
    """Caps stored on a company row, re-clamped to its plan."""
    return effective_caps(
        company.get("plan"),
        company.get("max_admins"),
        company.get("max_managers"),
        company.get("max_users"),
    )


def lock_company(conn: Connection, company_id: int) -> Dict[str, Any]:
    """
    Take a write lock on the company row for the rest of the transaction.

    A no-op UPDATE works as a row lock on PostgreSQL and as the database write
    lock on SQLite.

    Raises:
        NotFound: company does not exist
    """
    locked = execute(
        conn,
        "UPDATE companies SET updated_at = updated_at WHERE id = :id",
        {"id": company_id},
    )
    if not locked:
        raise NotFound("Company not found")
    return fetch_one(conn, "SELECT * FROM companies WHERE id = :id", {"id": company_id})


def check_seat_available(conn: Connection, company_id: int, role: str) -> int:
    """
    Raise SeatLimitExceeded if `role` has no free seat in the company.

    Must run on the same transactional connection as the insert (or role
    change) that takes the seat.

    Returns:
        The cap for the role
    """
    company = lock_company(conn, company_id)
    cap = caps_for_company(company).for_role(role)

    taken = fetch_count(
        conn,
        "SELECT COUNT(*) FROM users WHERE company_id = :company_id AND role = :role",
        {"company_id": company_id, "role": role},
    )

    if taken >= cap:
        print(f"[SEATS] Limit reached: company_id={company_id}, role={role}, taken={taken}, cap={cap}")
        raise SeatLimitExceeded(role, cap)

    if IS_DEV:
        print(f"[SEATS] Seat available: company_id={company_id}, role={role}, taken={taken}, cap={cap}")

    return cap


def seat_usage(conn: Connection, company_id: int) -> Dict[str, int]:
    """Seats taken per role, for the plan endpoint."""
    return {
        role: fetch_count(
            conn,
            "SELECT COUNT(*) FROM users WHERE company_id = :company_id AND role = :role",
            {"company_id": company_id, "role": role},
        )
        for role in ASSIGNABLE_ROLES
    }
