"""
Shared pytest fixtures.

Every test gets its own in-memory database; nothing touches projecthub.db on
disk. Environment is pinned before any projecthub module is imported because
config is read at import time.
"""

import os

os.environ.setdefault("ENV", "dev")
os.environ["JWT_SECRET"] = "projecthub-test-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SUPERADMIN_EMAIL"] = "root@projecthub.test"
os.environ["SUPERADMIN_PASSWORD"] = "RootPassw0rd!"

from datetime import timedelta
from typing import Any, Dict, Iterable, Optional

import pytest
from fastapi.testclient import TestClient

from projecthub.db import Database, fetch_one, insert_row, now_iso
from projecthub.main import create_app
from projecthub.migrate import run_migrations
from projecthub.rbac import decode_permissions, encode_permissions
from projecthub.security import hash_password
from projecthub.seats import effective_caps
from projecthub.tokens import TokenClaims, issue

DEFAULT_PASSWORD = "Passw0rd!"
SUPERADMIN_EMAIL = "root@projecthub.test"
SUPERADMIN_PASSWORD = "RootPassw0rd!"


@pytest.fixture
def db():
    database = Database("sqlite://")
    run_migrations(database)
    yield database
    database.dispose()


@pytest.fixture
def client(db):
    with TestClient(create_app(db)) as test_client:
        yield test_client


def make_company(
    db: Database,
    name: str = "Acme",
    plan: str = "BASIC",
    admin_email: Optional[str] = None,
    is_active: bool = True,
    **caps: Any,
) -> Dict[str, Any]:
    """Company row plus its primary admin, returned as {"company", "admin"}."""
    admin_email = admin_email or f"admin@{name.lower().replace(' ', '')}.test"
    limits = effective_caps(plan, caps.get("max_admins"), caps.get("max_managers"), caps.get("max_users"))
    now = now_iso()
    with db.transaction() as conn:
        company = insert_row(conn, "companies", {
            "name": name,
            "plan": plan,
            "admin_name": f"{name} Admin",
            "admin_email": admin_email,
            "max_admins": limits.max_admins,
            "max_managers": limits.max_managers,
            "max_users": limits.max_users,
            "is_active": is_active,
            "created_at": now,
            "updated_at": now,
        })
    admin = make_user(db, company["id"], "admin", admin_email, name=f"{name} Admin")
    return {"company": company, "admin": admin}


def make_user(
    db: Database,
    company_id: Optional[int],
    role: str,
    email: str,
    permissions: Iterable[str] = (),
    name: str = "Test User",
    status: str = "ACTIVE",
    password: str = DEFAULT_PASSWORD,
) -> Dict[str, Any]:
    now = now_iso()
    with db.transaction() as conn:
        return insert_row(conn, "users", {
            "company_id": company_id,
            "name": name,
            "email": email,
            "password_hash": hash_password(password),
            "role": role,
            "status": status,
            "permissions": encode_permissions(list(permissions)),
            "created_at": now,
            "updated_at": now,
        })


def superadmin(db: Database) -> Dict[str, Any]:
    with db.connect() as conn:
        return fetch_one(conn, "SELECT * FROM users WHERE email = :email", {"email": SUPERADMIN_EMAIL})


def token_for(user: Dict[str, Any], ttl: timedelta = timedelta(minutes=30)) -> str:
    return issue(
        TokenClaims(
            user_id=user["id"],
            email=user["email"],
            role=user["role"],
            company_id=user["company_id"],
            permissions=decode_permissions(user.get("permissions")),
        ),
        ttl,
    )


def auth(user: Dict[str, Any]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


def make_project(db: Database, company_id: int, name: str = "Project") -> Dict[str, Any]:
    now = now_iso()
    with db.transaction() as conn:
        return insert_row(conn, "projects", {
            "company_id": company_id,
            "name": name,
            "status": "PLANNED",
            "created_at": now,
            "updated_at": now,
        })


def make_task(
    db: Database,
    company_id: int,
    project_id: int,
    assigned_to: Optional[int] = None,
    title: str = "Task",
) -> Dict[str, Any]:
    now = now_iso()
    with db.transaction() as conn:
        return insert_row(conn, "tasks", {
            "company_id": company_id,
            "project_id": project_id,
            "title": title,
            "assigned_to": assigned_to,
            "status": "PENDING",
            "created_at": now,
            "updated_at": now,
        })
