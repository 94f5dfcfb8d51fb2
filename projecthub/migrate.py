# projecthub/migrate.py
# Schema migrations for PostgreSQL and SQLite + superadmin bootstrap
# Run: python -m projecthub.migrate

from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from projecthub.config import SUPERADMIN_EMAIL, SUPERADMIN_NAME, SUPERADMIN_PASSWORD
from projecthub.db import Database, fetch_one, insert_row, now_iso
from projecthub.models import UserRole, UserStatus
from projecthub.security import hash_password

# Foreign keys are deliberately plain INTEGER columns: cross-entity references
# are validated by projecthub.tenant at write time.
TABLES = {
    "companies": """
        CREATE TABLE IF NOT EXISTS companies (
            id {pk},
            name TEXT NOT NULL,
            plan TEXT NOT NULL DEFAULT 'BASIC',
            admin_name TEXT,
            admin_email TEXT NOT NULL,
            max_admins INTEGER NOT NULL,
            max_managers INTEGER NOT NULL,
            max_users INTEGER NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id {pk},
            company_id INTEGER,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            permissions TEXT NOT NULL DEFAULT '[]',
            last_login TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "projects": """
        CREATE TABLE IF NOT EXISTS projects (
            id {pk},
            company_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            client_name TEXT,
            start_date TEXT,
            end_date TEXT,
            project_manager TEXT,
            budget {real},
            status TEXT NOT NULL DEFAULT 'PLANNED',
            priority_level TEXT,
            notes TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id {pk},
            company_id INTEGER NOT NULL,
            project_id INTEGER NOT NULL,
            title TEXT NOT NULL,
            assigned_to INTEGER,
            priority TEXT,
            status TEXT NOT NULL DEFAULT 'PENDING',
            start_date TEXT,
            end_date TEXT,
            completion_date TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "resources": """
        CREATE TABLE IF NOT EXISTS resources (
            id {pk},
            company_id INTEGER NOT NULL,
            project_id INTEGER NOT NULL,
            resource_type TEXT NOT NULL,
            assigned_project TEXT,
            allocation_start TEXT,
            allocation_end TEXT,
            utilization_rate {real},
            status TEXT NOT NULL DEFAULT 'ACTIVE',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "risks": """
        CREATE TABLE IF NOT EXISTS risks (
            id {pk},
            company_id INTEGER NOT NULL,
            project_id INTEGER NOT NULL,
            description TEXT NOT NULL,
            severity_level TEXT,
            mitigation_plan TEXT,
            risk_owner TEXT,
            status TEXT NOT NULL DEFAULT 'OPEN',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "budgets": """
        CREATE TABLE IF NOT EXISTS budgets (
            id {pk},
            company_id INTEGER NOT NULL,
            project_id INTEGER NOT NULL,
            category TEXT NOT NULL,
            planned_amount {real} NOT NULL DEFAULT 0,
            actual_amount {real} NOT NULL DEFAULT 0,
            notes TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "activity_logs": """
        CREATE TABLE IF NOT EXISTS activity_logs (
            id {pk},
            company_id INTEGER NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            action TEXT NOT NULL,
            old_value TEXT,
            new_value TEXT,
            created_at TEXT NOT NULL
        )
    """,
}

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_users_company_role ON users(company_id, role)",
    "CREATE INDEX IF NOT EXISTS idx_projects_company ON projects(company_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_company_project ON tasks(company_id, project_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks(assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_resources_company_project ON resources(company_id, project_id)",
    "CREATE INDEX IF NOT EXISTS idx_risks_company_project ON risks(company_id, project_id)",
    "CREATE INDEX IF NOT EXISTS idx_budgets_company_project ON budgets(company_id, project_id)",
    "CREATE INDEX IF NOT EXISTS idx_activity_company_entity ON activity_logs(company_id, entity_type, entity_id)",
]


def _column_types(dialect: str) -> Dict[str, str]:
    if dialect == "postgresql":
        return {"pk": "SERIAL PRIMARY KEY", "real": "DOUBLE PRECISION"}
    return {"pk": "INTEGER PRIMARY KEY AUTOINCREMENT", "real": "REAL"}


def create_schema(conn: Connection, dialect: str) -> None:
    """Create tables and indexes if missing. Safe to run repeatedly."""
    types = _column_types(dialect)
    for name, ddl in TABLES.items():
        conn.execute(text(ddl.format(**types)))
    for ddl in INDEXES:
        conn.execute(text(ddl))
    print(f"[MIGRATE] Ensured {len(TABLES)} tables and {len(INDEXES)} indexes ({dialect})")


def ensure_superadmin(
    conn: Connection,
    email: str = SUPERADMIN_EMAIL,
    password: Optional[str] = SUPERADMIN_PASSWORD,
    name: str = SUPERADMIN_NAME,
) -> bool:
    """
    Create the superadmin user if it does not exist yet.

    Returns True when a user was created. Skipped (False) when no password is
    configured.
    """
    existing = fetch_one(
        conn,
        "SELECT id FROM users WHERE role = :role OR email = :email",
        {"role": UserRole.superadmin.value, "email": email},
    )
    if existing:
        return False

    if not password:
        print("[MIGRATE] SUPERADMIN_PASSWORD not set - skipping superadmin bootstrap")
        return False

    now = now_iso()
    insert_row(conn, "users", {
        "company_id": None,
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "role": UserRole.superadmin.value,
        "status": UserStatus.active.value,
        "permissions": "[]",
        "created_at": now,
        "updated_at": now,
    })
    print(f"[MIGRATE] Created superadmin user {email}")
    return True


def run_migrations(db: Database, bootstrap_superadmin: bool = True) -> None:
    """
    Run all migrations (idempotent) and the superadmin bootstrap in a single
    transaction.
    """
    print("[MIGRATE] Starting database migrations...")
    with db.transaction() as conn:
        create_schema(conn, db.dialect)
        if bootstrap_superadmin:
            ensure_superadmin(conn)
    print("[MIGRATE] All migrations complete!")


if __name__ == "__main__":
    database = Database()
    try:
        run_migrations(database)
    finally:
        database.dispose()
