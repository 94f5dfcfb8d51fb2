# projecthub/security.py
# Credential verifier: password hashing and the login flow

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

import bcrypt
from sqlalchemy.engine import Connection

from projecthub.config import ACCESS_TOKEN_MINUTES, BCRYPT_ROUNDS, IS_DEV
from projecthub.db import execute, fetch_one, now_iso
from projecthub.errors import EmailTaken, Forbidden, Unauthenticated, ValidationFailed
from projecthub.models import UserRole, UserStatus
from projecthub.rbac import decode_permissions
from projecthub.tokens import TokenClaims, issue

# bcrypt ignores everything past 72 bytes; longer secrets are rejected outright
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with a per-password salt."""
    raw = (password or "").encode("utf-8")
    if not raw:
        raise ValidationFailed("Password is required")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValidationFailed(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Constant-time comparison; malformed hashes never verify."""
    if not password or not password_hash:
        return False
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(raw, password_hash.encode("utf-8"))
    except ValueError:
        print("[AUTH] Stored password hash is malformed")
        return False


def public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a users row safe to return to clients."""
    user = {key: value for key, value in row.items() if key != "password_hash"}
    user["permissions"] = list(decode_permissions(row.get("permissions")))
    return user


def ensure_email_free(conn: Connection, email: str, exclude_id: Optional[int] = None) -> None:
    """
    Raise EmailTaken when another user holds `email`.

    Only a fast path: the UNIQUE constraint on users.email is the real guard,
    and callers map its IntegrityError to EmailTaken as well.
    """
    existing = fetch_one(conn, "SELECT id FROM users WHERE email = :email", {"email": email})
    if existing and existing["id"] != exclude_id:
        raise EmailTaken()


def claims_for_user(user: Dict[str, Any]) -> TokenClaims:
    return TokenClaims(
        user_id=int(user["id"]),
        email=user["email"],
        role=user["role"],
        company_id=user.get("company_id"),
        permissions=decode_permissions(user.get("permissions")),
    )


def authenticate(conn: Connection, email: str, password: str) -> Tuple[str, Dict[str, Any]]:
    """
    Check credentials and issue a session token.

    Returns:
        (token, user) where user excludes the password hash

    Raises:
        Unauthenticated(401): unknown email or wrong password
        Forbidden(403): user inactive, or company inactive/missing
    """
    normalized = (email or "").strip().lower()
    user = fetch_one(conn, "SELECT * FROM users WHERE email = :email", {"email": normalized})

    # Same answer for unknown email and wrong password
    if not user or not verify_password(password, user["password_hash"]):
        print(f"[LOGIN] Failed login attempt for {normalized or '<empty>'}")
        raise Unauthenticated("Invalid credentials")

    if user["status"] != UserStatus.active.value:
        print(f"[LOGIN] Inactive user rejected: user_id={user['id']}")
        raise Forbidden("User account is inactive", details="user_inactive")

    if user["role"] != UserRole.superadmin.value:
        company = None
        if user["company_id"] is not None:
            company = fetch_one(
                conn,
                "SELECT id, is_active FROM companies WHERE id = :id",
                {"id": user["company_id"]},
            )
        if not company or not company["is_active"]:
            print(f"[LOGIN] Company inactive or missing: user_id={user['id']}")
            raise Forbidden("Company is inactive or missing", details="company_inactive")

    last_login = now_iso()
    execute(
        conn,
        "UPDATE users SET last_login = :last_login WHERE id = :id",
        {"last_login": last_login, "id": user["id"]},
    )
    user["last_login"] = last_login

    token = issue(claims_for_user(user), timedelta(minutes=ACCESS_TOKEN_MINUTES))

    if IS_DEV:
        print(f"[LOGIN] Login successful: user_id={user['id']}, role={user['role']}")

    return token, public_user(user)
