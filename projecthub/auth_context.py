"""
projecthub/auth_context.py

Access guard primitives for FastAPI dependency injection.

Contains:
- Principal: immutable identity + tenant context for one request
- principal_from_header: the header -> principal gate (framework independent)
- require_auth_context: FastAPI dependency wrapping the gate
- get_database: FastAPI dependency returning the injected storage handle

This module MUST NOT import projecthub.main to avoid circular dependencies.
"""

from __future__ import annotations

from typing import Optional, Tuple

from fastapi import Header, Request
from pydantic import BaseModel, ConfigDict

from projecthub.config import IS_DEV
from projecthub.db import Database
from projecthub.errors import Forbidden, TokenError, Unauthenticated
from projecthub.rbac import Role, decode_permissions
from projecthub.tokens import TokenClaims, verify


# ---------------------------------------------------------
# Storage handle dependency
# ---------------------------------------------------------
def get_database(request: Request) -> Database:
    """Return the Database created by the app factory."""
    return request.app.state.db


# ---------------------------------------------------------
# Principal - the only source of truth for identity and tenant
# ---------------------------------------------------------
class Principal(BaseModel):
    """
    Identity context derived from a verified token.

    Never trust companyId/userId from request bodies or query params; use the
    principal. company_id is None only for the superadmin.
    """
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: str
    company_id: Optional[int] = None
    permissions: Tuple[str, ...] = ()

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "Principal":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            role=claims.role,
            company_id=claims.company_id,
            permissions=decode_permissions(claims.permissions),
        )

    @property
    def is_superadmin(self) -> bool:
        return self.role == Role.SUPERADMIN

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


# ---------------------------------------------------------
# Access guard
# ---------------------------------------------------------
def principal_from_header(authorization: Optional[str]) -> Principal:
    """
    Turn a raw Authorization header value into a Principal.

    Raises:
        Unauthenticated(401): header missing, or no token segment
        Forbidden(403): token present but invalid or expired
    """
    if not authorization:
        raise Unauthenticated("Authorization header missing")

    parts = authorization.split(" ")
    token = parts[1] if len(parts) > 1 else ""
    if not token:
        raise Unauthenticated("Token missing")

    try:
        claims = verify(token)
    except TokenError as e:
        # Verification failures are reported as 403, not 401
        print(f"[AUTH] Token rejected: {type(e).__name__}")
        raise Forbidden("Invalid or expired token", details="invalid_token")

    principal = Principal.from_claims(claims)

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={principal.user_id}, role={principal.role}, "
              f"company_id={principal.company_id}, permissions={len(principal.permissions)}")

    return principal


def require_auth_context(authorization: Optional[str] = Header(None)) -> Principal:
    """
    FastAPI dependency for every protected route.

    Usage:
        @router.get("/protected")
        def protected_route(principal: Principal = Depends(require_auth_context)):
            ...
    """
    return principal_from_header(authorization)
