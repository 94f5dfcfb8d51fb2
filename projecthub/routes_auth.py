"""
projecthub/routes_auth.py

Login and identity endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from projecthub.auth_context import Principal, get_database, require_auth_context
from projecthub.db import Database
from projecthub.schemas import LoginRequest, LoginResponse, MeResponse
from projecthub.security import authenticate


router = APIRouter(tags=["auth"])


@router.post("/api/auth/login", response_model=LoginResponse)
@router.post("/login", response_model=LoginResponse, include_in_schema=False)
def login(request: LoginRequest, db: Database = Depends(get_database)) -> LoginResponse:
    """
    Exchange email + password for a session token.

    Raises:
        Unauthenticated(401): invalid credentials
        Forbidden(403): user inactive, or company inactive/missing
    """
    # lastLogin is written, so this runs in a transaction
    with db.transaction() as conn:
        token, user = authenticate(conn, request.email, request.password)
    return LoginResponse(token=token, user=user)


@router.get("/api/auth/me", response_model=MeResponse)
def me(principal: Principal = Depends(require_auth_context)) -> MeResponse:
    return MeResponse(
        id=principal.user_id,
        email=principal.email,
        role=principal.role,
        company_id=principal.company_id,
        permissions=list(principal.permissions),
    )
