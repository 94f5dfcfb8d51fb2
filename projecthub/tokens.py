"""
projecthub/tokens.py

Token codec: signs and verifies the compact claim set carried by every
session token.

Claims: sub (user id), email, role, companyId, permissions, iat, exp.
HS256 over the process-wide JWT_SECRET. No refresh mechanism - expiry forces
a new login.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt

from projecthub.config import ALGORITHM, JWT_SECRET
from projecthub.errors import TokenExpired, TokenInvalid


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by a token (timestamps excluded)."""
    user_id: int
    email: str
    role: str
    company_id: Optional[int] = None
    permissions: Tuple[str, ...] = field(default_factory=tuple)


def issue(
    claims: TokenClaims,
    ttl: timedelta,
    secret: str = JWT_SECRET,
    now: Optional[datetime] = None,
) -> str:
    """
    Sign `claims` into a token valid for `ttl`.

    Callers must choose the lifetime; there is no implicit default.
    """
    issued_at = now or datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(claims.user_id),
        "email": claims.email,
        "role": claims.role,
        "companyId": claims.company_id,
        "permissions": list(claims.permissions),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ttl).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify(token: str, secret: str = JWT_SECRET) -> TokenClaims:
    """
    Verify signature and expiry and return the claims.

    Raises:
        TokenExpired: exp is in the past
        TokenInvalid: bad signature, malformed token or claim set
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError as e:
        raise TokenInvalid(details=type(e).__name__)

    return _claims_from_payload(payload)


def _claims_from_payload(payload: Dict[str, Any]) -> TokenClaims:
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise TokenInvalid(details="bad_subject")

    email = payload.get("email")
    role = payload.get("role")
    if not isinstance(email, str) or not isinstance(role, str) or not role:
        raise TokenInvalid(details="bad_claims")

    company_id = payload.get("companyId")
    if company_id is not None and not isinstance(company_id, int):
        raise TokenInvalid(details="bad_company")

    permissions = payload.get("permissions") or []
    if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
        raise TokenInvalid(details="bad_permissions")

    return TokenClaims(
        user_id=user_id,
        email=email,
        role=role,
        company_id=company_id,
        permissions=tuple(permissions),
    )
