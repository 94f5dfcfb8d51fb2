"""
Token codec tests: round trip, expiry and tampering.

Run: pytest projecthub/test_tokens.py -v
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from projecthub.config import ALGORITHM, JWT_SECRET
from projecthub.errors import TokenExpired, TokenInvalid
from projecthub.tokens import TokenClaims, issue, verify


CLAIMS = TokenClaims(
    user_id=42,
    email="pm@acme.test",
    role="manager",
    company_id=7,
    permissions=("Create Projects", "Assign Tasks"),
)


def test_round_trip_returns_claims_unchanged():
    token = issue(CLAIMS, timedelta(minutes=5))
    assert verify(token) == CLAIMS


def test_round_trip_without_company():
    claims = TokenClaims(user_id=1, email="root@projecthub.test", role="superadmin")
    assert verify(issue(claims, timedelta(minutes=5))) == claims


def test_payload_uses_wire_claim_names():
    token = issue(CLAIMS, timedelta(minutes=5))
    payload = jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    assert payload["sub"] == "42"
    assert payload["companyId"] == 7
    assert payload["permissions"] == ["Create Projects", "Assign Tasks"]
    assert payload["exp"] - payload["iat"] == 300


def test_expired_token_raises_token_expired():
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = issue(CLAIMS, timedelta(hours=1), now=issued)
    with pytest.raises(TokenExpired):
        verify(token)


def test_wrong_secret_is_invalid():
    token = issue(CLAIMS, timedelta(minutes=5), secret="someone-else")
    with pytest.raises(TokenInvalid):
        verify(token)


def test_garbage_is_invalid():
    with pytest.raises(TokenInvalid):
        verify("not.a.token")


def test_missing_subject_is_invalid():
    now = int(datetime.now(timezone.utc).timestamp())
    token = jwt.encode({"email": "x@y.test", "role": "user", "iat": now, "exp": now + 60},
                       JWT_SECRET, algorithm=ALGORITHM)
    with pytest.raises(TokenInvalid):
        verify(token)


def test_non_list_permissions_claim_is_invalid():
    now = int(datetime.now(timezone.utc).timestamp())
    token = jwt.encode(
        {"sub": "1", "email": "x@y.test", "role": "user", "permissions": "Create Projects",
         "iat": now, "exp": now + 60},
        JWT_SECRET,
        algorithm=ALGORITHM,
    )
    with pytest.raises(TokenInvalid):
        verify(token)
