"""
Access guard tests: 401 for a missing credential, 403 for a bad one.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import auth, make_company
from projecthub.auth_context import Principal, principal_from_header
from projecthub.errors import Forbidden, Unauthenticated
from projecthub.tokens import TokenClaims, issue


def _token(**overrides):
    claims = TokenClaims(user_id=3, email="u@acme.test", role="user", company_id=1,
                         permissions=("View Resources",))
    return issue(claims, timedelta(minutes=5), **overrides)


class TestPrincipalFromHeader:

    def test_missing_header(self):
        with pytest.raises(Unauthenticated) as exc:
            principal_from_header(None)
        assert exc.value.status_code == 401
        assert exc.value.message == "Authorization header missing"

    @pytest.mark.parametrize("header", ["Bearer", "Bearer "])
    def test_no_token_segment(self, header):
        with pytest.raises(Unauthenticated) as exc:
            principal_from_header(header)
        assert exc.value.message == "Token missing"

    def test_invalid_token_is_403(self):
        with pytest.raises(Forbidden) as exc:
            principal_from_header("Bearer abc.def.ghi")
        assert exc.value.status_code == 403
        assert exc.value.message == "Invalid or expired token"

    def test_expired_token_is_403(self):
        token = _token(now=datetime.now(timezone.utc) - timedelta(hours=1))
        with pytest.raises(Forbidden):
            principal_from_header(f"Bearer {token}")

    def test_valid_token_builds_principal(self):
        principal = principal_from_header(f"Bearer {_token()}")
        assert principal == Principal(
            user_id=3, email="u@acme.test", role="user", company_id=1,
            permissions=("View Resources",),
        )

    def test_principal_is_immutable(self):
        principal = principal_from_header(f"Bearer {_token()}")
        with pytest.raises(Exception):
            principal.company_id = 2


class TestGuardOverHttp:

    def test_no_header_returns_401(self, client):
        response = client.get("/api/projects")
        assert response.status_code == 401
        assert response.json() == {"error": "Authorization header missing"}

    def test_scheme_only_returns_401(self, client):
        response = client.get("/api/projects", headers={"Authorization": "Bearer"})
        assert response.status_code == 401
        assert response.json()["error"] == "Token missing"

    def test_bad_token_returns_403(self, client):
        response = client.get("/api/projects", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 403
        assert response.json()["error"] == "Invalid or expired token"

    def test_valid_token_passes(self, client, db):
        acme = make_company(db, "Acme")
        response = client.get("/api/projects", headers=auth(acme["admin"]))
        assert response.status_code == 200
        assert response.json() == []

    def test_health_needs_no_token(self, client):
        assert client.get("/health").json() == {"status": "ok"}
