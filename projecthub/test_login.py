"""
Login flow tests.
"""

from conftest import DEFAULT_PASSWORD, SUPERADMIN_EMAIL, SUPERADMIN_PASSWORD, make_company, make_user
from projecthub.db import execute, fetch_one
from projecthub.security import hash_password, verify_password
from projecthub.tokens import verify


def test_login_returns_token_and_user_without_hash(client, db):
    acme = make_company(db, "Acme")
    make_user(db, acme["company"]["id"], "manager", "m@acme.test", permissions=["Assign Tasks"])

    response = client.post("/api/auth/login", json={"email": "M@Acme.test", "password": DEFAULT_PASSWORD})
    assert response.status_code == 200
    body = response.json()

    assert "passwordHash" not in body["user"]
    assert "password_hash" not in body["user"]
    assert body["user"]["permissions"] == ["Assign Tasks"]
    assert body["user"]["lastLogin"] is not None

    claims = verify(body["token"])
    assert claims.company_id == acme["company"]["id"]
    assert claims.role == "manager"
    assert claims.permissions == ("Assign Tasks",)


def test_login_updates_last_login(client, db):
    acme = make_company(db, "Acme")
    client.post("/api/auth/login", json={"email": "admin@acme.test", "password": DEFAULT_PASSWORD})
    with db.connect() as conn:
        row = fetch_one(conn, "SELECT last_login FROM users WHERE id = :id", {"id": acme["admin"]["id"]})
    assert row["last_login"] is not None


def test_wrong_password_and_unknown_email_look_the_same(client, db):
    make_company(db, "Acme")
    wrong = client.post("/api/auth/login", json={"email": "admin@acme.test", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@acme.test", "password": "nope"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "Invalid credentials"}


def test_inactive_user_is_403(client, db):
    acme = make_company(db, "Acme")
    make_user(db, acme["company"]["id"], "user", "u@acme.test", status="INACTIVE")
    response = client.post("/api/auth/login", json={"email": "u@acme.test", "password": DEFAULT_PASSWORD})
    assert response.status_code == 403
    assert response.json()["error"] == "User account is inactive"


def test_inactive_company_is_403(client, db):
    make_company(db, "Acme", is_active=False)
    response = client.post("/api/auth/login", json={"email": "admin@acme.test", "password": DEFAULT_PASSWORD})
    assert response.status_code == 403
    assert response.json()["error"] == "Company is inactive or missing"


def test_user_whose_company_was_removed_is_403(client, db):
    acme = make_company(db, "Acme")
    with db.transaction() as conn:
        execute(conn, "DELETE FROM companies WHERE id = :id", {"id": acme["company"]["id"]})
    response = client.post("/api/auth/login", json={"email": "admin@acme.test", "password": DEFAULT_PASSWORD})
    assert response.status_code == 403


def test_superadmin_logs_in_without_company(client):
    response = client.post("/login", json={"email": SUPERADMIN_EMAIL, "password": SUPERADMIN_PASSWORD})
    assert response.status_code == 200
    token = response.json()["token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["role"] == "superadmin"
    assert me.json()["companyId"] is None


def test_missing_fields_are_400(client):
    assert client.post("/api/auth/login", json={"email": "a@b.test"}).status_code == 400


def test_password_hashing():
    hashed = hash_password("s3cret!")
    assert hashed != "s3cret!"
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret!", "not-a-bcrypt-hash")
    assert not verify_password("x" * 100, hashed)
