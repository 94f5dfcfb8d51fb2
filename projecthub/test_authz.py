"""
Authorization policy tests: role rules, permission strings and fail-closed
permission decoding.
"""

import pytest

from conftest import auth, make_company, make_user
from projecthub.auth_context import Principal
from projecthub.authz import ACTION_RULES, Action, can, require
from projecthub.db import execute
from projecthub.errors import Forbidden
from projecthub.rbac import NO_PERMISSIONS, decode_permissions, role_at_least


def principal(role, company_id=1, permissions=()):
    return Principal(user_id=10, email=f"{role}@acme.test", role=role,
                     company_id=company_id, permissions=tuple(permissions))


SUPERADMIN = Principal(user_id=1, email="root@projecthub.test", role="superadmin")


def test_every_action_has_a_rule():
    assert set(ACTION_RULES) == set(Action)


def test_superadmin_passes_every_rule():
    for action in Action:
        assert can(SUPERADMIN, action).allowed


def test_admin_passes_permission_rules_without_strings():
    admin = principal("admin")
    assert can(admin, Action.PROJECT_CREATE).allowed
    assert can(admin, Action.BUDGET_DELETE).allowed
    assert can(admin, Action.RESOURCE_CREATE).allowed


def test_company_management_is_superadmin_only():
    decision = can(principal("admin"), Action.COMPANY_CREATE)
    assert not decision.allowed
    assert decision.reason == "superadmin_required"


def test_user_without_permission_is_denied_with_named_permission():
    decision = can(principal("user"), Action.PROJECT_CREATE)
    assert not decision.allowed
    assert decision.reason == "missing_permission:Create Projects"


def test_user_with_permission_is_allowed():
    assert can(principal("user", permissions=["Create Projects"]), Action.PROJECT_CREATE).allowed


def test_permission_match_is_case_sensitive():
    assert not can(principal("manager", permissions=["create projects"]), Action.PROJECT_CREATE).allowed


def test_any_of_several_permissions_grants_resource_reads():
    assert can(principal("user", permissions=["View Resources"]), Action.RESOURCE_LIST).allowed
    assert can(principal("user", permissions=["Manage Team Resources"]), Action.RESOURCE_LIST).allowed
    assert not can(principal("user"), Action.RESOURCE_LIST).allowed


def test_task_delete_has_no_permission_escape():
    decision = can(principal("manager", permissions=["Assign Tasks"]), Action.TASK_DELETE)
    assert decision.reason == "role_not_allowed"


def test_activity_read_is_admin_or_manager():
    assert can(principal("manager"), Action.ACTIVITY_LIST).allowed
    assert can(principal("user"), Action.ACTIVITY_LIST).reason == "role_not_allowed"


def test_explicit_foreign_target_company_is_cross_tenant():
    decision = can(principal("admin", company_id=1), Action.COMPANY_PLAN_READ, target_company_id=2)
    assert decision.reason == "cross_tenant"


def test_require_raises_forbidden_with_reason():
    with pytest.raises(Forbidden) as exc:
        require(principal("user"), Action.RISK_CREATE)
    assert exc.value.status_code == 403
    assert exc.value.reason == "missing_permission:Create Risks"


def test_role_hierarchy():
    assert role_at_least("superadmin", "admin")
    assert role_at_least("admin", "manager")
    assert not role_at_least("user", "manager")
    assert not role_at_least("unknown", "user")


class TestDecodePermissions:

    def test_list_and_json_list(self):
        assert decode_permissions(["A", "B", "A"]) == ("A", "B")
        assert decode_permissions('["Create Projects"]') == ("Create Projects",)

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', "42", '["ok", 3]', [1, 2], 7])
    def test_malformed_fields_grant_nothing(self, raw):
        assert decode_permissions(raw) == NO_PERMISSIONS


def test_corrupt_stored_permissions_fail_closed_at_login(client, db):
    acme = make_company(db, "Acme")
    user = make_user(db, acme["company"]["id"], "user", "u@acme.test")
    with db.transaction() as conn:
        execute(conn, "UPDATE users SET permissions = :p WHERE id = :id",
                {"p": "{Create Projects", "id": user["id"]})

    login = client.post("/api/auth/login", json={"email": "u@acme.test", "password": "Passw0rd!"})
    assert login.status_code == 200
    assert login.json()["user"]["permissions"] == []

    token = login.json()["token"]
    response = client.post("/api/projects", json={"name": "X"},
                           headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_route_denial_carries_reason(client, db):
    acme = make_company(db, "Acme")
    manager = make_user(db, acme["company"]["id"], "manager", "m@acme.test")
    response = client.post("/api/users", headers=auth(manager),
                           json={"name": "N", "email": "n@acme.test", "password": "Passw0rd!"})
    assert response.status_code == 403
    assert response.json()["details"] == "role_not_allowed"
