"""
Multi-tenant isolation tests.

Verifies that:
1. Company A cannot read or change company B's rows
2. Foreign ids answer exactly like missing ids (404, same body)
3. Foreign keys into another company are rejected (400)
4. The post-query guardrail warns in DEV and fails fast elsewhere

Run: pytest projecthub/test_tenant_isolation.py -v
"""

from unittest.mock import patch

import pytest

from conftest import auth, make_company, make_project, make_task, make_user, superadmin
from projecthub.auth_context import Principal
from projecthub.errors import CrossTenantReference, Forbidden, NotFound, ProjectHubError
from projecthub.tenant import (
    PROJECTS,
    TASKS,
    assert_rows_scoped,
    fetch_scoped,
    require_project_in_company,
    scope_for,
)


@pytest.fixture
def two_companies(db):
    acme = make_company(db, "Acme")
    globex = make_company(db, "Globex")
    return {
        "a": acme,
        "b": globex,
        "b_project": make_project(db, globex["company"]["id"], "Globex Launch"),
    }


@pytest.mark.parametrize("path", ["projects", "tasks", "risks", "budgets", "resources"])
def test_foreign_id_is_indistinguishable_from_missing(client, two_companies, path):
    headers = auth(two_companies["a"]["admin"])
    foreign_id = two_companies["b_project"]["id"] if path == "projects" else 1

    if path != "projects":
        # Seed one row of this kind in company B
        b_headers = auth(two_companies["b"]["admin"])
        body = {
            "tasks": {"projectId": two_companies["b_project"]["id"], "title": "B task"},
            "risks": {"projectId": two_companies["b_project"]["id"], "description": "B risk"},
            "budgets": {"projectId": two_companies["b_project"]["id"], "category": "Labor"},
            "resources": {"projectId": two_companies["b_project"]["id"], "resourceType": "Engineer"},
        }[path]
        created = client.post(f"/api/{path}", json=body, headers=b_headers)
        assert created.status_code == 201
        foreign_id = created.json()["id"]

    foreign = client.get(f"/api/{path}/{foreign_id}", headers=headers)
    missing = client.get(f"/api/{path}/999999", headers=headers)

    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()


def test_foreign_update_and_delete_are_404(client, db, two_companies):
    headers = auth(two_companies["a"]["admin"])
    project_id = two_companies["b_project"]["id"]

    assert client.put(f"/api/projects/{project_id}", json={"name": "Hijacked"},
                      headers=headers).status_code == 404
    assert client.delete(f"/api/projects/{project_id}", headers=headers).status_code == 404

    still_there = client.get(f"/api/projects/{project_id}", headers=auth(two_companies["b"]["admin"]))
    assert still_there.json()["name"] == "Globex Launch"


def test_lists_only_contain_own_company(client, db, two_companies):
    make_project(db, two_companies["a"]["company"]["id"], "Acme Internal")
    response = client.get("/api/projects", headers=auth(two_companies["a"]["admin"]))
    names = [p["name"] for p in response.json()]
    assert names == ["Acme Internal"]


def test_client_company_id_is_ignored_on_create(client, two_companies):
    a_company = two_companies["a"]["company"]["id"]
    response = client.post(
        "/api/projects",
        json={"name": "Sneaky", "companyId": two_companies["b"]["company"]["id"]},
        headers=auth(two_companies["a"]["admin"]),
    )
    assert response.status_code == 201
    assert response.json()["companyId"] == a_company


def test_cross_company_project_reference_is_rejected(client, db, two_companies):
    headers = auth(two_companies["a"]["admin"])
    response = client.post(
        "/api/budgets",
        json={"projectId": two_companies["b_project"]["id"], "category": "Travel"},
        headers=headers,
    )
    assert response.status_code == 400
    assert client.get("/api/budgets", headers=headers).json() == []


def test_superadmin_has_no_tenant_context(client, db, two_companies):
    response = client.get("/api/projects", headers=auth(superadmin(db)))
    assert response.status_code == 403
    assert response.json()["details"] == "tenant_context_required"


class TestScoper:

    def test_scoped_lookup_raises_not_found_for_foreign_row(self, db, two_companies):
        admin = two_companies["a"]["admin"]
        p = Principal(user_id=admin["id"], email=admin["email"], role="admin",
                      company_id=admin["company_id"])
        with db.connect() as conn:
            with pytest.raises(NotFound) as exc:
                fetch_scoped(conn, PROJECTS, two_companies["b_project"]["id"], scope_for(p, PROJECTS))
        assert exc.value.message == "Project not found"

    def test_self_scope_only_for_plain_users(self, db, two_companies):
        company_id = two_companies["a"]["company"]["id"]
        user = Principal(user_id=5, email="u@acme.test", role="user", company_id=company_id)
        manager = Principal(user_id=6, email="m@acme.test", role="manager", company_id=company_id)
        assigner = Principal(user_id=7, email="a@acme.test", role="user", company_id=company_id,
                             permissions=("Assign Tasks",))

        assert scope_for(user, PROJECTS).self_only
        assert not scope_for(manager, PROJECTS).self_only
        assert scope_for(manager, TASKS).self_only
        assert not scope_for(assigner, TASKS).self_only

    def test_missing_company_context_is_forbidden(self):
        with pytest.raises(Forbidden) as exc:
            scope_for(Principal(user_id=1, email="root@x.test", role="superadmin"), PROJECTS)
        assert exc.value.reason == "tenant_context_required"

    def test_project_reference_check(self, db, two_companies):
        a_company = two_companies["a"]["company"]["id"]
        with db.connect() as conn:
            with pytest.raises(CrossTenantReference):
                require_project_in_company(conn, two_companies["b_project"]["id"], a_company)
            with pytest.raises(CrossTenantReference):
                require_project_in_company(conn, None, a_company)


class TestRowGuardrail:

    ROWS = [{"id": 1, "company_id": 1}, {"id": 2, "company_id": 2}]

    def test_dev_only_warns(self, capsys):
        with patch("projecthub.config.IS_DEV", True):
            assert_rows_scoped(self.ROWS, 1, label="test")
        assert "Tenant isolation violation" in capsys.readouterr().out

    def test_prod_fails_fast(self):
        with patch("projecthub.config.IS_DEV", False):
            with pytest.raises(ProjectHubError) as exc:
                assert_rows_scoped(self.ROWS, 1, label="test")
        assert exc.value.status_code == 500

    def test_missing_company_column_is_a_bug(self):
        with pytest.raises(RuntimeError):
            assert_rows_scoped([{"id": 1}], 1)

    def test_clean_rows_pass(self):
        assert_rows_scoped([{"id": 1, "company_id": 1}], 1)
        assert_rows_scoped([], 1)


def test_user_self_scope_hides_unassigned_rows(client, db, two_companies):
    company_id = two_companies["a"]["company"]["id"]
    worker = make_user(db, company_id, "user", "worker@acme.test")
    mine = make_project(db, company_id, "Mine")
    other = make_project(db, company_id, "Other")
    make_task(db, company_id, mine["id"], assigned_to=worker["id"])

    listed = client.get("/api/projects", headers=auth(worker)).json()
    assert [p["id"] for p in listed] == [mine["id"]]
    assert client.get(f"/api/projects/{other['id']}", headers=auth(worker)).status_code == 404
