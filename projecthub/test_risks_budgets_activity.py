"""
Risk and budget endpoints and their activity log entries.
"""

import json
from unittest.mock import patch

import pytest

from conftest import auth, make_company, make_project, make_user
from projecthub.db import fetch_count
from projecthub.errors import Conflict


@pytest.fixture
def acme(db):
    company = make_company(db, "Acme")
    company_id = company["company"]["id"]
    return {
        **company,
        "id": company_id,
        "project": make_project(db, company_id, "Apollo"),
        "manager": make_user(db, company_id, "manager", "m@acme.test"),
        "worker": make_user(db, company_id, "user", "u@acme.test"),
    }


def count(db, table):
    with db.connect() as conn:
        return fetch_count(conn, f"SELECT COUNT(*) FROM {table}")


class TestRisks:

    def test_create_writes_activity(self, client, acme):
        admin = auth(acme["admin"])
        risk = client.post("/api/risks", headers=admin, json={
            "projectId": acme["project"]["id"], "description": "Vendor delay", "severityLevel": "HIGH",
        })
        assert risk.status_code == 201
        assert risk.json()["status"] == "OPEN"

        logs = client.get("/api/activity", headers=admin).json()
        assert len(logs) == 1
        assert logs[0]["entityType"] == "RISK"
        assert logs[0]["action"] == "Created risk"
        assert logs[0]["oldValue"] is None
        assert json.loads(logs[0]["newValue"])["description"] == "Vendor delay"

    def test_soft_delete_excludes_from_list(self, client, acme):
        admin = auth(acme["admin"])
        risk = client.post("/api/risks", headers=admin, json={
            "projectId": acme["project"]["id"], "description": "Scope creep",
        }).json()

        deleted = client.delete(f"/api/risks/{risk['id']}", headers=admin)
        assert deleted.status_code == 200
        assert deleted.json()["risk"]["status"] == "DELETED"
        assert client.get("/api/risks", headers=admin).json() == []

        logs = client.get(f"/api/activity/RISK/{risk['id']}", headers=admin).json()
        assert [log["action"] for log in logs] == ["Deleted risk", "Created risk"]

    def test_status_deleted_not_settable_by_update(self, client, acme):
        admin = auth(acme["admin"])
        risk = client.post("/api/risks", headers=admin, json={
            "projectId": acme["project"]["id"], "description": "Outage",
        }).json()
        response = client.put(f"/api/risks/{risk['id']}", headers=admin, json={"status": "deleted"})
        assert response.status_code == 400

    def test_members_can_read_but_need_permission_to_write(self, client, db, acme):
        body = {"projectId": acme["project"]["id"], "description": "Budget overrun"}
        assert client.post("/api/risks", headers=auth(acme["worker"]), json=body).status_code == 403

        author = make_user(db, acme["id"], "user", "r@acme.test", permissions=["Create Risks"])
        assert client.post("/api/risks", headers=auth(author), json=body).status_code == 201
        assert len(client.get("/api/risks", headers=auth(acme["worker"])).json()) == 1


class TestBudgets:

    def test_update_logs_old_and_new_values(self, client, acme):
        admin = auth(acme["admin"])
        budget = client.post("/api/budgets", headers=admin, json={
            "projectId": acme["project"]["id"], "category": "Labor", "plannedAmount": 100,
        }).json()

        updated = client.put(f"/api/budgets/{budget['id']}", headers=admin, json={"plannedAmount": 200})
        assert updated.status_code == 200
        assert updated.json()["plannedAmount"] == 200

        logs = client.get("/api/activity", headers=admin,
                          params={"entityType": "BUDGET", "entityId": budget["id"]}).json()
        assert logs[0]["action"] == "Updated budget"
        assert json.loads(logs[0]["oldValue"])["planned_amount"] == 100
        assert json.loads(logs[0]["newValue"])["planned_amount"] == 200

    def test_hard_delete(self, client, db, acme):
        admin = auth(acme["admin"])
        budget = client.post("/api/budgets", headers=admin, json={
            "projectId": acme["project"]["id"], "category": "Travel",
        }).json()
        assert client.delete(f"/api/budgets/{budget['id']}", headers=admin).status_code == 200
        assert count(db, "budgets") == 0
        assert count(db, "activity_logs") == 2

    def test_negative_amount_rejected(self, client, acme):
        response = client.post("/api/budgets", headers=auth(acme["admin"]), json={
            "projectId": acme["project"]["id"], "category": "Travel", "actualAmount": -5,
        })
        assert response.status_code == 400

    def test_failed_log_write_rolls_back_budget(self, client, db, acme):
        with patch("projecthub.routes_budgets.record_activity", side_effect=Conflict("log unavailable")):
            response = client.post("/api/budgets", headers=auth(acme["admin"]), json={
                "projectId": acme["project"]["id"], "category": "Labor",
            })
        assert response.status_code == 409
        assert count(db, "budgets") == 0


class TestActivityAccess:

    def test_plain_user_cannot_read_activity(self, client, acme):
        assert client.get("/api/activity", headers=auth(acme["worker"])).status_code == 403

    def test_manager_reads_activity(self, client, acme):
        assert client.get("/api/activity", headers=auth(acme["manager"])).status_code == 200

    def test_activity_is_tenant_scoped(self, client, db, acme):
        client.post("/api/risks", headers=auth(acme["admin"]), json={
            "projectId": acme["project"]["id"], "description": "Acme only",
        })
        globex = make_company(db, "Globex")
        assert client.get("/api/activity", headers=auth(globex["admin"])).json() == []

    def test_unknown_entity_type_is_400(self, client, acme):
        response = client.get("/api/activity", headers=auth(acme["admin"]), params={"entityType": "TASK"})
        assert response.status_code == 400
