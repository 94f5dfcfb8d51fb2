"""
projecthub/routes_risks.py

Project risk register. Every mutation appends an activity log entry in the
same transaction; deletion is soft (status DELETED).
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from projecthub.activity import record_activity
from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.config import IS_DEV
from projecthub.db import Database, fetch_all, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.models import DELETED_STATUS, EntityType
from projecthub.schemas import RiskCreateRequest, RiskResponse, RiskUpdateRequest, update_values
from projecthub.tenant import (
    RISKS,
    assert_rows_scoped,
    company_scope,
    fetch_scoped,
    require_project_in_company,
    scope_for,
    scoped_where,
)


router = APIRouter(
    prefix="/api/risks",
    tags=["risks"],
)


@router.post("", response_model=RiskResponse, status_code=201)
def create_risk(
    request: RiskCreateRequest,
    principal: Principal = Depends(require_action(Action.RISK_CREATE)),
    db: Database = Depends(get_database),
) -> RiskResponse:
    scope = company_scope(principal)
    now = now_iso()

    with db.transaction() as conn:
        require_project_in_company(conn, request.project_id, scope.company_id)
        risk = insert_row(conn, "risks", {
            **request.model_dump(),
            "company_id": scope.company_id,
            "created_at": now,
            "updated_at": now,
        })
        record_activity(conn, scope.company_id, EntityType.risk, risk["id"], "Created risk",
                        old_value=None, new_value=risk)

    return RiskResponse(**risk)


@router.get("", response_model=List[RiskResponse])
def list_risks(
    project_id: Optional[int] = Query(None, alias="projectId", ge=1),
    principal: Principal = Depends(require_action(Action.RISK_LIST)),
    db: Database = Depends(get_database),
) -> List[RiskResponse]:
    """Live risks of the company, optionally for one project."""
    scope = scope_for(principal, RISKS)
    where, params = scoped_where(scope, RISKS)
    if project_id is not None:
        where += " AND project_id = :project_id"
        params["project_id"] = project_id

    with db.connect() as conn:
        risks = fetch_all(conn, f"SELECT * FROM risks WHERE {where} ORDER BY id", params)

    assert_rows_scoped(risks, scope.company_id, label="GET /api/risks")
    return [RiskResponse(**risk) for risk in risks]


@router.get("/{risk_id}", response_model=RiskResponse)
def get_risk(
    risk_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.RISK_READ)),
    db: Database = Depends(get_database),
) -> RiskResponse:
    with db.connect() as conn:
        risk = fetch_scoped(conn, RISKS, risk_id, scope_for(principal, RISKS))
    return RiskResponse(**risk)


@router.put("/{risk_id}", response_model=RiskResponse)
def update_risk(
    request: RiskUpdateRequest,
    risk_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.RISK_UPDATE)),
    db: Database = Depends(get_database),
) -> RiskResponse:
    scope = company_scope(principal)
    values = update_values(request, required=("project_id", "description", "status"))

    with db.transaction() as conn:
        before = fetch_scoped(conn, RISKS, risk_id, scope)
        if "project_id" in values:
            require_project_in_company(conn, values["project_id"], scope.company_id)
        if values:
            values["updated_at"] = now_iso()
        risk = update_row(conn, "risks", risk_id, values, company_id=scope.company_id)
        record_activity(conn, scope.company_id, EntityType.risk, risk_id, "Updated risk",
                        old_value=before, new_value=risk)

    return RiskResponse(**risk)


@router.delete("/{risk_id}")
def delete_risk(
    risk_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.RISK_DELETE)),
    db: Database = Depends(get_database),
):
    scope = company_scope(principal)

    with db.transaction() as conn:
        before = fetch_scoped(conn, RISKS, risk_id, scope)
        risk = update_row(
            conn,
            "risks",
            risk_id,
            {"status": DELETED_STATUS, "updated_at": now_iso()},
            company_id=scope.company_id,
        )
        record_activity(conn, scope.company_id, EntityType.risk, risk_id, "Deleted risk",
                        old_value=before, new_value=risk)

    if IS_DEV:
        print(f"[RISKS] Soft-deleted risk_id={risk_id}, company_id={scope.company_id}")
    return {"message": "Risk marked as deleted", "risk": RiskResponse(**risk)}
