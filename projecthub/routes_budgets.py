"""
projecthub/routes_budgets.py

Project budget lines. Mutations are logged to the activity log inside the
same transaction.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from projecthub.activity import record_activity
from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.config import IS_DEV
from projecthub.db import Database, execute, fetch_all, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.models import EntityType
from projecthub.schemas import BudgetCreateRequest, BudgetResponse, BudgetUpdateRequest, MessageResponse, update_values
from projecthub.tenant import (
    BUDGETS,
    assert_rows_scoped,
    company_scope,
    fetch_scoped,
    require_project_in_company,
    scope_for,
    scoped_where,
)


router = APIRouter(
    prefix="/api/budgets",
    tags=["budgets"],
)


@router.post("", response_model=BudgetResponse, status_code=201)
def create_budget(
    request: BudgetCreateRequest,
    principal: Principal = Depends(require_action(Action.BUDGET_CREATE)),
    db: Database = Depends(get_database),
) -> BudgetResponse:
    scope = company_scope(principal)
    now = now_iso()

    with db.transaction() as conn:
        require_project_in_company(conn, request.project_id, scope.company_id)
        budget = insert_row(conn, "budgets", {
            **request.model_dump(),
            "company_id": scope.company_id,
            "created_at": now,
            "updated_at": now,
        })
        record_activity(conn, scope.company_id, EntityType.budget, budget["id"], "Created budget",
                        new_value=budget)

    return BudgetResponse(**budget)


@router.get("", response_model=List[BudgetResponse])
def list_budgets(
    project_id: Optional[int] = Query(None, alias="projectId", ge=1),
    principal: Principal = Depends(require_action(Action.BUDGET_LIST)),
    db: Database = Depends(get_database),
) -> List[BudgetResponse]:
    scope = scope_for(principal, BUDGETS)
    where, params = scoped_where(scope, BUDGETS)
    if project_id is not None:
        where += " AND project_id = :project_id"
        params["project_id"] = project_id

    with db.connect() as conn:
        budgets = fetch_all(conn, f"SELECT * FROM budgets WHERE {where} ORDER BY id", params)

    assert_rows_scoped(budgets, scope.company_id, label="GET /api/budgets")
    return [BudgetResponse(**budget) for budget in budgets]


@router.get("/{budget_id}", response_model=BudgetResponse)
def get_budget(
    budget_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.BUDGET_READ)),
    db: Database = Depends(get_database),
) -> BudgetResponse:
    with db.connect() as conn:
        budget = fetch_scoped(conn, BUDGETS, budget_id, scope_for(principal, BUDGETS))
    return BudgetResponse(**budget)


@router.put("/{budget_id}", response_model=BudgetResponse)
def update_budget(
    request: BudgetUpdateRequest,
    budget_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.BUDGET_UPDATE)),
    db: Database = Depends(get_database),
) -> BudgetResponse:
    scope = company_scope(principal)
    values = update_values(request, required=("project_id", "category", "planned_amount", "actual_amount"))

    with db.transaction() as conn:
        before = fetch_scoped(conn, BUDGETS, budget_id, scope)
        if "project_id" in values:
            require_project_in_company(conn, values["project_id"], scope.company_id)
        if values:
            values["updated_at"] = now_iso()
        budget = update_row(conn, "budgets", budget_id, values, company_id=scope.company_id)
        record_activity(conn, scope.company_id, EntityType.budget, budget_id, "Updated budget",
                        old_value=before, new_value=budget)

    return BudgetResponse(**budget)


@router.delete("/{budget_id}", response_model=MessageResponse)
def delete_budget(
    budget_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.BUDGET_DELETE)),
    db: Database = Depends(get_database),
) -> MessageResponse:
    scope = company_scope(principal)

    with db.transaction() as conn:
        before = fetch_scoped(conn, BUDGETS, budget_id, scope)
        execute(
            conn,
            "DELETE FROM budgets WHERE id = :id AND company_id = :company_id",
            {"id": budget_id, "company_id": scope.company_id},
        )
        record_activity(conn, scope.company_id, EntityType.budget, budget_id, "Deleted budget",
                        old_value=before)

    if IS_DEV:
        print(f"[BUDGETS] Deleted budget_id={budget_id}, company_id={scope.company_id}")
    return MessageResponse(message="Budget deleted successfully")
