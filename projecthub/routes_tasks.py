"""
projecthub/routes_tasks.py

Task CRUD.

Principals that are neither admin nor holders of "Assign Tasks" only see
tasks assigned to themselves. projectId and assignedTo must both point
inside the caller's company.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.engine import Connection

from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action
from projecthub.config import IS_DEV
from projecthub.db import Database, execute, fetch_all, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.schemas import MessageResponse, TaskCreateRequest, TaskResponse, TaskUpdateRequest, update_values
from projecthub.tenant import (
    TASKS,
    assert_rows_scoped,
    company_scope,
    fetch_scoped,
    require_project_in_company,
    require_user_in_company,
    scope_for,
    scoped_where,
)


router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


def _check_references(conn: Connection, values: Dict[str, Any], company_id: int) -> None:
    if "project_id" in values:
        require_project_in_company(conn, values["project_id"], company_id)
    if values.get("assigned_to") is not None:
        require_user_in_company(conn, values["assigned_to"], company_id)


@router.post("", response_model=TaskResponse, status_code=201)
def create_task(
    request: TaskCreateRequest,
    principal: Principal = Depends(require_action(Action.TASK_CREATE)),
    db: Database = Depends(get_database),
) -> TaskResponse:
    """
    Raises:
        CrossTenantReference(400): project or assignee outside the company
    """
    scope = company_scope(principal)
    values = request.model_dump()
    now = now_iso()

    with db.transaction() as conn:
        _check_references(conn, values, scope.company_id)
        task = insert_row(conn, "tasks", {
            **values,
            "company_id": scope.company_id,
            "created_at": now,
            "updated_at": now,
        })

    if IS_DEV:
        print(f"[TASKS] Created task_id={task['id']}, project_id={task['project_id']}, "
              f"company_id={scope.company_id}")

    return TaskResponse(**task)


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    project_id: Optional[int] = Query(None, alias="projectId", ge=1),
    principal: Principal = Depends(require_action(Action.TASK_LIST)),
    db: Database = Depends(get_database),
) -> List[TaskResponse]:
    scope = scope_for(principal, TASKS)
    where, params = scoped_where(scope, TASKS)
    if project_id is not None:
        where += " AND project_id = :project_id"
        params["project_id"] = project_id

    with db.connect() as conn:
        tasks = fetch_all(conn, f"SELECT * FROM tasks WHERE {where} ORDER BY id", params)

    assert_rows_scoped(tasks, scope.company_id, label="GET /api/tasks")
    return [TaskResponse(**task) for task in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.TASK_READ)),
    db: Database = Depends(get_database),
) -> TaskResponse:
    with db.connect() as conn:
        task = fetch_scoped(conn, TASKS, task_id, scope_for(principal, TASKS))
    return TaskResponse(**task)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    request: TaskUpdateRequest,
    task_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.TASK_UPDATE)),
    db: Database = Depends(get_database),
) -> TaskResponse:
    scope = company_scope(principal)
    values = update_values(request, required=("project_id", "title", "status"))

    with db.transaction() as conn:
        fetch_scoped(conn, TASKS, task_id, scope)
        _check_references(conn, values, scope.company_id)
        if values:
            values["updated_at"] = now_iso()
        task = update_row(conn, "tasks", task_id, values, company_id=scope.company_id)

    return TaskResponse(**task)


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.TASK_DELETE)),
    db: Database = Depends(get_database),
) -> MessageResponse:
    scope = company_scope(principal)

    with db.transaction() as conn:
        fetch_scoped(conn, TASKS, task_id, scope)
        execute(
            conn,
            "DELETE FROM tasks WHERE id = :id AND company_id = :company_id",
            {"id": task_id, "company_id": scope.company_id},
        )

    if IS_DEV:
        print(f"[TASKS] Deleted task_id={task_id}, company_id={scope.company_id}")
    return MessageResponse(message="Task deleted successfully")
