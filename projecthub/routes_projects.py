"""
projecthub/routes_projects.py

Project CRUD with tenant-safe queries.

Security guarantees:
- company_id comes from the token, never from the client
- Lists are narrowed, not denied: admin and manager see every company
  project, a plain user only projects holding a task assigned to them
- Foreign and missing ids both answer 404
- A project that still has dependent rows cannot be deleted (409)
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.engine import Connection

from projecthub.auth_context import Principal, get_database
from projecthub.authz import Action, can
from projecthub.config import IS_DEV
from projecthub.db import Database, execute, fetch_all, fetch_count, insert_row, now_iso, update_row
from projecthub.dependencies import require_action
from projecthub.errors import Conflict
from projecthub.models import DELETED_STATUS
from projecthub.schemas import (
    MessageResponse,
    ProjectCreateRequest,
    ProjectResponse,
    ProjectUpdateRequest,
    ProjectWithRelatedResponse,
    update_values,
)
from projecthub.tenant import (
    PROJECTS,
    RESOURCES,
    RISKS,
    TASKS,
    assert_rows_scoped,
    company_scope,
    fetch_scoped,
    scope_for,
    scoped_where,
)


router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    request: ProjectCreateRequest,
    principal: Principal = Depends(require_action(Action.PROJECT_CREATE)),
    db: Database = Depends(get_database),
) -> ProjectResponse:
    scope = company_scope(principal)
    now = now_iso()

    with db.transaction() as conn:
        project = insert_row(conn, "projects", {
            **request.model_dump(),
            "company_id": scope.company_id,
            "created_at": now,
            "updated_at": now,
        })

    if IS_DEV:
        print(f"[PROJECTS] Created project_id={project['id']}, company_id={scope.company_id}, "
              f"user_id={principal.user_id}")

    return ProjectResponse(**project)


# Embedded lists of the project view, each behind its own list action
RELATED = (
    ("tasks", TASKS, Action.TASK_LIST),
    ("risks", RISKS, Action.RISK_LIST),
    ("resources", RESOURCES, Action.RESOURCE_LIST),
)


def _related_rows(
    conn: Connection,
    principal: Principal,
    project_ids: Sequence[int],
) -> Dict[str, Dict[int, List[Dict[str, Any]]]]:
    """
    Rows related to the listed projects, grouped by project id.

    Each entity goes through its own scope, so a plain user only gets their
    own tasks, and resources are left out entirely without "View Resources".
    """
    wanted = set(project_ids)
    related: Dict[str, Dict[int, List[Dict[str, Any]]]] = {}

    for key, entity, action in RELATED:
        if not can(principal, action).allowed:
            continue
        scope = scope_for(principal, entity)
        where, params = scoped_where(scope, entity)
        rows = fetch_all(conn, f"SELECT * FROM {entity.table} WHERE {where} ORDER BY id", params)
        assert_rows_scoped(rows, scope.company_id, label=f"GET /api/projects ({key})")

        grouped: Dict[int, List[Dict[str, Any]]] = {project_id: [] for project_id in wanted}
        for row in rows:
            if row["project_id"] in wanted:
                grouped[row["project_id"]].append(row)
        related[key] = grouped

    return related


@router.get("", response_model=List[ProjectWithRelatedResponse], response_model_exclude_unset=True)
def list_projects(
    include_related: bool = Query(False, alias="includeRelated"),
    principal: Principal = Depends(require_action(Action.PROJECT_LIST)),
    db: Database = Depends(get_database),
) -> List[ProjectWithRelatedResponse]:
    """
    Projects visible to the caller.

    With ?includeRelated=true each project also carries its tasks, live risks
    and live resources, filtered by the same rules as their own list endpoints.
    """
    scope = scope_for(principal, PROJECTS)
    where, params = scoped_where(scope, PROJECTS, alias="p")

    with db.connect() as conn:
        projects = fetch_all(conn, f"SELECT p.* FROM projects p WHERE {where} ORDER BY p.id", params)
        related = {}
        if include_related and projects:
            related = _related_rows(conn, principal, [project["id"] for project in projects])

    assert_rows_scoped(projects, scope.company_id, label="GET /api/projects")
    return [
        ProjectWithRelatedResponse(
            **project,
            **{key: grouped[project["id"]] for key, grouped in related.items()},
        )
        for project in projects
    ]


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.PROJECT_READ)),
    db: Database = Depends(get_database),
) -> ProjectResponse:
    with db.connect() as conn:
        project = fetch_scoped(conn, PROJECTS, project_id, scope_for(principal, PROJECTS))
    return ProjectResponse(**project)


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    request: ProjectUpdateRequest,
    project_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.PROJECT_UPDATE)),
    db: Database = Depends(get_database),
) -> ProjectResponse:
    scope = company_scope(principal)
    values = update_values(request, required=("name", "status"))

    with db.transaction() as conn:
        fetch_scoped(conn, PROJECTS, project_id, scope)
        if values:
            values["updated_at"] = now_iso()
        project = update_row(conn, "projects", project_id, values, company_id=scope.company_id)

    return ProjectResponse(**project)


@router.delete("/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: int = Path(..., ge=1),
    principal: Principal = Depends(require_action(Action.PROJECT_DELETE)),
    db: Database = Depends(get_database),
) -> MessageResponse:
    """
    Hard delete.

    Raises:
        Conflict(409): the project still has tasks, budgets, or live risks or
            resources
    """
    scope = company_scope(principal)

    with db.transaction() as conn:
        fetch_scoped(conn, PROJECTS, project_id, scope)
        params = {"project_id": project_id, "company_id": scope.company_id}

        tasks = fetch_count(
            conn,
            "SELECT COUNT(*) FROM tasks WHERE project_id = :project_id AND company_id = :company_id",
            params,
        )
        if tasks:
            print(f"[PROJECTS] Refused delete of project_id={project_id}: {tasks} task(s)")
            raise Conflict("Cannot delete project with existing tasks", details="project_has_tasks")

        dependents = fetch_count(
            conn,
            "SELECT "
            "(SELECT COUNT(*) FROM budgets WHERE project_id = :project_id AND company_id = :company_id) + "
            "(SELECT COUNT(*) FROM risks WHERE project_id = :project_id AND company_id = :company_id "
            "AND status <> :deleted) + "
            "(SELECT COUNT(*) FROM resources WHERE project_id = :project_id AND company_id = :company_id "
            "AND status <> :deleted)",
            {**params, "deleted": DELETED_STATUS},
        )
        if dependents:
            print(f"[PROJECTS] Refused delete of project_id={project_id}: {dependents} dependent row(s)")
            raise Conflict(
                "Cannot delete project with existing budgets, risks or resources",
                details="project_has_dependents",
            )

        execute(
            conn,
            "DELETE FROM projects WHERE id = :project_id AND company_id = :company_id",
            params,
        )

    print(f"[PROJECTS] Deleted project_id={project_id}, company_id={scope.company_id}, "
          f"user_id={principal.user_id}")
    return MessageResponse(message="Project deleted successfully")
